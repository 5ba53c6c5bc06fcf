# circle/core/rate_limit.py

from slowapi import Limiter
from slowapi.util import get_remote_address


# Keyed on client address; storage is in-process memory
limiter = Limiter(key_func=get_remote_address)
