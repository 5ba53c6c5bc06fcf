# circle/config.py

import os

# =========================
# DATABASE
# =========================

DB_USER = os.getenv("DB_USER", "circle_user")
DB_PASS = os.getenv("DB_PASS", "circle")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "circle")

# DATABASE_URL wins over the individual DB_* settings (tests use sqlite://)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# =========================
# CLIENT / NETWORK
# =========================

SERVER_URL = os.getenv("SERVER_URL", "http://127.0.0.1:8000")

TOR_SOCKS_HOST = os.getenv("TOR_SOCKS_HOST", "127.0.0.1")
TOR_SOCKS_PORT = int(os.getenv("TOR_SOCKS_PORT", "9050"))
TOR_CHECK_URL = os.getenv("TOR_CHECK_URL", "https://httpbin.org/ip")
TOR_CHECK_TIMEOUT = float(os.getenv("TOR_CHECK_TIMEOUT", "10"))

# =========================
# EPHEMERAL MESSAGING
# =========================

POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))

# "after read" is not instant: leave the message on screen briefly
AFTER_READ_TTL_SECONDS = 1.5
TTL_CHOICES = (AFTER_READ_TTL_SECONDS, 10, 30, 60, 300)
DEFAULT_TTL_SECONDS = float(os.getenv("DEFAULT_TTL_SECONDS", "30"))

# =========================
# API
# =========================

SEND_MESSAGE_LIMIT = os.getenv("SEND_MESSAGE_LIMIT", "30/minute")

# =========================
# LOGGING
# =========================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE") or None
