# circle/services/tor.py

import logging
import time

import requests

from circle.clients.messaging_client import tor_proxies
from circle.config import TOR_CHECK_TIMEOUT, TOR_CHECK_URL

logger = logging.getLogger(__name__)


def fetch_ip(session: requests.Session, url: str = TOR_CHECK_URL, timeout: float = TOR_CHECK_TIMEOUT) -> str:
    resp = session.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()["origin"]


def check_tor_connection(
    url: str = TOR_CHECK_URL,
    timeout: float = TOR_CHECK_TIMEOUT,
) -> dict:
    """
    Ask an IP echo service for our address through Tor and directly.

    Tor counts as connected when the proxied request succeeds; the IP is
    hidden when the two answers differ. Failures end up in "error".
    """
    report = {
        "connected": False,
        "torIp": None,
        "realIp": None,
        "ipHidden": False,
        "latencyMs": None,
        "error": None,
    }

    tor_session = requests.Session()
    tor_session.proxies = tor_proxies()
    started = time.monotonic()
    try:
        report["torIp"] = fetch_ip(tor_session, url, timeout)
        report["latencyMs"] = int((time.monotonic() - started) * 1000)
        report["connected"] = True
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.warning("Tor check failed: %s", e)
        report["error"] = str(e)
        return report
    finally:
        tor_session.close()

    with requests.Session() as direct:
        try:
            report["realIp"] = fetch_ip(direct, url, timeout)
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.info("Direct IP lookup failed: %s", e)

    report["ipHidden"] = report["realIp"] != report["torIp"]
    logger.info("🧅 Tor check: connected, ip hidden=%s", report["ipHidden"])
    return report
