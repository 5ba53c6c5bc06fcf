# circle/api/tor.py

from fastapi import APIRouter

from circle.services.tor import check_tor_connection

router = APIRouter(prefix="/tor")


@router.get("/status")
def tor_status():
    """Is the server's Tor SOCKS proxy usable, and does it hide our IP?"""
    return check_tor_connection()
