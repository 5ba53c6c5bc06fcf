# circle/clients/ephemeral.py

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from circle.config import DEFAULT_TTL_SECONDS, TTL_CHOICES
from circle.models.base import utcnow

logger = logging.getLogger(__name__)


def thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class EphemeralSession:
    """
    Read-triggered deletion for one conversation.

    Every incoming message handed to track() is marked read and gets one
    one-shot timer; when it fires, the message is deleted through
    delete_messages. A failed delete is logged and dropped: the message
    stays on the server and the session never re-arms it.

    The view keeps one session per conversation until it stops, so timers
    keep running after the user switches to another conversation.
    State is not persisted here; deadlines survive reloads only through
    the expiresAt the server returns with each message.
    """

    def __init__(
        self,
        viewer: str,
        delete_messages: Callable[[list[str]], object],
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        timer_factory: Callable[[float, Callable[[], None]], object] = thread_timer,
        on_deleted: Optional[Callable[[str], None]] = None,
    ):
        if ttl not in TTL_CHOICES:
            raise ValueError(f"TTL must be one of {list(TTL_CHOICES)}, got {ttl}")

        self.viewer = viewer
        self.ttl = float(ttl)
        self._delete_messages = delete_messages
        self._clock = clock
        self._timer_factory = timer_factory
        self._on_deleted = on_deleted

        self._lock = threading.Lock()
        self._scheduled: set[str] = set()
        self._read: set[str] = set()
        self._expires: dict[str, datetime] = {}
        self._timers: dict[str, object] = {}
        self._closed = False

    def _is_own(self, message: dict) -> bool:
        if "isOwn" in message:
            return bool(message["isOwn"])
        return message.get("senderPseudonym") == self.viewer

    def track(self, messages: Iterable[dict]) -> dict[str, datetime]:
        """
        Schedule deletion for incoming messages not seen before.

        A message that already carries an expiresAt (read in an earlier
        session) resumes its countdown; anything else starts a full TTL.
        Returns {id: expires_at} for the newly scheduled messages.
        """
        newly = {}
        to_start = []
        with self._lock:
            if self._closed:
                return newly

            now = self._clock()
            for message in messages:
                message_id = message["id"]
                if self._is_own(message) or message_id in self._scheduled:
                    continue

                expires_at = message.get("expiresAt") or now + timedelta(seconds=self.ttl)
                delay = max(0.0, (expires_at - now).total_seconds())

                self._scheduled.add(message_id)
                self._read.add(message_id)
                self._expires[message_id] = expires_at

                timer = self._timer_factory(delay, lambda mid=message_id: self._fire(mid))
                self._timers[message_id] = timer
                to_start.append(timer)

                newly[message_id] = expires_at
                logger.debug("👁️ Message %s read, deleting in %.1fs", message_id, delay)

        for timer in to_start:
            timer.start()
        return newly

    def _fire(self, message_id: str) -> None:
        with self._lock:
            if self._closed or self._timers.pop(message_id, None) is None:
                return

        try:
            self._delete_messages([message_id])
        except Exception as e:
            # No retry: the row stays until someone deletes it or it expires server-side
            logger.warning("Ephemeral delete failed for %s: %s", message_id, e)
            return

        with self._lock:
            self._read.discard(message_id)
            self._expires.pop(message_id, None)

        logger.info("🗑️ Ephemeral message %s deleted", message_id)
        if self._on_deleted:
            self._on_deleted(message_id)

    def is_scheduled(self, message_id: str) -> bool:
        return message_id in self._scheduled

    def is_read(self, message_id: str) -> bool:
        return message_id in self._read

    def expires_at(self, message_id: str) -> Optional[datetime]:
        return self._expires.get(message_id)

    def remaining(self, message_id: str) -> Optional[float]:
        """Seconds left before deletion, None if not pending"""
        expires_at = self._expires.get(message_id)
        if expires_at is None:
            return None
        return max(0.0, (expires_at - self._clock()).total_seconds())

    def close(self) -> None:
        """Cancel all pending timers; the session cannot be reused."""
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()

        for timer in timers:
            timer.cancel()
