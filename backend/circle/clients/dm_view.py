# circle/clients/dm_view.py

import logging
import threading
from typing import Optional

import requests

from circle.clients.ephemeral import EphemeralSession, thread_timer
from circle.clients.messaging_client import MessagingClient, MessagingError
from circle.config import DEFAULT_TTL_SECONDS, POLL_INTERVAL_SECONDS
from circle.models.base import utcnow

logger = logging.getLogger(__name__)


class DirectMessageView:
    """
    Client-side state of the direct messages screen.

    Holds the conversation list and the open conversation's messages,
    replaced wholesale on every refresh. Each conversation gets its own
    EphemeralSession the first time it is opened. Sessions outlive
    switching and closing, so a read message is still deleted on time
    after the user moves on; stop() cancels whatever is left.
    """

    def __init__(
        self,
        client: MessagingClient,
        ttl: float = DEFAULT_TTL_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        clock=utcnow,
        timer_factory=thread_timer,
    ):
        self.client = client
        self.ttl = ttl
        self.poll_interval = poll_interval
        self._clock = clock
        self._timer_factory = timer_factory

        self.conversations: list[dict] = []
        self.messages: list[dict] = []
        self.active: Optional[str] = None
        self.sessions: dict[str, EphemeralSession] = {}

        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def viewer(self) -> Optional[str]:
        return self.client.pseudonym

    @property
    def session(self) -> Optional[EphemeralSession]:
        """Session of the open conversation"""
        if not self.active:
            return None
        return self.sessions.get(self.active)

    def open_conversation(self, pseudonym: str) -> None:
        self.active = pseudonym
        self.messages = []
        if pseudonym not in self.sessions:
            self.sessions[pseudonym] = EphemeralSession(
                viewer=self.viewer,
                delete_messages=self.client.delete_messages,
                ttl=self.ttl,
                clock=self._clock,
                timer_factory=self._timer_factory,
                on_deleted=self._drop_message,
            )
        self.refresh()

    def close_conversation(self) -> None:
        # Pending deletes keep running in the background
        self.active = None
        self.messages = []

    def _drop_message(self, message_id: str) -> None:
        with self._state_lock:
            self.messages = [m for m in self.messages if m["id"] != message_id]

    def refresh(self) -> None:
        """
        Re-fetch conversations and the open conversation. Transport errors
        leave the previous state in place.
        """
        try:
            conversations = self.client.list_conversations()
        except (requests.RequestException, MessagingError) as e:
            logger.error("Failed to load conversations: %s", e)
            return
        self.conversations = conversations

        if not self.active or not self.session:
            return

        active, session = self.active, self.session
        try:
            messages = self.client.get_messages(active)
        except (requests.RequestException, MessagingError) as e:
            logger.error("Failed to load messages with %s: %s", active, e)
            return

        # Conversation switched while the request was in flight
        if active != self.active:
            return

        with self._state_lock:
            self.messages = messages

        scheduled = session.track(messages)
        fresh = [mid for mid in scheduled if not self._persisted_expiry(mid)]
        if fresh:
            try:
                self.client.mark_read(fresh, self.ttl)
            except (requests.RequestException, MessagingError) as e:
                logger.warning("Could not persist read state: %s", e)

    def _persisted_expiry(self, message_id: str) -> bool:
        return any(m["id"] == message_id and m.get("expiresAt") for m in self.messages)

    def send(self, content: str, recipient: Optional[str] = None) -> dict:
        recipient = recipient or self.active
        if not recipient:
            raise ValueError("No recipient")
        if recipient == self.viewer:
            raise ValueError("You cannot send messages to yourself")

        message = self.client.send_message(recipient, content)
        if recipient != self.active:
            self.open_conversation(recipient)
        else:
            self.refresh()
        return message

    def delete(self, ids: list[str]) -> int:
        removed = self.client.delete_messages(ids)
        with self._state_lock:
            self.messages = [m for m in self.messages if m["id"] not in ids]
        return removed

    # ---------- polling ----------

    def _poll(self) -> None:
        while not self._stop.wait(self.poll_interval):
            try:
                self.refresh()
            except Exception:
                logger.exception("Refresh failed")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll, name="dm-poll", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self.poll_interval + 1)
        self._thread = None
        self.close_conversation()

        sessions, self.sessions = list(self.sessions.values()), {}
        for session in sessions:
            session.close()
