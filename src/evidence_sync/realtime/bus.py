"""
Realtime Message Bus

Team-chat state for one case: optimistic sends, merging of server echoes and
other clients' messages from the real-time channel, and unread tracking.

Delivery from the channel is at-least-once and includes the sender's own
messages, so every inbound row is merged by id and dropped if already known.
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import ValidationError

from evidence_sync.infrastructure.store import RealtimeEvent, RemoteStore, RemoteStoreError, Subscription
from evidence_sync.models import TeamMessage

logger = logging.getLogger(__name__)

TEAM_MESSAGES_TABLE = "team_messages"


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"


class RealtimeMessageBus:
    """Team chat for the case a client currently has open"""

    def __init__(self, store: Optional[RemoteStore]):
        self.store = store
        self.state = SubscriptionState.UNSUBSCRIBED
        self.case_id: Optional[str] = None

        self.messages: List[TeamMessage] = []
        self._known_ids: Set[str] = set()

        self.unread = False
        self.focused = False

        # id -> error text of sends that never reached the store
        self.failed_sends: Dict[str, str] = {}

        self._subscription: Optional[Subscription] = None
        self._pump: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def offline(self) -> bool:
        return self.store is None

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def subscribe(self, case_id: str) -> None:
        """
        Open the insert stream for ``case_id``, replacing any current one.

        Local chat state starts empty. Subscribe before fetching the history
        and pass it to ``load_history`` so that messages inserted in between
        arrive through the stream instead of being missed.
        """
        if self.state is not SubscriptionState.UNSUBSCRIBED:
            await self.unsubscribe()

        self._reset()
        self.case_id = case_id
        if self.offline:
            logger.warning(f"Remote store not configured, team chat for {case_id} is local only")
            return

        self.state = SubscriptionState.SUBSCRIBING
        try:
            self._subscription = self.store.subscribe_insert(TEAM_MESSAGES_TABLE, {"case_id": case_id})
        except RemoteStoreError as e:
            logger.error(f"Failed to subscribe to team chat for {case_id}: {e}")
            self.state = SubscriptionState.UNSUBSCRIBED
            return

        self._pump = asyncio.create_task(self._consume(self._subscription))
        self.state = SubscriptionState.ACTIVE
        logger.info(f"Subscribed to team chat for case {case_id}")

    async def _consume(self, subscription: Subscription) -> None:
        try:
            async for event in subscription:
                self.on_remote_insert(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Team chat stream for {self.case_id} failed: {e}")
        finally:
            subscription.close()
            if self._subscription is subscription:
                self._subscription = None
                self.state = SubscriptionState.UNSUBSCRIBED

    async def unsubscribe(self) -> None:
        """Tear down the stream. Safe to call repeatedly and after failures."""
        subscription, pump = self._subscription, self._pump
        self._subscription = None
        self._pump = None
        try:
            if pump is not None and not pump.done():
                pump.cancel()
                try:
                    await pump
                except asyncio.CancelledError:
                    pass
        finally:
            if subscription is not None:
                subscription.close()
            if self.state is not SubscriptionState.UNSUBSCRIBED:
                logger.info(f"Unsubscribed from team chat for case {self.case_id}")
            self.state = SubscriptionState.UNSUBSCRIBED

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.messages = []
        self._known_ids = set()
        self.failed_sends = {}
        self.unread = False

    def load_history(self, messages: List[TeamMessage]) -> None:
        """
        Seed local chat state with a loaded history.

        Messages already received from the stream or sent from this client are
        kept once, and the result is ordered by timestamp with history first
        among equal timestamps.
        """
        live = self.messages
        self.messages = []
        self._known_ids = set()
        for message in [*messages, *live]:
            self._append(message)
        self.messages.sort(key=lambda m: m.timestamp)

    def _append(self, message: TeamMessage) -> bool:
        if message.id in self._known_ids:
            return False
        self._known_ids.add(message.id)
        self.messages.append(message)
        return True

    def on_remote_insert(self, event: RealtimeEvent) -> Optional[TeamMessage]:
        """
        Merge one change event into local state.

        Returns:
            The appended message, or None if the event was ignored or its id
            was already present (optimistic copy or repeated delivery)
        """
        if event.operation != "INSERT" or event.table != TEAM_MESSAGES_TABLE:
            return None

        try:
            message = TeamMessage.model_validate(event.row)
        except ValidationError as e:
            logger.warning(f"Dropping malformed team message event: {e}")
            return None

        if not self._append(message):
            logger.debug(f"Duplicate team message {message.id} ignored")
            return None

        if not self.focused:
            self.unread = True
        return message

    def mark_opened(self) -> None:
        """The chat surface is visible; everything counts as read"""
        self.focused = True
        self.unread = False

    def mark_closed(self) -> None:
        self.focused = False

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, message: TeamMessage) -> Optional[asyncio.Task]:
        """
        Show ``message`` immediately and write it to the store in the background.

        The write is keyed by the message id, so the echo coming back through
        the channel is recognized and dropped. A failed write is logged and
        recorded in ``failed_sends``; it is not retried automatically and the
        optimistic copy stays visible.

        Returns:
            The background write task, or None in offline mode or when a
            message with the same id is already present
        """
        if self.case_id is None:
            raise RuntimeError("No case open for team chat")

        if not self._append(message):
            logger.warning(f"Message {message.id} already in team chat, not sent again")
            return None

        if self.offline:
            logger.debug(f"Remote store not configured, message {message.id} kept locally")
            return None
        return self._schedule_write(message)

    def resend(self, message_id: str) -> Optional[asyncio.Task]:
        """Re-issue the write for a message whose earlier send failed"""
        if message_id not in self.failed_sends:
            return None
        message = next((m for m in self.messages if m.id == message_id), None)
        if message is None or self.offline:
            return None
        return self._schedule_write(message)

    def _schedule_write(self, message: TeamMessage) -> asyncio.Task:
        task = asyncio.create_task(self._write(self.case_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, case_id: str, message: TeamMessage) -> bool:
        try:
            await self.store.upsert(TEAM_MESSAGES_TABLE, [message.to_row(case_id)], "id")
        except RemoteStoreError as e:
            logger.error(f"Error sending message {message.id}: {e}")
            self.failed_sends[message.id] = str(e)
            return False

        self.failed_sends.pop(message.id, None)
        logger.debug(f"Message {message.id} saved to remote store")
        return True

    async def flush(self) -> None:
        """Wait for every outstanding write"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
