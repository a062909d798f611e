"""In-process registry of live chat subscriptions."""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

from app.schemas.identity import Party

logger = logging.getLogger(__name__)


class LiveChannel(Protocol):
    """Anything that can receive a JSON frame, e.g. a FastAPI ``WebSocket``."""

    async def send_json(self, data: Any) -> None: ...


@dataclass(eq=False)
class ChannelHandle:
    """One subscription of a party to a conversation's live channel."""

    party: Party
    conversation_id: int
    channel: LiveChannel
    id: str = field(default_factory=lambda: uuid4().hex)

    async def push(self, payload: dict) -> None:
        await self.channel.send_json(payload)


class SessionRegistry:
    """Maps (party, conversation) to the handles currently subscribed.

    A party may hold several handles for the same conversation (one per
    device). State lives only as long as the process; other instances keep
    their own registry.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handles: dict[tuple[Party, int], set[ChannelHandle]] = defaultdict(set)

    def subscribe(self, party: Party, conversation_id: int, channel: LiveChannel) -> ChannelHandle:
        """Register ``channel`` for live delivery and return its handle."""
        handle = ChannelHandle(party=party, conversation_id=conversation_id, channel=channel)
        with self._lock:
            self._handles[(party, conversation_id)].add(handle)
        logger.info(f"🔌 {party} subscribed to chat #{conversation_id} (handle {handle.id})")
        return handle

    def unsubscribe(self, handle: ChannelHandle) -> bool:
        """Remove a handle. Returns False if it was already gone."""
        key = (handle.party, handle.conversation_id)
        with self._lock:
            handles = self._handles.get(key)
            if not handles or handle not in handles:
                return False
            handles.discard(handle)
            if not handles:
                del self._handles[key]
        logger.info(f"🔌 {handle.party} unsubscribed from chat #{handle.conversation_id} (handle {handle.id})")
        return True

    def active_handles_for(self, party: Party, conversation_id: int) -> set[ChannelHandle]:
        """Snapshot of the party's handles; empty means offline."""
        with self._lock:
            return set(self._handles.get((party, conversation_id), ()))

    def count(self) -> int:
        with self._lock:
            return sum(len(handles) for handles in self._handles.values())
