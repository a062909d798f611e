"""Message events and the observers that deliver them.

Durable append is the authoritative effect of a send. Once a message is
stored, the dispatcher publishes a ``MessageSent`` event and each observer
delivers it independently: live push to connected sessions, and an
out-of-band notification to the counterparty. Observer failures are logged
and never reach the sender.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Protocol

from app.core.config import settings
from app.domains.chat.registry import ChannelHandle, SessionRegistry
from app.schemas.chat import ChatMessageResponse, LiveEvent
from app.schemas.identity import Party, PartyIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageSent:
    """A message that has been durably appended.

    ``recipient`` carries the counterparty's contact details and is ``None``
    when they could not be resolved; live push only needs ``recipient_party``.
    """

    message: ChatMessageResponse
    conversation_id: int
    product_name: str
    sender_name: str
    recipient_party: Party
    recipient: PartyIdentity | None = None


MessageListener = Callable[[MessageSent], Awaitable[None]]


class NotificationSink(Protocol):
    """Out-of-band delivery to a party, e.g. email."""

    def notify(
        self,
        to_address: str,
        to_display_name: str,
        from_display_name: str,
        product_name: str,
        body: str,
        conversation_id: int,
        recipient_role: str,
    ) -> Any: ...


class MessageEventBus:
    """Fans ``MessageSent`` events out to independent listeners.

    Also owns the background tasks listeners spawn, so that shutdown (and
    tests) can wait for them with :meth:`drain`.
    """

    def __init__(self):
        self._listeners: list[MessageListener] = []
        self._background: set[asyncio.Task] = set()

    def subscribe(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    async def publish(self, event: MessageSent) -> None:
        """Deliver ``event`` to every listener; one failing listener does not stop the others."""
        await asyncio.gather(*(self._deliver(listener, event) for listener in self._listeners))

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Run ``coro`` in the background without blocking the publisher."""
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for all background work spawned so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _deliver(self, listener: MessageListener, event: MessageSent) -> None:
        try:
            await listener(event)
        except Exception as e:
            logger.error(
                f"❌ Listener {type(listener).__name__} failed for message #{event.message.id}: {str(e)}"
            )

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"❌ Background task {task.get_name()} failed: {str(exc)}")


class LivePushListener:
    """Pushes each message to the counterparty's open live channels.

    The fan-out runs as a background task on the bus, so a slow channel
    holds up neither the sender nor the other listeners.
    """

    def __init__(self, registry: SessionRegistry, bus: MessageEventBus, timeout: float | None = None):
        self.registry = registry
        self.bus = bus
        self.timeout = timeout or settings.chat_push_timeout_seconds

    async def __call__(self, event: MessageSent) -> None:
        handles = self.registry.active_handles_for(event.recipient_party, event.conversation_id)
        if not handles:
            logger.debug(
                f"No live session for {event.recipient_party} on chat #{event.conversation_id}; "
                "message remains available through history"
            )
            return

        self.bus.spawn(self._fan_out(event, handles), name=f"chat-push-{event.message.id}")

    async def _fan_out(self, event: MessageSent, handles: set[ChannelHandle]) -> None:
        payload = LiveEvent(type="message", data=event.message.model_dump(mode="json")).model_dump(mode="json")
        results = await asyncio.gather(*(self._push(handle, payload) for handle in handles))
        logger.info(
            f"📡 Pushed message #{event.message.id} to {sum(results)}/{len(results)} "
            f"session(s) of {event.recipient_party}"
        )

    async def _push(self, handle: ChannelHandle, payload: dict) -> bool:
        try:
            await asyncio.wait_for(handle.push(payload), timeout=self.timeout)
            return True
        except Exception as e:
            # Timed out or closed: drop the handle, keep going with the others
            logger.warning(f"⚠️ Live push to handle {handle.id} failed ({type(e).__name__}), unsubscribing")
            self.registry.unsubscribe(handle)
            return False


class NotificationListener:
    """Submits one notification per message to the counterparty.

    Notifications fire on every message, whether or not the recipient also
    received a live push.
    """

    def __init__(self, sink: NotificationSink, bus: MessageEventBus):
        self.sink = sink
        self.bus = bus

    async def __call__(self, event: MessageSent) -> None:
        if event.recipient is None:
            logger.warning(
                f"⚠️ Skipping notification for message #{event.message.id}: "
                f"no contact details for {event.recipient_party}"
            )
            return
        self.bus.spawn(self._submit(event), name=f"chat-notify-{event.message.id}")

    async def _submit(self, event: MessageSent) -> None:
        recipient = event.recipient
        # Broker publish may block on I/O
        await asyncio.to_thread(
            self.sink.notify,
            to_address=recipient.email,
            to_display_name=recipient.name,
            from_display_name=event.sender_name,
            product_name=event.product_name,
            body=event.message.body,
            conversation_id=event.conversation_id,
            recipient_role=recipient.party.role.value,
        )
        logger.info(f"📧 Notification queued for {recipient.email} about chat #{event.conversation_id}")
