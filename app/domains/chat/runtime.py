"""Process-scoped chat components."""

from dataclasses import dataclass

from app.domains.chat.events import LivePushListener, MessageEventBus, NotificationListener, NotificationSink
from app.domains.chat.registry import SessionRegistry
from app.services.notification_service import ChatNotificationSink


@dataclass
class ChatRuntime:
    """The live-session registry and event bus shared by all requests of one process."""

    registry: SessionRegistry
    bus: MessageEventBus


def create_chat_runtime(sink: NotificationSink | None = None, push_timeout: float | None = None) -> ChatRuntime:
    """Wire the registry and the delivery observers onto a fresh event bus."""
    sink = sink or ChatNotificationSink()
    registry = SessionRegistry()
    bus = MessageEventBus()
    bus.subscribe(LivePushListener(registry, bus, timeout=push_timeout))
    bus.subscribe(NotificationListener(sink, bus))
    return ChatRuntime(registry=registry, bus=bus)
