"""
Unit tests for ChatDispatcher and the message event bus.

Covers the delivery contract: the store append is authoritative, live push
reaches only the counterparty's sessions, and every stored message produces
exactly one notification no matter what happens to the push.
"""

import asyncio
import dataclasses
import time
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.domains.chat.dispatcher import ChatDispatcher
from app.domains.chat.events import LivePushListener, MessageEventBus, MessageSent, NotificationListener
from app.domains.chat.registry import SessionRegistry
from app.domains.chat.runtime import create_chat_runtime
from app.domains.chat.store import ConversationStore
from app.exceptions.chat import ConversationAccessError, ConversationNotFoundError, InvalidMessageError
from app.schemas.chat import ChatMessageResponse
from app.schemas.identity import Party, PartyIdentity
from models import ChatMessage, SenderRole
from tests.factories import RecordingChannel, RecordingSink


class BrokenChannel:
    async def send_json(self, data):
        raise ConnectionResetError("peer went away")


class StalledChannel:
    async def send_json(self, data):
        await asyncio.sleep(10)


class BrokenSink:
    def __init__(self):
        self.attempts = 0

    def notify(self, **kwargs):
        self.attempts += 1
        raise RuntimeError("broker unavailable")


def party(role: SenderRole, party_id) -> Party:
    return Party(role=role, id=party_id)


@pytest.fixture
async def conversation(test_db, test_customer, test_merchant, test_product):
    return await ConversationStore(test_db).start_conversation(test_customer.id, test_product.id)


@pytest.fixture
def runtime(notification_sink):
    return create_chat_runtime(sink=notification_sink, push_timeout=0.05)


@pytest.fixture
def dispatcher(test_db, runtime):
    return ChatDispatcher(ConversationStore(test_db), runtime.bus)


class TestChatDispatcher:
    """Test cases for ChatDispatcher."""

    @pytest.mark.asyncio
    async def test_customer_message_notifies_merchant(
        self, dispatcher, runtime, notification_sink, test_customer, conversation
    ):
        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Is this still available?")
        await runtime.bus.drain()

        assert message.content == "Is this still available?"
        assert notification_sink.calls == [
            {
                "to_address": "owner@billions.example.com",
                "to_display_name": "Billions Store",
                "from_display_name": "Jane Doe",
                "product_name": "XPS 13",
                "body": "Is this still available?",
                "conversation_id": conversation.id,
                "recipient_role": "merchant",
            }
        ]

    @pytest.mark.asyncio
    async def test_merchant_reply_notifies_customer(
        self, dispatcher, runtime, notification_sink, test_merchant, conversation
    ):
        await dispatcher.send_as_merchant(test_merchant.id, conversation.id, "Yes it is")
        await runtime.bus.drain()

        assert len(notification_sink.calls) == 1
        call = notification_sink.calls[0]
        assert call["to_address"] == "jane@example.com"
        assert call["to_display_name"] == "Jane Doe"
        assert call["from_display_name"] == "Billions Store"
        assert call["recipient_role"] == "customer"

    @pytest.mark.asyncio
    async def test_push_reaches_counterparty_only(
        self, dispatcher, runtime, test_customer, test_merchant, conversation
    ):
        merchant_channel = RecordingChannel()
        customer_channel = RecordingChannel()
        runtime.registry.subscribe(party(SenderRole.MERCHANT, test_merchant.id), conversation.id, merchant_channel)
        runtime.registry.subscribe(party(SenderRole.CUSTOMER, test_customer.id), conversation.id, customer_channel)

        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Hello")
        await runtime.bus.drain()

        assert customer_channel.frames == []
        assert len(merchant_channel.frames) == 1
        frame = merchant_channel.frames[0]
        assert frame["type"] == "message"
        assert frame["data"] == ChatMessageResponse.model_validate(message).model_dump(mode="json")
        assert frame["data"]["body"] == "Hello"
        assert frame["data"]["sender_role"] == "customer"

    @pytest.mark.asyncio
    async def test_push_to_every_device(self, dispatcher, runtime, test_customer, test_merchant, conversation):
        channels = [RecordingChannel(), RecordingChannel()]
        for channel in channels:
            runtime.registry.subscribe(party(SenderRole.MERCHANT, test_merchant.id), conversation.id, channel)

        await dispatcher.send_as_customer(test_customer.id, conversation.id, "Hello")
        await runtime.bus.drain()

        assert [len(channel.frames) for channel in channels] == [1, 1]

    @pytest.mark.asyncio
    async def test_failed_push_is_isolated(
        self, test_db, dispatcher, runtime, notification_sink, test_customer, test_merchant, conversation
    ):
        merchant = party(SenderRole.MERCHANT, test_merchant.id)
        healthy = RecordingChannel()
        broken_handle = runtime.registry.subscribe(merchant, conversation.id, BrokenChannel())
        stalled_handle = runtime.registry.subscribe(merchant, conversation.id, StalledChannel())
        healthy_handle = runtime.registry.subscribe(merchant, conversation.id, healthy)

        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Anyone there?")
        await runtime.bus.drain()

        assert message.id is not None
        assert len(healthy.frames) == 1
        # Failed and timed-out handles are dropped, the healthy one stays
        assert runtime.registry.active_handles_for(merchant, conversation.id) == {healthy_handle}
        assert broken_handle not in runtime.registry.active_handles_for(merchant, conversation.id)
        assert stalled_handle not in runtime.registry.active_handles_for(merchant, conversation.id)
        # Notification still fires exactly once
        assert len(notification_sink.calls) == 1

    @pytest.mark.asyncio
    async def test_notification_fires_even_when_pushed(
        self, dispatcher, runtime, notification_sink, test_customer, test_merchant, conversation
    ):
        runtime.registry.subscribe(party(SenderRole.MERCHANT, test_merchant.id), conversation.id, RecordingChannel())

        for body in ["one", "two", "three"]:
            await dispatcher.send_as_customer(test_customer.id, conversation.id, body)
        await runtime.bus.drain()

        assert [call["body"] for call in notification_sink.calls] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_send(self, test_db, test_customer, conversation):
        sink = BrokenSink()
        runtime = create_chat_runtime(sink=sink)
        dispatcher = ChatDispatcher(ConversationStore(test_db), runtime.bus)

        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Hello")
        await runtime.bus.drain()

        assert message.id is not None
        assert sink.attempts == 1
        assert runtime.bus.pending == 0

    @pytest.mark.asyncio
    async def test_store_errors_propagate_without_delivery(
        self, dispatcher, runtime, notification_sink, other_customer, test_customer, conversation
    ):
        with pytest.raises(ConversationAccessError):
            await dispatcher.send_as_customer(other_customer.id, conversation.id, "Hi")
        with pytest.raises(InvalidMessageError):
            await dispatcher.send_as_customer(test_customer.id, conversation.id, "   ")
        with pytest.raises(ConversationNotFoundError):
            await dispatcher.send_as_customer(test_customer.id, 999, "Hi")

        await runtime.bus.drain()
        assert notification_sink.calls == []

    @pytest.mark.asyncio
    async def test_offline_recipient_still_gets_durable_message(
        self, test_db, dispatcher, runtime, test_customer, conversation
    ):
        await dispatcher.send_as_customer(test_customer.id, conversation.id, "Stored for later")

        result = await test_db.execute(
            select(func.count()).select_from(ChatMessage).where(ChatMessage.content == "Stored for later")
        )
        assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_deactivated_customer_still_gets_reply(
        self, test_db, dispatcher, runtime, notification_sink, test_customer, test_merchant, conversation
    ):
        customer_channel = RecordingChannel()
        runtime.registry.subscribe(party(SenderRole.CUSTOMER, test_customer.id), conversation.id, customer_channel)
        test_customer.is_active = False
        await test_db.commit()

        reply = await dispatcher.send_as_merchant(test_merchant.id, conversation.id, "Yes!")
        await runtime.bus.drain()

        assert [call["to_address"] for call in notification_sink.calls] == ["jane@example.com"]
        assert [frame["data"]["id"] for frame in customer_channel.frames] == [reply.id]

    @pytest.mark.asyncio
    async def test_unknown_recipient_still_gets_live_push(
        self, dispatcher, runtime, notification_sink, test_customer, test_merchant, conversation, monkeypatch
    ):
        merchant_channel = RecordingChannel()
        runtime.registry.subscribe(party(SenderRole.MERCHANT, test_merchant.id), conversation.id, merchant_channel)
        monkeypatch.setattr(dispatcher, "_recipient_identity", AsyncMock(return_value=None))

        await dispatcher.send_as_customer(test_customer.id, conversation.id, "Hello")
        await runtime.bus.drain()

        assert len(merchant_channel.frames) == 1
        assert notification_sink.calls == []

    @pytest.mark.asyncio
    async def test_stalled_push_does_not_hold_up_sender(
        self, test_db, notification_sink, test_customer, test_merchant, conversation
    ):
        runtime = create_chat_runtime(sink=notification_sink, push_timeout=2.0)
        dispatcher = ChatDispatcher(ConversationStore(test_db), runtime.bus)
        merchant = party(SenderRole.MERCHANT, test_merchant.id)
        stalled_handle = runtime.registry.subscribe(merchant, conversation.id, StalledChannel())

        started = time.perf_counter()
        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Quick question")
        elapsed = time.perf_counter() - started

        assert message.id is not None
        assert elapsed < 1.0
        assert runtime.bus.pending >= 1

        await runtime.bus.drain()
        assert stalled_handle not in runtime.registry.active_handles_for(merchant, conversation.id)
        assert len(notification_sink.calls) == 1

    @pytest.mark.asyncio
    async def test_event_build_failure_is_logged(self, dispatcher, test_customer, conversation, monkeypatch):
        monkeypatch.setattr(dispatcher, "_build_event", AsyncMock(side_effect=RuntimeError("lookup failed")))

        message = await dispatcher.send_as_customer(test_customer.id, conversation.id, "Hello")

        assert message.content == "Hello"


class TestMessageEventBus:
    """Test cases for MessageEventBus and its listeners."""

    @pytest.fixture
    def event(self):
        recipient = PartyIdentity(
            party=Party(role=SenderRole.MERCHANT, id=uuid.uuid4()),
            name="Billions Store",
            email="owner@billions.example.com",
        )
        message = ChatMessageResponse(
            id=1,
            conversation_id=7,
            sender_role=SenderRole.CUSTOMER,
            sender_id=str(uuid.uuid4()),
            sender_display="Jane Doe",
            body="Hello",
            is_product_card=False,
            sent_at=datetime.now(UTC),
        )
        return MessageSent(
            message=message,
            conversation_id=7,
            product_name="XPS 13",
            sender_name="Jane Doe",
            recipient_party=recipient.party,
            recipient=recipient,
        )

    @pytest.mark.asyncio
    async def test_listeners_are_isolated(self, event):
        bus = MessageEventBus()
        received = []

        async def failing(evt):
            raise RuntimeError("boom")

        async def recording(evt):
            received.append(evt)

        bus.subscribe(failing)
        bus.subscribe(recording)

        await bus.publish(event)

        assert received == [event]

    @pytest.mark.asyncio
    async def test_drain_waits_for_background_work(self):
        bus = MessageEventBus()
        done = []

        async def slow():
            await asyncio.sleep(0.01)
            done.append(True)

        bus.spawn(slow(), name="slow")
        assert bus.pending == 1

        await bus.drain()

        assert done == [True]
        assert bus.pending == 0

    @pytest.mark.asyncio
    async def test_push_listener_without_subscribers(self, event):
        registry = SessionRegistry()
        bus = MessageEventBus()

        await LivePushListener(registry, bus)(event)

        assert registry.count() == 0
        assert bus.pending == 0

    @pytest.mark.asyncio
    async def test_push_listener_fans_out_in_background(self, event):
        registry = SessionRegistry()
        bus = MessageEventBus()
        channel = RecordingChannel()
        registry.subscribe(event.recipient_party, event.conversation_id, channel)

        await LivePushListener(registry, bus)(event)
        assert bus.pending == 1

        await bus.drain()
        assert channel.frames == [{"type": "message", "data": event.message.model_dump(mode="json")}]

    @pytest.mark.asyncio
    async def test_notification_listener_skips_unknown_recipient(self, event):
        bus = MessageEventBus()
        sink = RecordingSink()
        bus.subscribe(NotificationListener(sink, bus))

        await bus.publish(dataclasses.replace(event, recipient=None))
        await bus.drain()

        assert sink.calls == []

    @pytest.mark.asyncio
    async def test_notification_listener_runs_in_background(self, event):
        bus = MessageEventBus()
        sink = RecordingSink()
        bus.subscribe(NotificationListener(sink, bus))

        await bus.publish(event)
        await bus.drain()

        assert sink.calls[0]["to_address"] == "owner@billions.example.com"
        assert sink.calls[0]["conversation_id"] == 7
        assert sink.calls[0]["recipient_role"] == "merchant"
