"""Unit tests for ChatService and the chat schemas it returns."""

import pytest
from pydantic import ValidationError
from sqlalchemy import delete

from app.domains.chat.service import ChatService
from app.exceptions.chat import ConversationAccessError, ConversationNotFoundError
from app.schemas.chat import ProductCard, SendMessageRequest, StartConversationRequest
from app.schemas.identity import Party
from models import Product, ProductImage, SenderRole
from tests.factories import RecordingChannel


@pytest.fixture
def service(test_db, chat_runtime):
    return ChatService(test_db, chat_runtime)


class TestChatService:
    """Test cases for ChatService."""

    @pytest.mark.asyncio
    async def test_start_conversation_response(self, service, test_customer, test_product):
        response = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))

        assert response.title == "XPS 13"
        assert response.product.price_label == "999.00"
        assert response.customer_display.email == "jane@example.com"
        assert response.merchant_display.email == "owner@billions.example.com"

    @pytest.mark.asyncio
    async def test_conversation_survives_product_removal(self, test_db, service, test_customer, test_product):
        product_id = test_product.id
        customer_id = test_customer.id
        started = await service.start_conversation(customer_id, StartConversationRequest(product_id=product_id))

        await test_db.execute(delete(ProductImage).where(ProductImage.product_id == product_id))
        await test_db.execute(delete(Product).where(Product.id == product_id))
        await test_db.commit()

        listing = await service.get_customer_conversations(customer_id)

        assert listing.total == 1
        assert listing.conversations[0].id == started.id
        assert listing.conversations[0].product is None
        assert listing.conversations[0].title == "XPS 13"

    @pytest.mark.asyncio
    async def test_send_as_routes_by_role(self, service, chat_runtime, test_customer, test_merchant, test_product):
        room = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))

        from_customer = await service.send_as(Party(role=SenderRole.CUSTOMER, id=test_customer.id), room.id, "Hi")
        from_merchant = await service.send_as(Party(role=SenderRole.MERCHANT, id=test_merchant.id), room.id, "Hello")
        await chat_runtime.bus.drain()

        assert from_customer.sender_role == SenderRole.CUSTOMER
        assert from_merchant.sender_role == SenderRole.MERCHANT
        assert from_merchant.id > from_customer.id

    @pytest.mark.asyncio
    async def test_subscribe_participant(self, service, chat_runtime, test_customer, test_product):
        room = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))
        customer = Party(role=SenderRole.CUSTOMER, id=test_customer.id)

        handle = await service.subscribe(customer, room.id, RecordingChannel())

        assert chat_runtime.registry.active_handles_for(customer, room.id) == {handle}

    @pytest.mark.asyncio
    async def test_subscribe_rejects_outsiders(self, service, chat_runtime, test_customer, other_merchant, test_product):
        room = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))

        with pytest.raises(ConversationAccessError):
            await service.subscribe(Party(role=SenderRole.MERCHANT, id=other_merchant.id), room.id, RecordingChannel())
        with pytest.raises(ConversationNotFoundError):
            await service.subscribe(Party(role=SenderRole.CUSTOMER, id=test_customer.id), 404, RecordingChannel())

        assert chat_runtime.registry.count() == 0

    @pytest.mark.asyncio
    async def test_subscribe_leaves_no_open_transaction(self, test_db, service, test_customer, test_product):
        room = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))
        await service.get_chat_history(Party(role=SenderRole.CUSTOMER, id=test_customer.id), room.id)

        await service.subscribe(Party(role=SenderRole.CUSTOMER, id=test_customer.id), room.id, RecordingChannel())

        assert test_db.in_transaction() is False

    @pytest.mark.asyncio
    async def test_rejected_subscribe_leaves_no_open_transaction(self, test_db, service, test_customer):
        with pytest.raises(ConversationNotFoundError):
            await service.subscribe(Party(role=SenderRole.CUSTOMER, id=test_customer.id), 404, RecordingChannel())

        assert test_db.in_transaction() is False

    @pytest.mark.asyncio
    async def test_live_subscriber_receives_reply(self, service, chat_runtime, test_customer, test_merchant, test_product):
        room = await service.start_conversation(test_customer.id, StartConversationRequest(product_id=test_product.id))
        channel = RecordingChannel()
        await service.subscribe(Party(role=SenderRole.CUSTOMER, id=test_customer.id), room.id, channel)

        reply = await service.send_merchant_message(test_merchant.id, room.id, SendMessageRequest(content="In stock"))
        await chat_runtime.bus.drain()

        assert channel.frames == [{"type": "message", "data": reply.model_dump(mode="json")}]


class TestChatSchemas:
    """Test cases for chat request and product card schemas."""

    def test_blank_message_rejected(self):
        with pytest.raises(ValidationError):
            SendMessageRequest(content="   ")

    def test_product_card_round_trip_with_separator_in_description(self):
        card = ProductCard(name="XPS 13", price="999.00", description="Fast::light", image_url="https://x/y.jpg")

        decoded = ProductCard.decode(card.encode())

        assert decoded == card

    def test_decode_rejects_plain_messages(self):
        with pytest.raises(ValueError):
            ProductCard.decode("hello there")
