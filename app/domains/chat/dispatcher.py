"""Routes outgoing chat messages: store first, then deliver."""

import logging
from uuid import UUID

from app.domains.chat.events import MessageEventBus, MessageSent
from app.domains.chat.store import ConversationStore
from app.exceptions.base import NotFoundError
from app.schemas.chat import ChatMessageResponse
from app.schemas.identity import Party, PartyIdentity
from models.chat_conversation import ChatConversation
from models.chat_message import ChatMessage, SenderRole

logger = logging.getLogger(__name__)


class ChatDispatcher:
    """Sends messages on behalf of customers and merchants.

    The store append must succeed for a send to succeed and its errors
    propagate unchanged. Delivery (live push, notification) happens after
    the append through the event bus and is best-effort.
    """

    def __init__(self, store: ConversationStore, bus: MessageEventBus):
        self.store = store
        self.bus = bus

    async def send_as_customer(self, customer_id: UUID | str, conversation_id: int, body: str) -> ChatMessage:
        return await self._send(SenderRole.CUSTOMER, customer_id, conversation_id, body)

    async def send_as_merchant(self, merchant_id: UUID | str, conversation_id: int, body: str) -> ChatMessage:
        return await self._send(SenderRole.MERCHANT, merchant_id, conversation_id, body)

    async def _send(self, role: SenderRole, sender_id: UUID | str, conversation_id: int, body: str) -> ChatMessage:
        message = await self.store.append_message(conversation_id, role, sender_id, body)

        try:
            event = await self._build_event(message)
            await self.bus.publish(event)
        except Exception as e:
            logger.error(f"❌ Delivery of message #{message.id} in chat #{conversation_id} failed: {str(e)}")

        return message

    async def _build_event(self, message: ChatMessage) -> MessageSent:
        conversation = await self.store.get_conversation(message.conversation_id)
        counterparty = self._counterparty(conversation, message.sender_role)

        return MessageSent(
            message=ChatMessageResponse.model_validate(message),
            conversation_id=conversation.id,
            product_name=await self._product_name(conversation),
            sender_name=message.sender_name,
            recipient_party=counterparty,
            recipient=await self._recipient_identity(counterparty),
        )

    async def _recipient_identity(self, party: Party) -> PartyIdentity | None:
        # Deactivated customers still get their notifications
        try:
            return await self.store.identity.resolve(party, include_inactive=True)
        except NotFoundError as e:
            logger.warning(f"⚠️ No contact details for {party}: {e.message}")
            return None

    async def _product_name(self, conversation: ChatConversation) -> str:
        try:
            product = await self.store.catalog.get_product_snapshot(conversation.product_id)
            return product.name
        except NotFoundError:
            return conversation.title

    @staticmethod
    def _counterparty(conversation: ChatConversation, sender_role: SenderRole) -> Party:
        if sender_role is SenderRole.CUSTOMER:
            return Party(role=SenderRole.MERCHANT, id=conversation.merchant_id)
        return Party(role=SenderRole.CUSTOMER, id=conversation.customer_id)
