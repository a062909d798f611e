"""Chat service layer for customer-merchant product conversations."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.chat.dispatcher import ChatDispatcher
from app.domains.chat.registry import ChannelHandle, LiveChannel
from app.domains.chat.runtime import ChatRuntime
from app.domains.chat.store import ConversationStore
from app.exceptions.chat import ProductNotFoundError
from app.schemas.chat import (
    ChatHistoryResponse,
    ChatMessageResponse,
    ConversationListResponse,
    ConversationResponse,
    SendMessageRequest,
    StartConversationRequest,
)
from app.schemas.identity import Party, PartyDisplay
from app.services.catalog import CatalogLookup
from app.services.identity import IdentityLookup
from models.chat_conversation import ChatConversation
from models.chat_message import SenderRole

logger = logging.getLogger(__name__)


class ChatService:
    """Service class for product chat operations."""

    def __init__(self, db: AsyncSession, runtime: ChatRuntime):
        """Initialize chat service.

        Args:
            db: Async database session for data operations.
            runtime: Process-wide session registry and event bus.
        """
        self.db = db
        self.runtime = runtime
        self.catalog = CatalogLookup(db)
        self.identity = IdentityLookup(db)
        self.store = ConversationStore(db, catalog=self.catalog, identity=self.identity)
        self.dispatcher = ChatDispatcher(self.store, runtime.bus)

    async def start_conversation(self, customer_id: UUID, request: StartConversationRequest) -> ConversationResponse:
        """Open the customer's conversation about a product, or return the existing one."""
        conversation = await self.store.start_conversation(customer_id, request.product_id)
        return await self._to_conversation_response(conversation)

    async def send_customer_message(
        self, customer_id: UUID, conversation_id: int, request: SendMessageRequest
    ) -> ChatMessageResponse:
        message = await self.dispatcher.send_as_customer(customer_id, conversation_id, request.content)
        return ChatMessageResponse.model_validate(message)

    async def send_merchant_message(
        self, merchant_id: UUID, conversation_id: int, request: SendMessageRequest
    ) -> ChatMessageResponse:
        message = await self.dispatcher.send_as_merchant(merchant_id, conversation_id, request.content)
        return ChatMessageResponse.model_validate(message)

    async def send_as(self, party: Party, conversation_id: int, content: str) -> ChatMessageResponse:
        """Send on behalf of whichever side ``party`` is (used by the live channel)."""
        if party.role is SenderRole.CUSTOMER:
            message = await self.dispatcher.send_as_customer(party.id, conversation_id, content)
        else:
            message = await self.dispatcher.send_as_merchant(party.id, conversation_id, content)
        return ChatMessageResponse.model_validate(message)

    async def get_chat_history(self, party: Party, conversation_id: int) -> ChatHistoryResponse:
        """Get all messages of a conversation the party takes part in, oldest first."""
        conversation = await self.store.get_conversation(conversation_id)
        self.store.ensure_participant(conversation, party)

        messages = await self.store.list_messages(conversation_id)
        return ChatHistoryResponse(
            conversation_id=conversation_id,
            messages=[ChatMessageResponse.model_validate(msg) for msg in messages],
            total=len(messages),
        )

    async def get_customer_conversations(self, customer_id: UUID) -> ConversationListResponse:
        conversations = await self.store.list_conversations_for_customer(customer_id)
        return await self._to_conversation_list(conversations)

    async def get_merchant_conversations(self, merchant_id: UUID) -> ConversationListResponse:
        conversations = await self.store.list_conversations_for_merchant(merchant_id)
        return await self._to_conversation_list(conversations)

    async def subscribe(self, party: Party, conversation_id: int, channel: LiveChannel) -> ChannelHandle:
        """Register a live channel after checking the party belongs to the conversation.

        The membership check runs in its own short transaction, so an open
        channel does not hold a database connection while it waits.
        """
        try:
            conversation = await self.store.get_conversation(conversation_id)
            self.store.ensure_participant(conversation, party)
        finally:
            await self.db.commit()
        return self.runtime.registry.subscribe(party, conversation_id, channel)

    # Private helper methods

    async def _to_conversation_list(self, conversations: list[ChatConversation]) -> ConversationListResponse:
        return ConversationListResponse(
            conversations=[await self._to_conversation_response(conv) for conv in conversations],
            total=len(conversations),
        )

    async def _to_conversation_response(self, conversation: ChatConversation) -> ConversationResponse:
        try:
            product = await self.catalog.get_product_snapshot(conversation.product_id)
        except ProductNotFoundError:
            product = None

        customer = await self.identity.get_customer(conversation.customer_id, include_inactive=True)
        merchant = await self.identity.get_merchant(conversation.merchant_id)

        return ConversationResponse(
            id=conversation.id,
            title=conversation.title,
            product_id=conversation.product_id,
            product=product,
            customer_id=conversation.customer_id,
            customer_display=PartyDisplay(name=customer.name, email=customer.email),
            merchant_id=conversation.merchant_id,
            merchant_display=PartyDisplay(name=merchant.name, email=merchant.email),
            created_at=conversation.created_at,
        )
