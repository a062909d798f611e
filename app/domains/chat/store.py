"""Durable conversation store for product chats."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.exceptions.chat import (
    ConversationAccessError,
    ConversationNotFoundError,
    InvalidMessageError,
)
from app.schemas.catalog import ProductSnapshot
from app.schemas.chat import ProductCard
from app.schemas.identity import Party, PartyIdentity
from app.services.catalog import CatalogLookup
from app.services.identity import IdentityLookup
from models.chat_conversation import ChatConversation
from models.chat_message import ChatMessage, SenderRole

logger = logging.getLogger(__name__)


def parse_party_id(value: Any, field: str = "sender_id") -> UUID:
    """Coerce a party identifier to a UUID.

    Raises:
        InvalidMessageError: If the identifier is malformed
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidMessageError(f"Malformed {field}", details={field: str(value)}) from None


class ConversationStore:
    """Owns conversations and their append-only message logs.

    Conversations are unique per (customer, product). Creation relies on the
    storage-level unique constraint and falls back to reading the winning row
    when a concurrent insert conflicts.
    """

    def __init__(
        self,
        db: AsyncSession,
        catalog: CatalogLookup | None = None,
        identity: IdentityLookup | None = None,
        max_start_attempts: int | None = None,
        max_message_length: int | None = None,
    ):
        """Initialize the store.

        Args:
            db: Async database session for data operations.
            catalog: Product lookup, defaults to one bound to ``db``.
            identity: Party lookup, defaults to one bound to ``db``.
            max_start_attempts: Bound on create/conflict retries.
            max_message_length: Upper bound on message body length.
        """
        self.db = db
        self.catalog = catalog or CatalogLookup(db)
        self.identity = identity or IdentityLookup(db)
        self.max_start_attempts = max_start_attempts or settings.chat_start_max_attempts
        self.max_message_length = max_message_length or settings.chat_max_message_length

    async def start_conversation(self, customer_id: UUID | str, product_id: int) -> ChatConversation:
        """Return the conversation for (customer, product), creating it once.

        A new conversation gets the product card as its first message. An
        existing conversation is returned unchanged.

        Raises:
            ProductNotFoundError: If the product does not resolve
            CustomerNotFoundError: If the customer does not resolve
        """
        customer_id = parse_party_id(customer_id, "customer_id")
        product = await self.catalog.get_product_snapshot(product_id)
        customer = await self.identity.get_customer(customer_id)

        last_error: IntegrityError | None = None
        for attempt in range(1, self.max_start_attempts + 1):
            existing = await self._find_conversation(customer_id, product.id)
            if existing:
                logger.info(f"💬 Existing chat room found: #{existing.id}")
                return existing

            try:
                return await self._create_conversation(product, customer)
            except IntegrityError as e:
                # Another request won the insert for this pair
                await self.db.rollback()
                last_error = e
                logger.info(
                    f"Conflict creating chat for customer {customer_id} / product {product.id} "
                    f"(attempt {attempt}/{self.max_start_attempts}), re-reading"
                )

        existing = await self._find_conversation(customer_id, product.id)
        if existing:
            return existing
        raise last_error

    async def append_message(
        self,
        conversation_id: int,
        sender_role: SenderRole,
        sender_id: UUID | str,
        body: str,
    ) -> ChatMessage:
        """Append a party's message to a conversation.

        Raises:
            InvalidMessageError: If the body is empty or too long, or the sender id is malformed
            ConversationNotFoundError: If the conversation does not exist
            ConversationAccessError: If the sender does not own the conversation
        """
        sender_role = SenderRole(sender_role)
        sender_id = parse_party_id(sender_id)
        if body is None or not body.strip():
            raise InvalidMessageError()
        if len(body) > self.max_message_length:
            raise InvalidMessageError(
                "Message content is too long",
                details={"max_length": self.max_message_length},
            )

        conversation = await self.get_conversation(conversation_id)
        sender_party = Party(role=sender_role, id=sender_id)
        self.ensure_participant(conversation, sender_party)
        sender = await self.identity.resolve(sender_party)

        message = ChatMessage(
            conversation_id=conversation.id,
            sender_role=sender_role,
            sender_id=str(sender_id),
            sender_name=sender.name,
            content=body,
            is_product_card=False,
        )

        try:
            self.db.add(message)
            await self.db.commit()
            await self.db.refresh(message)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(f"📨 {sender_role.value} [{sender.email}] sent message #{message.id} in chat #{conversation.id}")
        return message

    async def list_messages(self, conversation_id: int) -> list[ChatMessage]:
        """Return every message of a conversation, oldest first.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        await self.get_conversation(conversation_id)

        query = (
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.sent_at.asc(), ChatMessage.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_conversations_for_customer(self, customer_id: UUID | str) -> list[ChatConversation]:
        """Return the customer's conversations, newest first."""
        customer_id = parse_party_id(customer_id, "customer_id")
        return await self._list_conversations(ChatConversation.customer_id == customer_id)

    async def list_conversations_for_merchant(self, merchant_id: UUID | str) -> list[ChatConversation]:
        """Return conversations about the merchant's products, newest first."""
        merchant_id = parse_party_id(merchant_id, "merchant_id")
        return await self._list_conversations(ChatConversation.merchant_id == merchant_id)

    async def get_conversation(self, conversation_id: int) -> ChatConversation:
        """Fetch a conversation by id.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        result = await self.db.execute(select(ChatConversation).where(ChatConversation.id == conversation_id))
        conversation = result.scalar_one_or_none()

        if not conversation:
            raise ConversationNotFoundError(conversation_id)

        return conversation

    @staticmethod
    def ensure_participant(conversation: ChatConversation, party: Party) -> None:
        """Raise unless ``party`` is the conversation's customer or merchant."""
        owner_id = conversation.customer_id if party.role is SenderRole.CUSTOMER else conversation.merchant_id
        if owner_id != party.id:
            raise ConversationAccessError(
                details={"conversation_id": conversation.id, "party": str(party)},
            )

    # Private helper methods

    async def _find_conversation(self, customer_id: UUID, product_id: int) -> ChatConversation | None:
        query = select(ChatConversation).where(
            ChatConversation.customer_id == customer_id,
            ChatConversation.product_id == product_id,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _create_conversation(self, product: ProductSnapshot, customer: PartyIdentity) -> ChatConversation:
        """Insert the conversation and its product card in one transaction."""
        conversation = ChatConversation(
            title=product.name,
            product_id=product.id,
            customer_id=customer.party.id,
            merchant_id=product.merchant_id,
        )
        self.db.add(conversation)
        await self.db.flush()

        product_card = ChatMessage(
            conversation_id=conversation.id,
            sender_role=SenderRole.CUSTOMER,
            sender_id=str(customer.party.id),
            sender_name=customer.name,
            content=ProductCard.from_snapshot(product).encode(),
            is_product_card=True,
        )
        self.db.add(product_card)
        await self.db.commit()

        logger.info(
            f"💬 New chat room created: #{conversation.id} | Product: {product.name} | Customer: {customer.email}"
        )
        return conversation

    async def _list_conversations(self, criterion) -> list[ChatConversation]:
        query = (
            select(ChatConversation)
            .where(criterion)
            .order_by(ChatConversation.created_at.desc(), ChatConversation.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
