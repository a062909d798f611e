"""Chat schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from models.chat_message import SenderRole

from .base import BaseSchema
from .catalog import ProductSnapshot
from .identity import PartyDisplay

PRODUCT_CARD_PREFIX = "PRODUCT_CARD"
PRODUCT_CARD_SEPARATOR = "::"
NO_DESCRIPTION = "No description"


class StartConversationRequest(BaseSchema):
    """Schema for opening (or reopening) a product conversation."""

    product_id: int = Field(..., ge=1, description="Product the customer is asking about")


class SendMessageRequest(BaseSchema):
    """Schema for sending a chat message over REST."""

    content: str = Field(..., min_length=1, max_length=10000, description="Message content")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class LiveMessagePayload(BaseSchema):
    """Inbound frame on the live channel."""

    content: str = Field(..., min_length=1, max_length=10000)


class ChatMessageResponse(BaseSchema):
    """Schema for chat message response, also used as the live push payload."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    conversation_id: int
    sender_role: SenderRole
    sender_id: str
    sender_display: str = Field(..., validation_alias="sender_name")
    body: str = Field(..., validation_alias="content")
    is_product_card: bool = False
    sent_at: datetime


class ConversationResponse(BaseSchema):
    """Schema for a conversation with its denormalized participants."""

    id: int
    title: str
    product_id: int
    product: ProductSnapshot | None = Field(None, description="Current catalog snapshot")
    customer_id: UUID
    customer_display: PartyDisplay
    merchant_id: UUID
    merchant_display: PartyDisplay
    created_at: datetime


class ConversationListResponse(BaseSchema):
    """Schema for a party's conversations, newest first."""

    conversations: list[ConversationResponse]
    total: int


class ChatHistoryResponse(BaseSchema):
    """Schema for a conversation's message log, oldest first."""

    conversation_id: int
    messages: list[ChatMessageResponse]
    total: int


class ProductCard(BaseSchema):
    """Decoded form of the product-card message body."""

    name: str
    price: str
    description: str
    image_url: str

    def encode(self) -> str:
        return PRODUCT_CARD_SEPARATOR.join(
            [PRODUCT_CARD_PREFIX, self.name, self.price, self.description, self.image_url]
        )

    @classmethod
    def from_snapshot(cls, product: ProductSnapshot) -> ProductCard:
        return cls(
            name=product.name,
            price=product.price_label,
            description=product.description or NO_DESCRIPTION,
            image_url=product.image_url or "",
        )

    @classmethod
    def decode(cls, body: str) -> ProductCard:
        parts = body.split(PRODUCT_CARD_SEPARATOR)
        if len(parts) < 5 or parts[0] != PRODUCT_CARD_PREFIX:
            raise ValueError("Not a product card body")
        # Descriptions may themselves contain the separator
        return cls(
            name=parts[1],
            price=parts[2],
            description=PRODUCT_CARD_SEPARATOR.join(parts[3:-1]),
            image_url=parts[-1],
        )


class LiveEvent(BaseSchema):
    """Frame pushed to subscribers of a conversation's live channel."""

    type: Literal["message", "error", "subscribed"]
    data: dict | None = None


ConversationListResponse.model_rebuild()
ChatHistoryResponse.model_rebuild()
