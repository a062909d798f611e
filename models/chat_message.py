"""
Chat message model for the append-only conversation log.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from .base import SequenceId, SequencedModel, utcnow


class SenderRole(str, enum.Enum):
    """Which side of the conversation sent a message."""

    CUSTOMER = "customer"
    MERCHANT = "merchant"

    @property
    def counterparty(self) -> "SenderRole":
        return SenderRole.MERCHANT if self is SenderRole.CUSTOMER else SenderRole.CUSTOMER


class ChatMessage(SequencedModel):
    """
    Represents a chat message entity in the application.

    The first message of each conversation is the product card
    (``is_product_card=True``); every other message is sent by a party.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (Index("idx_chat_messages_conversation_sent", "conversation_id", "sent_at"),)

    conversation_id = Column(SequenceId, ForeignKey("chat_conversations.id"), nullable=False)
    sender_role = Column(
        Enum(SenderRole, name="senderrole", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    )
    sender_id = Column(String(64), nullable=False)
    sender_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    is_product_card = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    conversation = relationship("ChatConversation", back_populates="messages")
