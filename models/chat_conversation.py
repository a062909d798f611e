"""
Chat conversation model for customer-to-merchant product inquiries.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, SequenceId, SequencedModel, utcnow


class ChatConversation(SequencedModel):
    """
    Represents one conversation per (customer, product) pair.

    The unique constraint on the pair is what makes concurrent "start"
    requests collapse onto a single row.
    """

    __tablename__ = "chat_conversations"
    __table_args__ = (
        UniqueConstraint("customer_id", "product_id", name="uq_chat_conversations_customer_product"),
        Index("idx_chat_conversations_merchant_created", "merchant_id", "created_at"),
        Index("idx_chat_conversations_customer_created", "customer_id", "created_at"),
    )

    title = Column(String(255), nullable=False)  # Product name at creation time
    product_id = Column(SequenceId, ForeignKey("products.id"), nullable=False)
    customer_id = Column(UUID(), ForeignKey("customers.id"), nullable=False)
    merchant_id = Column(UUID(), ForeignKey("merchants.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    product = relationship("Product")
    customer = relationship("Customer", back_populates="chat_conversations")
    merchant = relationship("Merchant", back_populates="chat_conversations")
    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        order_by="ChatMessage.id",
    )
