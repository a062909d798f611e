"""
Merchant (shop owner) model.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Merchant(BaseModel):
    """
    Represents the shop owner who listed a product and answers its chats.
    """

    __tablename__ = "merchants"

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)

    products = relationship("Product", back_populates="merchant")
    chat_conversations = relationship("ChatConversation", back_populates="merchant")

    @property
    def display_name(self) -> str:
        return self.name
