"""
Provides the Customer model for the application's database schema.

Customers are owned by the account service; the chat core only reads them to
resolve display names and notification addresses.

Attributes
----------
first_name : sqlalchemy.Column
    Given name of the customer.
last_name : sqlalchemy.Column
    Family name of the customer.
email : sqlalchemy.Column
    Unique email address, used for chat notifications.
is_active : sqlalchemy.Column
    Inactive customers cannot be resolved by the identity lookup.
"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Customer(BaseModel):
    """
    Represents a shopper who can open product conversations.

    :ivar first_name: Given name.
    :type first_name: str
    :ivar last_name: Family name.
    :type last_name: str
    :ivar email: Email address of the customer. It must be unique.
    :type email: str
    :ivar is_active: Indicates whether the customer account is active.
    :type is_active: bool
    """

    __tablename__ = "customers"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)

    chat_conversations = relationship("ChatConversation", back_populates="customer")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()
