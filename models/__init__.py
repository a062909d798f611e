"""
Models package initialization.
"""

from .base import Base, BaseModel, SequencedModel
from .chat_conversation import ChatConversation
from .chat_message import ChatMessage, SenderRole
from .customer import Customer
from .merchant import Merchant
from .product import Product, ProductImage

__all__ = [
    "Base",
    "BaseModel",
    "SequencedModel",
    # Parties
    "Customer",
    "Merchant",
    # Catalog
    "Product",
    "ProductImage",
    # Chat models
    "ChatConversation",
    "ChatMessage",
    "SenderRole",
]
