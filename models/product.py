"""
Catalog models: products and their ordered images.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import UUID, SequenceId, SequencedModel, utcnow


class Product(SequencedModel):
    """
    Represents a catalog product listed by a merchant.

    :ivar name: Product name, copied into the chat title on creation.
    :type name: str
    :ivar price: Unit price with two decimal places.
    :type price: Decimal
    :ivar merchant_id: Owning merchant, who receives the product's chats.
    :type merchant_id: UUID
    """

    __tablename__ = "products"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    merchant_id = Column(UUID(), ForeignKey("merchants.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    merchant = relationship("Merchant", back_populates="products")
    images = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.display_order",
    )


class ProductImage(SequencedModel):
    """
    An image attached to a product. ``display_order`` 0 is the cover image.
    """

    __tablename__ = "product_images"

    product_id = Column(SequenceId, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    image_url = Column(String(1024), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="images")
