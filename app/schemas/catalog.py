"""Catalog snapshot schema consumed by the chat core."""

from decimal import Decimal
from uuid import UUID

from pydantic import Field

from .base import BaseSchema


class ProductSnapshot(BaseSchema):
    """Read-only view of a product at lookup time."""

    id: int
    name: str
    price: Decimal
    description: str | None = None
    image_url: str | None = Field(None, description="Primary (cover) image URL")
    merchant_id: UUID

    @property
    def price_label(self) -> str:
        return f"{self.price:.2f}"
