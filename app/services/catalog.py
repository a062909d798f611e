"""Catalog lookup used by the chat core."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions.chat import ProductNotFoundError
from app.schemas.catalog import ProductSnapshot
from models.product import Product

logger = logging.getLogger(__name__)


class CatalogLookup:
    """Read-only access to product snapshots."""

    def __init__(self, db: AsyncSession):
        """Initialize catalog lookup.

        Args:
            db: Async database session
        """
        self.db = db

    async def get_product_snapshot(self, product_id: int) -> ProductSnapshot:
        """Resolve a product to its current snapshot.

        Args:
            product_id: Catalog product ID

        Returns:
            ProductSnapshot with name, price, primary image and owning merchant

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        query = select(Product).options(selectinload(Product.images)).where(Product.id == product_id)
        result = await self.db.execute(query)
        product = result.scalar_one_or_none()

        if not product:
            logger.debug(f"Product {product_id} not found in catalog")
            raise ProductNotFoundError(product_id)

        primary_image = product.images[0].image_url if product.images else None

        return ProductSnapshot(
            id=product.id,
            name=product.name,
            price=product.price,
            description=product.description,
            image_url=primary_image,
            merchant_id=product.merchant_id,
        )
