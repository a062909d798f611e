"""Identity lookup for chat participants."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.chat import CustomerNotFoundError, MerchantNotFoundError
from app.schemas.identity import Party, PartyIdentity
from models.chat_message import SenderRole
from models.customer import Customer
from models.merchant import Merchant

logger = logging.getLogger(__name__)


class IdentityLookup:
    """Resolves customers and merchants to display name and email."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customer(self, customer_id: UUID, include_inactive: bool = False) -> PartyIdentity:
        """Resolve a customer.

        Args:
            customer_id: Customer ID
            include_inactive: Also resolve deactivated accounts (display only)

        Raises:
            CustomerNotFoundError: If the customer is missing or inactive
        """
        result = await self.db.execute(select(Customer).where(Customer.id == customer_id))
        customer = result.scalar_one_or_none()

        if not customer or (not customer.is_active and not include_inactive):
            raise CustomerNotFoundError(customer_id)

        return PartyIdentity(
            party=Party(role=SenderRole.CUSTOMER, id=customer.id),
            name=customer.display_name,
            email=customer.email,
        )

    async def get_merchant(self, merchant_id: UUID) -> PartyIdentity:
        """Resolve a merchant.

        Raises:
            MerchantNotFoundError: If the merchant does not exist
        """
        result = await self.db.execute(select(Merchant).where(Merchant.id == merchant_id))
        merchant = result.scalar_one_or_none()

        if not merchant:
            raise MerchantNotFoundError(merchant_id)

        return PartyIdentity(
            party=Party(role=SenderRole.MERCHANT, id=merchant.id),
            name=merchant.display_name,
            email=merchant.email,
        )

    async def resolve(self, party: Party, include_inactive: bool = False) -> PartyIdentity:
        """Resolve either side of a conversation."""
        if party.role is SenderRole.CUSTOMER:
            return await self.get_customer(party.id, include_inactive=include_inactive)
        return await self.get_merchant(party.id)
