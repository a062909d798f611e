"""Party identity schemas shared by the lookups, the registry and auth."""

from uuid import UUID

from pydantic import ConfigDict, Field

from models.chat_message import SenderRole

from .base import BaseSchema


class Party(BaseSchema):
    """One side of a conversation: a customer or a merchant."""

    model_config = ConfigDict(frozen=True)

    role: SenderRole
    id: UUID

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}"


class PartyIdentity(BaseSchema):
    """Display identity resolved by the identity lookup."""

    party: Party
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Notification address")


class PartyDisplay(BaseSchema):
    """Public part of a party identity embedded in responses."""

    name: str
    email: str
