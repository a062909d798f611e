# app/core/dependencies.py
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from app.core.security import TokenAuthenticator
from app.database import get_db
from app.domains.chat.runtime import ChatRuntime
from app.schemas.identity import Party
from models.chat_message import SenderRole

logger = logging.getLogger(__name__)

security = HTTPBearer()
auth = TokenAuthenticator()

__all__ = [
    "get_db",
    "validate_token",
    "get_current_party",
    "get_current_customer",
    "get_current_merchant",
    "get_chat_runtime",
]


async def validate_token(token: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Validate and decode the bearer JWT.

    Returns:
        dict: Decoded token payload

    Raises:
        HTTPException: If token is invalid or expired
    """
    if not token or not token.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return auth.verify_token(token.credentials)


async def get_current_party(payload: dict = Depends(validate_token)) -> Party:
    """Resolve the calling customer or merchant from the token payload."""
    return auth.party_from_payload(payload)


async def get_current_customer(party: Party = Depends(get_current_party)) -> Party:
    """Require the caller to be a customer."""
    if party.role is not SenderRole.CUSTOMER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Customer access required")
    return party


async def get_current_merchant(party: Party = Depends(get_current_party)) -> Party:
    """Require the caller to be a merchant."""
    if party.role is not SenderRole.MERCHANT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Merchant access required")
    return party


def get_chat_runtime(connection: HTTPConnection) -> ChatRuntime:
    """Process-wide chat components, built once in ``create_app``."""
    return connection.app.state.chat
