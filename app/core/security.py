"""Security related functions."""

import jwt
from fastapi import HTTPException, status
from jwt import InvalidTokenError

from app.core.config import settings
from app.schemas.identity import Party
from models.chat_message import SenderRole


class TokenAuthenticator:
    """
    Verifies bearer tokens issued by the account service.

    Tokens are HS256 JWTs whose ``sub`` claim is the party id and whose
    ``role`` claim is ``customer`` or ``merchant``.

    :ivar secret_key: The secret key used to verify JWT tokens.
    :type secret_key: str
    :ivar algorithm: Expected signing algorithm.
    :type algorithm: str
    """

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm

    def verify_token(self, token: str) -> dict:
        """
        Decode and verify a JWT.

        :param token: The JWT token to be verified.
        :return: The decoded payload.
        """
        try:
            return jwt.decode(
                token,
                key=self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub"]},
            )
        except InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid authentication token: {str(e)}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    def party_from_payload(self, payload: dict) -> Party:
        """Build the calling party from verified token claims."""
        try:
            return Party(role=SenderRole(payload.get("role", SenderRole.CUSTOMER.value)), id=payload["sub"])
        except (KeyError, ValueError) as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload - missing or malformed party claims",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    def authenticate(self, token: str) -> Party:
        return self.party_from_payload(self.verify_token(token))
