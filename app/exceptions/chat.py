# ruff: noqa: D107
"""Product chat exceptions."""

from typing import Any

from .base import AppPermissionError, InvalidArgumentError, NotFoundError


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation does not exist."""

    def __init__(self, conversation_id: Any):
        super().__init__(
            message=f"Chat room not found with id: {conversation_id}",
            details={"conversation_id": str(conversation_id)},
            error_code="CONVERSATION_NOT_FOUND",
        )


class ProductNotFoundError(NotFoundError):
    """Raised when the catalog has no such product."""

    def __init__(self, product_id: Any):
        super().__init__(
            message="Product not found",
            details={"product_id": str(product_id)},
            error_code="PRODUCT_NOT_FOUND",
        )


class CustomerNotFoundError(NotFoundError):
    """Raised when a customer cannot be resolved."""

    def __init__(self, customer_id: Any):
        super().__init__(
            message="Customer not found",
            details={"customer_id": str(customer_id)},
            error_code="CUSTOMER_NOT_FOUND",
        )


class MerchantNotFoundError(NotFoundError):
    """Raised when a merchant cannot be resolved."""

    def __init__(self, merchant_id: Any):
        super().__init__(
            message="Merchant not found",
            details={"merchant_id": str(merchant_id)},
            error_code="MERCHANT_NOT_FOUND",
        )


class ConversationAccessError(AppPermissionError):
    """Raised when a party acts on a conversation it does not own."""

    def __init__(self, message: str = "This chat does not belong to you", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="CONVERSATION_FORBIDDEN")


class InvalidMessageError(InvalidArgumentError):
    """Raised when a message body or sender identifier is unusable."""

    def __init__(self, message: str = "Message content cannot be empty", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="INVALID_MESSAGE")
