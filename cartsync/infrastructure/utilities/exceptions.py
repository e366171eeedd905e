"""
Custom exceptions for the cart synchronization subsystem
"""

from typing import Optional


class CartSyncError(Exception):
    """Base exception for cartsync"""

    retryable = False

    def __init__(self, message: str, user_message: str = None, error_code: str = None):
        super().__init__(message)
        self.user_message = user_message or "An error occurred. Please try again."
        self.error_code = error_code or "GENERAL_ERROR"


class UpstreamError(CartSyncError):
    """Errors talking to the upstream session cart"""


class UpstreamUnavailable(UpstreamError):
    """Network failure, timeout, 5xx or unreadable response"""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message,
            "The store is not responding right now. Please try again in a moment.",
            "UPSTREAM_UNAVAILABLE",
        )
        self.status_code = status_code


class UpstreamRejected(UpstreamError):
    """The upstream refused the request (4xx)"""

    def __init__(self, message: str, status_code: int, code: str = None):
        super().__init__(message, message, "UPSTREAM_REJECTED")  # upstream messages are user-facing
        self.status_code = status_code
        self.code = code or "unknown"


class PersistenceUnavailableError(CartSyncError):
    """Durable storage is disabled, full or failing"""

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message,
            "Your cart selections could not be saved on this device.",
            "PERSISTENCE_UNAVAILABLE",
        )
        self.operation = operation


class SchemaMismatchError(CartSyncError):
    """Persisted ledger could not be read"""

    def __init__(self, message: str, version: Optional[int] = None):
        super().__init__(message, error_code="SCHEMA_MISMATCH")
        self.version = version


class ValidationError(CartSyncError):
    """Input validation errors"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message, message, "VALIDATION_ERROR")
        self.field = field


class AddonValidationError(ValidationError):
    """Add-on selections do not match the product's definitions"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message, field)
        self.error_code = "ADDON_VALIDATION"
