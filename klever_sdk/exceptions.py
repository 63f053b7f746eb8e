"""
Exceptions for the Klever SDK.
"""
from typing import Any, Dict, Optional


class KleverSDKError(Exception):
    """Base exception for all Klever SDK errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(message)


class ValidationError(KleverSDKError, ValueError):
    """Raised when caller-supplied input violates a precondition."""
    pass


class UnknownNetworkError(ValidationError):
    """Raised when a network name cannot be resolved."""
    pass


class NetworkError(KleverSDKError):
    """Raised when a remote endpoint is unreachable or reports a failure."""
    pass


class HTTPStatusError(NetworkError):
    """Raised when an endpoint answers with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str, context: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}", context)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class TransactionNotFoundError(NetworkError):
    """Raised when the ledger has no record of a transaction hash."""
    pass


class TransactionError(KleverSDKError):
    """Raised when building or broadcasting a transaction fails."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None
    ):
        self.code = code
        super().__init__(message, context)


class ParseError(KleverSDKError):
    """Raised when a transaction's receipts do not have the expected shape."""

    def __init__(self, message: str, receipt: Any = None, operation: Optional[str] = None):
        self.receipt = receipt
        self.operation = operation
        super().__init__(message, {"operation": operation})
