"""
Library exceptions for the switchover package.

Exception Hierarchy:
    SwitchoverError (base)
    +-- ApiError
    |   +-- OperationNotSupportedError
    +-- AdapterNotRegisteredError
    +-- BackendNotEnabledError
    +-- PlanNotFoundError

Every failure that crosses the transport or adapter boundary is an
ApiError carrying a machine-readable ErrorCode, a human message and the
HTTP status (0 when no response was received).
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from switchover.routing.models import BackendTarget


class ErrorCode(str, Enum):
    """
    Machine-readable error codes.

    Attributes:
        NETWORK_ERROR: Transport failure before any response was received.
        HTTP_ERROR: Non-2xx response with a decodable error body.
        STREAM_ERROR: Failure while reading or decoding a chunked response.
        HEALTH_CHECK_FAILED: The backend health endpoint could not be reached.
        UNKNOWN_ERROR: Catch-all for errors outside this taxonomy.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    STREAM_ERROR = "STREAM_ERROR"
    HEALTH_CHECK_FAILED = "HEALTH_CHECK_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class SwitchoverError(Exception):
    """Base exception for switchover library."""

    pass


class ApiError(SwitchoverError):
    """
    Typed error returned to callers of the transport and adapters.

    Attributes:
        code: Error code. Usually an ErrorCode, but a backend may send its
            own code string in the error body, which is kept verbatim.
        message: Human readable message.
        status: HTTP status, or 0 when not applicable.
        details: Decoded error body, when one was available.
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        status: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    @property
    def code_value(self) -> str:
        """The error code as a plain string."""
        return self.code.value if isinstance(self.code, ErrorCode) else str(self.code)

    @property
    def is_network_error(self) -> bool:
        return self.code == ErrorCode.NETWORK_ERROR

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status: int = 0,
    ) -> ApiError:
        """
        Wrap an arbitrary exception into the taxonomy.

        An exception that already is an ApiError is returned unchanged.

        Args:
            exc: The exception to wrap
            code: Code to use for foreign exceptions
            status: HTTP status to report

        Returns:
            ApiError instance
        """
        if isinstance(exc, ApiError):
            return exc
        message = str(exc) or exc.__class__.__name__
        return cls(code, message, status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "code": self.code_value,
            "message": self.message,
            "status": self.status,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"ApiError(code={self.code_value!r}, message={self.message!r}, status={self.status})"


class OperationNotSupportedError(ApiError):
    """
    Raised when the legacy SDK exposes no callable for an operation.

    Attributes:
        operation: The logical operation name.
        method_name: The SDK method the operation was mapped to.
    """

    def __init__(self, operation: str, method_name: str) -> None:
        self.operation = operation
        self.method_name = method_name
        super().__init__(
            ErrorCode.UNKNOWN_ERROR,
            f"Legacy method {method_name} not available for operation {operation}",
        )


class AdapterNotRegisteredError(SwitchoverError):
    """Raised when the router has no adapter for a resolved backend."""

    def __init__(self, target: BackendTarget) -> None:
        self.target = target
        super().__init__(f"No adapter registered for backend: {target.value}")


class BackendNotEnabledError(SwitchoverError):
    """Raised when switching to a backend whose feature flag is off."""

    def __init__(self, operation: str, target: BackendTarget) -> None:
        self.operation = operation
        self.target = target
        super().__init__(
            f"Cannot switch {operation} to {target.value}: backend is not enabled. "
            "Set SWITCHOVER_ENABLE_SECONDARY_BACKEND=true to allow it."
        )


class PlanNotFoundError(SwitchoverError):
    """Raised when a named batch migration plan does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Migration plan not found: {name}")


__all__ = [
    "ErrorCode",
    "SwitchoverError",
    "ApiError",
    "OperationNotSupportedError",
    "AdapterNotRegisteredError",
    "BackendNotEnabledError",
    "PlanNotFoundError",
]
