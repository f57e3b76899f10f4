"""MediaBridge Error Handling Module

This module defines the error handling system for MediaBridge, providing
structured error classes with context information and user-friendly messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Graceful Degradation: Provider failures are absorbed by the core and
  only the primary provider's own failures propagate to callers
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]


class ErrorCode(str, Enum):
    """Error codes for MediaBridge.

    This enum serves as the single source of truth for all error codes
    used throughout the library.
    """

    # Provider Errors
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_NOT_REGISTERED = "PROVIDER_NOT_REGISTERED"
    PRIMARY_PROVIDER_FAILED = "PRIMARY_PROVIDER_FAILED"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MALFORMED_CANDIDATE = "MALFORMED_CANDIDATE"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    TYPE_COERCION_ERROR = "TYPE_COERCION_ERROR"

    # Cache Errors
    CACHE_ERROR = "CACHE_ERROR"
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"

    # Configuration Errors
    CONFIG_ERROR = "CONFIG_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # Catalog Errors
    CATALOG_READ_FAILED = "CATALOG_READ_FAILED"
    MEDIA_NOT_FOUND = "MEDIA_NOT_FOUND"

    # CLI Errors
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"
    CLI_INVALID_ARGUMENTS = "CLI_INVALID_ARGUMENTS"

    # Processing Errors
    DATA_PROCESSING_ERROR = "DATA_PROCESSING_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif val is None:
            coerced[key] = "None"
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to ensure safe serialization.

    Attributes:
        operation: Optional operation name that caused the error
        provider_id: Optional provider the error relates to
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    provider_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization coercion of additional_data."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def to_dict(self) -> dict[str, Any]:
        """Export the set fields as a dict with a guaranteed additional_data key.

        Example:
            >>> ErrorContext(provider_id="kitsu").to_dict()
            {'provider_id': 'kitsu', 'additional_data': {}}
        """
        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.provider_id is not None:
            data["provider_id"] = self.provider_id
        data["additional_data"] = self.additional_data if self.additional_data is not None else {}
        return data


class MediaBridgeError(Exception):
    """Base exception class for all MediaBridge errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize MediaBridgeError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error with code, message,
            context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.to_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(MediaBridgeError):
    """Domain-specific errors.

    These errors occur when matching or merge rules are violated
    or domain constraints are not met.
    """


class InfrastructureError(MediaBridgeError):
    """Infrastructure-related errors.

    These errors occur when interacting with external collaborators
    like provider callbacks or the cache persistence file.
    """


class ApplicationError(MediaBridgeError):
    """Application-level errors such as configuration or CLI usage."""


class ProviderUnavailableError(InfrastructureError):
    """A single alternate provider failed or timed out.

    Always recovered locally: the provider is excluded from the match set
    or represented by an empty contribution.
    """


class PrimaryProviderError(InfrastructureError):
    """The primary provider's own data fetch failed.

    This is the only provider failure that propagates to the caller,
    since the primary data is mandatory.
    """


class MalformedCandidateError(DomainError):
    """A provider record is missing required fields and cannot be used."""


class CacheError(InfrastructureError):
    """Cache persistence failure."""


class ConfigurationError(ApplicationError):
    """Invalid or unreadable configuration."""


class TypeCoercionError(DomainError):
    """Exception raised when converting a provider record fails.

    Wraps pydantic ValidationError with structured context.

    Attributes:
        model_name: Name of the target record type
        validation_errors: List of field-level validation errors
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        model_name: str | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(code, message, context, original_error)
        self.model_name = model_name
        self.validation_errors = validation_errors or []


def create_provider_unavailable_error(
    provider_id: str,
    operation: str,
    original_error: Exception | None = None,
    *,
    timed_out: bool = False,
) -> ProviderUnavailableError:
    """Create a provider unavailable error with context."""
    if timed_out:
        code = ErrorCode.PROVIDER_TIMEOUT
        message = f"Provider '{provider_id}' timed out during {operation}"
    else:
        code = ErrorCode.PROVIDER_UNAVAILABLE
        message = f"Provider '{provider_id}' failed during {operation}: {original_error}"
    context = ErrorContext(
        operation=operation,
        provider_id=provider_id,
        additional_data={
            "error_type": type(original_error).__name__ if original_error else "timeout",
        },
    )
    return ProviderUnavailableError(code, message, context, original_error)


def create_primary_provider_error(
    provider_id: str,
    operation: str,
    original_error: Exception | None = None,
) -> PrimaryProviderError:
    """Create a primary provider error with context."""
    context = ErrorContext(operation=operation, provider_id=provider_id)
    return PrimaryProviderError(
        ErrorCode.PRIMARY_PROVIDER_FAILED,
        f"Primary provider '{provider_id}' failed during {operation}: {original_error}",
        context,
        original_error,
    )


def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> DomainError:
    """Create a validation error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"field": field} if field else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return DomainError(
        ErrorCode.VALIDATION_ERROR,
        message,
        context,
        original_error,
    )


def create_cache_error(
    code: ErrorCode,
    message: str,
    path: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> CacheError:
    """Create a cache error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"path": path} if path else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return CacheError(code, message, context, original_error)


def create_config_error(
    message: str,
    config_key: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> ConfigurationError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return ConfigurationError(
        ErrorCode.CONFIG_ERROR,
        message,
        context,
        original_error,
    )


def create_type_coercion_error(
    message: str,
    model_name: str,
    validation_errors: list[dict[str, Any]] | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> TypeCoercionError:
    """Create a type coercion error with context.

    Args:
        message: Error message
        model_name: Target record type name
        validation_errors: Pydantic validation error details
        operation: Operation being performed
        original_error: Original ValidationError

    Returns:
        TypeCoercionError instance
    """
    additional_data: dict[str, PrimitiveContextValue] = {
        "model_name": model_name,
        "validation_error_count": len(validation_errors) if validation_errors else 0,
    }
    context = ErrorContext(
        operation=operation or "type_conversion",
        additional_data=additional_data,
    )
    return TypeCoercionError(
        code=ErrorCode.TYPE_COERCION_ERROR,
        message=message,
        context=context,
        original_error=original_error,
        model_name=model_name,
        validation_errors=validation_errors,
    )
