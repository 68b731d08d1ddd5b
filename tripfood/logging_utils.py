import logging
from typing import Any

from .constants import MAX_LOGGED_VALUE_LENGTH


def log_database_operation(
    operation: str,
    collection: str,
    success: bool = True,
    logger_name: str = "database",
    **kwargs: Any,
) -> None:
    """Log record store operations.

    Args:
        operation: Store operation (save, update, delete, cascade_delete)
        collection: Record collection being operated on
        success: Whether the operation was successful
        logger_name: Name of the logger to use
        **kwargs: Additional context data
    """
    logger = logging.getLogger(logger_name)

    log_data = {
        "operation": operation,
        "collection": collection,
        "success": success,
        **kwargs,
    }

    level = logging.DEBUG if success else logging.ERROR
    status = "succeeded" if success else "failed"

    logger.log(level, f"Database {operation} on {collection} {status}", extra=log_data)


def log_validation_error(
    field: str, value: Any, error_message: str, logger_name: str = "validation"
) -> None:
    """Log validation errors with context.

    Args:
        field: Field name that failed validation
        value: The invalid value (will be sanitized)
        error_message: Validation error message
        logger_name: Name of the logger to use
    """
    logger = logging.getLogger(logger_name)

    safe_value = (
        str(value)[:MAX_LOGGED_VALUE_LENGTH]
        if not _is_sensitive_field(field)
        else "[REDACTED]"
    )

    logger.warning(
        f"Validation failed for field '{field}': {error_message}",
        extra={"field": field, "value": safe_value, "error": error_message},
    )


def _is_sensitive_field(field_name: str) -> bool:
    """Check if a field holds personal data that should not be logged."""
    sensitive_fields = {"email", "password", "secret", "token", "credential"}

    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in sensitive_fields)
