"""Shared validation utilities for the application layer."""

from collections.abc import Iterator
from contextlib import contextmanager

from ..domain.exceptions import ValidationError
from ..logging_config import get_logger
from ..logging_utils import log_validation_error

logger = get_logger(__name__)


@contextmanager
def logged_validation(entity_type: str, action: str) -> Iterator[None]:
    """Log every rejected field of a failed validation, then re-raise.

    Args:
        entity_type: Type of entity being validated (for log context)
        action: The operation that was attempted (create, update)

    Raises:
        ValidationError: Unchanged, after logging
    """
    try:
        yield
    except ValidationError as e:
        for failure in e.failures:
            log_validation_error(failure.field, failure.value, failure.message)
        logger.warning(
            f"{entity_type} {action} failed - invalid input",
            entity_type=entity_type,
            fields=list(e.failed_fields()),
        )
        raise
