"""Domain-specific exceptions."""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Machine-readable codes carried by every domain error."""

    DOMAIN_ERROR = "DOMAIN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"


class ValidationRule(StrEnum):
    """The kind of constraint a value failed."""

    REQUIRED = "required"
    FORMAT = "format"
    RANGE = "range"
    LENGTH = "length"
    ENUM = "enum"
    DATE_RANGE = "date_range"
    CATEGORY_MISMATCH = "category_mismatch"


def _format_mapping(values: Mapping[str, Any]) -> str:
    return ", ".join(
        f"{key}={json.dumps(value, default=str)}" for key, value in values.items()
    )


class DomainError(Exception):
    """Base exception for domain errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DOMAIN_ERROR,
        details: Mapping[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details) if details is not None else None
        self.timestamp = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs and client payloads."""
        payload: dict[str, Any] = {
            "name": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationFailure:
    """A single violated constraint."""

    field: str
    rule: ValidationRule
    message: str
    value: Any = None


class ValidationError(DomainError):
    """Raised when domain validation fails.

    Carries one or more ``ValidationFailure`` items. A batch of failures keeps
    the itemized list and joins the individual messages into one.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        rule: ValidationRule | None = None,
        value: Any = None,
    ):
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if rule is not None:
            details["rule"] = rule.value
        if value is not None:
            details["value"] = value
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details or None)
        self.field = field
        self.rule = rule
        self.value = value
        self.failures: tuple[ValidationFailure, ...] = (
            (ValidationFailure(field, rule, message, value),)
            if field is not None and rule is not None
            else ()
        )

    @classmethod
    def from_failures(cls, failures: Iterable[ValidationFailure]) -> "ValidationError":
        items = tuple(failures)
        if not items:
            return cls("Validation failed with no specific errors")
        if len(items) == 1:
            only = items[0]
            return cls(only.message, only.field, only.rule, only.value)

        message = f"Validation failed with {len(items)} errors: " + "; ".join(
            failure.message for failure in items
        )
        error = cls(message)
        error.failures = items
        error.details = {
            "failures": [
                {"field": f.field, "rule": f.rule.value, "message": f.message}
                for f in items
            ]
        }
        return error

    @classmethod
    def required(cls, field: str, entity: str | None = None) -> "ValidationError":
        prefix = f"{entity} " if entity else ""
        return cls(f"{prefix}{field} is required", field, ValidationRule.REQUIRED)

    @classmethod
    def invalid_format(
        cls, field: str, expected: str, value: Any = None
    ) -> "ValidationError":
        return cls(f"{field} must be a {expected}", field, ValidationRule.FORMAT, value)

    @classmethod
    def out_of_range(
        cls,
        field: str,
        minimum: float | None = None,
        maximum: float | None = None,
        value: Any = None,
    ) -> "ValidationError":
        if minimum is not None and maximum is not None:
            message = f"{field} must be between {minimum} and {maximum}"
        elif minimum is not None:
            message = f"{field} must be at least {minimum}"
        elif maximum is not None:
            message = f"{field} must be at most {maximum}"
        else:
            message = f"{field} is out of range"
        return cls(message, field, ValidationRule.RANGE, value)

    @classmethod
    def invalid_length(
        cls,
        field: str,
        min_length: int | None = None,
        max_length: int | None = None,
        length: int | None = None,
    ) -> "ValidationError":
        if min_length is not None and max_length is not None:
            message = (
                f"{field} must be between {min_length} and {max_length} characters"
            )
        elif min_length is not None:
            message = f"{field} must be at least {min_length} characters"
        elif max_length is not None:
            message = f"{field} must be at most {max_length} characters"
        else:
            message = f"{field} has invalid length"
        return cls(message, field, ValidationRule.LENGTH, length)

    @classmethod
    def invalid_enum(
        cls, field: str, value: Any, allowed: Iterable[str], label: str | None = None
    ) -> "ValidationError":
        return cls(
            f"Invalid {label or field}: '{value}'. "
            f"Valid values are: {', '.join(allowed)}",
            field,
            ValidationRule.ENUM,
            value,
        )

    @classmethod
    def invalid_date_range(cls, start_field: str, end_field: str) -> "ValidationError":
        return cls(
            f"{start_field} must be on or before {end_field}",
            start_field,
            ValidationRule.DATE_RANGE,
        )

    @classmethod
    def category_mismatch(
        cls, product_type: str, category: str, expected: str
    ) -> "ValidationError":
        return cls(
            f"Product type '{product_type}' does not belong to category "
            f"'{category}'. Expected category: '{expected}'",
            "product_type",
            ValidationRule.CATEGORY_MISMATCH,
            product_type,
        )

    def has_multiple_failures(self) -> bool:
        return len(self.failures) > 1

    def failed_fields(self) -> tuple[str, ...]:
        return tuple(failure.field for failure in self.failures)


class NotFoundError(DomainError):
    """Raised when an entity lookup by id or by criteria finds nothing."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str | None = None,
        search_criteria: Mapping[str, Any] | None = None,
    ):
        details: dict[str, Any] = {"entity_type": entity_type}
        if entity_id is not None:
            details["entity_id"] = entity_id
        if search_criteria is not None:
            details["search_criteria"] = dict(search_criteria)

        if entity_id is not None:
            message = f"{entity_type} with ID '{entity_id}' was not found"
        elif search_criteria is not None:
            message = (
                f"{entity_type} matching criteria "
                f"{{{_format_mapping(search_criteria)}}} was not found"
            )
        else:
            message = f"{entity_type} was not found"

        super().__init__(message, ErrorCode.NOT_FOUND_ERROR, details)
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.search_criteria = (
            dict(search_criteria) if search_criteria is not None else None
        )

    @classmethod
    def for_entity(cls, entity_type: str, entity_id: str) -> "NotFoundError":
        return cls(entity_type, entity_id=entity_id)

    @classmethod
    def for_query(
        cls, entity_type: str, search_criteria: Mapping[str, Any]
    ) -> "NotFoundError":
        return cls(entity_type, search_criteria=search_criteria)


class DuplicateError(DomainError):
    """Raised when attempting to store an entity that collides with another."""

    def __init__(
        self,
        entity_type: str,
        field: str | None = None,
        value: Any = None,
        composite_key: Mapping[str, Any] | None = None,
    ):
        details: dict[str, Any] = {"entity_type": entity_type}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if composite_key is not None:
            details["composite_key"] = dict(composite_key)

        if composite_key is not None:
            message = (
                f"{entity_type} with composite key "
                f"{{{_format_mapping(composite_key)}}} already exists"
            )
        elif field is not None and value is not None:
            message = f"{entity_type} with {field} '{value}' already exists"
        elif field is not None:
            message = f"{entity_type} with duplicate {field} already exists"
        else:
            message = f"{entity_type} already exists"

        super().__init__(message, ErrorCode.DUPLICATE_ERROR, details)
        self.entity_type = entity_type
        self.field = field
        self.value = value
        self.composite_key = dict(composite_key) if composite_key is not None else None

    @classmethod
    def for_field(cls, entity_type: str, field: str, value: Any) -> "DuplicateError":
        return cls(entity_type, field=field, value=value)

    @classmethod
    def for_composite_key(
        cls, entity_type: str, composite_key: Mapping[str, Any]
    ) -> "DuplicateError":
        return cls(entity_type, composite_key=composite_key)


class BusinessRuleError(DomainError):
    """Raised when an operation is refused by a cross-entity business rule.

    ``details`` names the offending entity and the dependent counts so the
    caller can decide whether to retry with ``force=True``.
    """

    def __init__(self, message: str, details: Mapping[str, Any] | None = None):
        super().__init__(message, ErrorCode.BUSINESS_RULE_ERROR, details)
