from tripfood.domain.exceptions import (
    BusinessRuleError,
    DomainError,
    DuplicateError,
    ErrorCode,
    NotFoundError,
    ValidationError,
    ValidationFailure,
    ValidationRule,
)


def test_required_names_entity_and_field():
    error = ValidationError.required("name", "Trip")

    assert error.message == "Trip name is required"
    assert error.code is ErrorCode.VALIDATION_ERROR
    assert error.field == "name"
    assert error.rule is ValidationRule.REQUIRED
    assert len(error.failures) == 1


def test_single_failure_batch_is_the_failure_itself():
    failure = ValidationFailure(
        "quantity", ValidationRule.RANGE, "quantity must be positive", -1
    )
    error = ValidationError.from_failures([failure])

    assert error.message == "quantity must be positive"
    assert error.field == "quantity"
    assert not error.has_multiple_failures()


def test_multiple_failures_keep_every_item():
    failures = [
        ValidationFailure("name", ValidationRule.REQUIRED, "name is required"),
        ValidationFailure("email", ValidationRule.FORMAT, "email is invalid", "x@"),
    ]
    error = ValidationError.from_failures(failures)

    assert error.message == (
        "Validation failed with 2 errors: name is required; email is invalid"
    )
    assert error.has_multiple_failures()
    assert error.failed_fields() == ("name", "email")
    assert error.details is not None
    assert len(error.details["failures"]) == 2


def test_empty_failure_batch():
    error = ValidationError.from_failures([])
    assert error.failures == ()
    assert "no specific errors" in error.message


def test_out_of_range_message():
    error = ValidationError.out_of_range("quantity", 0.01, 10000, 0)
    assert error.message == "quantity must be between 0.01 and 10000"
    assert error.value == 0


def test_not_found_by_id():
    error = NotFoundError.for_entity("Trip", "t1")

    assert error.message == "Trip with ID 't1' was not found"
    assert error.code is ErrorCode.NOT_FOUND_ERROR
    assert error.entity_id == "t1"


def test_not_found_by_criteria():
    error = NotFoundError.for_query("Participant", {"trip_id": "t1", "name": "Ann"})

    assert error.message == (
        'Participant matching criteria {trip_id="t1", name="Ann"} was not found'
    )
    assert error.search_criteria == {"trip_id": "t1", "name": "Ann"}


def test_duplicate_field_and_composite_key():
    by_field = DuplicateError.for_field("Trip", "name", "Beach Week")
    assert by_field.message == "Trip with name 'Beach Week' already exists"

    by_key = DuplicateError.for_composite_key(
        "Availability", {"participant_id": "p1", "date": "2024-07-01"}
    )
    assert "composite key" in by_key.message
    assert by_key.details == {
        "entity_type": "Availability",
        "composite_key": {"participant_id": "p1", "date": "2024-07-01"},
    }


def test_business_rule_error_carries_details():
    error = BusinessRuleError("refused", {"participant_id": "p1", "consumption_count": 3})

    assert isinstance(error, DomainError)
    assert error.code is ErrorCode.BUSINESS_RULE_ERROR
    assert error.details == {"participant_id": "p1", "consumption_count": 3}


def test_to_dict_serializes_error():
    payload = NotFoundError.for_entity("Product", "p9").to_dict()

    assert payload["name"] == "NotFoundError"
    assert payload["code"] == "NOT_FOUND_ERROR"
    assert payload["details"]["entity_id"] == "p9"
    assert payload["timestamp"].endswith("+00:00")
