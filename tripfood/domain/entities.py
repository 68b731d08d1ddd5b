"""Pure domain entities without infrastructure dependencies.

Every entity is an immutable value object with two construction paths:
``create`` validates its input and stamps a fresh id and ``created_at``;
``from_persistence`` rebuilds an instance from trusted stored props without
validating again. ``update`` validates only the fields it is given and
returns a new instance. Equality and hashing use the id alone.
"""

import math
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Self

from .constants import (
    CONSUMPTION_MAX_QUANTITY,
    CONSUMPTION_MIN_QUANTITY,
    PARTICIPANT_MAX_NAME_LENGTH,
    PARTICIPANT_MAX_NOTES_LENGTH,
    PARTICIPANT_MIN_NAME_LENGTH,
    PRODUCT_MAX_NAME_LENGTH,
    PRODUCT_MAX_NOTES_LENGTH,
    PRODUCT_MAX_QUANTITY,
    PRODUCT_MIN_NAME_LENGTH,
    PRODUCT_MIN_QUANTITY,
    TRIP_MAX_DESCRIPTION_LENGTH,
    TRIP_MAX_NAME_LENGTH,
    TRIP_MIN_NAME_LENGTH,
)
from .exceptions import ValidationError
from .types import (
    MEAL_TYPES,
    UNSET,
    DateRange,
    MealType,
    ProductCategory,
    ProductType,
    ProductUnit,
    Unset,
    category_for_type,
    is_valid_email,
    parse_meal_type,
    parse_product_category,
    parse_product_type,
    parse_product_unit,
    sort_meals_by_order,
    to_day,
    to_iso_date_string,
    utc_now,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def validate_entity_name(
    name: Any, entity_type: str, min_length: int, max_length: int
) -> str:
    """Validate an entity name and return it trimmed.

    Raises:
        ValidationError: If name is missing or out of length bounds
    """
    if not isinstance(name, str) or not name:
        raise ValidationError.required("name", entity_type)

    trimmed = name.strip()
    if not min_length <= len(trimmed) <= max_length:
        raise ValidationError.invalid_length("name", min_length, max_length, len(trimmed))

    return trimmed


def _validate_text(value: Any, field: str, max_length: int) -> str | None:
    if not isinstance(value, str):
        raise ValidationError.invalid_format(field, "string", value)
    if len(value) > max_length:
        raise ValidationError.invalid_length(field, None, max_length, len(value))
    return value.strip() or None


def _validate_reference(value: Any, field: str, entity_type: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError.required(field, entity_type)
    return value


def _validate_day(value: Any, field: str, entity_type: str) -> date:
    if value is None:
        raise ValidationError.required(field, entity_type)
    if not isinstance(value, date):
        raise ValidationError.invalid_format(field, "valid date", value)
    return to_day(value)


def _validate_quantity(
    value: Any, field: str, minimum: float, maximum: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError.invalid_format(field, "number", value)
    if math.isnan(value):
        raise ValidationError.invalid_format(field, "number", value)
    if not minimum <= value <= maximum:
        raise ValidationError.out_of_range(field, minimum, maximum, value)
    return value


def _validate_email(value: Any) -> str | None:
    if not isinstance(value, str):
        raise ValidationError.invalid_format("email", "valid email address", value)
    normalized = value.strip().lower()
    if not normalized:
        return None
    if not is_valid_email(normalized):
        raise ValidationError.invalid_format("email", "valid email address", value)
    return normalized


def _validate_meals(meals: Any) -> tuple[MealType, ...]:
    if isinstance(meals, str) or not isinstance(meals, Iterable):
        raise ValidationError.invalid_format("meals", "list of meal types", meals)
    return tuple(parse_meal_type(meal, "meals") for meal in meals)


class _IdentityEquality:
    """Entities compare and hash by id, never by field values."""

    id: str

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.id == other.id  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True, eq=False)
class Trip(_IdentityEquality):
    """A group trip spanning an inclusive range of days."""

    id: str
    name: str
    start_date: date
    end_date: date
    created_at: datetime
    description: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "start_date", to_day(self.start_date))
        object.__setattr__(self, "end_date", to_day(self.end_date))

    @classmethod
    def create(
        cls,
        *,
        name: str,
        start_date: date,
        end_date: date,
        description: str | None = None,
    ) -> Self:
        trimmed_name = validate_entity_name(
            name, "Trip", TRIP_MIN_NAME_LENGTH, TRIP_MAX_NAME_LENGTH
        )
        trimmed_description = (
            _validate_text(description, "description", TRIP_MAX_DESCRIPTION_LENGTH)
            if description is not None
            else None
        )
        start, end = cls._validate_date_range(start_date, end_date)
        return cls(
            id=_new_id(),
            name=trimmed_name,
            description=trimmed_description,
            start_date=start,
            end_date=end,
            created_at=utc_now(),
        )

    @classmethod
    def from_persistence(cls, props: Mapping[str, Any]) -> Self:
        return cls(**props)

    def update(
        self,
        *,
        name: str | Unset = UNSET,
        description: str | None | Unset = UNSET,
        start_date: date | Unset = UNSET,
        end_date: date | Unset = UNSET,
    ) -> Self:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if name is not UNSET:
            changes["name"] = validate_entity_name(
                name, "Trip", TRIP_MIN_NAME_LENGTH, TRIP_MAX_NAME_LENGTH
            )
        if description is not UNSET:
            changes["description"] = (
                _validate_text(description, "description", TRIP_MAX_DESCRIPTION_LENGTH)
                if description is not None
                else None
            )
        if start_date is not UNSET or end_date is not UNSET:
            start, end = self._validate_date_range(
                self.start_date if start_date is UNSET else start_date,
                self.end_date if end_date is UNSET else end_date,
            )
            changes["start_date"] = start
            changes["end_date"] = end
        return replace(self, **changes)

    @staticmethod
    def _validate_date_range(start_date: Any, end_date: Any) -> tuple[date, date]:
        start = _validate_day(start_date, "start_date", "Trip")
        end = _validate_day(end_date, "end_date", "Trip")
        if start > end:
            raise ValidationError.invalid_date_range("start_date", "end_date")
        return start, end

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def duration_in_days(self) -> int:
        return self.date_range.days

    def is_date_within_trip(self, value: date) -> bool:
        return value in self.date_range

    def is_active(self, today: date | None = None) -> bool:
        return self.is_date_within_trip(today or date.today())

    def has_started(self, today: date | None = None) -> bool:
        return (today or date.today()) >= self.start_date

    def has_ended(self, today: date | None = None) -> bool:
        return (today or date.today()) > self.end_date

    def is_upcoming(self, today: date | None = None) -> bool:
        return (today or date.today()) < self.start_date


@dataclass(frozen=True, eq=False)
class Participant(_IdentityEquality):
    """A person taking part in a trip. ``trip_id`` never changes."""

    id: str
    trip_id: str
    name: str
    created_at: datetime
    email: str | None = None
    notes: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        *,
        trip_id: str,
        name: str,
        email: str | None = None,
        notes: str | None = None,
    ) -> Self:
        return cls(
            id=_new_id(),
            trip_id=_validate_reference(trip_id, "trip_id", "Participant"),
            name=validate_entity_name(
                name,
                "Participant",
                PARTICIPANT_MIN_NAME_LENGTH,
                PARTICIPANT_MAX_NAME_LENGTH,
            ),
            email=_validate_email(email) if email is not None else None,
            notes=(
                _validate_text(notes, "notes", PARTICIPANT_MAX_NOTES_LENGTH)
                if notes is not None
                else None
            ),
            created_at=utc_now(),
        )

    @classmethod
    def from_persistence(cls, props: Mapping[str, Any]) -> Self:
        return cls(**props)

    def update(
        self,
        *,
        name: str | Unset = UNSET,
        email: str | None | Unset = UNSET,
        notes: str | None | Unset = UNSET,
    ) -> Self:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if name is not UNSET:
            changes["name"] = validate_entity_name(
                name,
                "Participant",
                PARTICIPANT_MIN_NAME_LENGTH,
                PARTICIPANT_MAX_NAME_LENGTH,
            )
        if email is not UNSET:
            changes["email"] = _validate_email(email) if email is not None else None
        if notes is not UNSET:
            changes["notes"] = (
                _validate_text(notes, "notes", PARTICIPANT_MAX_NOTES_LENGTH)
                if notes is not None
                else None
            )
        return replace(self, **changes)

    def has_email(self) -> bool:
        return bool(self.email)

    def has_notes(self) -> bool:
        return bool(self.notes)

    def belongs_to_trip(self, trip_id: str) -> bool:
        return self.trip_id == trip_id


@dataclass(frozen=True, eq=False)
class Product(_IdentityEquality):
    """A catalog item. ``product_type`` must belong to ``category``."""

    id: str
    name: str
    category: ProductCategory
    product_type: ProductType
    unit: ProductUnit
    created_at: datetime
    default_quantity_per_person: float | None = None
    notes: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        *,
        name: str,
        category: ProductCategory | str,
        product_type: ProductType | str,
        unit: ProductUnit | str,
        default_quantity_per_person: float | None = None,
        notes: str | None = None,
    ) -> Self:
        trimmed_name = validate_entity_name(
            name, "Product", PRODUCT_MIN_NAME_LENGTH, PRODUCT_MAX_NAME_LENGTH
        )
        parsed_category = parse_product_category(category)
        parsed_type = parse_product_type(product_type)
        cls._validate_type_matches_category(parsed_type, parsed_category)
        return cls(
            id=_new_id(),
            name=trimmed_name,
            category=parsed_category,
            product_type=parsed_type,
            unit=parse_product_unit(unit),
            default_quantity_per_person=(
                _validate_quantity(
                    default_quantity_per_person,
                    "default_quantity_per_person",
                    PRODUCT_MIN_QUANTITY,
                    PRODUCT_MAX_QUANTITY,
                )
                if default_quantity_per_person is not None
                else None
            ),
            notes=(
                _validate_text(notes, "notes", PRODUCT_MAX_NOTES_LENGTH)
                if notes is not None
                else None
            ),
            created_at=utc_now(),
        )

    @classmethod
    def from_persistence(cls, props: Mapping[str, Any]) -> Self:
        return cls(**props)

    def update(
        self,
        *,
        name: str | Unset = UNSET,
        category: ProductCategory | str | Unset = UNSET,
        product_type: ProductType | str | Unset = UNSET,
        unit: ProductUnit | str | Unset = UNSET,
        default_quantity_per_person: float | None | Unset = UNSET,
        notes: str | None | Unset = UNSET,
    ) -> Self:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if name is not UNSET:
            changes["name"] = validate_entity_name(
                name, "Product", PRODUCT_MIN_NAME_LENGTH, PRODUCT_MAX_NAME_LENGTH
            )
        if category is not UNSET:
            changes["category"] = parse_product_category(category)
        if product_type is not UNSET:
            changes["product_type"] = parse_product_type(product_type)
        if category is not UNSET or product_type is not UNSET:
            self._validate_type_matches_category(
                changes.get("product_type", self.product_type),
                changes.get("category", self.category),
            )
        if unit is not UNSET:
            changes["unit"] = parse_product_unit(unit)
        if default_quantity_per_person is not UNSET:
            changes["default_quantity_per_person"] = (
                _validate_quantity(
                    default_quantity_per_person,
                    "default_quantity_per_person",
                    PRODUCT_MIN_QUANTITY,
                    PRODUCT_MAX_QUANTITY,
                )
                if default_quantity_per_person is not None
                else None
            )
        if notes is not UNSET:
            changes["notes"] = (
                _validate_text(notes, "notes", PRODUCT_MAX_NOTES_LENGTH)
                if notes is not None
                else None
            )
        return replace(self, **changes)

    @staticmethod
    def _validate_type_matches_category(
        product_type: ProductType, category: ProductCategory
    ) -> None:
        expected = category_for_type(product_type)
        if expected is not category:
            raise ValidationError.category_mismatch(product_type, category, expected)

    def is_food(self) -> bool:
        return self.category is ProductCategory.FOOD

    def is_beverage(self) -> bool:
        return self.category is ProductCategory.BEVERAGE

    def has_default_quantity(self) -> bool:
        return (
            self.default_quantity_per_person is not None
            and self.default_quantity_per_person > 0
        )

    def calculate_quantity_for_people(self, number_of_people: int) -> float | None:
        """Total default quantity for a group, or None without a default."""
        if self.default_quantity_per_person is None or not self.has_default_quantity():
            return None
        if number_of_people <= 0:
            return 0
        return self.default_quantity_per_person * number_of_people


@dataclass(frozen=True, eq=False)
class Consumption(_IdentityEquality):
    """A participant consumed ``quantity`` of a product for a meal on a day."""

    id: str
    trip_id: str
    participant_id: str
    product_id: str
    date: date
    meal: MealType
    quantity: float
    created_at: datetime
    updated_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "date", to_day(self.date))

    @classmethod
    def create(
        cls,
        *,
        trip_id: str,
        participant_id: str,
        product_id: str,
        date: date,
        meal: MealType | str,
        quantity: float,
    ) -> Self:
        return cls(
            id=_new_id(),
            trip_id=_validate_reference(trip_id, "trip_id", "Consumption"),
            participant_id=_validate_reference(
                participant_id, "participant_id", "Consumption"
            ),
            product_id=_validate_reference(product_id, "product_id", "Consumption"),
            date=_validate_day(date, "date", "Consumption"),
            meal=parse_meal_type(meal),
            quantity=_validate_quantity(
                quantity, "quantity", CONSUMPTION_MIN_QUANTITY, CONSUMPTION_MAX_QUANTITY
            ),
            created_at=utc_now(),
        )

    @classmethod
    def from_persistence(cls, props: Mapping[str, Any]) -> Self:
        return cls(**props)

    def update(
        self,
        *,
        date: date | Unset = UNSET,
        meal: MealType | str | Unset = UNSET,
        quantity: float | Unset = UNSET,
    ) -> Self:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if date is not UNSET:
            changes["date"] = _validate_day(date, "date", "Consumption")
        if meal is not UNSET:
            changes["meal"] = parse_meal_type(meal)
        if quantity is not UNSET:
            changes["quantity"] = _validate_quantity(
                quantity, "quantity", CONSUMPTION_MIN_QUANTITY, CONSUMPTION_MAX_QUANTITY
            )
        return replace(self, **changes)

    def belongs_to_trip(self, trip_id: str) -> bool:
        return self.trip_id == trip_id

    def is_from_participant(self, participant_id: str) -> bool:
        return self.participant_id == participant_id

    def is_for_product(self, product_id: str) -> bool:
        return self.product_id == product_id

    def is_on_date(self, value: date) -> bool:
        return self.date == to_day(value)

    def is_for_meal(self, meal: MealType) -> bool:
        return self.meal == meal

    @property
    def date_string(self) -> str:
        return to_iso_date_string(self.date)


@dataclass(frozen=True, eq=False)
class Availability(_IdentityEquality):
    """The meals a participant attends on one day of a trip.

    ``meals`` is always deduplicated and kept in canonical meal order.
    """

    id: str
    participant_id: str
    trip_id: str
    date: date
    meals: tuple[MealType, ...]
    created_at: datetime
    updated_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "date", to_day(self.date))
        object.__setattr__(self, "meals", sort_meals_by_order(self.meals))

    @classmethod
    def create(
        cls,
        *,
        participant_id: str,
        trip_id: str,
        date: date,
        meals: Iterable[MealType | str],
    ) -> Self:
        return cls(
            id=_new_id(),
            participant_id=_validate_reference(
                participant_id, "participant_id", "Availability"
            ),
            trip_id=_validate_reference(trip_id, "trip_id", "Availability"),
            date=_validate_day(date, "date", "Availability"),
            meals=_validate_meals(meals),
            created_at=utc_now(),
        )

    @classmethod
    def from_persistence(cls, props: Mapping[str, Any]) -> Self:
        return cls(**props)

    def update(
        self,
        *,
        date: date | Unset = UNSET,
        meals: Iterable[MealType | str] | Unset = UNSET,
    ) -> Self:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if date is not UNSET:
            changes["date"] = _validate_day(date, "date", "Availability")
        if meals is not UNSET:
            changes["meals"] = _validate_meals(meals)
        return replace(self, **changes)

    def is_available_for_meal(self, meal: MealType) -> bool:
        return meal in self.meals

    def is_available_for_all_meals(self) -> bool:
        return all(meal in self.meals for meal in MEAL_TYPES)

    def is_not_available(self) -> bool:
        return not self.meals

    @property
    def meal_count(self) -> int:
        return len(self.meals)

    def add_meal(self, meal: MealType) -> Self:
        if self.is_available_for_meal(meal):
            return self
        return self.update(meals=(*self.meals, meal))

    def remove_meal(self, meal: MealType) -> Self:
        if not self.is_available_for_meal(meal):
            return self
        return self.update(meals=tuple(m for m in self.meals if m != meal))

    def set_available_for_all_meals(self) -> Self:
        return self.update(meals=MEAL_TYPES)

    def clear_all_meals(self) -> Self:
        return self.update(meals=())

    def belongs_to_trip(self, trip_id: str) -> bool:
        return self.trip_id == trip_id

    def is_for_participant(self, participant_id: str) -> bool:
        return self.participant_id == participant_id

    def is_on_date(self, value: date) -> bool:
        return self.date == to_day(value)

    @property
    def date_string(self) -> str:
        return to_iso_date_string(self.date)
