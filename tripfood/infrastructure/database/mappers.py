"""Conversion between domain entities and flat storage records.

Records hold only strings, numbers and lists with camelCase keys. Optional
fields are omitted when absent. Reading a record validates its shape and its
enum tags; any mismatch raises ``RecordDeserializationError`` naming the
collection, record id and offending field.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, date, datetime, time
from typing import Any, ClassVar, Generic, NotRequired, TypedDict, TypeVar

from ...domain.entities import Availability, Consumption, Participant, Product, Trip
from ...domain.exceptions import ValidationError
from ...domain.types import (
    MealType,
    ProductCategory,
    ProductType,
    ProductUnit,
    parse_iso_date,
    parse_iso_datetime,
    parse_meal_type,
    parse_product_category,
    parse_product_type,
    parse_product_unit,
    to_iso_date_string,
    utc_now,
)


class TripRecord(TypedDict):
    id: str
    name: str
    description: NotRequired[str]
    startDate: str
    endDate: str
    createdAt: str
    updatedAt: str


class ParticipantRecord(TypedDict):
    id: str
    tripId: str
    name: str
    email: NotRequired[str]
    notes: NotRequired[str]
    createdAt: str
    updatedAt: NotRequired[str]


class ProductRecord(TypedDict):
    id: str
    name: str
    category: str
    type: str
    unit: str
    defaultQuantityPerPerson: NotRequired[float]
    notes: NotRequired[str]
    createdAt: str
    updatedAt: NotRequired[str]


class ConsumptionRecord(TypedDict):
    id: str
    tripId: str
    participantId: str
    productId: str
    date: str
    meal: str
    quantity: float
    createdAt: str
    updatedAt: NotRequired[str]


class AvailabilityRecord(TypedDict):
    id: str
    participantId: str
    tripId: str
    date: str
    meals: list[str]
    compositeKey: NotRequired[str]
    createdAt: NotRequired[str]
    updatedAt: NotRequired[str]


class TripProps(TypedDict):
    id: str
    name: str
    description: str | None
    start_date: date
    end_date: date
    created_at: datetime
    updated_at: datetime | None


class ParticipantProps(TypedDict):
    id: str
    trip_id: str
    name: str
    email: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime | None


class ProductProps(TypedDict):
    id: str
    name: str
    category: ProductCategory
    product_type: ProductType
    unit: ProductUnit
    default_quantity_per_person: float | None
    notes: str | None
    created_at: datetime
    updated_at: datetime | None


class ConsumptionProps(TypedDict):
    id: str
    trip_id: str
    participant_id: str
    product_id: str
    date: date
    meal: MealType
    quantity: float
    created_at: datetime
    updated_at: datetime | None


class AvailabilityProps(TypedDict):
    id: str
    participant_id: str
    trip_id: str
    date: date
    meals: tuple[MealType, ...]
    created_at: datetime
    updated_at: datetime | None


class RecordDeserializationError(ValueError):
    """A stored record does not have the shape its collection requires."""

    def __init__(
        self, collection: str, record_id: Any, field: str, value: Any, reason: str
    ):
        self.collection = collection
        self.record_id = record_id
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Cannot read {collection} record '{record_id}': "
            f"field '{field}' {reason} (got {value!r})"
        )


class BatchDeserializationError(ValueError):
    """One or more records of a bulk read could not be converted.

    ``failures`` pairs each failing record's position with its error;
    ``decoded`` holds the props of every record that converted cleanly.
    """

    def __init__(
        self,
        collection: str,
        failures: Sequence[tuple[int, RecordDeserializationError]],
        decoded: Sequence[Any],
    ):
        self.collection = collection
        self.failures = list(failures)
        self.decoded = list(decoded)
        listed = "; ".join(
            f"#{index} ({error.record_id}): {error.field} {error.reason}"
            for index, error in self.failures
        )
        super().__init__(
            f"{len(self.failures)} of {len(self.failures) + len(self.decoded)} "
            f"{collection} records failed to deserialize: {listed}"
        )

    @property
    def failed_ids(self) -> list[Any]:
        return [error.record_id for _, error in self.failures]


_MISSING = object()

EntityT = TypeVar("EntityT", Trip, Participant, Product, Consumption, Availability)
PropsT = TypeVar("PropsT")
T = TypeVar("T")


class RecordMapper(ABC, Generic[EntityT, PropsT]):
    """Shared reading helpers and bulk conversion for one collection."""

    collection: ClassVar[str]
    # Domain field name -> record key, for fields a sparse update may touch
    updatable_fields: ClassVar[dict[str, str]]

    @abstractmethod
    def to_record(self, entity: EntityT) -> dict[str, Any]: ...

    @abstractmethod
    def to_domain_props(self, record: Mapping[str, Any]) -> PropsT: ...

    def to_record_list(self, entities: Iterable[EntityT]) -> list[dict[str, Any]]:
        return [self.to_record(entity) for entity in entities]

    def to_domain_props_list(self, records: Iterable[Mapping[str, Any]]) -> list[PropsT]:
        """Convert every record, reporting all failures together.

        Raises:
            BatchDeserializationError: If any record fails to convert
        """
        decoded: list[PropsT] = []
        failures: list[tuple[int, RecordDeserializationError]] = []
        for index, record in enumerate(records):
            try:
                decoded.append(self.to_domain_props(record))
            except RecordDeserializationError as error:
                failures.append((index, error))
        if failures:
            raise BatchDeserializationError(self.collection, failures, decoded)
        return decoded

    def to_partial_record(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Encode already-validated domain field changes as record keys.

        Only the supplied fields appear. A cleared optional field maps to None
        so the caller can drop the key when merging.
        """
        partial: dict[str, Any] = {}
        for field, value in changes.items():
            if field == "updated_at":
                if value is not None:
                    partial["updatedAt"] = value.isoformat()
                continue
            if field not in self.updatable_fields:
                raise ValueError(f"{self.collection} field '{field}' cannot be updated")
            partial[self.updatable_fields[field]] = self._encode_value(value)
        return partial

    @staticmethod
    def _encode_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, date):
            return to_iso_date_string(value)
        if isinstance(value, tuple | list):
            return [str(item) for item in value]
        if isinstance(value, ProductCategory | ProductType | ProductUnit | MealType):
            return value.value
        return value

    # Reading helpers

    def _fail(self, record: Mapping[str, Any], key: str, value: Any, reason: str):
        return RecordDeserializationError(
            self.collection, record.get("id"), key, value, reason
        )

    def _read(self, record: Mapping[str, Any], key: str) -> Any:
        value = self._read_optional(record, key)
        if value is None:
            raise self._fail(record, key, None, "is missing")
        return value

    def _read_optional(self, record: Mapping[str, Any], key: str) -> Any:
        value = record.get(key, _MISSING)
        return None if value is _MISSING else value

    def _check_str(self, record: Mapping[str, Any], key: str, value: Any) -> str:
        if not isinstance(value, str):
            raise self._fail(record, key, value, "must be a string")
        return value

    def _check_number(self, record: Mapping[str, Any], key: str, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise self._fail(record, key, value, "must be a number")
        return value

    def _parse(
        self,
        record: Mapping[str, Any],
        key: str,
        value: str,
        parser: Callable[[str], T],
        expected: str,
    ) -> T:
        try:
            return parser(value)
        except (ValueError, ValidationError) as error:
            raise self._fail(record, key, value, f"is not a valid {expected}") from error

    def _read_str(self, record: Mapping[str, Any], key: str) -> str:
        return self._check_str(record, key, self._read(record, key))

    def _read_optional_str(self, record: Mapping[str, Any], key: str) -> str | None:
        value = self._read_optional(record, key)
        return None if value is None else self._check_str(record, key, value)

    def _read_number(self, record: Mapping[str, Any], key: str) -> float:
        return self._check_number(record, key, self._read(record, key))

    def _read_optional_number(
        self, record: Mapping[str, Any], key: str
    ) -> float | None:
        value = self._read_optional(record, key)
        return None if value is None else self._check_number(record, key, value)

    def _read_parsed(
        self,
        record: Mapping[str, Any],
        key: str,
        parser: Callable[[str], T],
        expected: str,
    ) -> T:
        return self._parse(record, key, self._read_str(record, key), parser, expected)

    def _read_day(self, record: Mapping[str, Any], key: str) -> date:
        return self._read_parsed(record, key, parse_iso_date, "ISO date")

    def _read_datetime(self, record: Mapping[str, Any], key: str) -> datetime:
        return self._read_parsed(record, key, parse_iso_datetime, "ISO timestamp")

    def _read_optional_datetime(
        self, record: Mapping[str, Any], key: str
    ) -> datetime | None:
        value = self._read_optional_str(record, key)
        if value is None:
            return None
        return self._parse(record, key, value, parse_iso_datetime, "ISO timestamp")


class TripMapper(RecordMapper[Trip, TripProps]):
    collection = "trips"
    updatable_fields = {
        "name": "name",
        "description": "description",
        "start_date": "startDate",
        "end_date": "endDate",
    }

    def to_record(self, entity: Trip) -> dict[str, Any]:
        created_at = entity.created_at.isoformat()
        record: dict[str, Any] = {
            "id": entity.id,
            "name": entity.name,
            "startDate": to_iso_date_string(entity.start_date),
            "endDate": to_iso_date_string(entity.end_date),
            "createdAt": created_at,
            "updatedAt": (
                entity.updated_at.isoformat() if entity.updated_at else created_at
            ),
        }
        if entity.description is not None:
            record["description"] = entity.description
        return record

    def to_domain_props(self, record: Mapping[str, Any]) -> TripProps:
        created_at = self._read_datetime(record, "createdAt")
        updated_at = self._read_optional_datetime(record, "updatedAt")
        return TripProps(
            id=self._read_str(record, "id"),
            name=self._read_str(record, "name"),
            description=self._read_optional_str(record, "description"),
            start_date=self._read_day(record, "startDate"),
            end_date=self._read_day(record, "endDate"),
            created_at=created_at,
            # A never-updated trip stores its creation time as updatedAt
            updated_at=updated_at if updated_at != created_at else None,
        )

    def to_partial_record(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        partial = super().to_partial_record(changes)
        partial.setdefault("updatedAt", utc_now().isoformat())
        return partial


class ParticipantMapper(RecordMapper[Participant, ParticipantProps]):
    collection = "participants"
    updatable_fields = {"name": "name", "email": "email", "notes": "notes"}

    def to_record(self, entity: Participant) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": entity.id,
            "tripId": entity.trip_id,
            "name": entity.name,
            "createdAt": entity.created_at.isoformat(),
        }
        if entity.email is not None:
            record["email"] = entity.email
        if entity.notes is not None:
            record["notes"] = entity.notes
        if entity.updated_at is not None:
            record["updatedAt"] = entity.updated_at.isoformat()
        return record

    def to_domain_props(self, record: Mapping[str, Any]) -> ParticipantProps:
        created_at = self._read_datetime(record, "createdAt")
        return ParticipantProps(
            id=self._read_str(record, "id"),
            trip_id=self._read_str(record, "tripId"),
            name=self._read_str(record, "name"),
            email=self._read_optional_str(record, "email"),
            notes=self._read_optional_str(record, "notes"),
            created_at=created_at,
            updated_at=self._read_optional_datetime(record, "updatedAt"),
        )


class ProductMapper(RecordMapper[Product, ProductProps]):
    collection = "products"
    updatable_fields = {
        "name": "name",
        "category": "category",
        "product_type": "type",
        "unit": "unit",
        "default_quantity_per_person": "defaultQuantityPerPerson",
        "notes": "notes",
    }

    def to_record(self, entity: Product) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": entity.id,
            "name": entity.name,
            "category": entity.category.value,
            "type": entity.product_type.value,
            "unit": entity.unit.value,
            "createdAt": entity.created_at.isoformat(),
        }
        if entity.default_quantity_per_person is not None:
            record["defaultQuantityPerPerson"] = entity.default_quantity_per_person
        if entity.notes is not None:
            record["notes"] = entity.notes
        if entity.updated_at is not None:
            record["updatedAt"] = entity.updated_at.isoformat()
        return record

    def to_domain_props(self, record: Mapping[str, Any]) -> ProductProps:
        created_at = self._read_datetime(record, "createdAt")
        return ProductProps(
            id=self._read_str(record, "id"),
            name=self._read_str(record, "name"),
            category=self._read_parsed(
                record, "category", parse_product_category, "product category"
            ),
            product_type=self._read_parsed(
                record, "type", parse_product_type, "product type"
            ),
            unit=self._read_parsed(
                record, "unit", parse_product_unit, "product unit"
            ),
            default_quantity_per_person=self._read_optional_number(
                record, "defaultQuantityPerPerson"
            ),
            notes=self._read_optional_str(record, "notes"),
            created_at=created_at,
            updated_at=self._read_optional_datetime(record, "updatedAt"),
        )


class ConsumptionMapper(RecordMapper[Consumption, ConsumptionProps]):
    collection = "consumptions"
    updatable_fields = {"date": "date", "meal": "meal", "quantity": "quantity"}

    def to_record(self, entity: Consumption) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": entity.id,
            "tripId": entity.trip_id,
            "participantId": entity.participant_id,
            "productId": entity.product_id,
            "date": to_iso_date_string(entity.date),
            "meal": entity.meal.value,
            "quantity": entity.quantity,
            "createdAt": entity.created_at.isoformat(),
        }
        if entity.updated_at is not None:
            record["updatedAt"] = entity.updated_at.isoformat()
        return record

    def to_domain_props(self, record: Mapping[str, Any]) -> ConsumptionProps:
        created_at = self._read_datetime(record, "createdAt")
        return ConsumptionProps(
            id=self._read_str(record, "id"),
            trip_id=self._read_str(record, "tripId"),
            participant_id=self._read_str(
                record, "participantId"
            ),
            product_id=self._read_str(record, "productId"),
            date=self._read_day(record, "date"),
            meal=self._read_parsed(
                record, "meal", parse_meal_type, "meal type"
            ),
            quantity=self._read_number(record, "quantity"),
            created_at=created_at,
            updated_at=self._read_optional_datetime(record, "updatedAt"),
        )


class AvailabilityMapper(RecordMapper[Availability, AvailabilityProps]):
    collection = "availabilities"
    updatable_fields = {"date": "date", "meals": "meals"}

    @staticmethod
    def to_date_only_string(value: date | datetime | str) -> str:
        """Reduce a day, timestamp or ISO string to ``YYYY-MM-DD``."""
        if isinstance(value, str):
            return to_iso_date_string(parse_iso_date(value))
        return to_iso_date_string(value)

    @classmethod
    def compose_key(
        cls, participant_id: str, trip_id: str, day: date | datetime | str
    ) -> str:
        """The lookup key for one participant's day on one trip."""
        return f"{participant_id}:{trip_id}:{cls.to_date_only_string(day)}"

    def to_record(self, entity: Availability) -> dict[str, Any]:
        day = to_iso_date_string(entity.date)
        record: dict[str, Any] = {
            "id": entity.id,
            "participantId": entity.participant_id,
            "tripId": entity.trip_id,
            "date": day,
            "meals": [meal.value for meal in entity.meals],
            "compositeKey": self.compose_key(entity.participant_id, entity.trip_id, day),
            "createdAt": entity.created_at.isoformat(),
        }
        if entity.updated_at is not None:
            record["updatedAt"] = entity.updated_at.isoformat()
        return record

    def to_domain_props(self, record: Mapping[str, Any]) -> AvailabilityProps:
        day = self._read_day(record, "date")
        meals = self._read(record, "meals")
        if not isinstance(meals, list):
            raise self._fail(record, "meals", meals, "must be a list")
        parsed_meals = []
        for meal in meals:
            try:
                parsed_meals.append(parse_meal_type(meal, "meals"))
            except ValidationError as error:
                raise self._fail(
                    record, "meals", meal, "is not a valid meal type"
                ) from error

        # Records written before createdAt was stored fall back to their day
        created_at = self._read_optional_datetime(record, "createdAt")
        return AvailabilityProps(
            id=self._read_str(record, "id"),
            participant_id=self._read_str(
                record, "participantId"
            ),
            trip_id=self._read_str(record, "tripId"),
            date=day,
            meals=tuple(parsed_meals),
            created_at=created_at or datetime.combine(day, time.min, tzinfo=UTC),
            updated_at=self._read_optional_datetime(record, "updatedAt"),
        )
