"""Persistence contracts the application layer depends on.

Infrastructure adapters implement these against a concrete record store.
``save`` is an idempotent upsert by id; ``update`` refuses unknown ids.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, TypeVar

from .entities import Availability, Consumption, Participant, Product, Trip
from .types import DateRange, MealType, ProductCategory, ProductType, ProductUnit

EntityT = TypeVar("EntityT", Trip, Participant, Product, Consumption, Availability)


class Repository(ABC, Generic[EntityT]):
    """CRUD operations shared by every entity repository."""

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> EntityT | None: ...

    @abstractmethod
    async def find_all(self) -> list[EntityT]: ...

    @abstractmethod
    async def save(self, entity: EntityT) -> EntityT: ...

    @abstractmethod
    async def update(self, entity: EntityT) -> EntityT:
        """Overwrite an existing entity.

        Raises:
            NotFoundError: If no entity with this id is stored
        """

    @abstractmethod
    async def delete(self, entity_id: str) -> bool: ...

    @abstractmethod
    async def exists(self, entity_id: str) -> bool: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def save_many(self, entities: Sequence[EntityT]) -> list[EntityT]: ...

    @abstractmethod
    async def delete_many(self, entity_ids: Sequence[str]) -> int: ...

    @abstractmethod
    async def partial_update(
        self, entity_id: str, changes: Mapping[str, Any]
    ) -> EntityT | None:
        """Validate and apply sparse field changes to a stored entity.

        Returns None when the id is unknown.
        """


@dataclass(frozen=True)
class TripQueryFilters:
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class TripRepository(Repository[Trip]):
    @abstractmethod
    async def find_by_name(self, name: str) -> list[Trip]: ...

    @abstractmethod
    async def find_by_date(self, value: date) -> list[Trip]: ...

    @abstractmethod
    async def find_by_date_range(self, start_date: date, end_date: date) -> list[Trip]: ...

    @abstractmethod
    async def find_all_ordered_by_start_date(self) -> list[Trip]: ...

    @abstractmethod
    async def find_active(self, today: date | None = None) -> list[Trip]: ...

    @abstractmethod
    async def find_upcoming(self, today: date | None = None) -> list[Trip]: ...

    @abstractmethod
    async def find_past(self, today: date | None = None) -> list[Trip]: ...

    @abstractmethod
    async def exists_by_name(self, name: str, exclude_id: str | None = None) -> bool: ...

    @abstractmethod
    async def find_with_filters(self, filters: TripQueryFilters) -> list[Trip]: ...


@dataclass(frozen=True)
class ParticipantQueryFilters:
    trip_id: str | None = None
    name: str | None = None
    email: str | None = None
    has_email: bool | None = None


class ParticipantRepository(Repository[Participant]):
    @abstractmethod
    async def find_by_trip_id(self, trip_id: str) -> list[Participant]: ...

    @abstractmethod
    async def find_by_name(self, name: str) -> list[Participant]: ...

    @abstractmethod
    async def find_by_trip_id_and_name(
        self, trip_id: str, name: str
    ) -> Participant | None: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> list[Participant]: ...

    @abstractmethod
    async def find_by_trip_id_ordered_by_name(self, trip_id: str) -> list[Participant]: ...

    @abstractmethod
    async def count_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def delete_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def exists_in_trip(
        self, trip_id: str, name: str, exclude_id: str | None = None
    ) -> bool: ...

    @abstractmethod
    async def find_with_filters(
        self, filters: ParticipantQueryFilters
    ) -> list[Participant]: ...


@dataclass(frozen=True)
class ProductQueryFilters:
    category: ProductCategory | None = None
    product_type: ProductType | None = None
    unit: ProductUnit | None = None
    name: str | None = None
    has_default_quantity: bool | None = None


class ProductRepository(Repository[Product]):
    @abstractmethod
    async def find_by_category(self, category: ProductCategory) -> list[Product]: ...

    @abstractmethod
    async def find_by_type(self, product_type: ProductType) -> list[Product]: ...

    @abstractmethod
    async def find_by_unit(self, unit: ProductUnit) -> list[Product]: ...

    @abstractmethod
    async def find_by_name(self, name: str) -> list[Product]: ...

    @abstractmethod
    async def find_with_default_quantity(self) -> list[Product]: ...

    @abstractmethod
    async def exists_by_name(self, name: str, exclude_id: str | None = None) -> bool: ...

    @abstractmethod
    async def find_with_filters(self, filters: ProductQueryFilters) -> list[Product]: ...

    @abstractmethod
    async def find_all_ordered_by_name(self) -> list[Product]: ...

    @abstractmethod
    async def find_all_grouped_by_category(
        self,
    ) -> dict[ProductCategory, list[Product]]: ...

    @abstractmethod
    async def count_by_category(self, category: ProductCategory) -> int: ...

    @abstractmethod
    async def count_by_type(self, product_type: ProductType) -> int: ...


@dataclass(frozen=True)
class ConsumptionQueryFilters:
    trip_id: str | None = None
    participant_id: str | None = None
    product_id: str | None = None
    meal: MealType | None = None
    date_range: DateRange | None = None


@dataclass(frozen=True)
class ConsumptionSummary:
    product_id: str
    total_quantity: float
    consumption_count: int
    unique_participants: int


class ConsumptionRepository(Repository[Consumption]):
    @abstractmethod
    async def find_by_trip_id(self, trip_id: str) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_participant_id(self, participant_id: str) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_product_id(self, product_id: str) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_trip_id_and_date(
        self, trip_id: str, value: date
    ) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_trip_id_and_meal(
        self, trip_id: str, meal: MealType
    ) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_participant_id_and_date(
        self, participant_id: str, value: date
    ) -> list[Consumption]: ...

    @abstractmethod
    async def find_by_trip_id_and_date_range(
        self, trip_id: str, date_range: DateRange
    ) -> list[Consumption]: ...

    @abstractmethod
    async def delete_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def delete_by_participant_id(self, participant_id: str) -> int: ...

    @abstractmethod
    async def delete_by_product_id(self, product_id: str) -> int: ...

    @abstractmethod
    async def count_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def count_by_participant_id(self, participant_id: str) -> int: ...

    @abstractmethod
    async def find_with_filters(
        self, filters: ConsumptionQueryFilters
    ) -> list[Consumption]: ...

    @abstractmethod
    async def get_summary_by_product(self, trip_id: str) -> list[ConsumptionSummary]: ...

    @abstractmethod
    async def get_total_quantity_by_product(
        self, trip_id: str, product_id: str
    ) -> float: ...


@dataclass(frozen=True)
class AvailabilityQueryFilters:
    trip_id: str | None = None
    participant_id: str | None = None
    meal: MealType | None = None
    date_range: DateRange | None = None


@dataclass(frozen=True)
class AvailabilitySummary:
    meal: MealType
    participant_count: int
    participant_ids: tuple[str, ...]


class AvailabilityRepository(Repository[Availability]):
    @abstractmethod
    async def find_by_trip_id(self, trip_id: str) -> list[Availability]: ...

    @abstractmethod
    async def find_by_participant_id(self, participant_id: str) -> list[Availability]: ...

    @abstractmethod
    async def find_by_trip_id_and_date(
        self, trip_id: str, value: date
    ) -> list[Availability]: ...

    @abstractmethod
    async def find_by_participant_id_and_date(
        self, participant_id: str, value: date
    ) -> Availability | None: ...

    @abstractmethod
    async def find_by_participant_trip_and_date(
        self, participant_id: str, trip_id: str, value: date
    ) -> Availability | None: ...

    @abstractmethod
    async def find_by_trip_id_and_date_range(
        self, trip_id: str, date_range: DateRange
    ) -> list[Availability]: ...

    @abstractmethod
    async def delete_by_participant_id(self, participant_id: str) -> int: ...

    @abstractmethod
    async def delete_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def count_by_trip_id(self, trip_id: str) -> int: ...

    @abstractmethod
    async def find_with_filters(
        self, filters: AvailabilityQueryFilters
    ) -> list[Availability]: ...

    @abstractmethod
    async def get_summary_by_date(
        self, trip_id: str, value: date
    ) -> list[AvailabilitySummary]: ...

    @abstractmethod
    async def count_available_for_meal(
        self, trip_id: str, value: date, meal: MealType
    ) -> int: ...

    @abstractmethod
    async def get_participants_available_for_meal(
        self, trip_id: str, value: date, meal: MealType
    ) -> list[str]: ...

    @abstractmethod
    async def upsert(self, availability: Availability) -> Availability:
        """Store ``availability``, replacing any record for the same
        participant, trip and day."""
