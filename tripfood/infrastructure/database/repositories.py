"""Record-store implementations of the domain repository contracts."""

from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from datetime import date
from typing import Any, Final

from ...domain.entities import Availability, Consumption, Participant, Product, Trip
from ...domain.exceptions import DuplicateError, NotFoundError
from ...domain.repositories import (
    AvailabilityQueryFilters,
    AvailabilityRepository,
    AvailabilitySummary,
    ConsumptionQueryFilters,
    ConsumptionRepository,
    ConsumptionSummary,
    EntityT,
    ParticipantQueryFilters,
    ParticipantRepository,
    ProductQueryFilters,
    ProductRepository,
    Repository,
    TripQueryFilters,
    TripRepository,
)
from ...domain.types import (
    MEAL_TYPE_ORDER,
    DateRange,
    MealType,
    ProductCategory,
    ProductType,
    ProductUnit,
    to_day,
    to_iso_date_string,
)
from ...logging_config import get_logger
from ...logging_utils import log_database_operation
from .mappers import (
    AvailabilityMapper,
    ConsumptionMapper,
    ParticipantMapper,
    ProductMapper,
    RecordMapper,
    TripMapper,
)
from .store import Record, RecordStore

logger: Final = get_logger(__name__)


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle.casefold() in haystack.casefold()


class StoreRepository(Repository[EntityT]):
    """CRUD over one record collection.

    ``save`` is an upsert by id. Subclasses enforce uniqueness by overriding
    ``_check_unique``, which must ignore the entity's own stored record.
    """

    entity_name: str

    def __init__(
        self,
        store: RecordStore,
        mapper: RecordMapper[EntityT, Any],
        factory: Callable[[Mapping[str, Any]], EntityT],
    ):
        self._store = store
        self._mapper = mapper
        self._factory = factory

    @property
    def collection(self) -> str:
        return self._mapper.collection

    def _to_entity(self, record: Mapping[str, Any]) -> EntityT:
        return self._factory(self._mapper.to_domain_props(record))  # type: ignore[arg-type]

    def _to_entities(self, records: Iterable[Mapping[str, Any]]) -> list[EntityT]:
        return [
            self._factory(props)  # type: ignore[arg-type]
            for props in self._mapper.to_domain_props_list(records)
        ]

    async def _query(self, index: str, value: str) -> list[EntityT]:
        return self._to_entities(await self._store.query(self.collection, index, value))

    async def _check_unique(self, entity: EntityT) -> None:
        return None

    def _unique_key(self, entity: EntityT) -> Hashable | None:
        """Key that must be unique across the collection, or None when unconstrained."""
        return None

    def _duplicate_error(self, entity: EntityT) -> DuplicateError:
        return DuplicateError(self.entity_name)

    def _check_batch_unique(self, entities: Sequence[EntityT]) -> None:
        accepted: dict[Hashable, str] = {}
        for entity in entities:
            key = self._unique_key(entity)
            if key is None:
                continue
            if key in accepted and accepted[key] != entity.id:
                raise self._duplicate_error(entity)
            accepted[key] = entity.id

    async def find_by_id(self, entity_id: str) -> EntityT | None:
        record = await self._store.get(self.collection, entity_id)
        return self._to_entity(record) if record is not None else None

    async def find_all(self) -> list[EntityT]:
        return self._to_entities(await self._store.all(self.collection))

    async def save(self, entity: EntityT) -> EntityT:
        await self._check_unique(entity)
        await self._store.put(self.collection, self._mapper.to_record(entity))
        log_database_operation("save", self.collection, record_id=entity.id)
        return entity

    async def update(self, entity: EntityT) -> EntityT:
        if await self._store.get(self.collection, entity.id) is None:
            raise NotFoundError.for_entity(self.entity_name, entity.id)
        await self._check_unique(entity)
        await self._store.put(self.collection, self._mapper.to_record(entity))
        log_database_operation("update", self.collection, record_id=entity.id)
        return entity

    async def delete(self, entity_id: str) -> bool:
        deleted = await self._store.delete(self.collection, entity_id)
        log_database_operation(
            "delete", self.collection, record_id=entity_id, found=deleted
        )
        return deleted

    async def exists(self, entity_id: str) -> bool:
        return await self._store.get(self.collection, entity_id) is not None

    async def count(self) -> int:
        return await self._store.count(self.collection)

    async def save_many(self, entities: Sequence[EntityT]) -> list[EntityT]:
        self._check_batch_unique(entities)
        for entity in entities:
            await self._check_unique(entity)
        await self._store.put_many(self.collection, self._mapper.to_record_list(entities))
        log_database_operation("save_many", self.collection, count=len(entities))
        return list(entities)

    async def delete_many(self, entity_ids: Sequence[str]) -> int:
        deleted = await self._store.delete_many(self.collection, entity_ids)
        log_database_operation("delete_many", self.collection, count=deleted)
        return deleted

    async def partial_update(
        self, entity_id: str, changes: Mapping[str, Any]
    ) -> EntityT | None:
        record = await self._store.get(self.collection, entity_id)
        if record is None:
            return None

        updated = self._to_entity(record).update(**changes)
        await self._check_unique(updated)

        applied = {field: getattr(updated, field) for field in changes}
        applied["updated_at"] = updated.updated_at
        partial = self._mapper.to_partial_record(applied)
        merged = self._merge(record, partial)
        await self._store.put(self.collection, merged)
        log_database_operation(
            "partial_update", self.collection, record_id=entity_id, fields=list(partial)
        )
        return self._to_entity(merged)

    def _merge(self, record: Record, partial: Mapping[str, Any]) -> Record:
        merged = {**record, **partial}
        return {key: value for key, value in merged.items() if value is not None}

    async def _delete_where(self, index: str, value: str, operation: str) -> int:
        records = await self._store.query(self.collection, index, value)
        deleted = await self._store.delete_many(
            self.collection, [record["id"] for record in records]
        )
        log_database_operation(operation, self.collection, count=deleted, **{index: value})
        return deleted


class StoreTripRepository(StoreRepository[Trip], TripRepository):
    entity_name = "Trip"

    def __init__(self, store: RecordStore, mapper: TripMapper | None = None):
        super().__init__(store, mapper or TripMapper(), Trip.from_persistence)

    async def find_by_name(self, name: str) -> list[Trip]:
        return [trip for trip in await self.find_all() if _contains(trip.name, name)]

    async def find_by_date(self, value: date) -> list[Trip]:
        return [
            trip for trip in await self.find_all() if trip.is_date_within_trip(value)
        ]

    async def find_by_date_range(self, start_date: date, end_date: date) -> list[Trip]:
        requested = DateRange(to_day(start_date), to_day(end_date))
        return [
            trip for trip in await self.find_all() if trip.date_range.overlaps(requested)
        ]

    async def find_all_ordered_by_start_date(self) -> list[Trip]:
        """Trips with the latest start first."""
        return sorted(await self.find_all(), key=lambda t: t.start_date, reverse=True)

    async def find_active(self, today: date | None = None) -> list[Trip]:
        return [trip for trip in await self.find_all() if trip.is_active(today)]

    async def find_upcoming(self, today: date | None = None) -> list[Trip]:
        trips = [trip for trip in await self.find_all() if trip.is_upcoming(today)]
        return sorted(trips, key=lambda t: t.start_date)

    async def find_past(self, today: date | None = None) -> list[Trip]:
        trips = [trip for trip in await self.find_all() if trip.has_ended(today)]
        return sorted(trips, key=lambda t: t.end_date, reverse=True)

    async def exists_by_name(self, name: str, exclude_id: str | None = None) -> bool:
        wanted = name.strip().casefold()
        return any(
            trip.name.casefold() == wanted and trip.id != exclude_id
            for trip in await self.find_all()
        )

    async def find_with_filters(self, filters: TripQueryFilters) -> list[Trip]:
        trips = await self.find_all()
        if filters.name is not None:
            trips = [t for t in trips if _contains(t.name, filters.name)]
        if filters.start_date is not None:
            trips = [t for t in trips if t.end_date >= filters.start_date]
        if filters.end_date is not None:
            trips = [t for t in trips if t.start_date <= filters.end_date]
        return trips


class StoreParticipantRepository(StoreRepository[Participant], ParticipantRepository):
    entity_name = "Participant"

    def __init__(self, store: RecordStore, mapper: ParticipantMapper | None = None):
        super().__init__(store, mapper or ParticipantMapper(), Participant.from_persistence)

    def _unique_key(self, entity: Participant) -> Hashable:
        return (entity.trip_id, entity.name.casefold())

    def _duplicate_error(self, entity: Participant) -> DuplicateError:
        return DuplicateError.for_composite_key(
            "Participant", {"trip_id": entity.trip_id, "name": entity.name}
        )

    async def _check_unique(self, entity: Participant) -> None:
        if await self.exists_in_trip(entity.trip_id, entity.name, exclude_id=entity.id):
            raise self._duplicate_error(entity)

    async def find_by_trip_id(self, trip_id: str) -> list[Participant]:
        return await self._query("tripId", trip_id)

    async def find_by_name(self, name: str) -> list[Participant]:
        return [p for p in await self.find_all() if _contains(p.name, name)]

    async def find_by_trip_id_and_name(
        self, trip_id: str, name: str
    ) -> Participant | None:
        wanted = name.strip().casefold()
        for participant in await self.find_by_trip_id(trip_id):
            if participant.name.casefold() == wanted:
                return participant
        return None

    async def find_by_email(self, email: str) -> list[Participant]:
        return [p for p in await self.find_all() if _contains(p.email, email)]

    async def find_by_trip_id_ordered_by_name(self, trip_id: str) -> list[Participant]:
        return sorted(
            await self.find_by_trip_id(trip_id), key=lambda p: p.name.casefold()
        )

    async def count_by_trip_id(self, trip_id: str) -> int:
        return len(await self._store.query(self.collection, "tripId", trip_id))

    async def delete_by_trip_id(self, trip_id: str) -> int:
        return await self._delete_where("tripId", trip_id, "delete_by_trip_id")

    async def exists_in_trip(
        self, trip_id: str, name: str, exclude_id: str | None = None
    ) -> bool:
        found = await self.find_by_trip_id_and_name(trip_id, name)
        return found is not None and found.id != exclude_id

    async def find_with_filters(
        self, filters: ParticipantQueryFilters
    ) -> list[Participant]:
        participants = (
            await self.find_by_trip_id(filters.trip_id)
            if filters.trip_id is not None
            else await self.find_all()
        )
        if filters.name is not None:
            participants = [p for p in participants if _contains(p.name, filters.name)]
        if filters.email is not None:
            participants = [p for p in participants if _contains(p.email, filters.email)]
        if filters.has_email is not None:
            participants = [
                p for p in participants if p.has_email() == filters.has_email
            ]
        return participants


class StoreProductRepository(StoreRepository[Product], ProductRepository):
    entity_name = "Product"

    def __init__(self, store: RecordStore, mapper: ProductMapper | None = None):
        super().__init__(store, mapper or ProductMapper(), Product.from_persistence)

    async def find_by_category(self, category: ProductCategory) -> list[Product]:
        return await self._query("category", category.value)

    async def find_by_type(self, product_type: ProductType) -> list[Product]:
        return await self._query("type", product_type.value)

    async def find_by_unit(self, unit: ProductUnit) -> list[Product]:
        return await self._query("unit", unit.value)

    async def find_by_name(self, name: str) -> list[Product]:
        return [p for p in await self.find_all() if _contains(p.name, name)]

    async def find_with_default_quantity(self) -> list[Product]:
        return [p for p in await self.find_all() if p.has_default_quantity()]

    async def exists_by_name(self, name: str, exclude_id: str | None = None) -> bool:
        wanted = name.strip().casefold()
        return any(
            p.name.casefold() == wanted and p.id != exclude_id
            for p in await self.find_all()
        )

    async def find_with_filters(self, filters: ProductQueryFilters) -> list[Product]:
        products = (
            await self.find_by_category(filters.category)
            if filters.category is not None
            else await self.find_all()
        )
        if filters.product_type is not None:
            products = [p for p in products if p.product_type is filters.product_type]
        if filters.unit is not None:
            products = [p for p in products if p.unit is filters.unit]
        if filters.name is not None:
            products = [p for p in products if _contains(p.name, filters.name)]
        if filters.has_default_quantity is not None:
            products = [
                p
                for p in products
                if p.has_default_quantity() == filters.has_default_quantity
            ]
        return products

    async def find_all_ordered_by_name(self) -> list[Product]:
        return sorted(await self.find_all(), key=lambda p: p.name.casefold())

    async def find_all_grouped_by_category(self) -> dict[ProductCategory, list[Product]]:
        """Every category, in declaration order, with its products by name."""
        grouped: dict[ProductCategory, list[Product]] = {c: [] for c in ProductCategory}
        for product in await self.find_all_ordered_by_name():
            grouped[product.category].append(product)
        return grouped

    async def count_by_category(self, category: ProductCategory) -> int:
        return len(await self._store.query(self.collection, "category", category.value))

    async def count_by_type(self, product_type: ProductType) -> int:
        return len(await self._store.query(self.collection, "type", product_type.value))


class StoreConsumptionRepository(StoreRepository[Consumption], ConsumptionRepository):
    entity_name = "Consumption"

    def __init__(self, store: RecordStore, mapper: ConsumptionMapper | None = None):
        super().__init__(store, mapper or ConsumptionMapper(), Consumption.from_persistence)

    async def find_by_trip_id(self, trip_id: str) -> list[Consumption]:
        return await self._query("tripId", trip_id)

    async def find_by_participant_id(self, participant_id: str) -> list[Consumption]:
        return await self._query("participantId", participant_id)

    async def find_by_product_id(self, product_id: str) -> list[Consumption]:
        return await self._query("productId", product_id)

    async def find_by_trip_id_and_date(
        self, trip_id: str, value: date
    ) -> list[Consumption]:
        return [c for c in await self.find_by_trip_id(trip_id) if c.is_on_date(value)]

    async def find_by_trip_id_and_meal(
        self, trip_id: str, meal: MealType
    ) -> list[Consumption]:
        return [c for c in await self.find_by_trip_id(trip_id) if c.is_for_meal(meal)]

    async def find_by_participant_id_and_date(
        self, participant_id: str, value: date
    ) -> list[Consumption]:
        return [
            c
            for c in await self.find_by_participant_id(participant_id)
            if c.is_on_date(value)
        ]

    async def find_by_trip_id_and_date_range(
        self, trip_id: str, date_range: DateRange
    ) -> list[Consumption]:
        return [c for c in await self.find_by_trip_id(trip_id) if c.date in date_range]

    async def delete_by_trip_id(self, trip_id: str) -> int:
        return await self._delete_where("tripId", trip_id, "delete_by_trip_id")

    async def delete_by_participant_id(self, participant_id: str) -> int:
        return await self._delete_where(
            "participantId", participant_id, "delete_by_participant_id"
        )

    async def delete_by_product_id(self, product_id: str) -> int:
        return await self._delete_where("productId", product_id, "delete_by_product_id")

    async def count_by_trip_id(self, trip_id: str) -> int:
        return len(await self._store.query(self.collection, "tripId", trip_id))

    async def count_by_participant_id(self, participant_id: str) -> int:
        return len(
            await self._store.query(self.collection, "participantId", participant_id)
        )

    async def find_with_filters(
        self, filters: ConsumptionQueryFilters
    ) -> list[Consumption]:
        if filters.trip_id is not None:
            consumptions = await self.find_by_trip_id(filters.trip_id)
        elif filters.participant_id is not None:
            consumptions = await self.find_by_participant_id(filters.participant_id)
        else:
            consumptions = await self.find_all()

        if filters.participant_id is not None:
            consumptions = [
                c for c in consumptions if c.is_from_participant(filters.participant_id)
            ]
        if filters.product_id is not None:
            consumptions = [c for c in consumptions if c.is_for_product(filters.product_id)]
        if filters.meal is not None:
            consumptions = [c for c in consumptions if c.is_for_meal(filters.meal)]
        if filters.date_range is not None:
            consumptions = [c for c in consumptions if c.date in filters.date_range]
        return consumptions

    async def get_summary_by_product(self, trip_id: str) -> list[ConsumptionSummary]:
        """Totals per product for a trip, in first-seen order."""
        totals: dict[str, list[Consumption]] = {}
        for consumption in await self.find_by_trip_id(trip_id):
            totals.setdefault(consumption.product_id, []).append(consumption)
        return [
            ConsumptionSummary(
                product_id=product_id,
                total_quantity=sum(c.quantity for c in items),
                consumption_count=len(items),
                unique_participants=len({c.participant_id for c in items}),
            )
            for product_id, items in totals.items()
        ]

    async def get_total_quantity_by_product(self, trip_id: str, product_id: str) -> float:
        return sum(
            c.quantity
            for c in await self.find_by_trip_id(trip_id)
            if c.is_for_product(product_id)
        )


class StoreAvailabilityRepository(
    StoreRepository[Availability], AvailabilityRepository
):
    entity_name = "Availability"

    def __init__(self, store: RecordStore, mapper: AvailabilityMapper | None = None):
        super().__init__(
            store, mapper or AvailabilityMapper(), Availability.from_persistence
        )

    async def _check_unique(self, entity: Availability) -> None:
        existing = await self.find_by_participant_trip_and_date(
            entity.participant_id, entity.trip_id, entity.date
        )
        if existing is not None and existing.id != entity.id:
            raise self._duplicate_error(entity)

    def _unique_key(self, entity: Availability) -> Hashable:
        return AvailabilityMapper.compose_key(
            entity.participant_id, entity.trip_id, entity.date
        )

    def _duplicate_error(self, entity: Availability) -> DuplicateError:
        return DuplicateError.for_composite_key(
            "Availability",
            {
                "participant_id": entity.participant_id,
                "trip_id": entity.trip_id,
                "date": entity.date_string,
            },
        )

    def _merge(self, record: Record, partial: Mapping[str, Any]) -> Record:
        merged = super()._merge(record, partial)
        merged["compositeKey"] = AvailabilityMapper.compose_key(
            merged["participantId"], merged["tripId"], merged["date"]
        )
        return merged

    async def find_by_trip_id(self, trip_id: str) -> list[Availability]:
        return await self._query("tripId", trip_id)

    async def find_by_participant_id(self, participant_id: str) -> list[Availability]:
        return await self._query("participantId", participant_id)

    async def find_by_trip_id_and_date(
        self, trip_id: str, value: date
    ) -> list[Availability]:
        return [a for a in await self.find_by_trip_id(trip_id) if a.is_on_date(value)]

    async def find_by_participant_id_and_date(
        self, participant_id: str, value: date
    ) -> Availability | None:
        for availability in await self.find_by_participant_id(participant_id):
            if availability.is_on_date(value):
                return availability
        return None

    async def find_by_participant_trip_and_date(
        self, participant_id: str, trip_id: str, value: date
    ) -> Availability | None:
        key = AvailabilityMapper.compose_key(participant_id, trip_id, value)
        found = await self._query("compositeKey", key)
        return found[0] if found else None

    async def find_by_trip_id_and_date_range(
        self, trip_id: str, date_range: DateRange
    ) -> list[Availability]:
        return sorted(
            (a for a in await self.find_by_trip_id(trip_id) if a.date in date_range),
            key=lambda a: a.date,
        )

    async def delete_by_participant_id(self, participant_id: str) -> int:
        return await self._delete_where(
            "participantId", participant_id, "delete_by_participant_id"
        )

    async def delete_by_trip_id(self, trip_id: str) -> int:
        return await self._delete_where("tripId", trip_id, "delete_by_trip_id")

    async def count_by_trip_id(self, trip_id: str) -> int:
        return len(await self._store.query(self.collection, "tripId", trip_id))

    async def find_with_filters(
        self, filters: AvailabilityQueryFilters
    ) -> list[Availability]:
        if filters.trip_id is not None:
            availabilities = await self.find_by_trip_id(filters.trip_id)
        elif filters.participant_id is not None:
            availabilities = await self.find_by_participant_id(filters.participant_id)
        else:
            availabilities = await self.find_all()

        if filters.participant_id is not None:
            availabilities = [
                a for a in availabilities if a.is_for_participant(filters.participant_id)
            ]
        if filters.meal is not None:
            availabilities = [
                a for a in availabilities if a.is_available_for_meal(filters.meal)
            ]
        if filters.date_range is not None:
            availabilities = [a for a in availabilities if a.date in filters.date_range]
        return availabilities

    async def get_summary_by_date(
        self, trip_id: str, value: date
    ) -> list[AvailabilitySummary]:
        """Attendance for each meal of one day, in time-of-day order."""
        day = await self.find_by_trip_id_and_date(trip_id, value)
        summaries = []
        for meal in sorted(MealType, key=MEAL_TYPE_ORDER.__getitem__):
            participant_ids = tuple(
                a.participant_id for a in day if a.is_available_for_meal(meal)
            )
            summaries.append(
                AvailabilitySummary(
                    meal=meal,
                    participant_count=len(participant_ids),
                    participant_ids=participant_ids,
                )
            )
        return summaries

    async def count_available_for_meal(
        self, trip_id: str, value: date, meal: MealType
    ) -> int:
        return len(await self.get_participants_available_for_meal(trip_id, value, meal))

    async def get_participants_available_for_meal(
        self, trip_id: str, value: date, meal: MealType
    ) -> list[str]:
        return [
            a.participant_id
            for a in await self.find_by_trip_id_and_date(trip_id, value)
            if a.is_available_for_meal(meal)
        ]

    async def upsert(self, availability: Availability) -> Availability:
        existing = await self.find_by_participant_trip_and_date(
            availability.participant_id, availability.trip_id, availability.date
        )
        if existing is None or existing.id == availability.id:
            return await self.save(availability)

        replacement = existing.update(meals=availability.meals)
        logger.debug(
            "Replacing availability",
            availability_id=existing.id,
            day=to_iso_date_string(availability.date),
        )
        return await self.save(replacement)


