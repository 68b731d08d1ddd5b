from datetime import date

import pytest

from tripfood.application.services import Repositories
from tripfood.domain.entities import Availability, Consumption, Participant, Product, Trip
from tripfood.domain.exceptions import DuplicateError, NotFoundError, ValidationError
from tripfood.domain.repositories import (
    ConsumptionQueryFilters,
    ParticipantQueryFilters,
    ProductQueryFilters,
    TripQueryFilters,
)
from tripfood.domain.types import (
    DateRange,
    MealType,
    ProductCategory,
    ProductType,
    ProductUnit,
)
from tripfood.infrastructure.database.mappers import BatchDeserializationError


def _trip(name: str, start: date, end: date) -> Trip:
    return Trip.create(name=name, start_date=start, end_date=end)


def _consumption(participant_id: str, product_id: str, day: int, meal: str, qty: float):
    return Consumption.create(
        trip_id="t1",
        participant_id=participant_id,
        product_id=product_id,
        date=date(2024, 7, day),
        meal=meal,
        quantity=qty,
    )


class TestCrud:
    async def test_save_and_find_by_id(self, repositories: Repositories):
        trip = _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7))
        await repositories.trips.save(trip)

        found = await repositories.trips.find_by_id(trip.id)
        assert found is not None
        assert found.name == "Beach Week"
        assert found.duration_in_days == 7
        assert await repositories.trips.find_by_id("missing") is None

    async def test_save_is_idempotent(self, repositories: Repositories):
        participant = Participant.create(trip_id="t1", name="Ann")

        await repositories.participants.save(participant)
        await repositories.participants.save(participant)

        assert await repositories.participants.count() == 1

    async def test_update_requires_existing_record(self, repositories: Repositories):
        trip = _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7))

        with pytest.raises(NotFoundError):
            await repositories.trips.update(trip)

        await repositories.trips.save(trip)
        await repositories.trips.update(trip.update(name="Beach Fortnight"))
        found = await repositories.trips.find_by_id(trip.id)
        assert found is not None and found.name == "Beach Fortnight"

    async def test_delete_reports_whether_anything_was_removed(
        self, repositories: Repositories
    ):
        trip = _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7))
        await repositories.trips.save(trip)

        assert await repositories.trips.delete(trip.id) is True
        assert await repositories.trips.delete(trip.id) is False
        assert not await repositories.trips.exists(trip.id)

    async def test_bulk_operations(self, repositories: Repositories):
        trips = [
            _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7)),
            _trip("Ski Trip", date(2024, 2, 1), date(2024, 2, 5)),
            _trip("City Break", date(2024, 9, 1), date(2024, 9, 3)),
        ]
        await repositories.trips.save_many(trips)
        assert await repositories.trips.count() == 3

        deleted = await repositories.trips.delete_many([trips[0].id, trips[1].id, "x"])
        assert deleted == 2
        assert [t.name for t in await repositories.trips.find_all()] == ["City Break"]

    async def test_corrupt_records_fail_the_bulk_read_loudly(
        self, repositories: Repositories, store
    ):
        await repositories.consumptions.save(_consumption("p1", "w1", 2, "lunch", 1))
        await store.put(
            "consumptions",
            {
                "id": "bad",
                "tripId": "t1",
                "participantId": "p1",
                "productId": "w1",
                "date": "2024-07-02",
                "meal": "brunch",
                "quantity": 1,
                "createdAt": "2024-06-20T09:00:00+00:00",
            },
        )

        with pytest.raises(BatchDeserializationError) as exc_info:
            await repositories.consumptions.find_by_trip_id("t1")
        assert exc_info.value.failed_ids == ["bad"]
        assert len(exc_info.value.decoded) == 1


class TestPartialUpdate:
    async def test_clearing_an_optional_field_removes_it(
        self, repositories: Repositories, store
    ):
        participant = Participant.create(
            trip_id="t1", name="Ann", email="ann@example.com"
        )
        await repositories.participants.save(participant)

        updated = await repositories.participants.partial_update(
            participant.id, {"email": None}
        )

        assert updated is not None
        assert updated.email is None
        assert updated.updated_at is not None
        record = await store.get("participants", participant.id)
        assert "email" not in record
        assert record["name"] == "Ann"

    async def test_unknown_id_returns_none(self, repositories: Repositories):
        assert await repositories.trips.partial_update("missing", {"name": "Nope"}) is None

    async def test_invalid_change_is_rejected_before_storage(
        self, repositories: Repositories
    ):
        trip = _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7))
        await repositories.trips.save(trip)

        with pytest.raises(ValidationError):
            await repositories.trips.partial_update(
                trip.id, {"end_date": date(2024, 6, 1)}
            )

        stored = await repositories.trips.find_by_id(trip.id)
        assert stored is not None
        assert stored.end_date == date(2024, 7, 7)
        assert stored.updated_at is None

    async def test_trip_rename_keeps_dates(self, repositories: Repositories):
        trip = _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7))
        await repositories.trips.save(trip)

        updated = await repositories.trips.partial_update(
            trip.id, {"name": "Beach Fortnight"}
        )

        assert updated is not None
        assert updated.name == "Beach Fortnight"
        assert updated.start_date == date(2024, 7, 1)
        assert updated.updated_at is not None

    async def test_quantity_change_keeps_meal(self, repositories: Repositories):
        consumption = _consumption("p1", "w1", 2, "dinner", 1)
        await repositories.consumptions.save(consumption)

        updated = await repositories.consumptions.partial_update(
            consumption.id, {"quantity": 3}
        )

        assert updated is not None
        assert updated.quantity == 3
        assert updated.meal is MealType.DINNER


class TestTripRepository:
    @pytest.fixture
    async def trips(self, repositories: Repositories):
        saved = [
            _trip("Ski Trip", date(2024, 2, 1), date(2024, 2, 5)),
            _trip("Beach Week", date(2024, 7, 1), date(2024, 7, 7)),
            _trip("Beach Weekend", date(2024, 8, 10), date(2024, 8, 11)),
        ]
        await repositories.trips.save_many(saved)
        return saved

    async def test_find_by_name_is_case_insensitive_substring(
        self, repositories: Repositories, trips
    ):
        found = await repositories.trips.find_by_name("BEACH")
        assert sorted(t.name for t in found) == ["Beach Week", "Beach Weekend"]

    async def test_ordered_by_start_date_latest_first(
        self, repositories: Repositories, trips
    ):
        ordered = await repositories.trips.find_all_ordered_by_start_date()
        assert [t.name for t in ordered] == ["Beach Weekend", "Beach Week", "Ski Trip"]

    async def test_date_queries(self, repositories: Repositories, trips):
        assert [t.name for t in await repositories.trips.find_by_date(date(2024, 7, 7))] == [
            "Beach Week"
        ]
        overlapping = await repositories.trips.find_by_date_range(
            date(2024, 7, 5), date(2024, 8, 10)
        )
        assert sorted(t.name for t in overlapping) == ["Beach Week", "Beach Weekend"]

    async def test_lifecycle_queries(self, repositories: Repositories, trips):
        today = date(2024, 7, 3)

        assert [t.name for t in await repositories.trips.find_active(today)] == [
            "Beach Week"
        ]
        assert [t.name for t in await repositories.trips.find_upcoming(today)] == [
            "Beach Weekend"
        ]
        assert [t.name for t in await repositories.trips.find_past(today)] == ["Ski Trip"]

    async def test_exists_by_name_can_exclude_itself(
        self, repositories: Repositories, trips
    ):
        beach_week = trips[1]

        assert await repositories.trips.exists_by_name("beach week")
        assert not await repositories.trips.exists_by_name(
            "Beach Week", exclude_id=beach_week.id
        )
        assert await repositories.trips.exists_by_name(
            "Ski Trip", exclude_id=beach_week.id
        )

    async def test_filters(self, repositories: Repositories, trips):
        found = await repositories.trips.find_with_filters(
            TripQueryFilters(name="beach", start_date=date(2024, 8, 1))
        )
        assert [t.name for t in found] == ["Beach Weekend"]


class TestParticipantRepository:
    async def test_names_are_unique_within_a_trip(self, repositories: Repositories):
        await repositories.participants.save(Participant.create(trip_id="t1", name="Ann"))

        with pytest.raises(DuplicateError) as exc_info:
            await repositories.participants.save(
                Participant.create(trip_id="t1", name="  ANN ")
            )
        assert exc_info.value.composite_key == {"trip_id": "t1", "name": "ANN"}

        await repositories.participants.save(Participant.create(trip_id="t2", name="Ann"))
        assert await repositories.participants.count() == 2

    async def test_batch_rejects_names_repeated_within_it(
        self, repositories: Repositories
    ):
        with pytest.raises(DuplicateError) as exc_info:
            await repositories.participants.save_many(
                [
                    Participant.create(trip_id="t1", name="Ann"),
                    Participant.create(trip_id="t1", name="ann"),
                ]
            )

        assert exc_info.value.composite_key == {"trip_id": "t1", "name": "ann"}
        assert await repositories.participants.count_by_trip_id("t1") == 0

    async def test_batch_allows_same_name_on_different_trips(
        self, repositories: Repositories
    ):
        await repositories.participants.save_many(
            [
                Participant.create(trip_id="t1", name="Ann"),
                Participant.create(trip_id="t2", name="Ann"),
            ]
        )

        assert await repositories.participants.count() == 2

    async def test_exists_in_trip_can_exclude_itself(self, repositories: Repositories):
        ann = Participant.create(trip_id="t1", name="Ann")
        await repositories.participants.save(ann)

        assert await repositories.participants.exists_in_trip("t1", "ann")
        assert not await repositories.participants.exists_in_trip(
            "t1", "Ann", exclude_id=ann.id
        )
        assert not await repositories.participants.exists_in_trip("t2", "Ann")

    async def test_trip_scoped_queries(self, repositories: Repositories):
        await repositories.participants.save_many(
            [
                Participant.create(trip_id="t1", name="Zoe", email="zoe@example.com"),
                Participant.create(trip_id="t1", name="ann"),
                Participant.create(trip_id="t2", name="Bob", email="bob@example.com"),
            ]
        )

        ordered = await repositories.participants.find_by_trip_id_ordered_by_name("t1")
        assert [p.name for p in ordered] == ["ann", "Zoe"]
        assert await repositories.participants.count_by_trip_id("t1") == 2
        by_email = await repositories.participants.find_by_email("EXAMPLE")
        assert sorted(p.name for p in by_email) == ["Bob", "Zoe"]

        with_email = await repositories.participants.find_with_filters(
            ParticipantQueryFilters(trip_id="t1", has_email=True)
        )
        assert [p.name for p in with_email] == ["Zoe"]

        assert await repositories.participants.delete_by_trip_id("t1") == 2
        assert await repositories.participants.count() == 1

    async def test_find_by_trip_and_name(self, repositories: Repositories):
        ann = Participant.create(trip_id="t1", name="Ann")
        await repositories.participants.save(ann)

        assert await repositories.participants.find_by_trip_id_and_name("t1", "ANN") == ann
        assert await repositories.participants.find_by_trip_id_and_name("t1", "Bob") is None


class TestProductRepository:
    @pytest.fixture
    async def products(self, repositories: Repositories):
        saved = [
            Product.create(
                name="Water",
                category="beverage",
                product_type="water",
                unit="l",
                default_quantity_per_person=1.5,
            ),
            Product.create(
                name="bread", category="food", product_type="grains", unit="piece"
            ),
            Product.create(
                name="Cheese",
                category="food",
                product_type="dairy",
                unit="kg",
                default_quantity_per_person=0.1,
            ),
        ]
        await repositories.products.save_many(saved)
        return saved

    async def test_lookups_by_tag(self, repositories: Repositories, products):
        food = await repositories.products.find_by_category(ProductCategory.FOOD)
        assert sorted(p.name for p in food) == ["Cheese", "bread"]
        assert [p.name for p in await repositories.products.find_by_type(ProductType.WATER)] == [
            "Water"
        ]
        assert await repositories.products.count_by_category(ProductCategory.FOOD) == 2
        assert await repositories.products.count_by_type(ProductType.DAIRY) == 1
        by_unit = await repositories.products.find_by_unit(ProductUnit.KG)
        assert [p.name for p in by_unit] == ["Cheese"]

    async def test_ordering_and_grouping(self, repositories: Repositories, products):
        ordered = await repositories.products.find_all_ordered_by_name()
        assert [p.name for p in ordered] == ["bread", "Cheese", "Water"]

        grouped = await repositories.products.find_all_grouped_by_category()
        assert list(grouped) == [
            ProductCategory.FOOD,
            ProductCategory.BEVERAGE,
            ProductCategory.OTHER,
        ]
        assert [p.name for p in grouped[ProductCategory.FOOD]] == ["bread", "Cheese"]
        assert grouped[ProductCategory.OTHER] == []

    async def test_default_quantity_queries(self, repositories: Repositories, products):
        with_default = await repositories.products.find_with_default_quantity()
        assert sorted(p.name for p in with_default) == ["Cheese", "Water"]

        essentials = await repositories.products.find_with_filters(
            ProductQueryFilters(category=ProductCategory.FOOD, has_default_quantity=True)
        )
        assert [p.name for p in essentials] == ["Cheese"]

    async def test_exists_by_name(self, repositories: Repositories, products):
        water = products[0]
        assert await repositories.products.exists_by_name("WATER")
        assert not await repositories.products.exists_by_name("Water", exclude_id=water.id)


class TestConsumptionRepository:
    @pytest.fixture
    async def consumptions(self, repositories: Repositories):
        saved = [
            _consumption("p1", "w1", 1, "lunch", 1.5),
            _consumption("p2", "w1", 1, "dinner", 1.0),
            _consumption("p1", "w1", 2, "lunch", 2.0),
            _consumption("p1", "b1", 3, "breakfast", 2),
        ]
        await repositories.consumptions.save_many(saved)
        return saved

    async def test_queries(self, repositories: Repositories, consumptions):
        repo = repositories.consumptions

        assert len(await repo.find_by_trip_id_and_date("t1", date(2024, 7, 1))) == 2
        assert len(await repo.find_by_trip_id_and_meal("t1", MealType.LUNCH)) == 2
        assert len(await repo.find_by_participant_id_and_date("p1", date(2024, 7, 2))) == 1
        in_range = await repo.find_by_trip_id_and_date_range(
            "t1", DateRange(date(2024, 7, 2), date(2024, 7, 3))
        )
        assert len(in_range) == 2
        assert await repo.count_by_participant_id("p1") == 3
        assert await repo.count_by_trip_id("t1") == 4

    async def test_filters(self, repositories: Repositories, consumptions):
        found = await repositories.consumptions.find_with_filters(
            ConsumptionQueryFilters(
                trip_id="t1", participant_id="p1", product_id="w1", meal=MealType.LUNCH
            )
        )
        assert sorted(c.quantity for c in found) == [1.5, 2.0]

    async def test_summary_by_product(self, repositories: Repositories, consumptions):
        summaries = {
            s.product_id: s
            for s in await repositories.consumptions.get_summary_by_product("t1")
        }

        assert summaries["w1"].total_quantity == 4.5
        assert summaries["w1"].consumption_count == 3
        assert summaries["w1"].unique_participants == 2
        assert await repositories.consumptions.get_total_quantity_by_product("t1", "b1") == 2

    async def test_cascade_helpers(self, repositories: Repositories, consumptions):
        assert await repositories.consumptions.delete_by_product_id("b1") == 1
        assert await repositories.consumptions.delete_by_participant_id("p2") == 1
        assert await repositories.consumptions.delete_by_trip_id("t1") == 2
        assert await repositories.consumptions.count() == 0


class TestAvailabilityRepository:
    def _availability(self, participant_id: str, day: int, meals) -> Availability:
        return Availability.create(
            participant_id=participant_id,
            trip_id="t1",
            date=date(2024, 7, day),
            meals=meals,
        )

    async def test_one_record_per_participant_trip_and_day(
        self, repositories: Repositories
    ):
        await repositories.availabilities.save(self._availability("p1", 1, ["lunch"]))

        with pytest.raises(DuplicateError):
            await repositories.availabilities.save(
                self._availability("p1", 1, ["dinner"])
            )

    async def test_batch_rejects_two_records_for_the_same_day(
        self, repositories: Repositories
    ):
        with pytest.raises(DuplicateError) as exc_info:
            await repositories.availabilities.save_many(
                [
                    self._availability("p1", 1, ["lunch"]),
                    self._availability("p1", 1, ["dinner"]),
                ]
            )

        assert exc_info.value.composite_key == {
            "participant_id": "p1",
            "trip_id": "t1",
            "date": "2024-07-01",
        }
        assert await repositories.availabilities.count() == 0

    async def test_upsert_replaces_meals_of_the_existing_record(
        self, repositories: Repositories
    ):
        first = await repositories.availabilities.upsert(
            self._availability("p1", 1, ["lunch"])
        )
        second = await repositories.availabilities.upsert(
            self._availability("p1", 1, ["dinner", "breakfast"])
        )

        assert second.id == first.id
        assert second.meals == (MealType.BREAKFAST, MealType.DINNER)
        assert await repositories.availabilities.count() == 1

    async def test_lookup_by_composite_key(self, repositories: Repositories):
        availability = self._availability("p1", 2, ["dinner"])
        await repositories.availabilities.save(availability)

        found = await repositories.availabilities.find_by_participant_trip_and_date(
            "p1", "t1", date(2024, 7, 2)
        )
        assert found == availability
        assert (
            await repositories.availabilities.find_by_participant_trip_and_date(
                "p1", "t2", date(2024, 7, 2)
            )
            is None
        )

    async def test_moving_a_day_updates_the_lookup_key(
        self, repositories: Repositories, store
    ):
        availability = self._availability("p1", 2, ["dinner"])
        await repositories.availabilities.save(availability)

        await repositories.availabilities.partial_update(
            availability.id, {"date": date(2024, 7, 4)}
        )

        record = await store.get("availabilities", availability.id)
        assert record["compositeKey"] == "p1:t1:2024-07-04"
        assert (
            await repositories.availabilities.find_by_participant_id_and_date(
                "p1", date(2024, 7, 4)
            )
            == availability
        )

    async def test_meal_summary_for_a_day(self, repositories: Repositories):
        await repositories.availabilities.save_many(
            [
                self._availability("p1", 1, ["breakfast", "dinner"]),
                self._availability("p2", 1, ["dinner"]),
                self._availability("p3", 2, ["dinner"]),
            ]
        )

        summary = await repositories.availabilities.get_summary_by_date(
            "t1", date(2024, 7, 1)
        )
        assert [s.meal for s in summary] == [
            MealType.BREAKFAST,
            MealType.LUNCH,
            MealType.SNACK,
            MealType.DINNER,
        ]
        assert [s.participant_count for s in summary] == [1, 0, 0, 2]
        assert sorted(summary[3].participant_ids) == ["p1", "p2"]
        assert (
            await repositories.availabilities.count_available_for_meal(
                "t1", date(2024, 7, 1), MealType.BREAKFAST
            )
            == 1
        )

    async def test_cascade_helpers(self, repositories: Repositories):
        await repositories.availabilities.save_many(
            [
                self._availability("p1", 1, ["lunch"]),
                self._availability("p1", 2, ["lunch"]),
                self._availability("p2", 1, ["lunch"]),
            ]
        )

        assert await repositories.availabilities.count_by_trip_id("t1") == 3
        assert await repositories.availabilities.delete_by_participant_id("p1") == 2
        assert await repositories.availabilities.delete_by_trip_id("t1") == 1
