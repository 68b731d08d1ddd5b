from datetime import date
from typing import Any, Final

from ..domain.entities import Consumption, Trip
from ..domain.exceptions import NotFoundError, ValidationError, ValidationRule
from ..domain.repositories import (
    ConsumptionRepository,
    ParticipantRepository,
    ProductRepository,
    TripRepository,
)
from ..domain.types import MEAL_TYPE_ORDER, MealType, to_day, to_iso_date_string
from ..logging_config import get_logger
from .validation import logged_validation

logger: Final = get_logger(__name__)


def _require_within_trip(trip: Trip, value: date) -> None:
    if not trip.is_date_within_trip(value):
        raise ValidationError(
            f"date must fall within the trip ({to_iso_date_string(trip.start_date)} "
            f"to {to_iso_date_string(trip.end_date)})",
            "date",
            ValidationRule.DATE_RANGE,
            to_iso_date_string(value),
        )


class ConsumptionService:
    """Records what participants eat and drink during a trip."""

    def __init__(
        self,
        trips: TripRepository,
        participants: ParticipantRepository,
        products: ProductRepository,
        consumptions: ConsumptionRepository,
    ):
        self.trips = trips
        self.participants = participants
        self.products = products
        self.consumptions = consumptions

    async def _get_trip(self, trip_id: str) -> Trip:
        trip = await self.trips.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError.for_entity("Trip", trip_id)
        return trip

    async def record_consumption(
        self,
        *,
        trip_id: str,
        participant_id: str,
        product_id: str,
        date: date,
        meal: MealType | str,
        quantity: float,
    ) -> Consumption:
        """Record a consumption after checking every reference it makes.

        Raises:
            ValidationError: If the input is invalid or the day is outside the trip
            NotFoundError: If the trip, the participant within that trip, or the
                product does not exist
        """
        with logged_validation("Consumption", "create"):
            consumption = Consumption.create(
                trip_id=trip_id,
                participant_id=participant_id,
                product_id=product_id,
                date=date,
                meal=meal,
                quantity=quantity,
            )

        trip = await self._get_trip(trip_id)
        participant = await self.participants.find_by_id(participant_id)
        if participant is None or not participant.belongs_to_trip(trip_id):
            raise NotFoundError.for_query(
                "Participant", {"id": participant_id, "trip_id": trip_id}
            )
        if not await self.products.exists(product_id):
            raise NotFoundError.for_entity("Product", product_id)
        with logged_validation("Consumption", "create"):
            _require_within_trip(trip, consumption.date)

        await self.consumptions.save(consumption)
        logger.info(
            "Consumption recorded",
            consumption_id=consumption.id,
            trip_id=trip_id,
            meal=consumption.meal.value,
        )
        return consumption

    async def get_consumption(self, consumption_id: str) -> Consumption:
        consumption = await self.consumptions.find_by_id(consumption_id)
        if consumption is None:
            raise NotFoundError.for_entity("Consumption", consumption_id)
        return consumption

    async def list_for_trip(self, trip_id: str) -> list[Consumption]:
        """Consumptions of a trip by day, then meal order."""
        return sorted(
            await self.consumptions.find_by_trip_id(trip_id),
            key=lambda c: (c.date, MEAL_TYPE_ORDER[c.meal]),
        )

    async def list_for_participant(self, participant_id: str) -> list[Consumption]:
        return sorted(
            await self.consumptions.find_by_participant_id(participant_id),
            key=lambda c: (c.date, MEAL_TYPE_ORDER[c.meal]),
        )

    async def update_consumption(self, consumption_id: str, **changes: Any) -> Consumption:
        if "date" in changes:
            current = await self.get_consumption(consumption_id)
            trip = await self._get_trip(current.trip_id)
            with logged_validation("Consumption", "update"):
                if isinstance(changes["date"], date):
                    _require_within_trip(trip, to_day(changes["date"]))

        with logged_validation("Consumption", "update"):
            updated = await self.consumptions.partial_update(consumption_id, changes)
        if updated is None:
            raise NotFoundError.for_entity("Consumption", consumption_id)
        return updated

    async def delete_consumption(self, consumption_id: str) -> None:
        if not await self.consumptions.delete(consumption_id):
            raise NotFoundError.for_entity("Consumption", consumption_id)
        logger.info("Consumption deleted", consumption_id=consumption_id)
