from collections.abc import Iterable
from datetime import date
from typing import Final

from ..domain.entities import Availability, Participant, Trip
from ..domain.exceptions import NotFoundError, ValidationError, ValidationRule
from ..domain.repositories import (
    AvailabilityRepository,
    AvailabilitySummary,
    ParticipantRepository,
    TripRepository,
)
from ..domain.types import DateRange, MealType, to_iso_date_string
from ..logging_config import get_logger
from .validation import logged_validation

logger: Final = get_logger(__name__)


class AvailabilityService:
    """Tracks which meals each participant attends on each day of a trip."""

    def __init__(
        self,
        trips: TripRepository,
        participants: ParticipantRepository,
        availabilities: AvailabilityRepository,
    ):
        self.trips = trips
        self.participants = participants
        self.availabilities = availabilities

    async def _get_trip(self, trip_id: str) -> Trip:
        trip = await self.trips.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError.for_entity("Trip", trip_id)
        return trip

    async def _get_participant(self, participant_id: str, trip_id: str) -> Participant:
        participant = await self.participants.find_by_id(participant_id)
        if participant is None or not participant.belongs_to_trip(trip_id):
            raise NotFoundError.for_query(
                "Participant", {"id": participant_id, "trip_id": trip_id}
            )
        return participant

    @staticmethod
    def _require_within_trip(trip: Trip, days: DateRange) -> None:
        if days.start_date < trip.start_date or days.end_date > trip.end_date:
            raise ValidationError(
                "date must fall within the trip "
                f"({to_iso_date_string(trip.start_date)} to "
                f"{to_iso_date_string(trip.end_date)})",
                "date",
                ValidationRule.DATE_RANGE,
                to_iso_date_string(days.start_date),
            )

    async def set_availability(
        self,
        *,
        participant_id: str,
        trip_id: str,
        date: date,
        meals: Iterable[MealType | str],
    ) -> Availability:
        """Set the meals attended on one day, replacing any earlier entry."""
        with logged_validation("Availability", "set"):
            availability = Availability.create(
                participant_id=participant_id, trip_id=trip_id, date=date, meals=meals
            )
        trip = await self._get_trip(trip_id)
        await self._get_participant(participant_id, trip_id)
        with logged_validation("Availability", "set"):
            self._require_within_trip(
                trip, DateRange(availability.date, availability.date)
            )

        stored = await self.availabilities.upsert(availability)
        logger.info(
            "Availability set",
            participant_id=participant_id,
            trip_id=trip_id,
            day=availability.date_string,
            meals=[meal.value for meal in stored.meals],
        )
        return stored

    async def set_availability_range(
        self,
        *,
        participant_id: str,
        trip_id: str,
        start_date: date,
        end_date: date,
        meals: Iterable[MealType | str],
    ) -> list[Availability]:
        """Set the same meals for every day of an inclusive range."""
        with logged_validation("Availability", "set"):
            days = DateRange(start_date, end_date)
            self._require_within_trip(await self._get_trip(trip_id), days)
        chosen = list(meals)
        return [
            await self.set_availability(
                participant_id=participant_id, trip_id=trip_id, date=day, meals=chosen
            )
            for day in days.dates()
        ]

    async def set_availability_for_all_participants(
        self, *, trip_id: str, date: date, meals: Iterable[MealType | str]
    ) -> list[Availability]:
        chosen = list(meals)
        return [
            await self.set_availability(
                participant_id=participant.id, trip_id=trip_id, date=date, meals=chosen
            )
            for participant in await self.participants.find_by_trip_id(trip_id)
        ]

    async def get_availability(
        self, participant_id: str, trip_id: str, date: date
    ) -> Availability | None:
        return await self.availabilities.find_by_participant_trip_and_date(
            participant_id, trip_id, date
        )

    async def list_for_trip(self, trip_id: str) -> list[Availability]:
        return sorted(
            await self.availabilities.find_by_trip_id(trip_id),
            key=lambda a: (a.date, a.participant_id),
        )

    async def meal_summary(self, trip_id: str, date: date) -> list[AvailabilitySummary]:
        await self._get_trip(trip_id)
        return await self.availabilities.get_summary_by_date(trip_id, date)

    async def clear_availability(
        self, participant_id: str, trip_id: str, date: date
    ) -> bool:
        existing = await self.get_availability(participant_id, trip_id, date)
        if existing is None:
            return False
        return await self.availabilities.delete(existing.id)
