from datetime import date
from typing import Any, Final

from ..domain.entities import Trip
from ..domain.exceptions import BusinessRuleError, DuplicateError, NotFoundError
from ..domain.repositories import (
    AvailabilityRepository,
    ConsumptionRepository,
    ParticipantRepository,
    TripRepository,
)
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .validation import logged_validation

logger: Final = get_logger(__name__)


class TripService:
    """Application service for Trip operations."""

    def __init__(
        self,
        trips: TripRepository,
        participants: ParticipantRepository,
        consumptions: ConsumptionRepository,
        availabilities: AvailabilityRepository,
    ):
        self.trips = trips
        self.participants = participants
        self.consumptions = consumptions
        self.availabilities = availabilities

    async def create_trip(
        self,
        *,
        name: str,
        start_date: date,
        end_date: date,
        description: str | None = None,
    ) -> Trip:
        with logged_validation("Trip", "create"):
            trip = Trip.create(
                name=name,
                start_date=start_date,
                end_date=end_date,
                description=description,
            )

        if await self.trips.exists_by_name(trip.name):
            logger.warning("Trip creation failed - already exists", trip_name=trip.name)
            raise DuplicateError.for_field("Trip", "name", trip.name)

        await self.trips.save(trip)
        logger.info("Trip created successfully", trip_id=trip.id, trip_name=trip.name)
        return trip

    async def get_trip(self, trip_id: str) -> Trip:
        trip = await self.trips.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError.for_entity("Trip", trip_id)
        return trip

    async def list_trips(self) -> list[Trip]:
        """All trips, latest start first."""
        return await self.trips.find_all_ordered_by_start_date()

    async def update_trip(self, trip_id: str, **changes: Any) -> Trip:
        name = changes.get("name")
        if isinstance(name, str) and await self.trips.exists_by_name(
            name, exclude_id=trip_id
        ):
            raise DuplicateError.for_field("Trip", "name", name.strip())

        with logged_validation("Trip", "update"):
            updated = await self.trips.partial_update(trip_id, changes)
        if updated is None:
            raise NotFoundError.for_entity("Trip", trip_id)
        logger.info("Trip updated", trip_id=trip_id, fields=sorted(changes))
        return updated

    async def delete_trip(self, trip_id: str, force: bool = False) -> None:
        """Delete a trip.

        A trip with participants is only deleted when ``force`` is set; its
        consumptions, availabilities and participants are removed first. The
        steps are not atomic, a failure part-way leaves the remaining records.

        Raises:
            NotFoundError: If the trip does not exist
            BusinessRuleError: If the trip has participants and force is False
        """
        await self.get_trip(trip_id)

        participant_count = await self.participants.count_by_trip_id(trip_id)
        if participant_count and not force:
            logger.warning(
                "Trip deletion refused - has participants",
                trip_id=trip_id,
                participant_count=participant_count,
            )
            raise BusinessRuleError(
                f"Cannot delete trip with {participant_count} participants. "
                "Use force=True to delete all associated data.",
                {"trip_id": trip_id, "participant_count": participant_count},
            )

        consumptions = await self.consumptions.delete_by_trip_id(trip_id)
        availabilities = await self.availabilities.delete_by_trip_id(trip_id)
        participants = await self.participants.delete_by_trip_id(trip_id)
        await self.trips.delete(trip_id)

        log_database_operation(
            operation="cascade_delete",
            collection="trips",
            record_id=trip_id,
            consumptions=consumptions,
            availabilities=availabilities,
            participants=participants,
        )
        logger.info("Trip deleted", trip_id=trip_id, forced=force)
