from typing import Any, Final

from ..domain.entities import Participant
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


class ParticipantService:
    """Application service for Participant operations."""

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

    async def add_participant(
        self,
        *,
        trip_id: str,
        name: str,
        email: str | None = None,
        notes: str | None = None,
    ) -> Participant:
        with logged_validation("Participant", "create"):
            participant = Participant.create(
                trip_id=trip_id, name=name, email=email, notes=notes
            )

        if not await self.trips.exists(trip_id):
            raise NotFoundError.for_entity("Trip", trip_id)
        if await self.participants.exists_in_trip(trip_id, participant.name):
            raise DuplicateError.for_composite_key(
                "Participant", {"trip_id": trip_id, "name": participant.name}
            )

        await self.participants.save(participant)
        logger.info(
            "Participant added", trip_id=trip_id, participant_id=participant.id
        )
        return participant

    async def get_participant(self, participant_id: str) -> Participant:
        participant = await self.participants.find_by_id(participant_id)
        if participant is None:
            raise NotFoundError.for_entity("Participant", participant_id)
        return participant

    async def list_participants(self, trip_id: str) -> list[Participant]:
        return await self.participants.find_by_trip_id_ordered_by_name(trip_id)

    async def update_participant(self, participant_id: str, **changes: Any) -> Participant:
        with logged_validation("Participant", "update"):
            updated = await self.participants.partial_update(participant_id, changes)
        if updated is None:
            raise NotFoundError.for_entity("Participant", participant_id)
        logger.info(
            "Participant updated", participant_id=participant_id, fields=sorted(changes)
        )
        return updated

    async def delete_participant(self, participant_id: str, force: bool = False) -> None:
        """Delete a participant.

        A participant with consumptions is only deleted when ``force`` is set.
        Consumptions, then availabilities, then the participant are removed.
        The steps are not atomic.

        Raises:
            NotFoundError: If the participant does not exist
            BusinessRuleError: If consumptions exist and force is False
        """
        await self.get_participant(participant_id)

        consumption_count = await self.consumptions.count_by_participant_id(
            participant_id
        )
        if consumption_count and not force:
            logger.warning(
                "Participant deletion refused - has consumptions",
                participant_id=participant_id,
                consumption_count=consumption_count,
            )
            raise BusinessRuleError(
                f"Cannot delete participant with {consumption_count} consumption "
                "records. Use force=True to delete all associated data.",
                {
                    "participant_id": participant_id,
                    "consumption_count": consumption_count,
                },
            )

        consumptions = await self.consumptions.delete_by_participant_id(participant_id)
        availabilities = await self.availabilities.delete_by_participant_id(
            participant_id
        )
        await self.participants.delete(participant_id)

        log_database_operation(
            operation="cascade_delete",
            collection="participants",
            record_id=participant_id,
            consumptions=consumptions,
            availabilities=availabilities,
        )
        logger.info("Participant deleted", participant_id=participant_id, forced=force)
