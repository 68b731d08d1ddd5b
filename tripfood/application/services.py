"""Explicit wiring of record stores, repositories and services."""

from dataclasses import dataclass

from ..domain.repositories import (
    AvailabilityRepository,
    ConsumptionRepository,
    ParticipantRepository,
    ProductRepository,
    TripRepository,
)
from ..infrastructure.database.repositories import (
    StoreAvailabilityRepository,
    StoreConsumptionRepository,
    StoreParticipantRepository,
    StoreProductRepository,
    StoreTripRepository,
)
from ..infrastructure.database.store import RecordStore
from .availability_service import AvailabilityService
from .consumption_service import ConsumptionService
from .participant_service import ParticipantService
from .product_service import ProductService
from .shopping_service import ShoppingService
from .trip_service import TripService


@dataclass(frozen=True)
class Repositories:
    trips: TripRepository
    participants: ParticipantRepository
    products: ProductRepository
    consumptions: ConsumptionRepository
    availabilities: AvailabilityRepository


@dataclass(frozen=True)
class Services:
    trips: TripService
    participants: ParticipantService
    products: ProductService
    consumptions: ConsumptionService
    availabilities: AvailabilityService
    shopping: ShoppingService


def create_repositories(store: RecordStore) -> Repositories:
    return Repositories(
        trips=StoreTripRepository(store),
        participants=StoreParticipantRepository(store),
        products=StoreProductRepository(store),
        consumptions=StoreConsumptionRepository(store),
        availabilities=StoreAvailabilityRepository(store),
    )


def create_services(repositories: Repositories) -> Services:
    r = repositories
    return Services(
        trips=TripService(r.trips, r.participants, r.consumptions, r.availabilities),
        participants=ParticipantService(
            r.trips, r.participants, r.consumptions, r.availabilities
        ),
        products=ProductService(r.products, r.consumptions),
        consumptions=ConsumptionService(
            r.trips, r.participants, r.products, r.consumptions
        ),
        availabilities=AvailabilityService(r.trips, r.participants, r.availabilities),
        shopping=ShoppingService(
            r.trips, r.participants, r.products, r.consumptions, r.availabilities
        ),
    )
