"""Shopping list generation from recorded consumption."""

import math
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Final

from ..domain.entities import Consumption, Product
from ..domain.exceptions import NotFoundError, ValidationError
from ..domain.repositories import (
    AvailabilityRepository,
    ConsumptionRepository,
    ParticipantRepository,
    ProductRepository,
    TripRepository,
)
from ..domain.types import PRODUCT_CATEGORY_DISPLAY_NAMES, ProductCategory, utc_now
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

# Over-consumption percentages above which a restock suggestion is raised in priority
HIGH_PRIORITY_VARIANCE_PERCENT: Final = 50
MEDIUM_PRIORITY_VARIANCE_PERCENT: Final = 20
# Share of the estimate left unused before a reduction is suggested
UNDERUSE_THRESHOLD: Final = 0.3
INCREASE_BUFFER: Final = 1.2
REDUCE_BUFFER: Final = 1.1


class SuggestionPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class QuantityByDate:
    date: date
    quantity: float
    participant_count: int


@dataclass(frozen=True)
class ShoppingListItem:
    product_id: str
    product_name: str
    category: ProductCategory
    total_quantity: float
    unit: str
    is_essential: bool
    notes: str | None
    by_date: tuple[QuantityByDate, ...]


@dataclass(frozen=True)
class ShoppingListCategory:
    category: ProductCategory
    display_name: str
    items: tuple[ShoppingListItem, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class ShoppingList:
    trip_id: str
    trip_name: str
    start_date: date
    end_date: date
    total_days: int
    participant_count: int
    items: tuple[ShoppingListItem, ...]
    by_category: tuple[ShoppingListCategory, ...]
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def essential_items_count(self) -> int:
        return sum(1 for item in self.items if item.is_essential)

    @property
    def optional_items_count(self) -> int:
        return self.total_items - self.essential_items_count


@dataclass(frozen=True)
class ProductConsumptionSummary:
    product_id: str
    product_name: str
    total_quantity: float
    unit: str
    consumption_count: int


@dataclass(frozen=True)
class ConsumptionVariance:
    product_id: str
    product_name: str
    estimated: float
    actual: float
    variance: float
    variance_percentage: float
    unit: str


@dataclass(frozen=True)
class ShoppingSuggestion:
    product_id: str
    product_name: str
    suggestion: str
    priority: SuggestionPriority
    suggested_quantity: int
    unit: str


class ShoppingService:
    def __init__(
        self,
        trips: TripRepository,
        participants: ParticipantRepository,
        products: ProductRepository,
        consumptions: ConsumptionRepository,
        availabilities: AvailabilityRepository,
    ):
        self.trips = trips
        self.participants = participants
        self.products = products
        self.consumptions = consumptions
        self.availabilities = availabilities

    async def generate(
        self,
        trip_id: str,
        categories: Collection[ProductCategory] | None = None,
        essential_only: bool = False,
        quantity_multiplier: float = 1.0,
    ) -> ShoppingList:
        """Aggregate a trip's consumption into a shopping list.

        Quantities are scaled by ``quantity_multiplier`` and rounded up. The
        per-day breakdown counts availability entries on each day. Items are
        sorted by category, then name, and grouped by category in that order.

        Raises:
            NotFoundError: If the trip does not exist
            ValidationError: If the multiplier is not positive
        """
        if quantity_multiplier <= 0:
            raise ValidationError.out_of_range(
                "quantity_multiplier", minimum=0, value=quantity_multiplier
            )
        trip = await self.trips.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError.for_entity("Trip", trip_id)

        participant_count = await self.participants.count_by_trip_id(trip_id)
        availabilities = await self.availabilities.find_by_trip_id(trip_id)
        available_per_day: dict[date, int] = {}
        for availability in availabilities:
            available_per_day[availability.date] = (
                available_per_day.get(availability.date, 0) + 1
            )

        products = {p.id: p for p in await self.products.find_all()}
        per_product = self._group_by_product(
            await self.consumptions.find_by_trip_id(trip_id)
        )

        items = []
        for product_id, consumptions in per_product.items():
            product = products.get(product_id)
            if product is None:
                logger.warning(
                    "Skipping consumption of unknown product",
                    trip_id=trip_id,
                    product_id=product_id,
                )
                continue
            if essential_only and not product.has_default_quantity():
                continue
            if categories is not None and product.category not in categories:
                continue
            items.append(
                self._build_item(
                    product, consumptions, available_per_day, quantity_multiplier
                )
            )

        items.sort(key=lambda item: (item.category.value, item.product_name.casefold()))

        grouped: dict[ProductCategory, list[ShoppingListItem]] = {}
        for item in items:
            grouped.setdefault(item.category, []).append(item)

        shopping_list = ShoppingList(
            trip_id=trip.id,
            trip_name=trip.name,
            start_date=trip.start_date,
            end_date=trip.end_date,
            total_days=trip.duration_in_days,
            participant_count=participant_count,
            items=tuple(items),
            by_category=tuple(
                ShoppingListCategory(
                    category=category,
                    display_name=PRODUCT_CATEGORY_DISPLAY_NAMES[category],
                    items=tuple(category_items),
                )
                for category, category_items in grouped.items()
            ),
        )
        logger.info(
            "Shopping list generated", trip_id=trip_id, items=shopping_list.total_items
        )
        return shopping_list

    @staticmethod
    def _group_by_product(
        consumptions: list[Consumption],
    ) -> dict[str, list[Consumption]]:
        grouped: dict[str, list[Consumption]] = {}
        for consumption in consumptions:
            grouped.setdefault(consumption.product_id, []).append(consumption)
        return grouped

    @staticmethod
    def _build_item(
        product: Product,
        consumptions: list[Consumption],
        available_per_day: dict[date, int],
        multiplier: float,
    ) -> ShoppingListItem:
        per_day: dict[date, float] = {}
        for consumption in consumptions:
            per_day[consumption.date] = per_day.get(consumption.date, 0) + consumption.quantity

        return ShoppingListItem(
            product_id=product.id,
            product_name=product.name,
            category=product.category,
            total_quantity=math.ceil(sum(per_day.values()) * multiplier),
            unit=product.unit.value,
            is_essential=product.has_default_quantity(),
            notes=product.notes,
            by_date=tuple(
                QuantityByDate(
                    date=day,
                    quantity=math.ceil(quantity * multiplier),
                    participant_count=available_per_day.get(day, 0),
                )
                for day, quantity in sorted(per_day.items())
            ),
        )

    async def consumption_summary_by_product(
        self, trip_id: str
    ) -> list[ProductConsumptionSummary]:
        """Per-product totals for a trip, largest total first."""
        summaries = []
        for summary in await self.consumptions.get_summary_by_product(trip_id):
            product = await self.products.find_by_id(summary.product_id)
            if product is None:
                continue
            summaries.append(
                ProductConsumptionSummary(
                    product_id=product.id,
                    product_name=product.name,
                    total_quantity=summary.total_quantity,
                    unit=product.unit.value,
                    consumption_count=summary.consumption_count,
                )
            )
        return sorted(summaries, key=lambda s: s.total_quantity, reverse=True)

    async def estimate_quantities(
        self, trip_id: str, day: date | None = None
    ) -> dict[str, float]:
        """Estimate needs from default quantities and attended meals.

        Each attended meal of each participant counts once. Restricting to
        ``day`` uses that day's availability only.
        """
        if day is None:
            availabilities = await self.availabilities.find_by_trip_id(trip_id)
        else:
            availabilities = await self.availabilities.find_by_trip_id_and_date(
                trip_id, day
            )
        participant_meals = sum(a.meal_count for a in availabilities)

        return {
            product.id: product.default_quantity_per_person * participant_meals
            for product in await self.products.find_with_default_quantity()
            if product.default_quantity_per_person is not None
        }

    async def consumption_variance(self, trip_id: str) -> list[ConsumptionVariance]:
        """Compare estimated and recorded consumption per product.

        Only products with a default quantity per person are compared. The
        percentage is relative to the estimate and is 0 when nothing was
        estimated. Results are ordered by absolute variance, largest first.
        """
        estimates = await self.estimate_quantities(trip_id)
        actual = {
            summary.product_id: summary.total_quantity
            for summary in await self.consumptions.get_summary_by_product(trip_id)
        }

        variances = []
        for product in await self.products.find_with_default_quantity():
            if product.id not in estimates:
                continue
            estimated = estimates[product.id]
            consumed = actual.get(product.id, 0.0)
            variance = consumed - estimated
            variances.append(
                ConsumptionVariance(
                    product_id=product.id,
                    product_name=product.name,
                    estimated=estimated,
                    actual=consumed,
                    variance=variance,
                    variance_percentage=(
                        round(variance / estimated * 100, 2) if estimated > 0 else 0.0
                    ),
                    unit=product.unit.value,
                )
            )
        return sorted(variances, key=lambda v: abs(v.variance), reverse=True)

    async def shopping_suggestions(self, trip_id: str) -> list[ShoppingSuggestion]:
        """Restock or cut-back advice derived from ``consumption_variance``.

        Over-consumed products get an increase suggestion whose priority grows
        with the variance percentage. Products left mostly unused get a low
        priority reduction suggestion.
        """
        suggestions = []
        for variance in await self.consumption_variance(trip_id):
            if variance.variance > 0:
                if variance.variance_percentage > HIGH_PRIORITY_VARIANCE_PERCENT:
                    priority = SuggestionPriority.HIGH
                elif variance.variance_percentage > MEDIUM_PRIORITY_VARIANCE_PERCENT:
                    priority = SuggestionPriority.MEDIUM
                else:
                    priority = SuggestionPriority.LOW
                suggestions.append(
                    ShoppingSuggestion(
                        product_id=variance.product_id,
                        product_name=variance.product_name,
                        suggestion=(
                            "Consider increasing stock by "
                            f"{math.ceil(variance.variance)} {variance.unit}"
                        ),
                        priority=priority,
                        suggested_quantity=math.ceil(
                            variance.estimated * INCREASE_BUFFER
                        ),
                        unit=variance.unit,
                    )
                )
            elif variance.variance < -variance.estimated * UNDERUSE_THRESHOLD:
                suggestions.append(
                    ShoppingSuggestion(
                        product_id=variance.product_id,
                        product_name=variance.product_name,
                        suggestion=(
                            "Consider reducing stock - "
                            f"{abs(variance.variance):g} {variance.unit} unused"
                        ),
                        priority=SuggestionPriority.LOW,
                        suggested_quantity=math.ceil(variance.actual * REDUCE_BUFFER),
                        unit=variance.unit,
                    )
                )

        logger.debug("Shopping suggestions", trip_id=trip_id, count=len(suggestions))
        return suggestions
