"""Closed value sets, date helpers and shared domain types."""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum, StrEnum, auto
from typing import Any, Final, Literal, TypeVar

from .exceptions import ValidationError


class _UnsetType(Enum):
    UNSET = auto()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks a keyword argument the caller did not supply in a sparse update
UNSET: Final = _UnsetType.UNSET
Unset = Literal[_UnsetType.UNSET]


class MealType(StrEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


MEAL_TYPES: Final = tuple(MealType)

# Position of each meal in a day. Snack sits between lunch and dinner.
MEAL_TYPE_ORDER: Final[dict[MealType, int]] = {
    MealType.BREAKFAST: 1,
    MealType.LUNCH: 2,
    MealType.SNACK: 3,
    MealType.DINNER: 4,
}

class ProductCategory(StrEnum):
    FOOD = "food"
    BEVERAGE = "beverage"
    OTHER = "other"


PRODUCT_CATEGORY_DISPLAY_NAMES: Final[dict[ProductCategory, str]] = {
    ProductCategory.FOOD: "Food",
    ProductCategory.BEVERAGE: "Beverage",
    ProductCategory.OTHER: "Other",
}


class ProductType(StrEnum):
    MEAT = "meat"
    DAIRY = "dairy"
    VEGETABLES = "vegetables"
    FRUITS = "fruits"
    GRAINS = "grains"
    SNACKS = "snacks"
    CONDIMENTS = "condiments"
    PREPARED_FOOD = "prepared_food"
    WATER = "water"
    SOFT_DRINK = "soft_drink"
    ALCOHOL = "alcohol"
    HOT_BEVERAGE = "hot_beverage"
    MISCELLANEOUS = "miscellaneous"


PRODUCT_TYPE_TO_CATEGORY: Final[dict[ProductType, ProductCategory]] = {
    ProductType.MEAT: ProductCategory.FOOD,
    ProductType.DAIRY: ProductCategory.FOOD,
    ProductType.VEGETABLES: ProductCategory.FOOD,
    ProductType.FRUITS: ProductCategory.FOOD,
    ProductType.GRAINS: ProductCategory.FOOD,
    ProductType.SNACKS: ProductCategory.FOOD,
    ProductType.CONDIMENTS: ProductCategory.FOOD,
    ProductType.PREPARED_FOOD: ProductCategory.FOOD,
    ProductType.WATER: ProductCategory.BEVERAGE,
    ProductType.SOFT_DRINK: ProductCategory.BEVERAGE,
    ProductType.ALCOHOL: ProductCategory.BEVERAGE,
    ProductType.HOT_BEVERAGE: ProductCategory.BEVERAGE,
    ProductType.MISCELLANEOUS: ProductCategory.OTHER,
}


class ProductUnit(StrEnum):
    KG = "kg"
    G = "g"
    LB = "lb"
    OZ = "oz"
    L = "l"
    ML = "ml"
    GAL = "gal"
    UNIT = "unit"
    PACK = "pack"
    BOX = "box"
    BOTTLE = "bottle"
    CAN = "can"
    BAG = "bag"
    SERVING = "serving"
    PORTION = "portion"
    SLICE = "slice"
    PIECE = "piece"


E = TypeVar("E", bound=StrEnum)


def _parse_enum(enum_cls: type[E], value: Any, field: str, label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            pass
    raise ValidationError.invalid_enum(
        field, value, [member.value for member in enum_cls], label
    )


def parse_meal_type(value: Any, field: str = "meal") -> MealType:
    """Return the ``MealType`` for a tag, raising ``ValidationError`` otherwise."""
    return _parse_enum(MealType, value, field, "meal type")


def parse_product_category(value: Any, field: str = "category") -> ProductCategory:
    return _parse_enum(ProductCategory, value, field, "product category")


def parse_product_type(value: Any, field: str = "product_type") -> ProductType:
    return _parse_enum(ProductType, value, field, "product type")


def parse_product_unit(value: Any, field: str = "unit") -> ProductUnit:
    return _parse_enum(ProductUnit, value, field, "product unit")


def category_for_type(product_type: ProductType) -> ProductCategory:
    return PRODUCT_TYPE_TO_CATEGORY[product_type]


def types_for_category(category: ProductCategory) -> tuple[ProductType, ...]:
    return tuple(t for t, c in PRODUCT_TYPE_TO_CATEGORY.items() if c is category)


def is_type_in_category(product_type: ProductType, category: ProductCategory) -> bool:
    return PRODUCT_TYPE_TO_CATEGORY[product_type] is category


def sort_meals_by_order(meals: Iterable[MealType]) -> tuple[MealType, ...]:
    """Deduplicate meals and return them in canonical time-of-day order."""
    return tuple(sorted(set(meals), key=MEAL_TYPE_ORDER.__getitem__))


EMAIL_REGEX: Final = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return EMAIL_REGEX.match(email) is not None


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_day(value: date | datetime) -> date:
    """Drop the time-of-day component, keeping the calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def to_iso_date_string(value: date | datetime) -> str:
    return to_day(value).isoformat()


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or a full ISO-8601 timestamp into a calendar day."""
    if len(value) == 10:
        return date.fromisoformat(value)
    return datetime.fromisoformat(value).date()


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class DateRange:
    """An inclusive range of calendar days."""

    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValidationError.invalid_date_range("start_date", "end_date")

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, date):
            return False
        return self.start_date <= to_day(value) <= self.end_date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start_date + timedelta(days=offset)

    def overlaps(self, other: "DateRange") -> bool:
        return self.start_date <= other.end_date and self.end_date >= other.start_date
