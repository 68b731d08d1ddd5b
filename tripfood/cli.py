#!/usr/bin/env python3
"""TripFood command line interface"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Final, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from .application.services import Services, create_repositories, create_services
from .application.shopping_service import ShoppingList
from .config import Settings, settings
from .domain.exceptions import DomainError
from .domain.types import ProductCategory, to_iso_date_string
from .infrastructure.database.database import (
    SQLRecordStore,
    create_engine_from_settings,
    init_async_db,
)
from .logging_config import get_logger, setup_logging
from .telemetry import setup_telemetry

console = Console()
logger: Final = get_logger(__name__)

T = TypeVar("T")

DATE_FORMATS: Final = ["%Y-%m-%d"]

app = typer.Typer(
    name="tripfood",
    help="""TripFood - plan food and drinks for group trips

    Examples:
      tripfood init-db                               - create the database tables
      tripfood add-trip "Beach Week" 2024-07-01 2024-07-07
      tripfood trips                                 - list trips, latest first
      tripfood shopping-list TRIP_ID --multiplier 1.1
    """,
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def configure(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override the configured log level"
    ),
) -> None:
    setup_logging(log_level, settings)
    setup_telemetry(settings)


@asynccontextmanager
async def open_services(app_settings: Settings) -> AsyncIterator[Services]:
    """Wire services onto the configured database."""
    engine = create_engine_from_settings(app_settings)
    try:
        await init_async_db(engine)
        yield create_services(create_repositories(SQLRecordStore(engine)))
    finally:
        await engine.dispose()


def _run(action: Callable[[Services], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with open_services(settings) as services:
            return await action(services)

    try:
        return asyncio.run(runner())
    except DomainError as e:
        logger.warning("Command failed", code=e.code.value, error=e.message)
        console.print(f"Error: {e.message}", style="red")
        raise typer.Exit(code=1) from e


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""
    async def create_tables() -> None:
        engine = create_engine_from_settings(settings)
        try:
            await init_async_db(engine)
        finally:
            await engine.dispose()

    asyncio.run(create_tables())
    console.print(
        f"Database ready at {settings.effective_database_url}", style="green"
    )


@app.command("add-trip")
def add_trip(
    name: str = typer.Argument(..., help="Trip name"),
    start_date: datetime = typer.Argument(..., formats=DATE_FORMATS),
    end_date: datetime = typer.Argument(..., formats=DATE_FORMATS),
    description: str | None = typer.Option(None, "--description", "-d"),
) -> None:
    """Create a trip."""
    trip = _run(
        lambda services: services.trips.create_trip(
            name=name,
            start_date=start_date.date(),
            end_date=end_date.date(),
            description=description,
        )
    )
    console.print(f"Created trip {trip.name} ({trip.id})", style="green")


@app.command("trips")
def list_trips() -> None:
    """List trips, latest start first."""
    trips = _run(lambda services: services.trips.list_trips())
    if not trips:
        console.print("No trips yet.", style="dim")
        return

    table = Table(title="Trips")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days", justify="right")
    for trip in trips:
        table.add_row(
            trip.id,
            trip.name,
            to_iso_date_string(trip.start_date),
            to_iso_date_string(trip.end_date),
            str(trip.duration_in_days),
        )
    console.print(table)


@app.command("shopping-list")
def shopping_list(
    trip_id: str = typer.Argument(..., help="Trip to shop for"),
    categories: list[ProductCategory] | None = typer.Option(
        None, "--category", "-c", help="Only include these categories"
    ),
    essential_only: bool = typer.Option(
        False, "--essential-only", help="Only products with a default quantity"
    ),
    multiplier: float = typer.Option(
        1.0, "--multiplier", "-m", help="Scale quantities, e.g. 1.1 for a buffer"
    ),
) -> None:
    """Print the shopping list for a trip, grouped by category."""
    result = _run(
        lambda services: services.shopping.generate(
            trip_id,
            categories=categories or None,
            essential_only=essential_only,
            quantity_multiplier=multiplier,
        )
    )
    _print_shopping_list(result)


def _print_shopping_list(result: ShoppingList) -> None:
    console.print(
        f"[bold]{result.trip_name}[/bold] "
        f"{to_iso_date_string(result.start_date)} to "
        f"{to_iso_date_string(result.end_date)} "
        f"({result.total_days} days, {result.participant_count} participants)"
    )
    if not result.items:
        console.print("Nothing to buy.", style="dim")
        return

    for group in result.by_category:
        table = Table(title=group.display_name)
        table.add_column("Product", style="bold")
        table.add_column("Quantity", justify="right")
        table.add_column("Unit")
        table.add_column("Essential", justify="center")
        for item in group.items:
            table.add_row(
                item.product_name,
                f"{item.total_quantity:g}",
                item.unit,
                "yes" if item.is_essential else "",
            )
        console.print(table)
    console.print(
        f"{result.total_items} items "
        f"({result.essential_items_count} essential, "
        f"{result.optional_items_count} optional)"
    )


def main():
    """Main entry point for the TripFood CLI."""
    app()


if __name__ == "__main__":
    main()
