"""Command-line interface for eostore.

This module provides administrative commands for the catalog store:
creating the table layout, inspecting the exposed types and managing the
secondary indexes of collections.
"""

import asyncio
from typing import Any, Awaitable, Callable, NoReturn

import click

from eostore.core.config import get_settings
from eostore.core.logging import configure_logging
from eostore.domain.exceptions import CatalogError


def _run(action: Callable[[Any], Awaitable[int | None]]) -> None:
    """Run an async action against a catalog service, then disconnect.

    The action may return a non-zero exit code; catalog errors exit with 1.
    """
    from eostore.application.services import CatalogService
    from eostore.infrastructure.persistence.database import get_db_manager

    async def run() -> int:
        db = get_db_manager()
        try:
            return await action(CatalogService(db)) or 0
        except CatalogError as e:
            click.echo(f"ERROR: {e}", err=True)
            return 1
        finally:
            await db.disconnect()

    exit_code = asyncio.run(run())
    if exit_code:
        raise SystemExit(exit_code)


@click.group()
@click.version_option(version="0.1.0", prog_name="eostore")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default=None,
    help="Set log level (overrides EOSTORE_LOG_LEVEL)",
)
def cli(log_level: str | None) -> None:
    """eostore - Earth observation catalog store.

    Exposes collections, products and per-collection granule views as
    typed feature types over a fixed relational layout.
    """
    settings = get_settings()
    if log_level is not None:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_db(force: bool) -> None:
    """Create the catalog tables.

    One column is created per attribute of every registered product class,
    so configured product classes must be in place before running this.
    """
    from eostore.infrastructure.persistence.database import get_db_manager, init_database

    if not force:
        click.confirm(
            "This will create the catalog tables. Continue?",
            abort=True,
            default=False,
        )

    async def initialize() -> None:
        db = get_db_manager()
        try:
            created = await init_database(db)
            if created:
                click.echo("Database initialized successfully.")
            else:
                click.echo("Catalog tables already exist, nothing to do.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
def types() -> None:
    """List the exposed type names."""

    async def action(service: Any) -> None:
        for name in sorted(await service.list_type_names()):
            click.echo(name)

    _run(action)


@cli.command()
@click.argument("name")
def schema(name: str) -> None:
    """Print the properties of a type."""

    async def action(service: Any) -> None:
        feature_type = await service.get_schema(name)
        click.echo(f"{feature_type.name} ({feature_type.namespace})")
        for descriptor in feature_type.attributes:
            kind = descriptor.type.value
            if descriptor.nested_type:
                kind = descriptor.nested_type
                if descriptor.multi_valued:
                    kind += "[]"
            click.echo(f"  {descriptor.qualified_name:<40} {kind}")

    _run(action)


@cli.command()
@click.argument("table")
def index_names(table: str) -> None:
    """List the indexes currently defined on a table."""

    async def action(service: Any) -> None:
        for name in sorted(await service.get_index_names(table)):
            click.echo(name)

    _run(action)


@cli.command()
@click.argument("collection")
def drop_indexes(collection: str) -> None:
    """Drop every managed index of a collection."""

    async def action(service: Any) -> int:
        result = await service.update_indexes(collection, [])
        for name in result.dropped:
            click.echo(f"Dropped {name}")
        for failure in result.failed:
            click.echo(f"FAILED {failure.name}: {failure.error}", err=True)
        return 1 if result.failed else 0

    _run(action)


@cli.command()
def info() -> None:
    """Display eostore configuration."""
    settings = get_settings()

    classes = ", ".join(pc.name for pc in settings.product_classes) or "(built-in only)"
    click.echo(f"""
eostore v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:  {settings.environment}
  Namespace:    {settings.namespace}
  Classes:      {classes}
  Batch Size:   {settings.query_batch_size}

Database:
  URL:          {settings.database_url}
  Pool Size:    {settings.db_pool_size}
  Echo:         {settings.db_echo}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `eostore` command is run
    or when using `python -m eostore`.
    """
    cli()
