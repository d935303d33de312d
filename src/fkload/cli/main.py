"""CLI commands for fkload."""

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import click

from fkload.backends import StagingBackend
from fkload.config import Config, connect
from fkload.dependency import build_load_order
from fkload.exceptions import FkLoadError
from fkload.introspection import create_introspector
from fkload.loader import BulkLoader
from fkload.models import ConstraintKind
from fkload.rowfile import load_rows


def _load_config(config_path: str | None) -> Config:
    if config_path:
        return Config.from_toml(config_path)
    try:
        return Config.find_and_load()
    except FileNotFoundError:
        return Config()


@contextmanager
def _connection(config: Config):
    conn = connect(config)
    try:
        yield conn
    finally:
        conn.close()


def _fail(error: Exception) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="fkload")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to fkload.toml (default: search upwards from cwd)",
)
@click.option("--url", help="Database URL (overrides config)")
@click.option("--schema", "schema_name", help="PostgreSQL schema (overrides config)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    url: str | None,
    schema_name: str | None,
    verbose: bool,
) -> None:
    """fkload - load related tables with temporary key references."""
    try:
        config = _load_config(config_path)
    except ValueError as e:
        _fail(e)
        return
    if url:
        config.database.url = url
    if schema_name:
        config.database.schema_name = schema_name

    logging.basicConfig(
        level=logging.DEBUG if verbose else config.load.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


@cli.command()
@click.option(
    "--all", "all_kinds", is_flag=True, help="Include keys, unique and check constraints"
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def constraints(config: Config, all_kinds: bool, output_json: bool) -> None:
    """List constraints discovered in the database."""
    try:
        with _connection(config) as conn:
            introspector = create_introspector(
                conn, config.database.schema_name, config.database.resolved_dialect()
            )
            if all_kinds:
                found = introspector.list_all_constraints()
            else:
                found = introspector.list_foreign_key_constraints()
    except (FkLoadError, ValueError) as e:
        _fail(e)
        return

    if output_json:
        data = [
            {
                "name": c.name,
                "kind": c.kind.value,
                "source_table": c.source_table,
                "source_column": c.source_column,
                "referenced_table": c.referenced_table,
                "referenced_column": c.referenced_column,
                "position": c.position,
            }
            for c in found
        ]
        click.echo(json.dumps(data, indent=2))
        return

    for c in found:
        target = (
            f" -> {c.referenced_table}.{c.referenced_column}"
            if c.kind is ConstraintKind.FOREIGN_KEY
            else ""
        )
        click.echo(f"{c.name}  {c.kind.value}  {c.source_table}.{c.source_column}{target}")


@cli.command()
@click.argument("tables", nargs=-1)
@click.pass_obj
def order(config: Config, tables: tuple[str, ...]) -> None:
    """Print the load order for TABLES (default: every table)."""
    try:
        with _connection(config) as conn:
            introspector = create_introspector(
                conn, config.database.schema_name, config.database.resolved_dialect()
            )
            selected = list(tables) or introspector.list_tables()
            plan = build_load_order(
                introspector.list_all_constraints(
                    [ConstraintKind.FOREIGN_KEY, ConstraintKind.PRIMARY_KEY]
                ),
                selected,
            )
    except (FkLoadError, ValueError) as e:
        _fail(e)
        return

    for position, step in enumerate(plan, start=1):
        line = f"{position}. {step.table}"
        if step.depends_on:
            line += f"  (after {', '.join(sorted(step.depends_on))})"
        if step.deferred_columns:
            line += f"  [self: {', '.join(sorted(step.deferred_columns))}]"
        click.echo(line)


@cli.command()
@click.argument("row_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Load into memory instead of the database")
@click.pass_obj
def load(config: Config, row_file: Path, dry_run: bool) -> None:
    """Load ROW_FILE (YAML or JSON) into the database."""
    try:
        rows = load_rows(row_file)
        with _connection(config) as conn:
            loader = BulkLoader(
                conn,
                schema=config.database.schema_name,
                dialect=config.database.resolved_dialect(),
                backend=StagingBackend() if dry_run else None,
                use_transaction=config.load.use_transaction,
            )
            report = loader.add_all(rows).execute()
            if not dry_run:
                conn.commit()
    except (FkLoadError, ValueError) as e:
        _fail(e)
        return

    for table_report in report:
        click.echo(
            f"{table_report.table}: {table_report.inserted} inserted, "
            f"{table_report.updated} updated"
        )
    if dry_run:
        click.echo("Dry run: nothing was written")


if __name__ == "__main__":
    cli()
