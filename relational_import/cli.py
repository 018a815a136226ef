"""
Relational Import - command line entry point

Analyzes foreign key relationships of a database and imports primary table
rows as nested JSON documents.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import AppConfig
from .connectors import create_connector
from .exceptions import RelationalImportError
from .importer import RelationalImporter
from .models.relational import ImportOptions

# Diagnostics go to stderr so stdout stays machine readable
console = Console(stderr=True)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def connection_options(func):
    """Shared connection and table selection options."""
    options = [
        click.option("--db-type", "-t", default=None, help="postgresql, mysql or sqlite (default: postgresql)"),
        click.option("--host", "-h", default=None, help="Database host (default: localhost)"),
        click.option("--port", "-p", default=None, type=int, help="Database port"),
        click.option("--database", "-d", default=None, help="Database name, or file path for sqlite"),
        click.option("--user", "-u", default=None, help="Database user"),
        click.option("--password", "-P", default=None, help="Database password"),
        click.option("--schema", "-s", "schema_name", default=None, help="Schema to introspect"),
        click.option("--url", default=None, help="SQLAlchemy URL, overrides the connection fields"),
        click.option("--env-file", "-e", default=".env", help=".env file path"),
        click.option("--primary-table", "-T", required=True, help="Root table of the import"),
        click.option("--include", "included_tables", multiple=True, help="Only use these tables (repeatable)"),
        click.option("--exclude", "excluded_tables", multiple=True, help="Ignore these tables (repeatable)"),
        click.option("--follow-reverse/--no-follow-reverse", default=None, help="Follow one-to-many relationships"),
        click.option("--max-depth", default=None, type=int, help="Forward expansion depth (default: 3)"),
        click.option("--log-level", default=None, help="Logging level (default: INFO)"),
        click.option("--verbose", "-v", is_flag=True, help="Verbose output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(env_file: str, **kwargs) -> AppConfig:
    if Path(env_file).exists():
        load_dotenv(env_file)
    return AppConfig.from_args(**kwargs)


def _build_options(
    config: AppConfig,
    primary_table: str,
    included_tables: tuple[str, ...],
    excluded_tables: tuple[str, ...],
) -> ImportOptions:
    return ImportOptions(
        primary_table=primary_table,
        max_depth=config.importer.max_depth,
        max_records=config.importer.max_records,
        included_tables=list(included_tables),
        excluded_tables=list(excluded_tables),
        follow_reverse=config.importer.follow_reverse,
    )


def _fail(error: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        import traceback
        console.print(traceback.format_exc())
    sys.exit(1)


@click.group()
def main():
    """Relational Import - nested documents from relational data."""


@main.command()
@connection_options
@click.option("--markdown", is_flag=True, help="Print a Markdown report instead of the text diagram")
def analyze(
    db_type: Optional[str],
    host: Optional[str],
    port: Optional[int],
    database: Optional[str],
    user: Optional[str],
    password: Optional[str],
    schema_name: Optional[str],
    url: Optional[str],
    env_file: str,
    primary_table: str,
    included_tables: tuple[str, ...],
    excluded_tables: tuple[str, ...],
    follow_reverse: Optional[bool],
    max_depth: Optional[int],
    log_level: Optional[str],
    verbose: bool,
    markdown: bool,
):
    """Show the relationship graph of a primary table."""
    try:
        config = _load_config(
            env_file,
            db_type=db_type, host=host, port=port, database=database, user=user,
            password=password, schema_name=schema_name, url=url,
            log_level=log_level, verbose=verbose,
            follow_reverse=follow_reverse, max_depth=max_depth,
        )
        configure_logging(config.log_level)
        options = _build_options(config, primary_table, included_tables, excluded_tables)

        with create_connector(config.database) as connector:
            importer = RelationalImporter(connector, config.importer)
            report = importer.describe_relationships(options)
    except (RelationalImportError, ValueError) as e:
        _fail(e, verbose)

    if markdown:
        click.echo(importer.formatter.format_markdown(report.to_schema(), report.statistics))
        return

    console.print(Panel.fit(report.diagram, title="Relationships", border_style="blue"))

    summary_table = Table(title="Summary", show_header=True)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    for key, value in report.statistics.items():
        summary_table.add_row(key.replace("_", " "), str(value))
    console.print(summary_table)


@main.command("import")
@connection_options
@click.option("--max-records", default=None, type=int, help="Root rows to sample (default: 100)")
@click.option("--indent", default=2, type=int, help="JSON indentation")
def import_command(
    db_type: Optional[str],
    host: Optional[str],
    port: Optional[int],
    database: Optional[str],
    user: Optional[str],
    password: Optional[str],
    schema_name: Optional[str],
    url: Optional[str],
    env_file: str,
    primary_table: str,
    included_tables: tuple[str, ...],
    excluded_tables: tuple[str, ...],
    follow_reverse: Optional[bool],
    max_depth: Optional[int],
    log_level: Optional[str],
    verbose: bool,
    max_records: Optional[int],
    indent: int,
):
    """Import primary table rows as nested JSON documents."""
    try:
        config = _load_config(
            env_file,
            db_type=db_type, host=host, port=port, database=database, user=user,
            password=password, schema_name=schema_name, url=url,
            log_level=log_level, verbose=verbose,
            follow_reverse=follow_reverse, max_depth=max_depth, max_records=max_records,
        )
        configure_logging(config.log_level)
        options = _build_options(config, primary_table, included_tables, excluded_tables)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"[cyan]Importing {primary_table}...", total=None)
            with create_connector(config.database) as connector:
                documents = RelationalImporter(connector, config.importer).import_relational_data(options)
            progress.update(task, description=f"[green]✓ Imported {len(documents)} records")
    except (RelationalImportError, ValueError) as e:
        _fail(e, verbose)

    click.echo(json.dumps(documents, indent=indent, default=str))


if __name__ == "__main__":
    main()
