"""Command-line interface for notcoal.

Provides commands to run a filtering pass, preview one, and validate rule
and config files.

Usage:
    python -m notcoal filter
    python -m notcoal dry-run --tag new
    python -m notcoal validate-rules ~/.config/notcoal/rules.json
    python -m notcoal validate-config
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from notcoal.config import validate_config_file
from notcoal.core.errors import ConfigLoadError, ConfigValidationError, NotcoalError
from notcoal.core.logging import configure_logging
from notcoal.engine.filtering import filter_dry_with_path, filter_with_path
from notcoal.rules.loader import filters_from_file

if TYPE_CHECKING:
    from notcoal.config_schema import AppConfig
    from notcoal.rules.models import Filter

console = Console()


@dataclass(frozen=True, slots=True)
class RunSettings:
    """Settings for one pass: config file values overridden by command-line options."""

    config: AppConfig
    db_path: Path | None
    rules_path: Path
    query_tag: str


def _resolve_settings(
    config_path: Path | None,
    db_path: Path | None,
    rules_path: Path | None,
    query_tag: str | None,
) -> RunSettings:
    """Load config and apply command-line overrides.

    Prints an actionable error and calls sys.exit(1) if the config is invalid.
    """
    from notcoal.config import get_config, load_config

    try:
        config = load_config(config_path) if config_path else get_config()
    except (ConfigLoadError, ConfigValidationError) as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        sys.exit(1)

    if not _debug_enabled():
        configure_logging(
            log_level=config.logging.level,
            json_output=config.logging.json_output,
        )

    return RunSettings(
        config=config,
        db_path=db_path.expanduser() if db_path else config.database.path,
        rules_path=rules_path.expanduser() if rules_path else config.filtering.rules_path,
        query_tag=query_tag if query_tag is not None else config.filtering.query_tag,
    )


def _debug_enabled() -> bool:
    ctx = click.get_current_context(silent=True)
    if ctx is None or ctx.obj is None:
        return False
    return bool(ctx.obj.get("debug", False))


def _run_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the commands that process a mailbox."""
    func = click.option(
        "--tag",
        "-t",
        "query_tag",
        default=None,
        help="Tag selecting the messages to process (default: from config, 'new')",
    )(func)
    func = click.option(
        "--rules",
        "-r",
        "rules_path",
        type=click.Path(exists=False, path_type=Path),
        default=None,
        help="JSON rule file (default: from config)",
    )(func)
    func = click.option(
        "--db",
        "db_path",
        type=click.Path(exists=False, path_type=Path),
        default=None,
        help="notmuch database path (default: from config, then notmuch's own)",
    )(func)
    func = click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(exists=False, path_type=Path),
        default=None,
        help="Path to config file (default: ~/.config/notcoal/config.yaml)",
    )(func)
    return func


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """notcoal - regex based initial tagging for notmuch."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    configure_logging(log_level="DEBUG" if debug else "WARNING", json_output=False)


@cli.command("filter")
@_run_options
def filter_command(
    config_path: Path | None,
    db_path: Path | None,
    rules_path: Path | None,
    query_tag: str | None,
) -> None:
    """Apply filters to every message carrying the query tag.

    Matching filters add or remove tags, run commands or delete messages.
    The query tag is removed from every message that survives the pass.
    """
    settings = _resolve_settings(config_path, db_path, rules_path, query_tag)

    try:
        filters = filters_from_file(settings.rules_path)
        matches = filter_with_path(
            settings.db_path,
            settings.query_tag,
            filters,
            timeout=settings.config.filtering.regex_timeout_seconds,
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except NotcoalError as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    console.print(
        f"[green]✓[/green] {matches} filter match(es) on messages tagged "
        f"[cyan]{settings.query_tag}[/cyan]"
    )


@cli.command("dry-run")
@_run_options
def dry_run(
    config_path: Path | None,
    db_path: Path | None,
    rules_path: Path | None,
    query_tag: str | None,
) -> None:
    """Show which filters would match, without changing anything.

    No operations are applied and the query tag is left in place.
    """
    settings = _resolve_settings(config_path, db_path, rules_path, query_tag)

    try:
        filters = filters_from_file(settings.rules_path)
        count, matches = filter_dry_with_path(
            settings.db_path,
            settings.query_tag,
            filters,
            timeout=settings.config.filtering.regex_timeout_seconds,
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except NotcoalError as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    if matches:
        table = Table(title=f"Matches for tag:{settings.query_tag}")
        table.add_column("Message ID", style="cyan", overflow="fold")
        table.add_column("Filter")
        for entry in matches:
            message_id, filter_name = split_match(entry)
            table.add_row(escape(message_id), escape(filter_name))
        console.print(table)

    console.print(f"\n[bold]{count}[/bold] match(es), nothing was changed")


def split_match(entry: str) -> tuple[str, str]:
    """Split a "<message id>: <filter name>" entry from filter_dry().

    Message IDs never contain ": ", filter names may, so split on the first one.
    """
    message_id, _, filter_name = entry.partition(": ")
    return message_id, filter_name


@cli.command("validate-rules")
@click.argument("rules_path", type=click.Path(exists=False, path_type=Path))
def validate_rules(rules_path: Path) -> None:
    """Load and compile a JSON rule file, then list its filters."""
    console.print(f"Validating rules: [cyan]{rules_path}[/cyan]")

    try:
        filters = filters_from_file(rules_path)
    except NotcoalError as e:
        console.print(f"\n[red]✗[/red] {escape(str(e))}")
        sys.exit(1)

    console.print(_filters_table(filters))
    console.print(f"\n[green]✓[/green] {len(filters)} filter(s) compiled")


def _filters_table(filters: list[Filter]) -> Table:
    table = Table(title="Filters")
    table.add_column("Name", style="cyan")
    table.add_column("Rules", justify="right")
    table.add_column("Operations")
    table.add_column("Description")
    for flt in filters:
        ops = flt.op.model_dump(by_alias=True, exclude_none=True)
        table.add_row(
            escape(flt.resolved_name()),
            str(len(flt.rules)),
            ", ".join(sorted(ops)) or "-",
            escape(flt.desc or ""),
        )
    return table


@cli.command("validate-config")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: ~/.config/notcoal/config.yaml)",
)
def validate_config(config_path: Path | None) -> None:
    """Validate the configuration file.

    Checks that the config exists and passes Pydantic schema validation.
    Reports specific errors for invalid fields.
    """
    if config_path:
        console.print(f"Validating config: [cyan]{config_path}[/cyan]")
    else:
        console.print("Validating config: [cyan]~/.config/notcoal/config.yaml[/cyan]")

    is_valid, message = validate_config_file(config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {escape(message)}")
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
