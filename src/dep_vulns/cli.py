"""CLI entry point for dep-vulns."""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import TRACE, __version__
from .config import Cache, Config
from .errors import FeedError, InventoryError
from .feeds import LocalFeed, OSVClient
from .inventory import load_inventory
from .models import Ecosystem, UpdateRule
from .renderer import render_advisory
from .rules import fetch_rules
from .severity import resolve_severity

console = Console()
# Separate stderr console for logging so rule output on stdout stays parseable
_log_console = Console(stderr=True)


def setup_logging(verbose: bool, trace: bool = False) -> None:
    """Configure logging with rich handler."""
    if trace:
        level = TRACE
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=_log_console, rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _rules_to_json(rules: list[UpdateRule]) -> str:
    return json.dumps([r.model_dump(by_alias=True) for r in rules], indent=2)


def _format_markdown(rules: list[UpdateRule]) -> str:
    """Format rules as a Markdown report."""
    if not rules:
        return "# dep-vulns\n\nNo vulnerable dependencies found.\n"
    lines = [
        "# dep-vulns",
        "",
        "| Package | Datasource | Current | Allowed |",
        "|---------|------------|---------|---------|",
    ]
    for rule in rules:
        lines.append(
            f"| {', '.join(rule.match_package_names)} | {', '.join(rule.match_datasources)} "
            f"| {rule.match_current_version} | `{rule.allowed_versions}` |"
        )
    for rule in rules:
        for note in rule.pr_body_notes:
            lines.append(note)
    return "\n".join(lines) + "\n"


def _print_rich_results(rules: list[UpdateRule]) -> None:
    if not rules:
        console.print("[bold green]No vulnerable dependencies found.[/bold green]")
        return
    table = Table(title=f"Vulnerability update rules ({len(rules)})", border_style="red")
    table.add_column("Package", style="cyan")
    table.add_column("Datasource")
    table.add_column("Current", style="yellow")
    table.add_column("Allowed", style="green")
    for rule in rules:
        table.add_row(
            ", ".join(rule.match_package_names),
            ", ".join(rule.match_datasources),
            rule.match_current_version,
            rule.allowed_versions,
        )
    console.print(table)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """dep-vulns - Turn OSV advisories into vulnerability update rules."""
    pass


@main.command()
@click.argument("inventory", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--feed-dir",
    type=click.Path(file_okay=False),
    help="Read advisories from a local OSV export instead of the OSV API",
)
@click.option(
    "--osv-api-url",
    envvar="DEP_VULNS_OSV_API_URL",
    help="OSV API base URL (default: https://api.osv.dev/v1)",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["rich", "json", "markdown"], case_sensitive=False),
    default="rich",
    help="Output format: rich (default), json, or markdown",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Output file path (default: stdout)",
)
@click.option(
    "--cache-ttl",
    type=int,
    default=None,
    help="Cache TTL in hours (default: 24)",
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Bypass cache, fetch fresh data",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum concurrent OSV queries (default: 8)",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Enable trace logging (per-package lookup details)",
)
@click.option(
    "--fail-on-rules",
    is_flag=True,
    help="Exit with code 1 when any update rule is produced (for CI use)",
)
def scan(
    inventory: str,
    feed_dir: Optional[str],
    osv_api_url: Optional[str],
    output_format: str,
    output: Optional[str],
    cache_ttl: Optional[int],
    no_cache: bool,
    max_concurrency: Optional[int],
    verbose: bool,
    trace: bool,
    fail_on_rules: bool,
) -> None:
    """Resolve vulnerabilities for the dependencies in an INVENTORY JSON file."""
    setup_logging(verbose, trace)

    config = Config.from_env().with_overrides(
        osv_api_url=osv_api_url,
        cache_ttl=cache_ttl,
        no_cache=no_cache,
        max_concurrency=max_concurrency,
        verbose=verbose,
        trace=trace,
    )

    try:
        deps_by_manager = load_inventory(inventory)
    except InventoryError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    dep_count = sum(len(deps) for deps in deps_by_manager.values())
    if output_format == "rich":
        console.print(f"[bold blue]Checking {dep_count} dependencies for known vulnerabilities...[/bold blue]")

    cache = Cache(ttl_hours=config.cache_ttl_hours) if config.use_cache else None
    try:
        feed = LocalFeed.create(feed_dir) if feed_dir else None
        rules = asyncio.run(fetch_rules(deps_by_manager, config, cache, feed))
    except FeedError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    if output_format == "json":
        output_str = _rules_to_json(rules)
    elif output_format == "markdown":
        output_str = _format_markdown(rules)
    else:
        output_str = None

    if output:
        with open(output, "w") as f:
            f.write(output_str if output_str is not None else _rules_to_json(rules))
        if output_format == "rich":
            console.print(f"[green]Results written to {output}[/green]")
    elif output_str is not None:
        print(output_str)
    else:
        _print_rich_results(rules)

    if fail_on_rules and rules:
        if output_format == "rich":
            console.print(
                f"[bold red]Exiting with code 1:[/bold red] {len(rules)} vulnerability rule(s) produced"
            )
        sys.exit(1)


@main.command()
@click.argument("advisory_id")
@click.option(
    "--ecosystem",
    type=click.Choice([e.value for e in Ecosystem if e != Ecosystem.UNKNOWN]),
    default=None,
    help="Ecosystem used to pick the affected entry and database attribution",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def advisory(advisory_id: str, ecosystem: Optional[str], verbose: bool) -> None:
    """Render the advisory note for a single OSV ADVISORY_ID."""
    setup_logging(verbose)
    config = Config.from_env()
    eco = Ecosystem(ecosystem) if ecosystem else None

    async def run():
        async with OSVClient(config) as client:
            return await client.get_advisory(advisory_id)

    try:
        record = asyncio.run(run())
    except FeedError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    entry = None
    if eco is not None:
        entry = next(
            (a for a in record.affected if a.package.ecosystem.split(":", 1)[0] == eco.value), None
        )
    print(render_advisory(record, resolve_severity(record, entry), eco))


@main.command()
@click.option("--namespace", help="Clear only specific namespace (osv-query)")
def clear_cache(namespace: Optional[str]) -> None:
    """Clear the local cache."""
    cache = Cache()
    count = cache.clear(namespace)
    console.print(f"[green]Cleared {count} cache entries[/green]")


if __name__ == "__main__":
    main()
