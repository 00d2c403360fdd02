"""CLI entry point for the capability recorder."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from action_builder.errors import PersistenceError
from action_builder.models.capability import SiteCapability
from action_builder.models.config import MergePolicy, RecordingConfig
from action_builder.models.session import StepEvent
from action_builder.orchestrator import run_recording
from action_builder.storage.store import open_store

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


class StepPrinter:
    """Prints each step as it happens and tallies registered elements per module."""

    def __init__(self) -> None:
        self.module_stats: dict[str, int] = {}

    def __call__(self, event: StepEvent) -> None:
        status = "[green]ok[/green]" if event.success else "[red]failed[/red]"
        console.print(f"{status} Step {event.step}: [bold]{event.tool_name}[/bold] ({event.duration_ms}ms)")
        args = event.tool_args
        if event.tool_name == "register_element" and event.success:
            module = args.get("module") or "unknown"
            self.module_stats[module] = self.module_stats.get(module, 0) + 1
            console.print(f"   Element: {args.get('element_id')} [{module}]", markup=False)
        elif event.tool_name == "observe_page":
            console.print(f"   Focus: {args.get('focus') or 'all'}", markup=False)
            if args.get("module"):
                console.print(f"   Module: {args['module']}", markup=False)
        if event.error:
            console.print(f"   Error: {event.error}", style="red", markup=False)


def _print_capability(site: SiteCapability) -> None:
    table = Table(title=f"Capability: {site.domain}")
    table.add_column("Scope", style="bold")
    table.add_column("Element")
    table.add_column("Module")
    table.add_column("Type")
    table.add_column("Methods")
    for element_id, element in site.global_elements.items():
        table.add_row("global", element_id, element.module.value, element.element_type,
                      ", ".join(element.allow_methods))
    for page_type, page in site.pages.items():
        for element_id, element in page.elements.items():
            name = f"{element_id} (stale)" if element.stale else element_id
            table.add_row(page_type, name, element.module.value, element.element_type,
                          ", ".join(element.allow_methods))
    console.print(table)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Record the interactive capabilities of web pages."""
    setup_logging(verbose)


@cli.command()
@click.argument("url", required=False)
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
@click.option("--scenario", "-s", default=None, help="Page description/scenario")
@click.option("--pattern", default=None, help="Target URL pattern (regex), e.g. '^/search'")
@click.option("--no-scroll", is_flag=True, help="Disable auto-scroll to bottom")
@click.option("--headless", is_flag=True, help="Run the browser headless")
@click.option("--output", "-o", default=None, help="Output directory")
@click.option("--max-turns", type=int, default=None, help="Maximum agent turns")
@click.option("--database-url", envvar="DATABASE_URL", default=None,
              help="Also persist to a database (sqlite:///path.db)")
@click.option("--merge-policy", type=click.Choice([p.value for p in MergePolicy]), default=None,
              help="What to do with previously recorded elements not seen again")
def record(
    url: str | None, config_path: str | None, scenario: str | None, pattern: str | None,
    no_scroll: bool, headless: bool, output: str | None, max_turns: int | None,
    database_url: str | None, merge_policy: str | None,
) -> None:
    """Record all interactive elements on URL."""
    try:
        cfg = RecordingConfig.load(config_path) if config_path else None
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except ValueError as e:
        console.print(f"Invalid config file {config_path}:\n{e}", style="red", markup=False)
        sys.exit(1)

    if cfg is None:
        if not url:
            console.print("[red]Error: URL is required (or pass --config)[/red]")
            sys.exit(1)
        cfg = RecordingConfig(target_url=url)

    overrides = {
        "target_url": url,
        "scenario": scenario,
        "target_url_pattern": pattern,
        "output_dir": output,
        "max_turns": max_turns,
        "database_url": database_url,
        "merge_policy": merge_policy,
    }
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    if no_scroll:
        data["auto_scroll"] = False
    if headless:
        data["headless"] = True
    try:
        cfg = RecordingConfig(**data)
    except ValidationError as e:
        console.print(f"Invalid options:\n{e}", style="red", markup=False)
        sys.exit(1)

    if not cfg.scenario:
        console.print("[red]Error: --scenario is required[/red]")
        sys.exit(1)

    console.rule("Capability Recording")
    console.print(f"URL: {cfg.target_url}")
    console.print(f"Scenario: {cfg.scenario}")
    if cfg.target_url_pattern:
        console.print(f"Target Pattern: {cfg.target_url_pattern}")
    console.print(f"Auto Scroll: {cfg.auto_scroll}  Headless: {cfg.headless}  Output: {cfg.output_dir}")
    console.rule()

    printer = StepPrinter()
    try:
        result = run_recording(cfg, on_step=printer)
    except (EnvironmentError, PersistenceError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.rule("Recording Results")
    if result.success:
        console.print("[bold green]Recording completed[/bold green]")
    else:
        console.print(f"[yellow]Recording finished with issues:[/yellow] {result.error or result.state.value}")

    table = Table(title="Session Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("State", result.state.value)
    table.add_row("Saved to", str(result.saved_path or "-"))
    table.add_row("Turns", str(result.turns))
    table.add_row("Steps", str(result.steps))
    table.add_row(
        "Tokens",
        f"input={result.tokens.input}, output={result.tokens.output}, total={result.tokens.total}",
    )
    table.add_row("Duration", f"{result.total_duration_ms / 1000:.1f}s")
    console.print(table)

    if printer.module_stats:
        console.print("\n[bold]Elements registered by module:[/bold]")
        for module, count in sorted(printer.module_stats.items(), key=lambda kv: -kv[1]):
            console.print(f"   {module}: {count}")

    if result.site_capability:
        site = result.site_capability
        console.print(
            f"\nDomain: {site.domain}  Pages: {len(site.pages)}  "
            f"Total elements: {site.element_count()}"
        )
        _print_capability(site)

    sys.exit(0 if result.success else 1)


@cli.command()
@click.argument("domain")
@click.option("--output", "-o", default="./output", help="Output directory")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="Database URL")
def show(domain: str, output: str, database_url: str | None) -> None:
    """Show the stored capability document for DOMAIN."""
    try:
        store = open_store(output, database_url)
        site = store.load(domain)
        known = store.list_domains() if site is None else []
    except PersistenceError as e:
        console.print(str(e), style="red", markup=False)
        sys.exit(1)
    if site is None:
        console.print(f"[yellow]No capability recorded for {domain}[/yellow]")
        if known:
            console.print("Recorded domains: " + ", ".join(known))
        sys.exit(1)
    console.print(
        f"Domain: {site.domain}  Pages: {len(site.pages)}  Elements: {site.element_count()}  "
        f"Recordings: {site.recording_count}"
    )
    modules = ", ".join(f"{name}={count}" for name, count in sorted(site.module_counts().items()))
    if modules:
        console.print(f"Modules: {modules}")
    _print_capability(site)


@cli.command()
@click.option("--target", "-t", prompt="Target URL", help="Page URL to record")
@click.option("--scenario", "-s", prompt="Page description", help="Page description/scenario")
def init(target: str, scenario: str) -> None:
    """Create a default configuration file."""
    config_path = Path("recorder-config.json")
    if config_path.exists():
        if not click.confirm("recorder-config.json already exists. Overwrite?"):
            return

    cfg = RecordingConfig(target_url=target, scenario=scenario)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]action-builder record --config recorder-config.json[/blue]")


if __name__ == "__main__":
    cli()
