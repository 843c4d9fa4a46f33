"""
CLI interface for AI Route Guard.

Provides command-line access to routing, security scanning and sending.
"""

import sys
from typing import List, Optional

import typer
import yaml
from openai import OpenAIError
from rich.console import Console
from rich.table import Table

from ai_route_guard.config.loader import RouterConfig, load_router_config
from ai_route_guard.core.engine import RoutingService
from ai_route_guard.core.errors import RouterError, SecurityViolation
from ai_route_guard.core.routing import RoutingOptions
from ai_route_guard.core.security import SecurityGate
from ai_route_guard.sdk import FixtureAdapter, OpenAIAdapter
from ai_route_guard.storage.repository import fetch_recent_audit_entries, initialize_schema
from ai_route_guard.utils.logger import configure_logging

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to router YAML config")


def _load_config(path: Optional[str]) -> RouterConfig:
    """Load the YAML config, or the defaults when no path is given."""
    if path is None:
        return RouterConfig.default()
    try:
        return load_router_config(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)


def _format_cost(amount: float) -> str:
    """Per-token prices need more precision than whole dollars."""
    if amount == 0:
        return "$0"
    if amount < 0.01:
        return f"${amount:.8f}"
    return f"${amount:,.4f}"


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """AI Route Guard CLI."""
    if ctx.invoked_subcommand is None:
        console.print("AI Route Guard - Use --help to see available commands")


@app.command()
def status(config: Optional[str] = CONFIG_OPTION):
    """Show the effective router configuration."""
    cfg = _load_config(config)
    console.print("[green]✓[/] AI Route Guard configuration loaded")
    console.print(f"Rate limit: {cfg.rate_limit.requests_per_minute} requests/minute")
    console.print(
        f"Cache: {cfg.cache.max_entries} entries, TTL "
        f"{cfg.cache.short_ttl_seconds:g}/{cfg.cache.default_ttl_seconds:g}/{cfg.cache.long_ttl_seconds:g}s"
    )
    console.print(f"Budget: ${cfg.ledger.budget:,.2f}")
    console.print(f"Providers: {len(cfg.providers)}")
    console.print(f"Audit database: {cfg.audit.db_path}")


@app.command()
def init(config: Optional[str] = CONFIG_OPTION):
    """Initialize the audit database."""
    cfg = _load_config(config)
    try:
        initialize_schema(cfg.audit.db_path)
        console.print("[green]✓[/] Audit database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def providers(config: Optional[str] = CONFIG_OPTION):
    """List the configured providers."""
    cfg = _load_config(config)
    table = Table(title="AI Providers")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Cost/token", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Available")
    for p in sorted(cfg.providers, key=lambda p: p.cost_per_token):
        table.add_row(
            p.id,
            p.name,
            p.category.value,
            _format_cost(p.cost_per_token),
            f"{p.quality:.2f}",
            "[green]yes[/]" if p.is_available else "[red]no[/]",
        )
    console.print(table)


@app.command()
def recommend(
    prompt: str = typer.Argument(..., help="Prompt to route"),
    config: Optional[str] = CONFIG_OPTION,
    no_cost_optimization: bool = typer.Option(
        False,
        "--no-cost-optimization",
        help="Route short prompts by topic instead of price"
    ),
    max_budget: Optional[float] = typer.Option(
        None,
        "--max-budget",
        "-b",
        help="Maximum cost of a 1000-token exchange"
    ),
    min_quality: Optional[float] = typer.Option(
        None,
        "--min-quality",
        "-q",
        help="Minimum provider quality (0-1)"
    ),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Provider id to exclude (repeatable)"
    ),
):
    """Show which provider a prompt would be routed to."""
    cfg = _load_config(config)
    service = RoutingService.from_config(cfg, FixtureAdapter(), audit_sink=lambda entries: None)
    service.initialize()
    options = RoutingOptions(
        prefer_cost_optimization=not no_cost_optimization and cfg.prefer_cost_optimization,
        minimum_quality=min_quality,
        max_budget=max_budget,
        exclude_providers=frozenset(exclude or ()),
    )
    provider_id = service.recommend(prompt, options)
    if provider_id is None:
        console.print("[red]No provider matches the routing options[/]")
        sys.exit(EXIT_CODE_FAIL)

    provider = service.registry.get(provider_id)
    console.print(f"[bold]Recommended provider:[/bold] {provider.id} ({provider.name})")
    console.print(f"Category: {provider.category.value}")
    console.print(f"Estimated cost: {_format_cost(service.estimate_cost(prompt, provider.id))}")


@app.command()
def scan(prompt: str = typer.Argument(..., help="Prompt to check")):
    """Check a prompt for credentials and other sensitive content."""
    matched = SecurityGate().scan(prompt)
    if matched:
        console.print("[red]✗[/] Prompt contains potentially sensitive information")
        for name in matched:
            console.print(f"  - {name}")
        sys.exit(EXIT_CODE_FAIL)
    console.print("[green]✓[/] No sensitive content detected")


@app.command()
def send(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    config: Optional[str] = CONFIG_OPTION,
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Send to this provider instead of routing"
    ),
    use_openai: bool = typer.Option(
        False,
        "--openai",
        help="Call an OpenAI-compatible endpoint instead of the offline fixture"
    ),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        help="Base URL of the OpenAI-compatible endpoint"
    ),
):
    """Send a prompt through the full routing pipeline."""
    cfg = _load_config(config)
    configure_logging(cfg.logging.as_dict())

    adapter = FixtureAdapter()
    if use_openai:
        try:
            adapter = OpenAIAdapter(base_url=base_url)
        except OpenAIError as e:
            console.print(f"[red]Cannot create OpenAI client:[/] {e}")
            sys.exit(EXIT_CODE_FAIL)

    service = RoutingService.from_config(cfg, adapter)
    service.initialize()
    session_id = service.create_session(name="cli")
    try:
        response = service.send_message(session_id, prompt, provider_id=provider)
    except SecurityViolation as e:
        console.print(f"[red]Rejected:[/] {e} ({', '.join(e.detectors)})")
        sys.exit(EXIT_CODE_FAIL)
    except RouterError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        service.flush_audit()

    console.print(f"\n{response.content}\n", markup=False)
    console.print(f"[bold]Provider:[/bold] {response.provider_id} ({response.model})")
    console.print(f"[bold]Tokens:[/bold] {response.token_usage.total_tokens}")
    console.print(f"[bold]Cost:[/bold] {_format_cost(response.cost)}")
    snapshot = service.get_cost_snapshot()
    console.print(f"[bold]Saved by routing:[/bold] {_format_cost(snapshot.savings_from_routing)}")


@app.command()
def audit(
    config: Optional[str] = CONFIG_OPTION,
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show"),
):
    """Show the most recent audit entries."""
    cfg = _load_config(config)
    initialize_schema(cfg.audit.db_path)
    entries = fetch_recent_audit_entries(limit=limit, db_path=cfg.audit.db_path)
    if not entries:
        console.print("[dim]No audit entries recorded yet.[/]")
        return

    table = Table(title="Audit Trail")
    table.add_column("Time")
    table.add_column("Operation")
    table.add_column("Resource")
    table.add_column("Outcome")
    table.add_column("Risk")
    table.add_column("Flags")
    for entry in entries:
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.operation,
            entry.resource,
            entry.outcome.value,
            entry.risk_level.value,
            ", ".join(entry.compliance_flags),
        )
    console.print(table)


if __name__ == "__main__":
    app()
