"""Admin CLI for session and cache operations.

Operator tooling to:
- Check store connectivity and server metadata
- List and revoke a user's sessions
- Revoke a user's refresh tokens
- Invalidate a user's cached data
- Dump Prometheus metrics after a store probe

Complements the in-process SessionManager API used by route handlers.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from session_core.config import Settings, load_settings_from_file
from session_core.infra.observability.logging import correlation_scope, setup_logging
from session_core.infra.observability.metrics import get_metrics_text
from session_core.infra.store.exceptions import StoreError
from session_core.manager import SessionManager

console = Console()

T = TypeVar("T")


def load_settings(config_path: str | None) -> Settings:
    """Load settings from config file or environment.

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance
    """
    if config_path:
        return load_settings_from_file(Path(config_path))
    return Settings()


def run_with_manager(settings: Settings, action: Callable[[SessionManager], Awaitable[T]]) -> T:
    """Connect a SessionManager, run one action, and close it."""

    async def _run() -> T:
        with correlation_scope():
            async with SessionManager.from_settings(settings) as manager:
                return await action(manager)

    return asyncio.run(_run())


def _confirm(message: str, yes: bool) -> bool:
    if yes:
        return True
    return Confirm.ask(message, default=False)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=str),
    help="Path to configuration file (YAML or TOML)",
)
@click.option("--verbose", "-v", is_flag=True, help="Emit logs to stderr")
@click.pass_context
def admin(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Session Core Admin CLI - session, token and cache management."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    if verbose:
        setup_logging(level="DEBUG", json_format=False)


@admin.group()
def sessions() -> None:
    """Manage user sessions."""
    pass


@admin.group()
def tokens() -> None:
    """Manage refresh tokens."""
    pass


@admin.group()
def cache() -> None:
    """Manage cached data."""
    pass


@admin.command("health")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def health(ctx: click.Context, output_format: str) -> None:
    """Check store connectivity."""
    try:
        settings = load_settings(ctx.obj["config"])
        result = run_with_manager(settings, lambda manager: manager.health_check())
        report = result.to_dict()

        if output_format == "json":
            console.print(json.dumps(report, indent=2))
        else:
            table = Table(title=f"Store health: {report['status']}")
            table.add_column("Detail", style="cyan")
            table.add_column("Value")
            for key, value in report["details"].items():
                table.add_row(key, str(value))
            console.print(table)

        if not result.healthy:
            sys.exit(1)

    except StoreError as e:
        console.print(f"[red]✗[/red] Store unreachable: {e}")
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@sessions.command("list")
@click.argument("user_id")
@click.pass_context
def sessions_list(ctx: click.Context, user_id: str) -> None:
    """List a user's live session IDs."""
    try:
        settings = load_settings(ctx.obj["config"])
        session_ids = run_with_manager(
            settings, lambda manager: manager.list_user_sessions(user_id)
        )

        if not session_ids:
            console.print(f"[yellow]No live sessions for user '{user_id}'[/yellow]")
            return

        table = Table(title=f"Sessions for {user_id}")
        table.add_column("Session ID prefix", style="cyan")
        for session_id in session_ids:
            table.add_row(f"{session_id[:12]}...")
        console.print(table)
        console.print(f"\nTotal: {len(session_ids)} session(s)")

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@sessions.command("revoke")
@click.argument("user_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def sessions_revoke(ctx: click.Context, user_id: str, yes: bool) -> None:
    """Delete all sessions of a user."""
    try:
        if not _confirm(f"Delete all sessions for '{user_id}'?", yes):
            console.print("[yellow]Operation cancelled[/yellow]")
            return

        settings = load_settings(ctx.obj["config"])
        deleted = run_with_manager(
            settings, lambda manager: manager.delete_all_user_sessions(user_id)
        )
        console.print(f"[green]✓[/green] Deleted {deleted} session(s) for '{user_id}'")

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@tokens.command("revoke")
@click.argument("user_id")
@click.option(
    "--full-scan",
    is_flag=True,
    help="Also sweep every stored token for records written without an index entry",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def tokens_revoke(ctx: click.Context, user_id: str, full_scan: bool, yes: bool) -> None:
    """Delete all refresh tokens of a user."""
    try:
        if not _confirm(f"Revoke all refresh tokens for '{user_id}'?", yes):
            console.print("[yellow]Operation cancelled[/yellow]")
            return

        settings = load_settings(ctx.obj["config"])
        deleted = run_with_manager(
            settings,
            lambda manager: manager.delete_all_user_refresh_tokens(user_id, full_scan),
        )
        console.print(f"[green]✓[/green] Revoked {deleted} refresh token(s) for '{user_id}'")

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cache.command("invalidate")
@click.argument("user_id")
@click.pass_context
def cache_invalidate(ctx: click.Context, user_id: str) -> None:
    """Delete every cached entry of a user."""
    try:
        settings = load_settings(ctx.obj["config"])
        deleted = run_with_manager(
            settings, lambda manager: manager.invalidate_user_cache(user_id)
        )
        console.print(f"[green]✓[/green] Invalidated {deleted} cache entries for '{user_id}'")

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@admin.command("revoke-user")
@click.argument("user_id")
@click.option(
    "--full-scan",
    is_flag=True,
    help="Also sweep every stored refresh token for records without an index entry",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def revoke_user(ctx: click.Context, user_id: str, full_scan: bool, yes: bool) -> None:
    """Log a user out everywhere (sessions, refresh tokens, cache)."""
    try:
        if not _confirm(f"Revoke everything for '{user_id}'?", yes):
            console.print("[yellow]Operation cancelled[/yellow]")
            return

        settings = load_settings(ctx.obj["config"])
        summary = run_with_manager(
            settings, lambda manager: manager.revoke_user(user_id, full_scan)
        )

        table = Table(title=f"Revoked for {user_id}")
        table.add_column("Kind", style="cyan")
        table.add_column("Deleted", justify="right")
        for kind, count in summary.items():
            table.add_row(kind, str(count))
        console.print(table)

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@admin.command("metrics")
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Probe the store once and print Prometheus metrics."""
    try:
        settings = load_settings(ctx.obj["config"])
        run_with_manager(settings, lambda manager: manager.health_check())
        click.echo(get_metrics_text(), nl=False)

    except (StoreError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    admin()
