"""Typer CLI for EventBoard."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .config import (
    load_settings,
    settings,
    settings_as_dict,
    update_config_file,
)
from .seed import seed_fake_data
from .storage import init_db, upgrade_database

app = typer.Typer(help="EventBoard command-line interface")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the SQLite database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        message = str(getattr(exc, "orig", exc)).lower()
        if "readonly" in message or "read-only" in message:
            typer.secho(
                "Unable to upgrade because the database is read-only. "
                f"Ensure write access to {settings.database_path}.",
                err=True,
                fg=typer.colors.RED,
            )
            raise typer.Exit(code=1)
        raise

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start the FastAPI app under uvicorn."""
    init_db()
    config = uvicorn.Config(
        "eventboard.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    typer.echo(f"Starting EventBoard on {host}:{port}")
    server.run()


@app.command("seed-data")
def seed_data(
    users: int = typer.Option(
        settings.seed_users, "--users", min=1, help="Number of users to create"
    ),
    max_events: int = typer.Option(
        settings.seed_events_per_user,
        "--max-events",
        min=0,
        help="Maximum events created by each user",
    ),
    max_rsvps: int = typer.Option(
        settings.seed_rsvps_per_event,
        "--max-rsvps",
        min=0,
        help="Maximum RSVPs to attach to each event",
    ),
    published_percent: int = typer.Option(
        settings.seed_published_percent,
        "--published-percent",
        min=0,
        max=100,
        help="Percentage of events that should be published (0-100)",
    ),
    private_percent: int = typer.Option(
        settings.seed_private_percent,
        "--private-percent",
        min=0,
        max=100,
        help="Percentage of events that should be private (0-100)",
    ),
):
    """Populate the database with fake users, events, and RSVPs."""
    stats = seed_fake_data(
        user_count=users,
        max_events_per_user=max_events,
        max_rsvps_per_event=max_rsvps,
        published_percentage=published_percent,
        private_percentage=private_percent,
    )
    typer.echo(
        f"Seed complete: {stats['users']} users, {stats['events']} events, "
        f"{stats['rsvps']} RSVPs created."
    )
    typer.echo("Session tokens (use as 'Authorization: Bearer <token>'):")
    for email, token in stats["tokens"].items():
        typer.echo(f"  {email}: {token}")


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    host: str | None = typer.Option(None, "--host", help="Default host for runserver"),
    port: int | None = typer.Option(None, "--port", help="Default port for runserver"),
    config_path: Path | None = typer.Option(
        None,
        "--config-path",
        help="Path to eventboard.toml (default: ./eventboard.toml)",
    ),
    events_per_page: int | None = typer.Option(
        None, "--events-per-page", min=1, help="Default public page size"
    ),
    max_events_per_page: int | None = typer.Option(
        None,
        "--max-events-per-page",
        min=1,
        help="Largest page size a client may request",
    ),
    seed_users: int | None = typer.Option(
        None, "--seed-users", min=1, help="Default seed-data users"
    ),
    seed_events_per_user: int | None = typer.Option(
        None, "--seed-events-per-user", min=0, help="Default seed-data events/user"
    ),
    seed_rsvps_per_event: int | None = typer.Option(
        None, "--seed-rsvps-per-event", min=0, help="Default seed-data RSVPs per event"
    ),
    seed_published_percent: int | None = typer.Option(
        None,
        "--seed-published-percent",
        min=0,
        max=100,
        help="Default percent of published events for seed-data",
    ),
    seed_private_percent: int | None = typer.Option(
        None,
        "--seed-private-percent",
        min=0,
        max=100,
        help="Default percent of private events for seed-data",
    ),
):
    """View or update the persistent configuration file."""

    updates = {
        "app_host": host,
        "app_port": port,
        "events_per_page": events_per_page,
        "max_events_per_page": max_events_per_page,
        "seed_users": seed_users,
        "seed_events_per_user": seed_events_per_user,
        "seed_rsvps_per_event": seed_rsvps_per_event,
        "seed_published_percent": seed_published_percent,
        "seed_private_percent": seed_private_percent,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}

    target_path = config_path or settings.config_path
    if clean_updates:
        settings_ref = update_config_file(clean_updates, path=target_path)
        typer.echo(f"Updated configuration in {target_path}")
    else:
        settings_ref = load_settings(target_path)
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))


@app.command("test")
def run_tests(
    pytest_args: list[str] = typer.Argument(None, help="Extra arguments passed to pytest"),
) -> None:
    """Run the EventBoard test suite from the project root."""
    project_root = Path(__file__).resolve().parent.parent
    cmd = [sys.executable, "-m", "pytest", *(pytest_args or [])]
    typer.echo(f"Running tests in {project_root}: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=project_root)
    raise typer.Exit(code=result.returncode)


if __name__ == "__main__":
    app()
