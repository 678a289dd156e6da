"""Entry point for the healthmon service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthmon.config import settings
from healthmon.db import Database
from healthmon.models import Outcome, format_ts
from healthmon.prober import Prober
from healthmon.registry import TargetRegistry
from healthmon.scheduler import ProbeScheduler
from healthmon.store import ResultStore, StorageError

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server (the scheduler starts with it)."""
    console.print(Panel("Starting healthmon API server", style="bold green"))
    uvicorn.run(
        "healthmon.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


async def _check_once(db: Database) -> list[Outcome]:
    prober = Prober(user_agent=settings.user_agent)
    scheduler = ProbeScheduler(
        TargetRegistry(db),
        ResultStore(db),
        prober,
        interval=settings.poll_interval_seconds,
        probe_timeout=settings.probe_timeout,
        max_concurrency=settings.max_concurrent_probes,
    )
    try:
        return await scheduler.tick()
    finally:
        await scheduler.stop()
        await prober.aclose()


def run_check() -> None:
    """Run a single tick and print the outcomes."""
    db = Database(settings.database_url)
    try:
        urls = {t.id: t.url for t in TargetRegistry(db).all()}
        with console.status("[bold green]Probing targets..."):
            outcomes = asyncio.run(_check_once(db))
    finally:
        db.close()

    if not outcomes:
        console.print("[dim]No targets registered[/dim]")
        return

    table = Table(title="Health checks")
    table.add_column("Target")
    table.add_column("Checked at")
    table.add_column("Status", justify="right")
    table.add_column("Latency", justify="right")
    for o in outcomes:
        if o.ok:
            style = "green" if o.status_code < 400 else "yellow" if o.status_code < 500 else "red"
            status = f"[{style}]{o.status_code}[/{style}]"
            latency = f"{o.latency_ms}ms"
        else:
            status, latency = "[red]error[/red]", "—"
        table.add_row(urls.get(o.target_id, str(o.target_id)), format_ts(o.observed_at), status, latency)
    console.print(table)


def run_targets(args: argparse.Namespace) -> None:
    """List, add or remove targets."""
    db = Database(settings.database_url)
    registry = TargetRegistry(db)
    try:
        if args.action == "add":
            target = registry.register(args.value)
            console.print(f"[green]#{target.id}[/green] {target.url}")
        elif args.action == "remove":
            if not registry.delete(int(args.value)):
                console.print(f"[red]Target not found: {args.value}[/red]")
                sys.exit(1)
            console.print(f"Removed target #{args.value}")
        else:
            for t in registry.all():
                console.print(f"[bold]#{t.id}[/bold] {t.url}")
    except (ValueError, StorageError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="healthmon — periodic HTTP health checks")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server and scheduler")
    sub.add_parser("check", help="Probe every target once and print the results")

    targets_parser = sub.add_parser("targets", help="Manage monitored targets")
    targets_parser.add_argument("action", choices=["list", "add", "remove"], nargs="?", default="list")
    targets_parser.add_argument("value", nargs="?", help="URL to add or target id to remove")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        run_check()
    elif args.command == "targets":
        if args.action != "list" and not args.value:
            parser.error(f"targets {args.action} requires a value")
        run_targets(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
