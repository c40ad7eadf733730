"""Entry point for the status page backend."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from statuspage.config import settings
from statuspage.health.checker import CycleReport, StatusChecker
from statuspage.health.engine import Verdict
from statuspage.health.store import open_store
from statuspage.targets.registry import TargetRegistry

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Status Page API", style="bold green"))
    uvicorn.run(
        "statuspage.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def _render_report(report: CycleReport) -> None:
    table = Table(title="Check cycle")
    table.add_column("Target")
    table.add_column("Group")
    table.add_column("OK")
    table.add_column("Status", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Error")
    for r in report.results:
        table.add_row(
            r.id,
            r.group,
            "[green]yes[/green]" if r.ok else "[red]no[/red]",
            str(r.status),
            f"{r.time}ms",
            r.error or "",
        )
    console.print(table)

    style = "bold green" if report.verdict.overall is Verdict.OPERATIONAL else "bold yellow"
    console.print(Panel(f"Overall: {report.verdict.overall.value}", style=style))


def run_check() -> int:
    """Run one check cycle against the configured store (cron entry point)."""
    registry = TargetRegistry(path=Path(settings.targets_file))
    registry.load()
    store = open_store(settings)
    checker = StatusChecker.from_settings(settings, registry, store)
    try:
        report = asyncio.run(checker.run_cycle())
    except Exception:
        logger.exception("Check cycle failed")
        return 1
    finally:
        store.close()

    _render_report(report)
    return 0


def list_targets() -> None:
    registry = TargetRegistry(path=Path(settings.targets_file))
    table = Table(title=f"Targets ({settings.targets_file})")
    table.add_column("ID")
    table.add_column("Group")
    table.add_column("URL")
    for t in registry.load():
        table.add_row(t.id, t.group, t.url)
    console.print(table)


def main() -> None:
    parser = argparse.ArgumentParser(description="Status page backend")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server (with the in-process scheduler)")
    sub.add_parser("check", help="Run one check cycle now and print the results")
    sub.add_parser("targets", help="List the registered targets")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        sys.exit(run_check())
    elif args.command == "targets":
        list_targets()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
