"""CLI interface for payaudit.

Provides commands for:
- Starting the audit server
- Exporting an employer's audit trail
- Printing entry statistics and the resolved audit configuration
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path

import click
import uvicorn

from payaudit import __version__
from payaudit.audit.query import LogQueryService
from payaudit.config import get_audit_config, get_settings
from payaudit.db import AuditStore, close_db, get_engine, init_db
from payaudit.enums import ActionType, ExportFormat, LogLevel
from payaudit.logging import stdlib_level_name
from payaudit.schemas.audit import ExportFilters, LogStatistics

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


async def _with_query_service(operation):
    engine = get_engine()
    try:
        await init_db(engine)
        return await operation(LogQueryService(AuditStore(engine)))
    finally:
        await close_db()


@click.group()
@click.version_option(version=__version__, prog_name="payaudit")
def cli() -> None:
    """payaudit - structured audit logging for payroll streaming.

    Records stream creation, contract calls, scheduler runs and treasury
    checks, and exports them for compliance review.
    """
    pass


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the audit server."""
    settings = get_settings()
    actual_host = host or settings.host
    actual_port = port or settings.port

    click.echo(f"Starting payaudit server on {actual_host}:{actual_port}")
    uvicorn.run(
        "payaudit.server:app",
        host=actual_host,
        port=actual_port,
        reload=reload,
        log_level=stdlib_level_name(settings.log_level).lower(),
    )


@cli.command()
@click.argument("employer")
@click.option(
    "--format",
    "export_format",
    type=click.Choice([f.value for f in ExportFormat], case_sensitive=False),
    default=ExportFormat.JSON.value,
    show_default=True,
    help="Output format",
)
@click.option("--since", type=click.DateTime(_DATE_FORMATS), default=None, help="Inclusive start")
@click.option("--until", type=click.DateTime(_DATE_FORMATS), default=None, help="Inclusive end")
@click.option(
    "--level",
    type=click.Choice([lvl.value for lvl in LogLevel], case_sensitive=False),
    default=None,
    help="Only entries of this level",
)
@click.option(
    "--action",
    type=click.Choice([a.value for a in ActionType], case_sensitive=False),
    default=None,
    help="Only entries of this action type",
)
@click.option("--limit", type=click.IntRange(min=1), default=1000, show_default=True)
@click.option("--offset", type=click.IntRange(min=0), default=0, show_default=True)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout",
)
def export(
    employer: str,
    export_format: str,
    since: datetime | None,
    until: datetime | None,
    level: str | None,
    action: str | None,
    limit: int,
    offset: int,
    output: Path | None,
) -> None:
    """Export EMPLOYER's audit entries as JSON or CSV."""
    filters = ExportFilters(
        format=ExportFormat(export_format.lower()),
        start_date=since,
        end_date=until,
        log_level=LogLevel(level.upper()) if level else None,
        action_type=ActionType(action.lower()) if action else None,
        limit=limit,
        offset=offset,
    )

    async def run(service: LogQueryService) -> str:
        return await service.export(employer, filters)

    document = asyncio.run(_with_query_service(run))

    if output is None:
        click.echo(document)
        return
    output.write_text(document, encoding="utf-8")
    click.echo(click.style(f"Wrote {filters.format.value} export to {output}", fg="green"))


@cli.command()
@click.option("--employer", "-e", default=None, help="Restrict to one employer")
def stats(employer: str | None) -> None:
    """Show entry counts by level and by action type."""

    async def run(service: LogQueryService) -> LogStatistics:
        return await service.statistics(employer)

    result = asyncio.run(_with_query_service(run))

    scope = employer or "all employers"
    click.echo(f"Audit entries for {scope}: {result.total}\n")
    if not result.total:
        return

    click.echo(click.style("By level:", bold=True))
    for name, count in sorted(result.by_level.items()):
        click.echo(f"  {name:<22}{count}")
    click.echo(click.style("By action type:", bold=True))
    for name, count in sorted(result.by_action_type.items()):
        click.echo(f"  {name:<22}{count}")


@cli.command("config")
def show_config() -> None:
    """Print the resolved audit configuration as JSON."""
    click.echo(json.dumps(get_audit_config().model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
