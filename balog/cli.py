from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from sqlalchemy.orm import Session

from balog import service
from balog.analytics.render import ReportFormat
from balog.config import APPLICATION_NAME, Config, load_config
from balog.db.database import create_db_engine, create_session_factory
from balog.db.models import UNKNOWN_LOCATION
from balog.errors import BalogError
from balog.maintenance.jobs import MaintenanceJob
from balog.publish.telegraph import TelegraphClient
from balog.utils.logging import get_logger, setup_logging

app = typer.Typer(help="Log fail2ban ban actions and generate reports of them.")

log = get_logger(__name__)


@contextmanager
def _open_db(config: Config) -> Iterator[Session]:
    engine = create_db_engine(config.db_filepath)
    db = create_session_factory(engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


def _fail(message: str, e: Exception) -> typer.Exit:
    log.error("%s: %s", message, e)
    return typer.Exit(code=1)


@app.callback()
def main(
        ctx: typer.Context,
        config: Optional[Path] = typer.Option(
            None,
            "--config",
            "-c",
            help=f"Config filepath (default: $XDG_CONFIG_HOME/{APPLICATION_NAME}/config.json).",
        ),
        verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    setup_logging(verbose)
    try:
        ctx.obj = load_config(config)
    except BalogError as e:
        raise _fail("Failed to load config", e)


@app.command()
def save(
        ctx: typer.Context,
        ip: str = typer.Option(..., "--ip", help="IP address of the ban action."),
        protocol: str = typer.Option(..., "--protocol", "-p", help="Protocol (jail name) of the ban action."),
):
    """
    Save a ban action and resolve its geolocation.
    """
    config: Config = ctx.obj
    locate = service.collaborators(config).locate
    try:
        with _open_db(config) as db:
            ban_action_id = service.save(db, protocol, ip, locate)
    except BalogError as e:
        raise _fail("Failed to save ban action", e)
    log.debug("Saved ban action %d (%s, %s)", ban_action_id, protocol, ip)


@app.command()
def report(
        ctx: typer.Context,
        format: ReportFormat = typer.Option(..., "--format", "-f", help="Output format: plain | json | telegraph"),
        offset_days: int = typer.Option(
            0,
            "--offset-days",
            help="Move the reference datetime by this many days (negative for past).",
        ),
):
    """
    Generate a report of the last 7 and 30 days.
    """
    config: Config = ctx.obj

    if format is ReportFormat.TELEGRAPH and not config.telegraph_access_token:
        # one-time setup: mint a token for the operator to store in the config file
        try:
            client = TelegraphClient.create(APPLICATION_NAME, "Ban Action Logger")
        except BalogError as e:
            raise _fail("Failed to create telegraph client", e)
        typer.echo(
            f"Add '{client.access_token}' to your {APPLICATION_NAME}'s configuration file "
            "with key `telegraph_access_token`"
        )
        raise typer.Exit(code=0)

    clients = service.collaborators(config)
    try:
        with _open_db(config) as db:
            result = service.report(
                db,
                format,
                offset_days,
                summarize=clients.summarize,
                publish=clients.publish,
            )
    except BalogError as e:
        raise _fail("Failed to generate report", e)

    typer.echo(result)


@app.command()
def maintenance(
        ctx: typer.Context,
        job: MaintenanceJob = typer.Option(
            ...,
            "--job",
            "-j",
            help="Job to perform: list_unknown_ips | resolve_unknown_ips | purge_logs",
        ),
):
    """
    Perform a maintenance job on the database.
    """
    config: Config = ctx.obj

    try:
        with _open_db(config) as db:
            if job is MaintenanceJob.LIST_UNKNOWN_IPS:
                ips = service.list_unknown_ips(db)
                typer.echo("Unknown IPs:\n\n" + "\n".join(ips))
            elif job is MaintenanceJob.RESOLVE_UNKNOWN_IPS:
                locate = service.collaborators(config).locate
                tried = service.resolve_unknown_ips(db, locate)
                unresolved = sum(1 for _, country in tried if country == UNKNOWN_LOCATION)
                typer.echo(f"Newly resolved IPs: {len(tried) - unresolved}\nStill unresolved: {unresolved}")
            else:
                typer.echo(f"Purged {service.purge_logs(db)} logs.")
    except BalogError as e:
        raise _fail(f"Failed to perform maintenance job '{job.value}'", e)


if __name__ == "__main__":
    app()
