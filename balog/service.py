"""
Operations behind the `balog` commands and http routes.

External services are passed in as plain callables so the same code runs
with the real clients (see `collaborators`) or with fakes in tests:

* locate(ip) -> country name
* summarize(system_instruction, older_report, recent_report) -> insight text
* publish(title, author_name, author_url, html) -> page url
"""

import socket
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from balog.analytics.render import PROJECT_URL, ReportFormat, render
from balog.analytics.report import (
    NUM_DAYS_FOR_REPORT1,
    NUM_DAYS_FOR_REPORT2,
    Report,
    format_datetime,
    generate_report,
)
from balog.config import APPLICATION_NAME, Config
from balog.errors import CollaboratorError, RenderError, StoreError
from balog.ingest import geolocation
from balog.ingest.ban import save_ban_action_with_location
from balog.insight import gemini
from balog.insight.gemini import SYSTEM_INSTRUCTION_FOR_INSIGHT_GENERATION
from balog.maintenance import jobs
from balog.publish import telegraph
from balog.utils.logging import get_logger

log = get_logger(__name__)

# older report = same windows, this many days before
NUM_DAYS_BEFORE_FOR_OLDER_REPORT = 7

Locate = Callable[[str], str]
Summarize = Callable[[str, str, str], str]
Publish = Callable[[str, str, str, str], str]


@dataclass(frozen=True)
class Collaborators:
    locate: Locate
    summarize: Optional[Summarize] = None
    publish: Optional[Publish] = None


def collaborators(config: Config) -> Collaborators:
    """Build the external service clients the config has credentials for."""
    return Collaborators(
        locate=geolocation.locator(config.ipgeolocation_api_key),
        summarize=gemini.summarizer(config.google_ai_api_key) if config.google_ai_api_key else None,
        publish=telegraph.publisher(config.telegraph_access_token) if config.telegraph_access_token else None,
    )


def save(db: Session, protocol: str, ip: str, locate: Locate) -> int:
    return save_ban_action_with_location(db, protocol, ip, locate)


# -------------------------
# Report
# -------------------------
def _insight(
    db: Session,
    fmt: ReportFormat,
    current: Report,
    offset_days: int,
    now: datetime,
    summarize: Summarize,
) -> Optional[str]:
    # html is a poor input for the summarizer, compare plain text reports instead
    if fmt is ReportFormat.TELEGRAPH:
        fmt = ReportFormat.PLAIN

    try:
        older_report = generate_report(
            db,
            offset_days - NUM_DAYS_BEFORE_FOR_OLDER_REPORT,
            NUM_DAYS_FOR_REPORT1,
            NUM_DAYS_FOR_REPORT2,
            now=now,
        )
        older = render(fmt, older_report)
        recent = render(fmt, current)
    except (StoreError, RenderError) as e:
        log.warning("Failed to generate the older report for insights: %s", e)
        return None

    try:
        return summarize(SYSTEM_INSTRUCTION_FOR_INSIGHT_GENERATION, older, recent)
    except CollaboratorError as e:
        log.warning("Failed to generate insights: %s", e)
        return None


def page_title(reference: datetime, hostname: Optional[str] = None) -> str:
    if hostname is None:
        hostname = socket.gethostname()
    title = f"Balog Report: {format_datetime(reference)}"
    if hostname:
        return f"[{hostname}] {title}"
    return title


def report(
    db: Session,
    fmt: ReportFormat,
    offset_days: int = 0,
    *,
    summarize: Optional[Summarize] = None,
    publish: Optional[Publish] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Generate a report of the windows ending `offset_days` from now.

    With `summarize`, an insight comparing it against the report of one week
    earlier is appended. In telegraph format the page is published with
    `publish` and its url is returned instead of the html.
    """
    fmt = ReportFormat(fmt)
    if fmt is ReportFormat.TELEGRAPH and publish is None:
        raise CollaboratorError("telegraph access token is not configured")

    if now is None:
        now = datetime.now(timezone.utc)

    current = generate_report(db, offset_days, NUM_DAYS_FOR_REPORT1, NUM_DAYS_FOR_REPORT2, now=now)
    insight = _insight(db, fmt, current, offset_days, now, summarize) if summarize else None
    body = render(fmt, current, insight)

    if fmt is not ReportFormat.TELEGRAPH:
        return body

    hostname = socket.gethostname()
    return publish(
        page_title(now + timedelta(days=offset_days), hostname),
        f"{APPLICATION_NAME} ({hostname})",
        PROJECT_URL,
        body,
    )


# -------------------------
# Maintenance
# -------------------------
def list_unknown_ips(db: Session) -> List[str]:
    return [loc.ip for loc in jobs.list_unknown_ips(db)]


def resolve_unknown_ips(db: Session, locate: Locate) -> List[Tuple[str, str]]:
    return [(loc.ip, loc.country_name) for loc in jobs.resolve_unknown_ips(db, locate)]


def purge_logs(db: Session) -> int:
    return jobs.purge_logs(db)
