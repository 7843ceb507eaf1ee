from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from balog.db.models import BanActionLog
from balog.errors import StoreError

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# report windows, in days
NUM_DAYS_FOR_REPORT1 = 7
NUM_DAYS_FOR_REPORT2 = 30


@dataclass
class SubReport:
    """Counts of ban actions in one lookback window.

    Both counters keep first-seen order; Counter.most_common() gives the
    stable descending order used by the text renderers.
    """
    days: int
    from_to: str
    total_count: int = 0
    protocol_counts: Counter = field(default_factory=Counter)
    country_counts: Counter = field(default_factory=Counter)


@dataclass
class Report:
    reference: datetime
    last_days_report1: SubReport
    last_days_report2: SubReport

    @property
    def sub_reports(self) -> tuple[SubReport, SubReport]:
        return (self.last_days_report1, self.last_days_report2)


def format_datetime(dt: datetime) -> str:
    return dt.strftime(DATETIME_FORMAT)


def _window(db: Session, reference: datetime, days: int) -> SubReport:
    start = reference - timedelta(days=days)
    sub = SubReport(
        days=days,
        from_to=f"{format_datetime(start)} ~ {format_datetime(reference)}",
    )

    # no upper bound: a negative offset only moves the start of the window
    try:
        logs = (
            db.query(BanActionLog)
            .filter(BanActionLog.created_at >= start)
            .order_by(BanActionLog.id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"failed to query ban actions of last {days} days: {e}") from e

    sub.total_count = len(logs)
    for bal in logs:
        sub.protocol_counts[bal.protocol] += 1
        if bal.location is not None:
            sub.country_counts[bal.location] += 1

    return sub


def generate_report(
    db: Session,
    offset_days: int = 0,
    days1: int = NUM_DAYS_FOR_REPORT1,
    days2: int = NUM_DAYS_FOR_REPORT2,
    now: Optional[datetime] = None,
) -> Report:
    """
    Count ban actions of the last `days1` and `days2` days.

    The windows end at `now + offset_days` (positive for future, negative for
    past). `now` defaults to the current UTC time and is read only once.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    reference = now + timedelta(days=offset_days)

    return Report(
        reference=reference,
        last_days_report1=_window(db, reference, days1),
        last_days_report2=_window(db, reference, days2),
    )
