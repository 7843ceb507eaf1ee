from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from balog.db.models import BanActionLog, Location, UNKNOWN_LOCATION
from balog.errors import StoreError
from balog.utils.logging import get_logger

log = get_logger(__name__)


def _fail(db: Session, message: str, exc: SQLAlchemyError) -> StoreError:
    db.rollback()
    log.debug("%s: %s", message, exc)
    return StoreError(f"{message}: {exc}")


# -------------------------
# Ban action logs
# -------------------------
def save_ban_action(db: Session, protocol: str, ip: str, created_at: Optional[datetime] = None) -> int:
    """Insert a ban action with no location yet and return its id."""
    bal = BanActionLog(
        protocol=protocol,
        ip=ip,
        created_at=created_at or datetime.now(timezone.utc),
    )
    try:
        db.add(bal)
        db.commit()
    except SQLAlchemyError as e:
        raise _fail(db, "failed to save ban action", e) from e
    return bal.id


def update_ban_action_location(db: Session, ban_action_id: int, location: str) -> bool:
    """Set the location of ban action `ban_action_id`. Returns False if no such row exists."""
    try:
        res = db.execute(
            update(BanActionLog).where(BanActionLog.id == ban_action_id).values(location=location)
        )
        db.commit()
    except SQLAlchemyError as e:
        raise _fail(db, f"failed to update location of ban action {ban_action_id}", e) from e
    return res.rowcount == 1


def purge_logs(db: Session) -> int:
    """Delete every ban action log; cached locations are kept."""
    try:
        res = db.execute(delete(BanActionLog))
        db.commit()
    except SQLAlchemyError as e:
        raise _fail(db, "failed to purge logs", e) from e
    return res.rowcount


# -------------------------
# Location cache
# -------------------------
def lookup_location(db: Session, ip: str) -> Location:
    """
    Return the cached location of `ip`.
    On a miss, returns a transient Location with id 0 (see Location.is_cached).
    """
    try:
        cached = db.query(Location).filter(Location.ip == ip).first()
    except SQLAlchemyError as e:
        raise _fail(db, f"failed to lookup location of {ip}", e) from e
    if cached is None:
        return Location(id=0, ip=ip, country_name="")
    return cached


def save_location(db: Session, ip: str, country_name: str) -> int:
    """Insert a cache record. Fails with StoreError if `ip` is already cached."""
    loc = Location(ip=ip, country_name=country_name)
    try:
        db.add(loc)
        db.commit()
    except SQLAlchemyError as e:
        raise _fail(db, f"failed to save location for {ip}", e) from e
    return loc.id


def update_location(db: Session, ip: str, country_name: str) -> bool:
    try:
        res = db.execute(
            update(Location).where(Location.ip == ip).values(country_name=country_name)
        )
        db.commit()
    except SQLAlchemyError as e:
        raise _fail(db, f"failed to update location for {ip}", e) from e
    return res.rowcount == 1


def list_unknown_ips(db: Session) -> List[Location]:
    try:
        return (
            db.query(Location)
            .filter(Location.country_name == UNKNOWN_LOCATION)
            .order_by(Location.id)
            .all()
        )
    except SQLAlchemyError as e:
        raise _fail(db, "failed to list unknown ips", e) from e
