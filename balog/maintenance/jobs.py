from enum import Enum
from typing import Callable, List

from sqlalchemy.orm import Session

from balog.db import store
from balog.db.models import Location, UNKNOWN_LOCATION
from balog.errors import EnrichmentError, StoreError
from balog.utils.logging import get_logger

log = get_logger(__name__)


class MaintenanceJob(str, Enum):
    LIST_UNKNOWN_IPS = "list_unknown_ips"
    RESOLVE_UNKNOWN_IPS = "resolve_unknown_ips"
    PURGE_LOGS = "purge_logs"


def list_unknown_ips(db: Session) -> List[Location]:
    return store.list_unknown_ips(db)


# -------------------------
# Resolve: retry geolocation of unknown ips
# -------------------------
def resolve_unknown_ips(db: Session, locate: Callable[[str], str]) -> List[Location]:
    """
    Try to resolve every cached ip whose location is unknown.

    Only the cache records are updated; ban action logs saved earlier keep
    the location they were enriched with.
    Returns all tried records, resolved or not.
    """
    tried = []
    for loc in store.list_unknown_ips(db):
        try:
            location = locate(loc.ip)
        except EnrichmentError as e:
            log.warning("Failed to resolve location of '%s': %s", loc.ip, e)
            location = ""

        # reserved ips like "127.0.0.1" come back empty
        if location and location != UNKNOWN_LOCATION:
            try:
                store.update_location(db, loc.ip, location)
            except StoreError as e:
                log.error("Failed to update location of '%s': %s", loc.ip, e)
            else:
                log.info("Resolved location of '%s': %s", loc.ip, location)

        tried.append(loc)

    return tried


def purge_logs(db: Session) -> int:
    purged = store.purge_logs(db)
    log.info("Purged %d ban action logs", purged)
    return purged
