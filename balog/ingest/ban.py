from typing import Callable

from sqlalchemy.orm import Session

from balog.db import store
from balog.db.models import UNKNOWN_LOCATION
from balog.errors import EnrichmentError, StoreError
from balog.utils.logging import get_logger

log = get_logger(__name__)


# -------------------------
# Save: ban action + geolocation
# -------------------------
def save_ban_action_with_location(
    db: Session,
    protocol: str,
    ip: str,
    locate: Callable[[str], str],
) -> int:
    """
    Save a ban action, then resolve its location through the cache.

    Only the insert of the ban action itself may fail (StoreError); every
    enrichment step after it is logged and skipped on failure.
    """
    ban_action_id = store.save_ban_action(db, protocol, ip)

    try:
        cached = store.lookup_location(db, ip)
    except StoreError as e:
        log.error("Failed to lookup location of '%s': %s", ip, e)
        return ban_action_id

    if cached.is_cached:
        location = cached.country_name
    else:
        # not cached yet: fetch it, and cache whatever we got
        try:
            location = locate(ip)
        except EnrichmentError as e:
            log.warning("Failed to fetch location: %s", e)
            location = ""
        if not location:
            location = UNKNOWN_LOCATION

        try:
            store.save_location(db, ip, location)
        except StoreError as e:
            log.error("Failed to save location for '%s': %s", ip, e)

    try:
        if not store.update_ban_action_location(db, ban_action_id, location):
            log.error("Failed to update location of ban action '%d': no such row", ban_action_id)
    except StoreError as e:
        log.error("Failed to update location of ban action '%d': %s", ban_action_id, e)

    return ban_action_id
