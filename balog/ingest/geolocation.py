from typing import Optional

import requests

from balog.db.models import UNKNOWN_LOCATION
from balog.errors import EnrichmentError

IPGEOLOCATION_API_URL = "https://api.ipgeolocation.io/ipgeo"
REQUEST_TIMEOUT_SECONDS = 10


def fetch_location(api_key: Optional[str], ip: str, timeout: float = REQUEST_TIMEOUT_SECONDS) -> str:
    """
    Fetch the country name of `ip` from ipgeolocation.io.

    Returns UNKNOWN_LOCATION without a request when no api key is configured.
    May return an empty string (eg. for reserved ips like "127.0.0.1").
    Raises EnrichmentError when the request fails.
    """
    if not api_key:
        return UNKNOWN_LOCATION

    try:
        resp = requests.get(
            IPGEOLOCATION_API_URL,
            params={"apiKey": api_key, "ip": ip, "fields": "country_name"},
            timeout=timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise EnrichmentError(f"failed to fetch location of {ip}: {e}") from e

    if not isinstance(payload, dict):
        raise EnrichmentError(f"failed to fetch location of {ip}: unexpected response {payload!r}")
    return payload.get("country_name") or ""


def locator(api_key: Optional[str]):
    """Bind `api_key` and return an ip -> country name callable."""
    def locate(ip: str) -> str:
        return fetch_location(api_key, ip)
    return locate
