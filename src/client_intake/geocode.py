from __future__ import annotations

import logging
from typing import Optional

import requests

from .credentials import secret_value
from .errors import GeocodeError, SecretNotFoundError
from .http import DEFAULT_TIMEOUT, session_without_retries

log = logging.getLogger("client_intake.geocode")

OPENCAGE_URL = "https://api.opencagedata.com/geocode/v1/json"


class OpenCageGeocoder:
    """County lookup through OpenCage forward geocoding. Best-effort: never raises."""

    def __init__(
        self,
        credentials,
        secret_name: str = "OpenCageKey",
        secret_key: str = "OPENCAGE_KEY",
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.credentials = credentials
        self.secret_name = secret_name
        self.secret_key = secret_key
        self.session = session or session_without_retries()
        self.timeout = timeout

    def lookup(self, street: str, city: str, state: str, zipcode: str) -> Optional[str]:
        try:
            return self._fetch_county(street, city, state, zipcode)
        except GeocodeError as e:
            log.warning("County lookup failed: %s", e)
            return None

    def _fetch_county(self, street: str, city: str, state: str, zipcode: str) -> Optional[str]:
        try:
            key = secret_value(self.credentials, self.secret_name, self.secret_key)
        except SecretNotFoundError as e:
            raise GeocodeError(str(e)) from e

        query = f"{street}, {city}, {state}, {zipcode}"
        try:
            r = self.session.get(
                OPENCAGE_URL,
                params={"key": key, "q": query, "limit": 1},
                timeout=self.timeout,
            )
            r.raise_for_status()
            data = r.json()
        except requests.Timeout as e:
            raise GeocodeError(f"timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise GeocodeError(str(e)) from e
        except ValueError as e:
            raise GeocodeError(f"invalid JSON: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or not results:
            raise GeocodeError(f"no results for {query!r}")
        first = results[0]
        components = first.get("components") if isinstance(first, dict) else None
        if not isinstance(components, dict):
            raise GeocodeError(f"unexpected result shape for {query!r}")
        county = components.get("county")
        return county if isinstance(county, str) and county else None


class NullGeocoder:
    def lookup(self, street: str, city: str, state: str, zipcode: str) -> Optional[str]:
        return None
