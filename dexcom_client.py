"""
SugarStatus — Dexcom Share API client.

Talks to the (undocumented) Share web services directly. Logging in is a
two-step exchange: credentials give an account ID, and the account ID plus
password give a session ID. Both IDs are kept in the session cache so a
restart can skip the login. The session ID expires server-side; when Dexcom
says so, the client fetches a new one for the next call.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from config import CACHE_PATH
from dexcom_errors import (
    EmptyPasswordError,
    EmptyUsernameError,
    MaxRetriesReachedError,
    SessionInvalidError,
    ShareErrorResponse,
    TransportError,
    UnknownResponseError,
    error_from_response,
)
from session_cache import SessionCache, SessionCacheStore

logger = logging.getLogger("sugarstatus.dexcom")

APPLICATION_ID = "d89443d2-327c-4a6f-89e5-496bbb0317db"

BASE_URL_US = "https://share2.dexcom.com/ShareWebServices/Services"
BASE_URL_OUS = "https://shareous1.dexcom.com/ShareWebServices/Services"

ACCOUNT_ID_ENDPOINT = "General/AuthenticatePublisherAccount"
SESSION_ID_ENDPOINT = "General/LoginPublisherAccountById"
LATEST_GLUCOSE_ENDPOINT = "Publisher/ReadPublisherLatestGlucoseValues"

DEFAULT_MINUTES = 60     # look-back window for the latest reading
DEFAULT_MAX_COUNT = 1
DEFAULT_TIMEOUT = 10     # seconds, per request
MAX_SESSION_RENEWALS = 3

# Share trend names → arrows
TREND_ARROWS = {
    "None": "",
    "DoubleUp":      "\u21c8",   # ⇈
    "SingleUp":      "\u2191",   # ↑
    "FortyFiveUp":   "\u2197",   # ↗
    "Flat":          "\u2192",   # →
    "FortyFiveDown": "\u2198",   # ↘
    "SingleDown":    "\u2193",   # ↓
    "DoubleDown":    "\u21ca",   # ⇊
    "NotComputable": "?",
    "RateOutOfRange": "-",
}

# WT/ST/DT look like "Date(1691455258000)" or "Date(1691455258000-0400)"
_DATE_RE = re.compile(r"^Date\((-?\d+)(?:[+-]\d{4})?\)$")


@dataclass(frozen=True)
class GlucoseReading:
    """One reading as returned by ReadPublisherLatestGlucoseValues."""

    wt: str
    st: str
    dt: str
    value: int   # mg/dL
    trend: str

    @classmethod
    def from_json(cls, obj: Any) -> Optional["GlucoseReading"]:
        if not isinstance(obj, dict):
            return None
        value = obj.get("Value")
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        if not all(isinstance(obj.get(key), str) for key in ("WT", "ST", "DT", "Trend")):
            return None
        return cls(
            wt=obj["WT"],
            st=obj["ST"],
            dt=obj["DT"],
            value=value,
            trend=obj["Trend"],
        )

    @property
    def timestamp(self) -> Optional[datetime]:
        """When the reading was taken (UTC), or None if WT is not a Date(...) value."""
        match = _DATE_RE.match(self.wt)
        if not match:
            return None
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)

    @property
    def trend_arrow(self) -> str:
        return TREND_ARROWS.get(self.trend, "?")


def _load_json(body: str) -> Any:
    """Decode a response body; None if it isn't JSON."""
    try:
        return json.loads(body)
    except ValueError:
        return None


def _parse_readings(data: Any) -> Optional[list[GlucoseReading]]:
    """Return the readings in a decoded body, or None if it isn't a reading list."""
    if not isinstance(data, list):
        return None
    readings = [GlucoseReading.from_json(item) for item in data]
    if any(reading is None for reading in readings):
        return None
    return readings


class DexcomShare:
    """Session manager for one Dexcom Share publisher account.

    Construction logs in unless the cache already holds IDs for
    ``username``. Use it as a context manager (or call close()) so the cache
    is written back when you're done.

    Not thread-safe: renewing the session rewrites shared state and the
    cache file. Use one instance from one caller.
    """

    def __init__(
        self,
        username: str,
        password: str,
        *,
        cache_store: Optional[SessionCacheStore] = None,
        http: Optional[requests.Session] = None,
        outside_us: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not username:
            raise EmptyUsernameError()
        if not password:
            raise EmptyPasswordError()

        if cache_store is None:
            cache_store = SessionCacheStore(CACHE_PATH)

        self._password = password
        self._cache_store = cache_store
        self._base_url = BASE_URL_OUS if outside_us else BASE_URL_US
        self._timeout = timeout
        self._owns_http = http is None
        self._http = http if http is not None else requests.Session()
        self._renewals = 0

        cached = cache_store.load(username)
        if cached is not None:
            self.cache = cached
            return

        self.cache = SessionCache(username=username)
        try:
            self.cache.account_id = self._get_account_id()
            self.cache.session_id = self._get_session_id()
            self.save()
        except Exception:
            self._close_http()
            raise

    # -- Scoped use --

    def __enter__(self) -> "DexcomShare":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def save(self) -> None:
        """Persist the current account and session IDs."""
        self._cache_store.save(self.cache)

    def close(self) -> None:
        """Persist the cache and release the HTTP session if we created it."""
        try:
            self.save()
        finally:
            self._close_http()

    def _close_http(self) -> None:
        if self._owns_http:
            self._http.close()

    # -- Protocol --

    def _post(self, endpoint: str, payload: dict) -> str:
        url = f"{self._base_url}/{endpoint}"
        try:
            response = self._http.post(url, json=payload, timeout=self._timeout)
            return response.text
        except requests.RequestException as exc:
            raise TransportError(f"Request to {endpoint} failed: {exc}") from exc

    def _derive_identifier(self, endpoint: str, payload: dict, what: str) -> str:
        """Run one login exchange; the service answers with a bare JSON string."""
        body = self._post(endpoint, payload)
        data = _load_json(body)

        if isinstance(data, str):
            return data

        error = ShareErrorResponse.from_json(data)
        if error is not None:
            logger.error("Failed to get %s: %s", what, error)
            raise error_from_response(error, body)

        logger.error("Failed to get %s, unexpected response: %r", what, body)
        raise UnknownResponseError(body)

    def _get_account_id(self) -> str:
        logger.debug("Getting account ID...")
        return self._derive_identifier(
            ACCOUNT_ID_ENDPOINT,
            {
                "accountName": self.cache.username,
                "password": self._password,
                "applicationId": APPLICATION_ID,
            },
            "account ID",
        )

    def _get_session_id(self) -> str:
        logger.debug("Getting session ID...")
        return self._derive_identifier(
            SESSION_ID_ENDPOINT,
            {
                "accountId": self.cache.account_id,
                "password": self._password,
                "applicationId": APPLICATION_ID,
            },
            "session ID",
        )

    def _renew_session(self, cause: SessionInvalidError) -> None:
        if self._renewals >= MAX_SESSION_RENEWALS:
            attempts = self._renewals
            self._renewals = 0
            raise MaxRetriesReachedError(attempts) from cause

        self._renewals += 1
        logger.info("Dexcom session expired, renewing it (attempt %d)", self._renewals)
        self.cache.session_id = self._get_session_id()
        self.save()

    def get_latest_reading(self) -> Optional[GlucoseReading]:
        """Fetch the most recent reading from the last hour.

        Returns None when Dexcom has no reading in that window.

        If Dexcom reports the session as expired, a new session ID is fetched
        and saved, and SessionInvalidError is still raised: call again to get
        the reading. After MAX_SESSION_RENEWALS renewals in a row without a
        successful query, MaxRetriesReachedError is raised instead.
        """
        body = self._post(
            LATEST_GLUCOSE_ENDPOINT,
            {
                "sessionId": self.cache.session_id,
                "minutes": DEFAULT_MINUTES,
                "maxCount": DEFAULT_MAX_COUNT,
            },
        )
        data = _load_json(body)

        readings = _parse_readings(data)
        if readings is not None:
            self._renewals = 0
            if not readings:
                return None
            if len(readings) > DEFAULT_MAX_COUNT:
                logger.debug("Ignoring %d extra readings", len(readings) - 1)
            return readings[0]

        error = ShareErrorResponse.from_json(data)
        if error is None:
            logger.error("Failed to get glucose reading, unexpected response: %r", body)
            raise UnknownResponseError(body)

        exc = error_from_response(error, body)
        logger.error("Failed to get glucose reading: %s", error)
        if isinstance(exc, SessionInvalidError):
            self._renew_session(exc)
        raise exc
