"""
SugarStatus — Dexcom session cache.

Keeps the account ID and session ID derived from the Dexcom credentials in a
small JSON file so a restart doesn't have to log in again. The cache belongs
to one username; a record for anyone else is ignored.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from dexcom_errors import CacheWriteError

logger = logging.getLogger("sugarstatus.cache")


@dataclass
class SessionCache:
    """Identifiers derived for one Dexcom account."""

    username: str
    account_id: str = ""
    session_id: str = ""

    def to_json(self) -> dict:
        return asdict(self)

    @classmethod
    def from_json(cls, obj: object) -> Optional["SessionCache"]:
        """Build a cache record from decoded JSON, or None if the shape is wrong."""
        if not isinstance(obj, dict):
            return None
        fields = ("username", "account_id", "session_id")
        if not all(isinstance(obj.get(name), str) for name in fields):
            return None
        return cls(
            username=obj["username"],
            account_id=obj["account_id"],
            session_id=obj["session_id"],
        )


class SessionCacheStore:
    """JSON file holding the single SessionCache of this installation."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, username: str) -> Optional[SessionCache]:
        """Return the cached record for ``username``.

        Any problem reading the file (missing, unreadable, corrupt, written
        for another user) means there is no usable cache, and None is returned.
        """
        logger.debug("Trying to load the API cache from %s", self.path)
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No API cache at %s", self.path)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read the API cache: %s", exc)
            return None

        try:
            cache = SessionCache.from_json(json.loads(raw))
        except ValueError as exc:
            logger.warning("The API cache is not valid JSON, ignoring it: %s", exc)
            return None
        if cache is None:
            logger.warning("The API cache has an unexpected layout, ignoring it")
            return None

        if cache.username != username:
            logger.info("API cache belongs to another user, refreshing it")
            return None

        logger.debug("API cache is still valid")
        return cache

    def save(self, cache: SessionCache) -> None:
        """Write ``cache`` to disk, replacing the previous record.

        Raises CacheWriteError if the file can't be written.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(cache.to_json(), indent=2) + "\n", encoding="utf-8"
            )
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise CacheWriteError(
                f"Failed to write the API cache to {self.path}: {exc}"
            ) from exc
        logger.debug("Saved API cache to %s", self.path)
