"""
SugarStatus — Dexcom → Discord status poller.

Every few minutes, fetches the latest glucose reading from Dexcom Share and
puts it in the Discord custom status. Runs forever unless --once is given.

Usage:
    python3 poller.py              # poll forever
    python3 poller.py --once       # update the status once and exit
    python3 poller.py --dry-run    # print the status instead of sending it
"""

import argparse
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

import requests

from config import CACHE_PATH, LOG_DIR, ConfigError, load_config
from dexcom_client import DexcomShare
from dexcom_errors import DexcomError, SessionInvalidError
from discord_client import DiscordError, set_status
from session_cache import SessionCacheStore
from status import ERROR_STATUS, format_status

logger = logging.getLogger("sugarstatus")


def configure_logging(log_dir: Path = LOG_DIR) -> None:
    """Send everything under the sugarstatus logger to a rotating log file."""
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.DEBUG)

    # Rotating file handler: 5 MB max, keep 3 backups
    file_handler = RotatingFileHandler(
        str(log_dir / "poller.log"),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    )
    logger.addHandler(file_handler)


def next_status(dexcom: DexcomShare) -> Optional[str]:
    """Return the status text for the latest reading.

    None means there is nothing to update (no reading in the last hour).
    SessionInvalidError is re-raised: the session was just renewed and the
    caller should ask again right away.
    """
    try:
        reading = dexcom.get_latest_reading()
    except SessionInvalidError:
        raise
    except DexcomError as exc:
        logger.error("Failed to get latest glucose reading: %s", exc)
        return ERROR_STATUS

    if reading is None:
        logger.warning("No glucose reading returned from Dexcom")
        return None

    logger.info(
        "Fetched reading: %d mg/dL %s (%s) at %s",
        reading.value, reading.trend_arrow, reading.trend, reading.timestamp or reading.wt,
    )
    return format_status(reading.value)


def run(
    dexcom: DexcomShare,
    discord_token: str,
    *,
    interval: float,
    once: bool = False,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll Dexcom and update the Discord status every ``interval`` seconds."""
    immediate = True  # first pass doesn't wait

    while True:
        if not immediate:
            sleep(interval)
        immediate = False

        try:
            status = next_status(dexcom)
        except SessionInvalidError:
            logger.debug("Dexcom session expired, retrying with the new session")
            immediate = True
            continue

        if status is not None:
            if dry_run:
                print(f"Would set status: {status}")
            else:
                try:
                    set_status(discord_token, status)
                    logger.info("Status set: %s", status)
                    print(f"Status set: {status}")
                except (DiscordError, requests.RequestException) as exc:
                    logger.warning("Failed to update Discord status: %s", exc)

        if once:
            return


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show your latest Dexcom glucose reading as your Discord status"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Update the status once and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the status instead of sending it to Discord",
    )
    args = parser.parse_args(argv)

    configure_logging()

    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}")
        return 1

    region = "outside US" if config.outside_us else "US"
    logger.info("Connecting to Dexcom Share (region=%s)", region)
    with DexcomShare(
        config.dexcom_username,
        config.dexcom_password,
        cache_store=SessionCacheStore(CACHE_PATH),
        outside_us=config.outside_us,
        timeout=config.request_timeout,
    ) as dexcom:
        run(
            dexcom,
            config.discord_token,
            interval=config.poll_interval,
            once=args.once,
            dry_run=args.dry_run,
        )
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        logger.exception("Fatal error during polling: %s", exc)
        print(f"Error: {exc}")
        sys.exit(1)
