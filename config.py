"""
SugarStatus — configuration.

Settings live in a .env file in the project directory (~/SugarStatus by
default, override with SUGARSTATUS_DIR). Variables already set in the
environment take precedence over the file. On first run the file doesn't
exist yet: a blank template is written and ConfigError asks the user to
fill it in.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# -- Paths --
PROJECT_DIR = Path(os.environ.get("SUGARSTATUS_DIR", Path.home() / "SugarStatus"))
ENV_PATH = PROJECT_DIR / ".env"
LOG_DIR = PROJECT_DIR / "logs"
CACHE_PATH = PROJECT_DIR / "data" / "api_cache.json"

DEFAULT_POLL_INTERVAL = 300      # seconds between status updates
DEFAULT_REQUEST_TIMEOUT = 10     # seconds, per HTTP request

ENV_TEMPLATE = """\
# SugarStatus settings
DEXCOM_USERNAME=
DEXCOM_PASSWORD=
DEXCOM_OUTSIDE_US=false
DISCORD_TOKEN=
POLL_INTERVAL_SECONDS=300
REQUEST_TIMEOUT_SECONDS=10
"""


class ConfigError(Exception):
    """The configuration is missing or incomplete."""


@dataclass(frozen=True)
class Config:
    dexcom_username: str
    dexcom_password: str
    discord_token: str
    outside_us: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def write_template(env_path: Path) -> None:
    """Write a blank settings file for the user to edit."""
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
    os.chmod(env_path, 0o600)  # holds credentials


def _positive_number(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be greater than zero")
    return value


def load_config(env_path: Path = ENV_PATH) -> Config:
    """Load settings from ``env_path`` and the environment.

    Raises ConfigError if the file had to be created or a required
    setting is empty.
    """
    env_path = Path(env_path)
    if not env_path.exists():
        write_template(env_path)
        raise ConfigError(
            f"Created a new config file at {env_path}. "
            "Please edit it and restart the program."
        )

    load_dotenv(dotenv_path=str(env_path))

    username = os.getenv("DEXCOM_USERNAME", "")
    password = os.getenv("DEXCOM_PASSWORD", "")
    token = os.getenv("DISCORD_TOKEN", "")

    missing = [
        name
        for name, value in (
            ("DEXCOM_USERNAME", username),
            ("DEXCOM_PASSWORD", password),
            ("DISCORD_TOKEN", token),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"{', '.join(missing)} must be set in {env_path}")

    return Config(
        dexcom_username=username,
        dexcom_password=password,
        discord_token=token,
        outside_us=os.getenv("DEXCOM_OUTSIDE_US", "false").lower() == "true",
        poll_interval=_positive_number("POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL),
        request_timeout=_positive_number("REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT),
    )
