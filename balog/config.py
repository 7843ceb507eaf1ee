import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from balog.errors import ConfigError
from balog.utils.logging import get_logger

log = get_logger(__name__)

APPLICATION_NAME = "balog"

FALLBACK_CONFIG_DIR = Path(".config") / APPLICATION_NAME
DEFAULT_CONFIG_FILENAME = "config.json"
DEFAULT_DB_FILENAME = "database.db"

# environment variables used when a secret is missing from the config file
SECRET_ENV_VARS = {
    "telegraph_access_token": "BALOG_TELEGRAPH_ACCESS_TOKEN",
    "ipgeolocation_api_key": "BALOG_IPGEOLOCATION_API_KEY",
    "google_ai_api_key": "BALOG_GOOGLE_AI_API_KEY",
}


@dataclass(frozen=True)
class Config:
    db_filepath: Path
    telegraph_access_token: Optional[str] = None
    ipgeolocation_api_key: Optional[str] = None
    google_ai_api_key: Optional[str] = None
    config_filepath: Optional[Path] = field(default=None, compare=False)


def default_config_dir() -> Path:
    # XDG base directory, absolute paths only
    config_home = os.getenv("XDG_CONFIG_HOME", "")
    if config_home.startswith("/"):
        return Path(config_home) / APPLICATION_NAME
    return Path.home() / FALLBACK_CONFIG_DIR


def default_config_filepath() -> Path:
    return default_config_dir() / DEFAULT_CONFIG_FILENAME


def _create_default_config(path: Path) -> dict:
    raw = {"db_filepath": str(path.parent / DEFAULT_DB_FILENAME)}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to create default config file '{path}': {e}") from e

    log.info("Created default config file: '%s'", path)
    return raw


def _read_config(path: Path) -> dict:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"failed to read config file '{path}': {e}") from e
    except ValueError as e:
        raise ConfigError(f"invalid json in config file '{path}': {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"config file '{path}' must contain a json object")
    return raw


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load the config file, creating a default one if it does not exist.

    Secrets left empty in the file are read from the environment
    (a `.env` file in the working directory is honored).
    """
    load_dotenv()

    path = Path(path).expanduser() if path else default_config_filepath()
    raw = _read_config(path) if path.exists() else _create_default_config(path)

    db_filepath = raw.get("db_filepath")
    if not db_filepath:
        db_filepath = path.parent / DEFAULT_DB_FILENAME
        log.info("`db_filepath` is missing in config file, using default: '%s'", db_filepath)

    secrets = {}
    for key, env_var in SECRET_ENV_VARS.items():
        secrets[key] = raw.get(key) or os.getenv(env_var) or None

    return Config(
        db_filepath=Path(db_filepath).expanduser(),
        config_filepath=path,
        **secrets,
    )
