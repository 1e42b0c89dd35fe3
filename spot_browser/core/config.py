"""
Settings management for spot-browser.

The settings file is a flat YAML mapping stored in the per-user
application directory (~/.spot-browser/settings.yaml by default):

    client_id: "your_client_id_here"
    client_secret: "your_client_secret_here"
    show_notifications: true

Unknown keys are ignored and missing keys take their defaults, so an
empty or absent file is a valid (unconfigured) state. The credentials can
also come from the environment or a .env file (SPOTIFY_CLIENT_ID and
SPOTIFY_CLIENT_SECRET), which take precedence over the file.

Directory layout under the application directory:
    settings.yaml       - this file
    cache/token.json    - persisted OAuth token (see TokenStore)
    cache/thumbs/       - on-disk thumbnail cache (see ImageCache)
    logs/               - per-run log files
"""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from spot_browser.core.exceptions import ConfigError
from spot_browser.core.logger import get_logger

logger = get_logger(__name__)


APP_DIR_NAME = ".spot-browser"
SETTINGS_FILENAME = "settings.yaml"
TOKEN_FILENAME = "token.json"

ENV_CLIENT_ID = "SPOTIFY_CLIENT_ID"
ENV_CLIENT_SECRET = "SPOTIFY_CLIENT_SECRET"


@dataclass(frozen=True)
class Settings:
    """
    User settings recognised by the browser.

    Attributes:
        client_id: Spotify application client ID. Empty when unconfigured.
        client_secret: Spotify application client secret.
        show_notifications: Passed through to the UI, which decides whether
                            to pop up notifications for API/auth errors.
    """
    client_id: str = ""
    client_secret: str = ""
    show_notifications: bool = True

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


FIELD_TYPES: dict[str, type] = {
    "client_id": str,
    "client_secret": str,
    "show_notifications": bool,
}


@dataclass(frozen=True)
class Paths:
    """
    Filesystem locations derived from one application directory.

    Attributes:
        base_dir: Root of all browser state. Defaults to ~/.spot-browser.
    """
    base_dir: Path

    @classmethod
    def default(cls) -> "Paths":
        return cls(Path.home() / APP_DIR_NAME)

    @property
    def settings_file(self) -> Path:
        return self.base_dir / SETTINGS_FILENAME

    @property
    def cache_dir(self) -> Path:
        return self.base_dir / "cache"

    @property
    def token_cache_file(self) -> Path:
        return self.cache_dir / TOKEN_FILENAME

    @property
    def thumb_cache_dir(self) -> Path:
        return self.cache_dir / "thumbs"

    @property
    def log_dir(self) -> Path:
        return self.base_dir / "logs"


def load_settings(
    settings_path: Path | None = None,
    strict: bool = False,
    use_env: bool = True
) -> Settings:
    """
    Load settings from YAML, applying defaults and environment overrides.

    Args:
        settings_path: Explicit settings file. Defaults to
                       Paths.default().settings_file.
        strict: When True, an unreadable file, invalid YAML, a non-mapping
                document or a wrongly typed value raises ConfigError.
                When False those problems are logged and defaults are used.
        use_env: Apply .env / environment credential overrides.

    Returns:
        Settings: Frozen settings object.

    Raises:
        ConfigError: Only in strict mode, see above.
    """
    if settings_path is None:
        settings_path = Paths.default().settings_file

    raw = _read_settings_file(settings_path, strict)
    values: dict[str, Any] = {}

    for field_name, field_type in FIELD_TYPES.items():
        if field_name not in raw or raw[field_name] is None:
            continue
        value = raw[field_name]
        if not isinstance(value, field_type):
            if strict:
                raise ConfigError(
                    f"'{field_name}' must be of type {field_type.__name__}",
                    details={"field": field_name, "value": value, "file_path": str(settings_path)}
                )
            logger.warning(f"Ignoring invalid value for '{field_name}' in {settings_path}")
            continue
        values[field_name] = value.strip() if isinstance(value, str) else value

    unknown = sorted(set(raw) - set(FIELD_TYPES))
    if unknown:
        logger.debug(f"Ignoring unknown settings keys: {', '.join(map(str, unknown))}")

    if use_env:
        load_dotenv()
        env_id = os.getenv(ENV_CLIENT_ID)
        env_secret = os.getenv(ENV_CLIENT_SECRET)
        if env_id:
            values["client_id"] = env_id.strip()
        if env_secret:
            values["client_secret"] = env_secret.strip()

    return Settings(**values)


def _read_settings_file(settings_path: Path, strict: bool) -> dict[str, Any]:
    if not settings_path.exists():
        logger.debug(f"Settings file not found, using defaults: {settings_path}")
        return {}

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        if strict:
            raise ConfigError(
                f"Failed to read settings file: {e}",
                details={"file_path": str(settings_path), "original_error": str(e)}
            ) from e
        logger.warning(f"Settings file {settings_path} is unreadable, using defaults: {e}")
        return {}

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        if strict:
            raise ConfigError(
                "Settings file must contain a YAML mapping",
                details={"file_path": str(settings_path)}
            )
        logger.warning(f"Settings file {settings_path} is not a mapping, using defaults")
        return {}
    return raw


def save_settings(settings: Settings, settings_path: Path | None = None) -> Path:
    """
    Write settings back to YAML.

    Args:
        settings: Settings to persist.
        settings_path: Target file, defaults to Paths.default().settings_file.

    Returns:
        The path written.

    Raises:
        ConfigError: If the file cannot be written.
    """
    if settings_path is None:
        settings_path = Paths.default().settings_file

    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(settings_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(asdict(settings), f, default_flow_style=False, sort_keys=False)
        os.chmod(settings_path, 0o600)
    except OSError as e:
        raise ConfigError(
            f"Failed to write settings file: {e}",
            details={"file_path": str(settings_path), "original_error": str(e)}
        ) from e

    logger.debug(f"Settings saved to {settings_path}")
    return settings_path
