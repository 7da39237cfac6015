"""Centralized configuration.

Runtime state lives under the drive-bridge repo root by default:
    .env                 - environment overrides (DRIVE_BRIDGE_*)
    data/options.json    - OAuth client credentials and the current token

This module auto-loads the .env file on import, so settings are available
to the CLI, the HTTP app and any code that imports them.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# __file__ is src/drive_bridge/config.py, so 3 levels up
REPO_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = REPO_ROOT / "data"

ENV_FILE = REPO_ROOT / ".env"
OPTIONS_FILE = DATA_DIR / "options.json"

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_HTTP_TIMEOUT = 30.0


def _load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Environment wins over .env
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


@dataclass(frozen=True)
class Settings:
    """Application settings read from DRIVE_BRIDGE_* environment variables."""

    base_url: str = DEFAULT_BASE_URL
    admin_url: str = ""
    options_file: Path = OPTIONS_FILE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    admin_token: str = ""
    log_level: str = "INFO"

    @property
    def redirect_uri(self) -> str:
        """OAuth redirect URI registered with Google."""
        return f"{self.base_url}/drive/callback"

    @property
    def admin_page_url(self) -> str:
        """Where the browser lands after the OAuth callback."""
        return self.admin_url or f"{self.base_url}/admin/drive"


def load_settings() -> Settings:
    """Build settings from the environment.

    Returns:
        Settings with defaults for anything unset.

    Raises:
        ValueError: If DRIVE_BRIDGE_HTTP_TIMEOUT is not a positive number.
    """
    base_url = os.environ.get("DRIVE_BRIDGE_BASE_URL", DEFAULT_BASE_URL).rstrip("/")

    timeout_raw = os.environ.get("DRIVE_BRIDGE_HTTP_TIMEOUT", "")
    http_timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
    if http_timeout <= 0:
        raise ValueError(f"DRIVE_BRIDGE_HTTP_TIMEOUT must be positive, got {timeout_raw}")

    options_raw = os.environ.get("DRIVE_BRIDGE_OPTIONS_FILE")

    return Settings(
        base_url=base_url,
        admin_url=os.environ.get("DRIVE_BRIDGE_ADMIN_URL", ""),
        options_file=Path(options_raw).expanduser() if options_raw else OPTIONS_FILE,
        http_timeout=http_timeout,
        admin_token=os.environ.get("DRIVE_BRIDGE_ADMIN_TOKEN", ""),
        log_level=os.environ.get("DRIVE_BRIDGE_LOG_LEVEL", "INFO").upper(),
    )


def ensure_data_dir(path: Path = DATA_DIR) -> Path:
    """Create the data directory if it doesn't exist.

    Returns:
        Path to the data directory.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


# Auto-load .env from repo root on import
_loaded = _load_env_file(ENV_FILE)
