"""Runtime settings for the car-data service, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from cardata_mcp.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_DEFAULT_DB_PATH = str(Path(__file__).resolve().parent / "data" / "cardata.db")


def load_env_file(path: Path = _ENV_FILE) -> None:
    """Load ``KEY=VALUE`` lines from *path* without overriding the real environment."""
    if not path.is_file():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Provider credentials, storage location and server binding."""

    db_path: str = _DEFAULT_DB_PATH
    carapi_base_url: str = "https://carapi.app"
    carapi_api_key: str = ""
    carapi_api_token: str = ""
    carapi_api_secret: str = ""
    vincario_base_url: str = "https://api.vincario.com/3.2"
    vincario_api_key: str = ""
    vincario_secret_key: str = ""
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings() -> Settings:
    """Build :class:`Settings` from ``os.environ`` (after the optional ``.env``)."""
    load_env_file()
    env = os.environ
    defaults = Settings()
    port_raw = env.get("CARDATA_PORT", "").strip()
    return Settings(
        db_path=env.get("CARDATA_DB_PATH", defaults.db_path),
        carapi_base_url=env.get("CARAPI_BASE_URL", "").strip() or defaults.carapi_base_url,
        carapi_api_key=env.get("CARAPI_API_KEY", "").strip(),
        carapi_api_token=env.get("CARAPI_API_TOKEN", "").strip(),
        carapi_api_secret=env.get("CARAPI_API_SECRET", "").strip(),
        vincario_base_url=(
            env.get("VINCARIO_BASE_URL", "").strip() or defaults.vincario_base_url
        ),
        vincario_api_key=env.get("VINCARIO_API_KEY", "").strip(),
        vincario_secret_key=env.get("VINCARIO_SECRET_KEY", "").strip(),
        request_timeout=_env_float("CARDATA_REQUEST_TIMEOUT", defaults.request_timeout),
        host=env.get("CARDATA_HOST", "").strip() or defaults.host,
        port=int(port_raw) if port_raw.isdigit() else defaults.port,
    )
