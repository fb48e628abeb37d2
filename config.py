# config.py
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from utils.errors import ConfigurationError

# Load environment variables from .env file (standalone scripts rely on this)
load_dotenv()

# --- Appwrite document store ---
# Each setting lists the env var names it is read from, first match wins.
# APPWRITE_PROJECT_ID / APPWRITE_FUNCTION_* are the names used inside Appwrite Functions.
REQUIRED_SETTINGS = {
    "endpoint": ("APPWRITE_ENDPOINT", "APPWRITE_FUNCTION_ENDPOINT"),
    "project_id": ("APPWRITE_PROJECT", "APPWRITE_PROJECT_ID", "APPWRITE_FUNCTION_PROJECT_ID"),
    "database_id": ("APPWRITE_DATABASE_ID",),
    "chats_collection_id": ("APPWRITE_CHATS_COLLECTION_ID",),
    "messages_collection_id": ("APPWRITE_MESSAGES_COLLECTION_ID",),
    "api_key": ("APPWRITE_API_KEY",),
}

# --- Migration tuning ---
DEFAULT_PAGE_SIZE = 100 # Documents per list request
MAX_PAGE_SIZE = 5000 # Appwrite rejects larger limits
DEFAULT_REQUEST_TIMEOUT = 30.0 # seconds, a hung call must not stall the whole run

PAGE_SIZE_ENV = "CHAT_MIGRATION_PAGE_SIZE"
TIMEOUT_ENV = "CHAT_MIGRATION_TIMEOUT_SECONDS"


class MigrationConfig(BaseModel):
    """Settings read once at startup and passed to every component."""
    endpoint: str
    project_id: str
    database_id: str
    chats_collection_id: str
    messages_collection_id: str
    api_key: str
    page_size: int = DEFAULT_PAGE_SIZE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def base_url(self) -> str:
        return normalize_endpoint(self.endpoint)


def normalize_endpoint(endpoint: str) -> str:
    """
    Always end the endpoint with exactly one /v1.
    https://host -> https://host/v1, https://host/v1/ -> https://host/v1
    """
    value = (endpoint or "").strip().rstrip("/")
    if value.endswith("/v1"):
        value = value[: -len("/v1")]
    return value + "/v1"


def _first_env(environ: Mapping[str, str], names) -> str:
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value
    return ""


def _parse_positive(environ: Mapping[str, str], name: str, default, cast, upper=None):
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number (got {raw!r})")
    if value <= 0 or (upper is not None and value > upper):
        bounds = f"between 1 and {upper}" if upper is not None else "positive"
        raise ConfigurationError(f"{name} must be {bounds} (got {raw!r})")
    return value


def load_migration_config(environ: Optional[Mapping[str, str]] = None) -> MigrationConfig:
    """
    Build the migration config from the environment.
    Every missing required variable is reported at once; nothing touches the network here.
    """
    if environ is None:
        environ = os.environ

    values = {}
    missing = []
    for field, names in REQUIRED_SETTINGS.items():
        value = _first_env(environ, names)
        if not value:
            missing.append(names[0])
        values[field] = value

    if missing:
        raise ConfigurationError("Missing required env vars: " + ", ".join(missing))

    if not values["endpoint"].startswith(("http://", "https://")):
        raise ConfigurationError(f"APPWRITE_ENDPOINT must be an http(s) URL (got {values['endpoint']!r})")

    values["page_size"] = _parse_positive(environ, PAGE_SIZE_ENV, DEFAULT_PAGE_SIZE, int, upper=MAX_PAGE_SIZE)
    values["request_timeout"] = _parse_positive(environ, TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT, float)
    return MigrationConfig(**values)
