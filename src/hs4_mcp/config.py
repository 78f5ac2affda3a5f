"""Configuration management for the HS4 MCP gateway."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from hs4_mcp.utils.http import normalize_base_url

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=7422, ge=1, le=65535)
    instructions: str = Field(
        default=(
            "Use these tools to inspect and change a HomeSeer HS4 hub. "
            "Mutations require confirm=true plus intent and reason; prefer dryRun "
            "or hs4.change.prepare/commit for anything risky."
        )
    )
    transport_mode: Literal["stdio", "http"] = Field(default="stdio")


class HS4Settings(BaseModel):
    base_url: str = Field(default="http://127.0.0.1")
    user: str | None = Field(default=None)
    password: str | None = Field(default=None)
    timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    read_retries: int = Field(default=2, ge=0, le=5)
    read_retry_backoff_seconds: float = Field(default=0.2, ge=0, le=30)
    script_page_path: str = Field(default="/runscript.html")

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        return normalize_base_url(value)


class AdminSettings(BaseModel):
    execution_mode: Literal["adapter", "direct", "auto"] = Field(default="adapter")
    direct_fallback: bool = Field(default=True)
    capability_cache_ttl_seconds: int = Field(default=300, ge=0, le=86400)


class ChangeTokenSettings(BaseModel):
    ttl_seconds: int = Field(default=900, ge=30, le=86400)
    max_entries: int = Field(default=2000, ge=100, le=200_000)
    persist_path: str | None = Field(default=None)


class VerificationSettings(BaseModel):
    attempts: int = Field(default=4, ge=1, le=8)
    delay_seconds: float = Field(default=0.25, ge=0, le=10)


class AuditSettings(BaseModel):
    sqlite_path: str = Field(default=":memory:")
    sqlite_wal: bool = Field(default=True)
    max_entries: int = Field(default=5000, ge=100, le=1_000_000)


class PolicySettings(BaseModel):
    path: str = Field(default="./policy.yaml")
    explicit: bool = Field(
        default=False,
        description="True when HS4_POLICY_PATH was set; a missing file is then an error.",
    )


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    hs4: HS4Settings = Field(default_factory=HS4Settings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    change_tokens: ChangeTokenSettings = Field(default_factory=ChangeTokenSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    policy: PolicySettings = Field(default_factory=PolicySettings)


ENV_KEYS = {
    "transport": "MCP_TRANSPORT",
    "host": "MCP_HTTP_HOST",
    "port": "MCP_HTTP_PORT",
    "instructions": "MCP_INSTRUCTIONS",
    "log_level": "MCP_LOG_LEVEL",
    "log_file": "MCP_LOG_FILE",
    "base_url": "HS4_BASE_URL",
    "user": "HS4_USER",
    "password": "HS4_PASS",
    "timeout_ms": "HS4_TIMEOUT_MS",
    "read_retries": "HS4_READ_RETRIES",
    "read_retry_backoff_ms": "HS4_READ_RETRY_BACKOFF_MS",
    "script_page_path": "HS4_SCRIPT_PAGE_PATH",
    "admin_execution_mode": "HS4_ADMIN_EXECUTION_MODE",
    "admin_direct_fallback": "HS4_ADMIN_DIRECT_FALLBACK",
    "admin_capability_ttl": "HS4_ADMIN_CAPABILITY_CACHE_TTL_SEC",
    "change_token_ttl": "HS4_CHANGE_TOKEN_TTL_SEC",
    "change_token_max_entries": "HS4_CHANGE_TOKEN_MAX_ENTRIES",
    "change_token_persist_path": "HS4_CHANGE_TOKEN_PERSIST_PATH",
    "verify_attempts": "HS4_VERIFY_ATTEMPTS",
    "verify_delay_ms": "HS4_VERIFY_DELAY_MS",
    "audit_persist_path": "MCP_AUDIT_PERSIST_PATH",
    "audit_max_entries": "MCP_AUDIT_MAX_ENTRIES",
    "policy_path": "HS4_POLICY_PATH",
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is not None and value.strip().lower() not in _TRUE_VALUES | _FALSE_VALUES:
        _config_logger.warning(
            "Invalid boolean value for %s: %r, using default %s", key, value, default
        )
    return parse_bool(value, default)


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_ms_as_seconds(key: str, default_seconds: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default_seconds
    try:
        return float(value) / 1000.0
    except ValueError:
        _config_logger.warning(
            "Invalid millisecond value for %s: %r, using default %s s",
            key,
            value,
            default_seconds,
        )
        return default_seconds


def _env_optional_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = _env_optional_str(ENV_KEYS["log_file"])
    change_token_path_env = _env_optional_str(ENV_KEYS["change_token_persist_path"])
    audit_path_env = _env_optional_str(ENV_KEYS["audit_persist_path"])
    policy_path_env = _env_optional_str(ENV_KEYS["policy_path"])

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "instructions": os.getenv(ENV_KEYS["instructions"], ServerSettings().instructions),
            "transport_mode": os.getenv(
                ENV_KEYS["transport"], ServerSettings().transport_mode
            ).strip().lower(),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "hs4": {
            "base_url": os.getenv(ENV_KEYS["base_url"], HS4Settings().base_url),
            "user": _env_optional_str(ENV_KEYS["user"]),
            "password": os.getenv(ENV_KEYS["password"]) or None,
            "timeout_seconds": _env_ms_as_seconds(
                ENV_KEYS["timeout_ms"], HS4Settings().timeout_seconds
            ),
            "read_retries": _env_int(ENV_KEYS["read_retries"], HS4Settings().read_retries),
            "read_retry_backoff_seconds": _env_ms_as_seconds(
                ENV_KEYS["read_retry_backoff_ms"],
                HS4Settings().read_retry_backoff_seconds,
            ),
            "script_page_path": os.getenv(
                ENV_KEYS["script_page_path"], HS4Settings().script_page_path
            ),
        },
        "admin": {
            "execution_mode": os.getenv(
                ENV_KEYS["admin_execution_mode"], AdminSettings().execution_mode
            ).strip().lower(),
            "direct_fallback": _env_bool(
                ENV_KEYS["admin_direct_fallback"], AdminSettings().direct_fallback
            ),
            "capability_cache_ttl_seconds": _env_int(
                ENV_KEYS["admin_capability_ttl"],
                AdminSettings().capability_cache_ttl_seconds,
            ),
        },
        "change_tokens": {
            "ttl_seconds": _env_int(
                ENV_KEYS["change_token_ttl"], ChangeTokenSettings().ttl_seconds
            ),
            "max_entries": _env_int(
                ENV_KEYS["change_token_max_entries"], ChangeTokenSettings().max_entries
            ),
            "persist_path": _resolve_path(change_token_path_env) if change_token_path_env else None,
        },
        "verification": {
            "attempts": _env_int(ENV_KEYS["verify_attempts"], VerificationSettings().attempts),
            "delay_seconds": _env_ms_as_seconds(
                ENV_KEYS["verify_delay_ms"], VerificationSettings().delay_seconds
            ),
        },
        "audit": {
            "sqlite_path": _resolve_path(audit_path_env) if audit_path_env else ":memory:",
            "sqlite_wal": _env_bool("MCP_AUDIT_SQLITE_WAL", AuditSettings().sqlite_wal),
            "max_entries": _env_int(ENV_KEYS["audit_max_entries"], AuditSettings().max_entries),
        },
        "policy": {
            "path": _resolve_path(policy_path_env or PolicySettings().path),
            "explicit": policy_path_env is not None,
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.audit.sqlite_path != ":memory:":
        Path(settings.audit.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
