from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

if TYPE_CHECKING:  # pragma: no cover
    from .credentials import CredentialSource

DEFAULT_USER_AGENT = "ResourceWatch/1.0 (traffic-router watcher)"
DEFAULT_POLLING_INTERVAL_MS = 60_000
DEFAULT_TIMEOUT_MS = 15_000


class TrafficOpsSettings(BaseModel):
    host: Optional[str] = Field(default=None, alias="TO_HOST")
    username: Optional[str] = Field(default=None, alias="TO_USER")
    password: Optional[str] = Field(default=None, alias="TO_PASS")
    scheme: str = Field(default="https", alias="TO_SCHEME")
    login_path: str = Field(default="/api/4.0/user/login", alias="TO_LOGIN_PATH")
    tokens: Dict[str, str] = Field(default_factory=dict)

    model_config = {
        "populate_by_name": True,
    }


class AppSettings(BaseModel):
    name: str = Field(default="steering")
    config_prefix: Optional[str] = None
    cache_dir: Path = Field(default=Path("cache"))
    cache_name: Optional[str] = None
    logs_dir: Path = Field(default=Path("logs"))
    config_file: Optional[Path] = None
    default_url: str = Field(default="https://${toHostname}/api/4.0/steering")
    polling_interval_ms: int = Field(default=DEFAULT_POLLING_INTERVAL_MS, gt=0)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    log_level: str = Field(default="INFO")
    traffic_ops: TrafficOpsSettings

    @property
    def prefix(self) -> str:
        return self.config_prefix or self.name

    @property
    def resource_name(self) -> str:
        return self.cache_name or f"{self.name}.json"


class WatcherConfig(BaseModel):
    """Per-watcher overrides found in the raw configuration blob."""

    url: Optional[str] = None
    interval_ms: Optional[int] = None
    timeout_ms: Optional[int] = None


def _positive_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_watcher_config(prefix: str, raw: Dict[str, Any], credentials: "CredentialSource") -> WatcherConfig:
    url = raw.get(f"{prefix}.polling.url")
    if isinstance(url, str) and url.strip():
        url = credentials.interpolate(url.strip())
    else:
        url = None
    return WatcherConfig(
        url=url,
        interval_ms=_positive_int(raw.get(f"{prefix}.polling.interval")),
        timeout_ms=_positive_int(raw.get(f"{prefix}.polling.timeout")),
    )


def load_raw_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None or not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed watcher configuration in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Watcher configuration in {path} must be a JSON object")
    # router configs nest the flat keys under "config"
    nested = payload.get("config")
    return nested if isinstance(nested, dict) else payload


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _cli_or_env(cli_args: Dict[str, Any], cli_key: str, env_key: str, default: Any = None) -> Any:
    value = cli_args.get(cli_key)
    if value is not None:
        return value
    return os.getenv(env_key, default)


def load_settings(cli_args: dict[str, Any] | None = None) -> AppSettings:
    load_dotenv()
    cli_args = cli_args or {}

    tokens: Dict[str, str] = {}
    cdn_name = os.getenv("CDN_NAME")
    if cdn_name:
        tokens["cdnName"] = cdn_name

    config_file = _cli_or_env(cli_args, "config_file", "WATCHER_CONFIG")
    cache_dir = _cli_or_env(cli_args, "cache_dir", "CACHE_DIR", "cache")
    logs_dir = _cli_or_env(cli_args, "logs_dir", "LOGS_DIR", "logs")

    data: dict[str, Any] = {
        "name": _cli_or_env(cli_args, "name", "WATCHER_NAME", "steering"),
        "config_prefix": _cli_or_env(cli_args, "prefix", "WATCHER_PREFIX"),
        "cache_dir": Path(cache_dir).expanduser(),
        "cache_name": os.getenv("CACHE_NAME"),
        "logs_dir": Path(logs_dir).expanduser(),
        "config_file": Path(config_file).expanduser() if config_file else None,
        "polling_interval_ms": cli_args.get("interval_ms") or _env_int("POLLING_INTERVAL_MS", DEFAULT_POLLING_INTERVAL_MS),
        "timeout_ms": cli_args.get("timeout_ms") or _env_int("TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        "user_agent": _cli_or_env(cli_args, "user_agent", "USER_AGENT", DEFAULT_USER_AGENT),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "traffic_ops": TrafficOpsSettings(
            TO_HOST=os.getenv("TO_HOST"),
            TO_USER=os.getenv("TO_USER"),
            TO_PASS=os.getenv("TO_PASS"),
            TO_SCHEME=os.getenv("TO_SCHEME", "https"),
            TO_LOGIN_PATH=os.getenv("TO_LOGIN_PATH", "/api/4.0/user/login"),
            tokens=tokens,
        ),
    }
    default_url = _cli_or_env(cli_args, "url", "RESOURCE_URL")
    if default_url:
        data["default_url"] = default_url

    try:
        settings = AppSettings(**data)
    except ValidationError as exc:  # pragma: no cover - startup guard
        raise RuntimeError(f"Invalid configuration: {exc}")

    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    return settings
