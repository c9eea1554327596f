"""Persistent sync settings schema, environment overrides, and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping


CONFIG_VERSION = 1


class ConfigError(ValueError):
    """Settings are missing or unusable; raised before any network activity."""


@dataclass
class DeviceConfig:
    ip: str = ""
    port: int = 4370
    timeout_s: float = 10.0
    strict_reply_check: bool = False
    timezone: str = "UTC"


@dataclass
class RemoteApiConfig:
    url: str = ""
    api_key: str = ""
    timeout_s: int = 30
    endpoint_path: str = "/attendance"
    health_path: str = "/health"
    verify_tls: bool = True


@dataclass
class SyncConfig:
    batch_size: int = 100
    auto_clear_device: bool = False
    retry_failed: bool = True
    max_retries: int = 3
    pacing_ms: int = 500


@dataclass
class LoggingConfig:
    debug: bool = False
    keep_log_files: int = 7


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    device: DeviceConfig = field(default_factory=DeviceConfig)
    remote_api: RemoteApiConfig = field(default_factory=RemoteApiConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_TRUE = ("1", "true", "yes", "on")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE


# env var -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "TIMECLOCK_DEVICE_IP": ("device", "ip", str),
    "TIMECLOCK_DEVICE_PORT": ("device", "port", int),
    "REMOTE_API_URL": ("remote_api", "url", str),
    "REMOTE_API_KEY": ("remote_api", "api_key", str),
    "REMOTE_API_TIMEOUT": ("remote_api", "timeout_s", int),
    "SYNC_BATCH_SIZE": ("sync", "batch_size", int),
    "AUTO_CLEAR_DEVICE": ("sync", "auto_clear_device", _parse_bool),
    "RETRY_FAILED_RECORDS": ("sync", "retry_failed", _parse_bool),
    "MAX_RETRIES": ("sync", "max_retries", int),
    "TIMECLOCK_DEBUG_LOGGING": ("logging", "debug", _parse_bool),
}


def config_path() -> Path:
    override = os.environ.get("TIMECLOCK_CONFIG", "").strip()
    if override:
        return Path(override).expanduser()
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "TimeclockSync" / "config.json"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "TimeclockSync" / "config.json"
    return Path.home() / ".config" / "timeclock-sync" / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _apply_env(cfg: AppConfig, env: Mapping[str, str]) -> None:
    for name, (section, key, parse) in ENV_OVERRIDES.items():
        value = env.get(name)
        if value is None or value.strip() == "":
            continue
        try:
            setattr(getattr(cfg, section), key, parse(value.strip()))
        except ValueError as exc:
            raise ConfigError(f"{name} has an invalid value: {value!r}") from exc


def _normalize_device(cfg: AppConfig) -> None:
    cfg.device.ip = str(cfg.device.ip or "").strip()
    cfg.device.port = int(cfg.device.port)
    if not 1 <= cfg.device.port <= 65535:
        cfg.device.port = 4370
    cfg.device.timeout_s = float(max(0.5, min(120.0, float(cfg.device.timeout_s))))
    cfg.device.timezone = str(cfg.device.timezone or "UTC")


def _normalize_remote(cfg: AppConfig) -> None:
    cfg.remote_api.url = str(cfg.remote_api.url or "").strip().rstrip("/")
    cfg.remote_api.timeout_s = max(1, min(300, int(cfg.remote_api.timeout_s)))
    for attr in ("endpoint_path", "health_path"):
        path = str(getattr(cfg.remote_api, attr) or "")
        if path and not path.startswith("/"):
            path = "/" + path
        setattr(cfg.remote_api, attr, path)


def _normalize_sync(cfg: AppConfig) -> None:
    cfg.sync.batch_size = max(1, min(10_000, int(cfg.sync.batch_size)))
    cfg.sync.max_retries = max(0, min(10, int(cfg.sync.max_retries)))
    cfg.sync.pacing_ms = max(0, min(60_000, int(cfg.sync.pacing_ms)))


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    path = path or config_path()
    env = os.environ if env is None else env

    raw: dict[str, Any] = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            raw = {}

    cfg = AppConfig(
        config_version=int(raw.get("config_version", CONFIG_VERSION)),
        device=_merge(DeviceConfig, raw.get("device", {})),
        remote_api=_merge(RemoteApiConfig, raw.get("remote_api", {})),
        sync=_merge(SyncConfig, raw.get("sync", {})),
        logging=_merge(LoggingConfig, raw.get("logging", {})),
    )
    _apply_env(cfg, env)

    _normalize_device(cfg)
    _normalize_remote(cfg)
    _normalize_sync(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path


def require_device(cfg: AppConfig) -> None:
    if not cfg.device.ip:
        raise ConfigError("Device IP not configured. Set device.ip or TIMECLOCK_DEVICE_IP.")


def require_remote_api(cfg: AppConfig) -> None:
    if not cfg.remote_api.url:
        raise ConfigError("Remote API URL not configured. Set remote_api.url or REMOTE_API_URL.")
