"""Core app services for settings, logging, diagnostics, and the sync pipeline."""

from .config import AppConfig, ConfigError, load_config, require_device, save_config
from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .sync_service import SyncReport, SyncService

__all__ = [
    "AppConfig",
    "ConfigError",
    "DiagnosticsExporter",
    "SyncReport",
    "SyncService",
    "build_doctor_payload",
    "load_config",
    "require_device",
    "save_config",
]
