"""chatsync application configuration.

Loads settings from ``chatsync.settings.yaml`` in the working directory
(override the path with the ``CHATSYNC_SETTINGS`` environment variable).
A missing file is not an error: every setting has a default.

Sections:
  * backend: chat backend location (Socket.IO and REST share it)
  * realtime: Socket.IO session and notification behaviour
  * bridge: local HTTP/WebSocket bridge for the presentation layer
  * logging: root log level
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatsync.settings.yaml")


def _settings_path() -> Path:
    return Path(os.environ.get("CHATSYNC_SETTINGS", SETTINGS_FILE))


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class BackendSettings(BaseModel):
    url:             str   = "http://localhost:3000"
    request_timeout: float = 10.0

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class RealtimeSettings(BaseModel):
    socketio_path:        str       = "socket.io"
    transports:           List[str] = Field(default_factory=lambda: ["websocket", "polling"])
    connect_timeout:      float     = 5.0
    notification_seconds: float     = Field(default=3.0, gt=0)


class BridgeSettings(BaseModel):
    host:            str       = "127.0.0.1"
    port:            int       = 8080
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class AppSettings(BaseModel):
    backend:  BackendSettings  = Field(default_factory=BackendSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    bridge:   BridgeSettings   = Field(default_factory=BridgeSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings from YAML into a single *AppSettings* object."""
    settings_data = _load_yaml(path or _settings_path())

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (backend=%s, bridge=%s:%s)",
        app_settings.backend.url,
        app_settings.bridge.host,
        app_settings.bridge.port,
    )
    return app_settings


@lru_cache(maxsize=1)
def get_config() -> AppSettings:
    """Process-wide settings, loaded once."""
    return load_settings()


def reset_config() -> None:
    """Forget cached settings (tests)."""
    get_config.cache_clear()
