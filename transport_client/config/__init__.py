"""
Configuration module for the transport client.

Centralizes server URLs, map tile settings, live-tracking thresholds and
socket reconnection policy. Every value is read from the environment so
that keys and endpoints are never baked into the code.
"""

import os
from typing import Any, Dict, Optional


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


class Config:
    """Application configuration loaded from environment variables."""

    # Backend
    SERVER_URL: str = os.getenv("TRANSPORT_SERVER_URL", "http://localhost:3000").rstrip("/")
    API_BASE_URL: str = os.getenv("TRANSPORT_API_URL", f"{SERVER_URL}/api").rstrip("/")
    API_TOKEN: Optional[str] = os.getenv("TRANSPORT_API_TOKEN") or None
    HTTP_TIMEOUT: float = _env_float("TRANSPORT_HTTP_TIMEOUT", 10.0)

    # Socket.IO relay
    SOCKETIO_PATH: str = os.getenv("TRANSPORT_SOCKETIO_PATH", "socket.io")
    RECONNECT_BASE_DELAY: float = _env_float("TRANSPORT_RECONNECT_BASE_DELAY", 1.0)
    RECONNECT_MAX_DELAY: float = _env_float("TRANSPORT_RECONNECT_MAX_DELAY", 30.0)
    RECONNECT_MAX_ATTEMPTS: int = _env_int("TRANSPORT_RECONNECT_MAX_ATTEMPTS", 0)  # 0 = unlimited

    # Map tiles
    MAP_STYLE_URL: str = os.getenv(
        "TRANSPORT_MAP_STYLE_URL",
        "https://api.maptiler.com/maps/streets-v2/style.json?key={key}",
    )
    MAP_TILE_API_KEY: Optional[str] = os.getenv("TRANSPORT_MAP_TILE_API_KEY") or None

    # Live tracking
    TRACKING_MIN_DISTANCE_M: float = _env_float("TRANSPORT_TRACKING_MIN_DISTANCE_M", 10.0)
    TRACKING_MIN_INTERVAL_S: float = _env_float("TRANSPORT_TRACKING_MIN_INTERVAL_S", 3.0)
    TRACKING_PERSIST_INTERVAL: float = _env_float("TRANSPORT_TRACKING_PERSIST_INTERVAL", 30.0)
    TRACKING_STALE_AFTER: float = _env_float("TRANSPORT_TRACKING_STALE_AFTER", 30.0)

    LOG_LEVEL: str = os.getenv("TRANSPORT_LOG_LEVEL", "INFO").upper()

    @classmethod
    def has_map_key(cls) -> bool:
        return bool(cls.MAP_TILE_API_KEY)

    @classmethod
    def get_config_dict(cls) -> Dict[str, Any]:
        """Return configuration as dictionary (for debugging)."""
        return {
            "SERVER_URL": cls.SERVER_URL,
            "API_BASE_URL": cls.API_BASE_URL,
            "API_TOKEN": "***" if cls.API_TOKEN else None,
            "HTTP_TIMEOUT": cls.HTTP_TIMEOUT,
            "SOCKETIO_PATH": cls.SOCKETIO_PATH,
            "RECONNECT_BASE_DELAY": cls.RECONNECT_BASE_DELAY,
            "RECONNECT_MAX_DELAY": cls.RECONNECT_MAX_DELAY,
            "RECONNECT_MAX_ATTEMPTS": cls.RECONNECT_MAX_ATTEMPTS,
            "MAP_TILE_API_KEY": "***" if cls.MAP_TILE_API_KEY else None,
            "TRACKING_MIN_DISTANCE_M": cls.TRACKING_MIN_DISTANCE_M,
            "TRACKING_MIN_INTERVAL_S": cls.TRACKING_MIN_INTERVAL_S,
            "TRACKING_PERSIST_INTERVAL": cls.TRACKING_PERSIST_INTERVAL,
            "TRACKING_STALE_AFTER": cls.TRACKING_STALE_AFTER,
            "LOG_LEVEL": cls.LOG_LEVEL,
        }


# Global configuration instance
config = Config()
