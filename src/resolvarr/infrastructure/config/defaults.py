"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "resolvarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
        "user_agent": "Resolvarr/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "diskcache",
        "dir": "./.cache/resolvarr",
        "link_ttl_hours": 48.0,
        "sweep_interval_seconds": 3600.0,
    },
    "jobs": {
        "reap_interval_seconds": 300.0,
        "max_age_seconds": 300.0,
    },
    "local_index": {
        "enabled": True,
        "mount_path": "/mnt/media",
    },
    "cloud": {
        "enabled": True,
    },
    "bandwidth": {
        "default_test_seconds": 5,
        "stutter_low_threshold": 3,
        "stutter_consecutive_threshold": 2,
        "stutter_window_ms": 30_000,
    },
}
