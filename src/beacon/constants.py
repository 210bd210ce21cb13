"""Centralized defaults shared by the instance and automation sides."""

from __future__ import annotations

from pathlib import Path

VERSION = "0.4.0"

DEFAULT_REGISTRY_DIR = Path.home() / ".beacon"
DEFAULT_REGISTRY_FILE = DEFAULT_REGISTRY_DIR / "projects.json"

# Heartbeat cadence and discovery thresholds (seconds)
HEARTBEAT_INTERVAL: float = 5.0
ACTIVE_THRESHOLD: float = 30.0
STALE_THRESHOLD: float = 300.0

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7890
DEFAULT_SCAN_RANGE: tuple[int, int] = (7890, 7899)
DEFAULT_CHANNEL_PREFIX = "beacon"

MAX_ACTIVITY_ENTRIES = 50
MAX_CLEANUP_JOBS = 20
MAX_LOG_BYTES = 5 * 1024 * 1024
