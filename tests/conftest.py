"""Shared pytest fixtures and factory functions for beacon tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from beacon.config import BeaconConfig
from beacon.models import InstanceEntry
from beacon.registry import RegistryStore

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def registry_path(tmp_path: Path) -> Path:
	return tmp_path / "beacon" / "projects.json"


@pytest.fixture()
def store(registry_path: Path) -> RegistryStore:
	"""RegistryStore pointing at a not-yet-created file under tmp_path."""
	return RegistryStore(registry_path)


@pytest.fixture()
def config(tmp_path: Path, registry_path: Path) -> BeaconConfig:
	"""BeaconConfig isolated to tmp_path, with the health endpoint disabled."""
	cfg = BeaconConfig()
	cfg.registry.path = str(registry_path)
	cfg.instance.path = str(tmp_path / "my-game")
	cfg.instance.version = "2022.3.10f1"
	cfg.bridge.health_enabled = False
	return cfg


def seen_ago(seconds: float, now: datetime = FIXED_NOW) -> str:
	"""ISO timestamp `seconds` before `now`."""
	return (now - timedelta(seconds=seconds)).isoformat()


def make_entry(**overrides: Any) -> InstanceEntry:
	"""Create an InstanceEntry with sensible defaults, overridable via kwargs."""
	defaults: dict[str, Any] = {
		"identity": "/projects/alpha",
		"display_name": "alpha",
		"channel_id": "beacon-0000aaaa",
		"legacy_port": 7890,
		"process_id": 4242,
		"version_tag": "2022.3.10f1",
		"last_seen": seen_ago(0),
		"active": True,
	}
	defaults.update(overrides)
	return InstanceEntry(**defaults)
