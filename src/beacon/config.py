"""TOML configuration loader for beacon."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from beacon.constants import (
	ACTIVE_THRESHOLD,
	DEFAULT_CHANNEL_PREFIX,
	DEFAULT_HOST,
	DEFAULT_PORT,
	DEFAULT_REGISTRY_FILE,
	DEFAULT_SCAN_RANGE,
	HEARTBEAT_INTERVAL,
	STALE_THRESHOLD,
	VERSION,
)


@dataclass
class RegistryConfig:
	"""Location of the shared registry file."""

	path: str = str(DEFAULT_REGISTRY_FILE)

	@property
	def resolved_path(self) -> Path:
		return Path(os.path.expanduser(self.path))


@dataclass
class HeartbeatConfig:
	"""Liveness refresh settings."""

	interval: float = HEARTBEAT_INTERVAL  # seconds between registry refreshes
	evict_on_start: bool = True


@dataclass
class DiscoveryConfig:
	"""Thresholds used when reading the registry."""

	active_threshold: float = ACTIVE_THRESHOLD
	stale_threshold: float = STALE_THRESHOLD
	scan_start: int = DEFAULT_SCAN_RANGE[0]
	scan_end: int = DEFAULT_SCAN_RANGE[1]
	health_timeout: float = 5.0


@dataclass
class BridgeConfig:
	"""How this instance can be reached."""

	host: str = DEFAULT_HOST
	port: int = DEFAULT_PORT
	channel_prefix: str = DEFAULT_CHANNEL_PREFIX
	health_enabled: bool = True


@dataclass
class InstanceConfig:
	"""Identity of the owning instance."""

	path: str = ""  # defaults to the working directory
	version: str = VERSION


@dataclass
class LoggingConfig:
	level: str = "INFO"
	file: str = ""


@dataclass
class BeaconConfig:
	"""Top-level beacon configuration."""

	registry: RegistryConfig = field(default_factory=RegistryConfig)
	heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
	discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
	bridge: BridgeConfig = field(default_factory=BridgeConfig)
	instance: InstanceConfig = field(default_factory=InstanceConfig)
	logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build_registry(data: dict[str, Any]) -> RegistryConfig:
	rc = RegistryConfig()
	if "path" in data:
		rc.path = str(data["path"])
	return rc


def _build_heartbeat(data: dict[str, Any]) -> HeartbeatConfig:
	hc = HeartbeatConfig()
	if "interval" in data:
		hc.interval = float(data["interval"])
	if "evict_on_start" in data:
		hc.evict_on_start = bool(data["evict_on_start"])
	return hc


def _build_discovery(data: dict[str, Any]) -> DiscoveryConfig:
	dc = DiscoveryConfig()
	if "active_threshold" in data:
		dc.active_threshold = float(data["active_threshold"])
	if "stale_threshold" in data:
		dc.stale_threshold = float(data["stale_threshold"])
	if "scan_start" in data:
		dc.scan_start = int(data["scan_start"])
	if "scan_end" in data:
		dc.scan_end = int(data["scan_end"])
	if "health_timeout" in data:
		dc.health_timeout = float(data["health_timeout"])
	return dc


def _build_bridge(data: dict[str, Any]) -> BridgeConfig:
	bc = BridgeConfig()
	if "host" in data:
		bc.host = str(data["host"])
	if "port" in data:
		bc.port = int(data["port"])
	if "channel_prefix" in data:
		bc.channel_prefix = str(data["channel_prefix"])
	if "health_enabled" in data:
		bc.health_enabled = bool(data["health_enabled"])
	return bc


def _build_instance(data: dict[str, Any]) -> InstanceConfig:
	ic = InstanceConfig()
	if "path" in data:
		ic.path = str(data["path"])
	if "version" in data:
		ic.version = str(data["version"])
	return ic


def _build_logging(data: dict[str, Any]) -> LoggingConfig:
	lc = LoggingConfig()
	if "level" in data:
		lc.level = str(data["level"]).upper()
	if "file" in data:
		lc.file = str(data["file"])
	return lc


def _apply_env_overrides(bc: BeaconConfig) -> None:
	registry_path = os.environ.get("BEACON_REGISTRY_PATH", "")
	if registry_path:
		bc.registry.path = registry_path
	port = os.environ.get("BEACON_PORT", "")
	if port:
		try:
			bc.bridge.port = int(port)
		except ValueError:
			pass


def load_config(path: str | Path | None = None) -> BeaconConfig:
	"""Load a beacon.toml config file.

	Args:
		path: Path to the TOML config file, or None for defaults.

	Returns:
		Parsed BeaconConfig with environment overrides applied.

	Raises:
		FileNotFoundError: If a path is given and the file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	bc = BeaconConfig()
	if path is not None:
		config_path = Path(path)
		if not config_path.exists():
			raise FileNotFoundError(f"Config file not found: {config_path}")

		with open(config_path, "rb") as f:
			data = tomllib.load(f)

		if "registry" in data:
			bc.registry = _build_registry(data["registry"])
		if "heartbeat" in data:
			bc.heartbeat = _build_heartbeat(data["heartbeat"])
		if "discovery" in data:
			bc.discovery = _build_discovery(data["discovery"])
		if "bridge" in data:
			bc.bridge = _build_bridge(data["bridge"])
		if "instance" in data:
			bc.instance = _build_instance(data["instance"])
		if "logging" in data:
			bc.logging = _build_logging(data["logging"])

	_apply_env_overrides(bc)
	return bc


def validate_config(config: BeaconConfig) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded BeaconConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []
	interval = config.heartbeat.interval
	active = config.discovery.active_threshold
	stale = config.discovery.stale_threshold

	if interval <= 0:
		issues.append(("error", f"heartbeat.interval must be positive: {interval}"))
	if active <= interval:
		issues.append((
			"error",
			f"discovery.active_threshold ({active}s) must exceed heartbeat.interval ({interval}s)",
		))
	elif active < 3 * interval:
		# A single slow tick would make the instance look dead
		issues.append((
			"warning",
			f"discovery.active_threshold ({active}s) is less than 3 heartbeats ({3 * interval}s)",
		))
	if stale < active:
		issues.append((
			"error",
			f"discovery.stale_threshold ({stale}s) is below active_threshold ({active}s)",
		))
	if not 0 < config.bridge.port < 65536:
		issues.append(("error", f"bridge.port out of range: {config.bridge.port}"))
	if config.discovery.scan_start > config.discovery.scan_end:
		issues.append((
			"error",
			f"discovery scan range is inverted: {config.discovery.scan_start}-{config.discovery.scan_end}",
		))
	if not config.bridge.channel_prefix:
		issues.append(("warning", "bridge.channel_prefix is empty"))

	registry_dir = config.registry.resolved_path.parent
	if registry_dir.exists() and not os.access(registry_dir, os.W_OK):
		issues.append(("error", f"registry directory is not writable: {registry_dir}"))

	return issues
