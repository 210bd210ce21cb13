"""Instance host: owns the registry, heartbeat, catalog and dispatcher of one process."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from beacon.builtin_tools import builtin_tools
from beacon.catalog import ToolCatalog
from beacon.config import BeaconConfig
from beacon.discovery import DiscoveryQuery
from beacon.dispatcher import Dispatcher
from beacon.health import HealthServer
from beacon.heartbeat import HeartbeatScheduler
from beacon.identity import channel_id_for, display_name_for, resolve_identity
from beacon.registry import RegistryStore
from beacon.tools import Tool

logger = logging.getLogger(__name__)


class InstanceHost:
	"""Explicit start/run/shutdown lifecycle for a discoverable instance.

	Tests build a fresh host per case; nothing here is a process-wide singleton.
	"""

	def __init__(
		self,
		config: BeaconConfig,
		extra_tools: Iterable[Tool] = (),
		serve_health: bool | None = None,
	) -> None:
		self.config = config
		self.identity = resolve_identity(config.instance.path or None)
		self.store = RegistryStore(config.registry.resolved_path)
		self.scheduler = HeartbeatScheduler(
			self.store,
			identity=self.identity,
			display_name=display_name_for(self.identity),
			channel_id=channel_id_for(self.identity, config.bridge.channel_prefix),
			legacy_port=config.bridge.port,
			version_tag=config.instance.version,
			interval=config.heartbeat.interval,
		)
		self.query = DiscoveryQuery(self.store, self_identity=self.identity)
		self.catalog = ToolCatalog()
		self.dispatcher = Dispatcher(self.catalog)
		self._extra_tools = list(extra_tools)
		if serve_health is None:
			serve_health = config.bridge.health_enabled
		self._health = HealthServer(config.bridge, self.scheduler, self.dispatcher) if serve_health else None
		self._started = False

	@property
	def started(self) -> bool:
		return self._started

	@property
	def health(self) -> HealthServer | None:
		return self._health

	def start(self) -> None:
		"""Populate the catalog, sweep stale entries and register this instance."""
		if self._started:
			return
		tools = builtin_tools(
			self.catalog, self.scheduler, self.query, self.config.discovery.stale_threshold,
		)
		self.catalog.populate([*tools, *self._extra_tools])

		if self.config.heartbeat.evict_on_start:
			self.query.evict_stale(self.config.discovery.stale_threshold)
		self.scheduler.register_or_update()

		if self._health is not None:
			try:
				self._health.start()
			except (ImportError, OSError) as exc:
				logger.warning("Health endpoint unavailable: %s", exc)
		self._started = True

	async def run(self, stop_event: asyncio.Event) -> None:
		"""Heartbeat loop for the lifetime of the process."""
		if not self._started:
			self.start()
		logger.info(
			"Instance %s running with %d tools (registry: %s)",
			display_name_for(self.identity), len(self.catalog), self.store.path,
		)
		await self.scheduler.run(stop_event)

	def suspend(self) -> None:
		self.scheduler.on_transient_suspend()

	def resume(self) -> None:
		self.scheduler.on_resume()

	def shutdown(self) -> None:
		"""Mark this instance inactive and stop the health endpoint."""
		if not self._started:
			return
		self.scheduler.deactivate()
		if self._health is not None:
			self._health.stop()
		self._started = False
