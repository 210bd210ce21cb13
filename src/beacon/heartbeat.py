"""Liveness heartbeat for the owning instance.

Keeps this process's row in the shared registry fresh. Every operation is
a full load, mutate, save cycle against the RegistryStore, so repeated
calls from the same identity never create duplicate rows.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable
from dataclasses import replace

from beacon.constants import HEARTBEAT_INTERVAL
from beacon.models import InstanceEntry, now_iso
from beacon.registry import RegistryStore

logger = logging.getLogger(__name__)


class HeartbeatScheduler:
	"""Registers, refreshes and deactivates one instance's registry entry.

	`tick()` is cheap to call often: it only touches the registry once
	`interval` seconds of monotonic time have passed since the last tick.
	"""

	def __init__(
		self,
		store: RegistryStore,
		identity: str,
		display_name: str = "",
		channel_id: str = "",
		legacy_port: int | None = None,
		version_tag: str = "",
		process_id: int | None = None,
		interval: float = HEARTBEAT_INTERVAL,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self._store = store
		self._template = InstanceEntry(
			identity=identity,
			display_name=display_name,
			channel_id=channel_id,
			legacy_port=legacy_port,
			process_id=process_id if process_id is not None else os.getpid(),
			version_tag=version_tag,
		)
		self._interval = interval
		self._clock = clock
		self._last_tick: float | None = None
		self._current: InstanceEntry | None = None
		self._suspended = False

	@property
	def identity(self) -> str:
		return self._template.identity

	@property
	def current_entry(self) -> InstanceEntry | None:
		"""The entry as last written by this scheduler."""
		return self._current

	@property
	def interval(self) -> float:
		return self._interval

	def register_or_update(self) -> InstanceEntry:
		"""Insert or overwrite this instance's entry and mark it active."""
		entries = self._store.load()
		entry = replace(self._template, last_seen=now_iso(), active=True)

		index = self._store.find_index(entries, self.identity)
		if index >= 0:
			entries[index] = entry
		else:
			entries.append(entry)

		if not self._store.save(entries):
			logger.warning("Instance %s could not be registered, continuing unregistered", entry.display_name)
			return entry
		self._current = entry
		logger.info("Registered instance %s (channel: %s)", entry.display_name, entry.channel_id)
		return entry

	def refresh_heartbeat(self) -> InstanceEntry:
		"""Bump last_seen. Re-registers if another writer removed the entry."""
		entries = self._store.load()
		index = self._store.find_index(entries, self.identity)
		if index < 0:
			logger.info("Entry for %s missing from registry, re-registering", self.identity)
			return self.register_or_update()

		entry = entries[index]
		entry.last_seen = now_iso()
		entry.active = True
		if not self._store.save(entries):
			logger.warning("Heartbeat for %s was not saved", self.identity)
			return entry
		self._current = entry
		logger.debug("Heartbeat for %s at %s", self.identity, entry.last_seen)
		return entry

	def deactivate(self) -> InstanceEntry | None:
		"""Mark the entry inactive on shutdown. The row itself is kept."""
		entries = self._store.load()
		index = self._store.find_index(entries, self.identity)
		if index < 0:
			return None

		entry = entries[index]
		entry.active = False
		entry.last_seen = now_iso()
		if not self._store.save(entries):
			logger.warning("Instance %s could not be marked inactive", entry.display_name)
			return entry
		self._current = entry
		logger.info("Deactivated instance %s", entry.display_name)
		return entry

	def on_transient_suspend(self) -> None:
		"""Refresh last_seen before an in-place reload, leaving the entry active."""
		self._suspended = True
		entries = self._store.load()
		index = self._store.find_index(entries, self.identity)
		if index < 0:
			return
		entries[index].last_seen = now_iso()
		if self._store.save(entries):
			self._current = entries[index]

	def on_resume(self) -> InstanceEntry:
		self._suspended = False
		self._last_tick = self._clock()
		return self.register_or_update()

	def tick(self) -> bool:
		"""Refresh the heartbeat if the interval has elapsed. Returns True if it did."""
		if self._suspended:
			return False
		now = self._clock()
		if self._last_tick is not None and now - self._last_tick < self._interval:
			return False
		self._last_tick = now
		self.refresh_heartbeat()
		return True

	async def run(self, stop_event: asyncio.Event) -> None:
		"""Drive `tick()` until `stop_event` is set."""
		poll = min(self._interval, 1.0)
		while not stop_event.is_set():
			self.tick()
			try:
				await asyncio.wait_for(stop_event.wait(), timeout=poll)
			except asyncio.TimeoutError:
				pass
