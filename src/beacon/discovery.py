"""Read-side queries over the shared registry, plus the eviction sweep."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from beacon.constants import ACTIVE_THRESHOLD, STALE_THRESHOLD
from beacon.models import InstanceEntry
from beacon.registry import RegistryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class DiscoveryQuery:
	"""List, filter and sweep registry entries.

	`self_identity` is the identity of the calling process, if it is an
	instance itself. Its entry is never evicted.
	"""

	def __init__(
		self,
		store: RegistryStore,
		self_identity: str | None = None,
		now: Callable[[], datetime] = _utcnow,
	) -> None:
		self._store = store
		self._self_identity = self_identity
		self._now = now

	def list_all(self) -> list[InstanceEntry]:
		return self._store.load()

	def list_active(self, stale_threshold: float = ACTIVE_THRESHOLD) -> list[InstanceEntry]:
		"""Entries marked active and seen within `stale_threshold` seconds.

		Entries with an unreadable last_seen are treated as stale.
		"""
		now = self._now()
		active: list[InstanceEntry] = []
		for entry in self._store.load():
			if not entry.active:
				continue
			age = entry.age_seconds(now)
			if age is not None and age < stale_threshold:
				active.append(entry)
		return active

	def evict_stale(self, stale_threshold: float = STALE_THRESHOLD) -> list[InstanceEntry]:
		"""Delete inactive entries older than `stale_threshold` seconds.

		Entries with an unreadable last_seen are kept. Returns the removed entries.
		"""
		now = self._now()
		entries = self._store.load()
		kept: list[InstanceEntry] = []
		removed: list[InstanceEntry] = []
		for entry in entries:
			if self._is_evictable(entry, now, stale_threshold):
				removed.append(entry)
			else:
				kept.append(entry)

		if removed:
			self._store.save(kept)
			logger.info(
				"Evicted %d stale registry entr%s: %s",
				len(removed), "y" if len(removed) == 1 else "ies",
				", ".join(e.display_name or e.identity for e in removed),
			)
		return removed

	def _is_evictable(self, entry: InstanceEntry, now: datetime, threshold: float) -> bool:
		if self._self_identity is not None and entry.identity == self._self_identity:
			return False
		if entry.active:
			return False
		age = entry.age_seconds(now)
		if age is None:
			return False
		return age > threshold

	def find(self, identifier: str, entries: list[InstanceEntry] | None = None) -> InstanceEntry | None:
		"""Look up an entry by identity, then by case-insensitive display name."""
		if entries is None:
			entries = self._store.load()
		for entry in entries:
			if entry.identity == identifier:
				return entry
		lowered = identifier.lower()
		for entry in entries:
			if entry.display_name.lower() == lowered:
				return entry
		return None


class InstanceSelector:
	"""Tracks which instance the automation process is currently targeting."""

	def __init__(self, query: DiscoveryQuery, active_threshold: float = ACTIVE_THRESHOLD) -> None:
		self._query = query
		self._active_threshold = active_threshold
		self._selected: str | None = None

	@property
	def selected_identity(self) -> str | None:
		return self._selected

	def active(self) -> InstanceEntry | None:
		"""Current target, re-selecting automatically if it has gone away."""
		candidates = self._query.list_active(self._active_threshold)
		if self._selected is not None:
			for entry in candidates:
				if entry.identity == self._selected:
					return entry

		if not candidates:
			if self._selected is not None:
				logger.info("Active instance %s is no longer live", self._selected)
			self._selected = None
			return None

		chosen = candidates[0]
		if len(candidates) > 1:
			logger.info(
				"%d live instances, defaulting to %s", len(candidates), chosen.display_name,
			)
		self._selected = chosen.identity
		return chosen

	def switch(self, identifier: str) -> InstanceEntry | None:
		"""Target the live instance matching `identifier`. Returns None if none matches."""
		candidates = self._query.list_active(self._active_threshold)
		entry = self._query.find(identifier, candidates)
		if entry is None:
			return None
		self._selected = entry.identity
		logger.info("Switched to instance %s (%s)", entry.display_name, entry.channel_id)
		return entry
