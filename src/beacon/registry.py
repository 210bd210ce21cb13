"""Shared instance registry at ~/.beacon/projects.json.

Every instance process on the machine reads and rewrites the same JSON
file. There is no cross-process lock: callers do a full load, mutate the
list in memory, then save it back, and the last save wins.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from beacon.constants import DEFAULT_REGISTRY_FILE
from beacon.models import InstanceEntry

logger = logging.getLogger(__name__)


class RegistryStore:
	"""Load and save the full list of registry entries."""

	def __init__(self, path: str | Path | None = None) -> None:
		if path is None:
			path = DEFAULT_REGISTRY_FILE
		self._path = Path(path).expanduser()

	@property
	def path(self) -> Path:
		return self._path

	def load(self) -> list[InstanceEntry]:
		"""Read all entries. Missing or unreadable files yield an empty list."""
		try:
			raw = json.loads(self._path.read_text(encoding="utf-8"))
		except FileNotFoundError:
			return []
		except (OSError, ValueError) as exc:
			logger.warning("Failed to load registry %s: %s", self._path, exc)
			return []

		if raw is None:
			return []
		if not isinstance(raw, list):
			logger.warning("Registry %s is not a JSON array, ignoring it", self._path)
			return []

		entries: list[InstanceEntry] = []
		seen: set[str] = set()
		for row in raw:
			if not isinstance(row, dict):
				logger.warning("Skipping non-object registry row: %r", row)
				continue
			try:
				entry = InstanceEntry.from_dict(row)
			except ValidationError as exc:
				logger.warning("Skipping malformed registry row: %s", exc)
				continue
			if entry.identity in seen:
				logger.warning("Dropping duplicate registry row for %s", entry.identity)
				continue
			seen.add(entry.identity)
			entries.append(entry)
		return entries

	def save(self, entries: list[InstanceEntry]) -> bool:
		"""Overwrite the registry file with `entries`. Returns False on I/O failure."""
		payload = json.dumps([e.to_dict() for e in entries], indent=2)
		# Unique per call: threads in one process may save concurrently
		tmp_path = self._path.with_name(f"{self._path.name}.{os.getpid()}.{uuid4().hex[:8]}.tmp")
		try:
			self._path.parent.mkdir(parents=True, exist_ok=True)
			tmp_path.write_text(payload, encoding="utf-8")
			os.replace(tmp_path, self._path)
		except OSError as exc:
			logger.error("Failed to save registry %s: %s", self._path, exc)
			try:
				tmp_path.unlink(missing_ok=True)
			except OSError:
				pass
			return False
		return True

	@staticmethod
	def find_index(entries: list[InstanceEntry], identity: str) -> int:
		"""Index of the entry with `identity`, or -1."""
		for i, entry in enumerate(entries):
			if entry.identity == identity:
				return i
		return -1

	def get(self, identity: str) -> InstanceEntry | None:
		entries = self.load()
		index = self.find_index(entries, identity)
		if index < 0:
			return None
		return entries[index]
