"""Health checks the automation process runs against registered instances."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from beacon.constants import DEFAULT_HOST, DEFAULT_SCAN_RANGE
from beacon.models import InstanceEntry, now_iso

logger = logging.getLogger(__name__)


@dataclass
class HealthResult:
	"""Reachability of one instance."""

	entry: InstanceEntry
	status: str = "unknown"  # connected/disconnected/unknown
	latency_ms: int | None = None
	checked_at: str = ""

	@property
	def connected(self) -> bool:
		return self.status == "connected"


class HealthChecker:
	"""Checks instance health endpoints over HTTP."""

	def __init__(self, host: str = DEFAULT_HOST, timeout: float = 5.0) -> None:
		self._host = host
		self._timeout = timeout

	def _url(self, port: int) -> str:
		return f"http://{self._host}:{port}/health"

	async def check(self, entry: InstanceEntry) -> HealthResult:
		"""Query `entry`'s health endpoint, refreshing its name and version on success."""
		result = HealthResult(entry=entry, checked_at=now_iso())
		if not entry.legacy_port:
			return result

		start = time.monotonic()
		try:
			async with httpx.AsyncClient(timeout=self._timeout) as client:
				resp = await client.get(self._url(entry.legacy_port))
				if resp.status_code != 200:
					result.status = "disconnected"
					return result
				data = resp.json()
		except (httpx.HTTPError, OSError, ValueError) as exc:
			logger.debug("Health check of %s failed: %s", entry.display_name, exc)
			result.status = "disconnected"
			return result

		result.status = "connected"
		result.latency_ms = int((time.monotonic() - start) * 1000)
		entry.display_name = data.get("projectName") or entry.display_name
		entry.version_tag = data.get("unityVersion") or entry.version_tag
		return result

	async def check_all(self, entries: list[InstanceEntry]) -> list[HealthResult]:
		return list(await asyncio.gather(*(self.check(e) for e in entries)))

	async def _check_port(self, client: httpx.AsyncClient, port: int) -> InstanceEntry | None:
		try:
			resp = await client.get(self._url(port))
			if resp.status_code != 200:
				return None
			data = resp.json()
		except (httpx.HTTPError, OSError, ValueError):
			return None

		identity = data.get("projectPath")
		if not identity:
			return None
		return InstanceEntry(
			identity=identity,
			display_name=data.get("projectName", ""),
			channel_id=data.get("pipeName", ""),
			legacy_port=data.get("port") or port,
			process_id=0,  # not reported by the health endpoint
			version_tag=data.get("unityVersion", ""),
			active=True,
		)

	async def scan_ports(
		self,
		start: int = DEFAULT_SCAN_RANGE[0],
		end: int = DEFAULT_SCAN_RANGE[1],
	) -> list[InstanceEntry]:
		"""Find instances by probing a port range. Fallback when the registry is empty."""
		async with httpx.AsyncClient(timeout=min(self._timeout, 2.0)) as client:
			found = await asyncio.gather(*(
				self._check_port(client, port) for port in range(start, end + 1)
			))
		entries = [e for e in found if e is not None]
		logger.info("Port scan %d-%d found %d instance(s)", start, end, len(entries))
		return entries
