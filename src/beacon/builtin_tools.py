"""Tools every instance registers at startup.

The catalog is populated from the explicit list returned by
`builtin_tools()`; there is no class scanning.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from beacon.constants import MAX_CLEANUP_JOBS
from beacon.errors import INVALID_ARGUMENT, ToolError
from beacon.models import _new_id, now_iso
from beacon.tools import ParameterKind, Tool, ToolParameter

if TYPE_CHECKING:
	from beacon.catalog import ToolCatalog
	from beacon.discovery import DiscoveryQuery
	from beacon.heartbeat import HeartbeatScheduler

logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 300.0


class PingTool(Tool):
	name = "ping"
	description = "Simple ping tool to test the connection and tool registration"
	parameters = [
		ToolParameter(
			name="message",
			description="Optional message to echo back",
			kind=ParameterKind.STRING,
			default="pong",
		),
	]

	def __init__(self, scheduler: HeartbeatScheduler | None = None) -> None:
		self._scheduler = scheduler

	def execute(self, params: dict[str, Any]) -> Any:
		result: dict[str, Any] = {
			"response": self.get_optional_str(params, "message", "pong"),
			"timestamp": now_iso(),
		}
		entry = self._scheduler.current_entry if self._scheduler else None
		if entry is not None:
			result["projectName"] = entry.display_name
			result["unityVersion"] = entry.version_tag
		return result


class ListToolsTool(Tool):
	name = "list_tools"
	description = "List the registration schema of every tool this instance exposes"

	def __init__(self, catalog: ToolCatalog) -> None:
		self._catalog = catalog

	def execute(self, params: dict[str, Any]) -> Any:
		tools = self._catalog.export_schema()
		return {"count": len(tools), "tools": tools}


class InstanceInfoTool(Tool):
	name = "instance_info"
	description = "Return this instance's entry in the discovery registry"

	def __init__(self, scheduler: HeartbeatScheduler) -> None:
		self._scheduler = scheduler

	def execute(self, params: dict[str, Any]) -> Any:
		entry = self._scheduler.current_entry
		if entry is None:
			raise ToolError("Instance is not registered", "not_registered")
		return entry.to_dict()


class WaitTool(Tool):
	name = "wait"
	description = "Wait for the given number of seconds without blocking the instance"
	is_async = True
	parameters = [
		ToolParameter(
			name="seconds",
			description=f"Seconds to wait (0-{int(MAX_WAIT_SECONDS)})",
			kind=ParameterKind.NUMBER,
			default=1.0,
		),
	]

	def execute_async(self, params: dict[str, Any], future: asyncio.Future[Any]) -> None:
		seconds = self.get_optional_float(params, "seconds", 1.0)
		if not 0 <= seconds <= MAX_WAIT_SECONDS:
			raise ToolError(f"seconds must be between 0 and {MAX_WAIT_SECONDS:g}", INVALID_ARGUMENT)

		def _resolve() -> None:
			if not future.done():
				future.set_result({"waited": seconds})

		asyncio.get_running_loop().call_later(seconds, _resolve)


@dataclass
class CleanupJob:
	"""Background registry sweep started by `cleanup_registry`."""

	id: str
	threshold: float
	status: str = "running"  # running/completed/failed
	removed: list[str] | None = None
	error: str | None = None
	started_at: str = ""
	finished_at: str | None = None


class CleanupJobs:
	"""Runs eviction sweeps as loop tasks and tracks their status.

	The sweep runs on the event loop, not a worker thread, so its registry
	save never interleaves with a heartbeat save from the same process.
	Only the newest `max_jobs` jobs are kept; finished ones are dropped first.
	"""

	def __init__(self, query: DiscoveryQuery, max_jobs: int = MAX_CLEANUP_JOBS) -> None:
		self._query = query
		self._max_jobs = max_jobs
		self._jobs: dict[str, CleanupJob] = {}
		self._tasks: set[asyncio.Task[Any]] = set()

	def __len__(self) -> int:
		return len(self._jobs)

	def start(self, threshold: float) -> CleanupJob:
		job = CleanupJob(id=_new_id(), threshold=threshold, started_at=now_iso())
		self._jobs[job.id] = job
		self._prune()
		task = asyncio.get_running_loop().create_task(self._run(job))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return job

	def _prune(self) -> None:
		finished = [job_id for job_id, job in self._jobs.items() if job.status != "running"]
		while len(self._jobs) > self._max_jobs and finished:
			del self._jobs[finished.pop(0)]

	async def _run(self, job: CleanupJob) -> None:
		# Let the accepting call return before the sweep touches the registry
		await asyncio.sleep(0)
		try:
			removed = self._query.evict_stale(job.threshold)
		except Exception as exc:
			logger.error("Registry cleanup job %s failed: %s", job.id, exc)
			job.status = "failed"
			job.error = str(exc)
		else:
			job.status = "completed"
			job.removed = [e.identity for e in removed]
		job.finished_at = now_iso()

	def get(self, job_id: str) -> CleanupJob | None:
		return self._jobs.get(job_id)


class CleanupRegistryTool(Tool):
	name = "cleanup_registry"
	description = (
		"Remove inactive registry entries older than a threshold. Returns a job id; "
		"poll cleanup_status for the outcome."
	)
	is_async = True
	requires_polling = True
	poll_action = "cleanup_status"

	def __init__(self, jobs: CleanupJobs, default_threshold: float) -> None:
		self._jobs = jobs
		self.parameters = [
			ToolParameter(
				name="threshold",
				description="Age in seconds after which inactive entries are removed",
				kind=ParameterKind.NUMBER,
				default=default_threshold,
			),
		]

	def execute_async(self, params: dict[str, Any], future: asyncio.Future[Any]) -> None:
		threshold = self.get_optional_float(params, "threshold", 0.0)
		if threshold < 0:
			raise ToolError("threshold must not be negative", INVALID_ARGUMENT)
		job = self._jobs.start(threshold)
		future.set_result({"job_id": job.id, "status": "accepted"})


class CleanupStatusTool(Tool):
	name = "cleanup_status"
	description = "Get the status of a cleanup_registry job"
	parameters = [
		ToolParameter(
			name="job_id",
			description="Job id returned by cleanup_registry",
			kind=ParameterKind.STRING,
			required=True,
		),
	]

	def __init__(self, jobs: CleanupJobs) -> None:
		self._jobs = jobs

	def execute(self, params: dict[str, Any]) -> Any:
		job_id = self.get_required_str(params, "job_id")
		job = self._jobs.get(job_id)
		if job is None:
			raise ToolError(f"Unknown cleanup job: {job_id}", "not_found")
		return asdict(job)


def builtin_tools(
	catalog: ToolCatalog,
	scheduler: HeartbeatScheduler,
	query: DiscoveryQuery,
	stale_threshold: float,
) -> list[Tool]:
	"""The tools every instance exposes, in registration order."""
	jobs = CleanupJobs(query)
	return [
		PingTool(scheduler),
		ListToolsTool(catalog),
		InstanceInfoTool(scheduler),
		WaitTool(),
		CleanupRegistryTool(jobs, stale_threshold),
		CleanupStatusTool(jobs),
	]
