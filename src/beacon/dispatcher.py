"""Resolve a tool by name, run it, and wrap the outcome in an envelope."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any

from beacon.catalog import ToolCatalog
from beacon.constants import MAX_ACTIVITY_ENTRIES
from beacon.errors import (
	EXECUTION_ERROR,
	IMPLEMENTATION_ERROR,
	INVALID_ARGUMENT,
	UNKNOWN_TOOL,
	InvalidArgumentError,
	ToolError,
	ToolImplementationError,
	error_envelope,
	is_error,
	success_envelope,
)
from beacon.models import now_iso
from beacon.tools import Tool

logger = logging.getLogger(__name__)


@dataclass
class RequestActivity:
	"""One completed invocation, kept for diagnostics."""

	tool: str
	duration_ms: int
	success: bool
	error: str | None = None
	timestamp: str = ""


class Dispatcher:
	"""Executes catalog tools and never lets a handler fault escape.

	Synchronous tools run inline on the calling event loop. Asynchronous
	tools are handed a future and `execute` waits for it with no timeout of
	its own; callers wanting one should wrap `execute` in `asyncio.wait_for`.
	"""

	def __init__(self, catalog: ToolCatalog, history_size: int = MAX_ACTIVITY_ENTRIES) -> None:
		self._catalog = catalog
		self._request_count = 0
		self._last_request_time: str | None = None
		self._activity: deque[RequestActivity] = deque(maxlen=history_size)

	@property
	def catalog(self) -> ToolCatalog:
		return self._catalog

	@property
	def request_count(self) -> int:
		return self._request_count

	@property
	def last_request_time(self) -> str | None:
		return self._last_request_time

	def recent_activity(self) -> list[dict[str, Any]]:
		return [asdict(a) for a in self._activity]

	async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
		"""Run tool `name` and return a success or error envelope."""
		self._request_count += 1
		self._last_request_time = now_iso()
		start = time.monotonic()

		envelope = await self._execute(name, arguments)

		duration_ms = int((time.monotonic() - start) * 1000)
		error = envelope["error"]["message"] if is_error(envelope) else None
		self._activity.append(RequestActivity(
			tool=name,
			duration_ms=duration_ms,
			success=error is None,
			error=error,
			timestamp=self._last_request_time,
		))
		return envelope

	async def _execute(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
		tool = self._catalog.resolve(name)
		if tool is None:
			return error_envelope(f"Unknown tool: {name}", UNKNOWN_TOOL)

		try:
			params = tool.validate_arguments(arguments)
		except InvalidArgumentError as exc:
			return error_envelope(str(exc), INVALID_ARGUMENT)

		try:
			if tool.is_async:
				result = await self._run_async(tool, params)
			else:
				result = tool.execute(params)
		except ToolImplementationError as exc:
			logger.error("Tool %s does not implement its handler: %s", name, exc)
			return error_envelope(str(exc), IMPLEMENTATION_ERROR)
		except ToolError as exc:
			logger.error("Tool %s failed: %s", name, exc)
			return error_envelope(str(exc), exc.error_type)
		except Exception as exc:
			logger.error("Error executing tool %s: %s", name, exc)
			return error_envelope(str(exc) or type(exc).__name__, EXECUTION_ERROR)

		return success_envelope(result)

	async def _run_async(self, tool: Tool, params: dict[str, Any]) -> Any:
		future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
		tool.execute_async(params, future)
		try:
			return await future
		except asyncio.CancelledError:
			if future.cancelled() and not _current_task_cancelling():
				raise ToolError(f"Tool '{tool.name}' was cancelled", EXECUTION_ERROR) from None
			raise


def _current_task_cancelling() -> bool:
	task = asyncio.current_task()
	return task is not None and task.cancelling() > 0
