"""HTTP health endpoint an instance serves on its legacy port.

Lets the automation process confirm an instance is reachable before
targeting it. Served by FastAPI/uvicorn on a background thread.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
	from beacon.config import BridgeConfig
	from beacon.dispatcher import Dispatcher
	from beacon.heartbeat import HeartbeatScheduler

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
	"""Body of GET /health."""

	status: str = "ok"
	pipeName: str = ""
	port: int | None = None
	projectName: str = ""
	projectPath: str = ""
	unityVersion: str = ""
	toolCount: int = 0
	requestCount: int = 0
	lastRequestTime: str | None = None


class HealthServer:
	"""Health endpoint backed by FastAPI."""

	def __init__(
		self,
		config: BridgeConfig,
		scheduler: HeartbeatScheduler,
		dispatcher: Dispatcher,
	) -> None:
		self._config = config
		self._scheduler = scheduler
		self._dispatcher = dispatcher
		self._server_thread: threading.Thread | None = None
		self._server: Any = None
		self._app = self._build_app()

	def _build_app(self) -> Any:
		from fastapi import FastAPI

		app = FastAPI(title="beacon instance", version="1")
		scheduler = self._scheduler
		dispatcher = self._dispatcher

		@app.get("/health")
		def get_health() -> dict[str, Any]:
			entry = scheduler.current_entry
			response = HealthResponse(
				status="ok" if entry is not None and entry.active else "starting",
				toolCount=len(dispatcher.catalog),
				requestCount=dispatcher.request_count,
				lastRequestTime=dispatcher.last_request_time,
			)
			if entry is not None:
				response.pipeName = entry.channel_id
				response.port = entry.legacy_port
				response.projectName = entry.display_name
				response.projectPath = entry.identity
				response.unityVersion = entry.version_tag
			return response.model_dump()

		@app.get("/tools")
		def get_tools() -> list[dict[str, Any]]:
			return dispatcher.catalog.export_schema()

		@app.get("/activity")
		def get_activity() -> list[dict[str, Any]]:
			return dispatcher.recent_activity()

		return app

	@property
	def app(self) -> Any:
		"""Expose the FastAPI app (useful for testing with TestClient)."""
		return self._app

	def start(self) -> None:
		"""Launch uvicorn in a background thread (non-blocking)."""
		import uvicorn

		uvi_config = uvicorn.Config(
			app=self._app,
			host=self._config.host,
			port=self._config.port,
			log_level="warning",
		)
		self._server = uvicorn.Server(uvi_config)

		self._server_thread = threading.Thread(
			target=self._server.run,
			daemon=True,
			name="beacon-health",
		)
		self._server_thread.start()
		logger.info("Health endpoint started on %s:%d", self._config.host, self._config.port)

	def stop(self) -> None:
		"""Shut down the server gracefully."""
		if self._server is not None:
			self._server.should_exit = True
			if self._server_thread is not None:
				self._server_thread.join(timeout=5)
			self._server = None
			self._server_thread = None
			logger.info("Health endpoint stopped")
