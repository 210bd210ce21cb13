"""Catalog of the tools an instance exposes, keyed by tool name."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from beacon.errors import InvalidArgumentError
from beacon.tools import Tool

logger = logging.getLogger(__name__)


class ToolCatalog:
	"""Name -> Tool mapping. Re-registering a name replaces the earlier tool."""

	def __init__(self) -> None:
		self._tools: dict[str, Tool] = {}

	def __len__(self) -> int:
		return len(self._tools)

	def __contains__(self, name: object) -> bool:
		return name in self._tools

	def __iter__(self) -> Iterator[Tool]:
		return iter(list(self._tools.values()))

	@property
	def names(self) -> list[str]:
		return list(self._tools)

	def register(self, tool: Tool | None) -> None:
		"""Add `tool`, replacing any tool already registered under its name.

		Raises:
			InvalidArgumentError: If `tool` is None or has an empty name.
		"""
		if tool is None:
			raise InvalidArgumentError("Cannot register a missing tool")
		if not tool.name:
			raise InvalidArgumentError("Tool name cannot be empty")

		if tool.name in self._tools:
			logger.warning("Tool '%s' already registered, replacing it", tool.name)
		self._tools[tool.name] = tool
		logger.info("Registered tool: %s", tool.name)

	def unregister(self, name: str) -> bool:
		"""Remove a tool. Returns True if it was registered."""
		if self._tools.pop(name, None) is None:
			return False
		logger.info("Unregistered tool: %s", name)
		return True

	def resolve(self, name: str) -> Tool | None:
		return self._tools.get(name)

	def populate(self, tools: Iterable[Tool]) -> int:
		"""Register every tool in `tools`. Returns the catalog size afterwards."""
		for tool in tools:
			self.register(tool)
		logger.info("Tool catalog holds %d tools", len(self._tools))
		return len(self._tools)

	def export_schema(self) -> list[dict[str, Any]]:
		"""Registration schema of every tool, in registration order."""
		return [tool.to_registration_dict() for tool in self._tools.values()]

	def clear(self) -> None:
		self._tools.clear()
		logger.info("Cleared all tools")
