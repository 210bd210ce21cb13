"""Error types and result envelopes for tool dispatch."""

from __future__ import annotations

from typing import Any

UNKNOWN_TOOL = "unknown_tool"
EXECUTION_ERROR = "execution_error"
IMPLEMENTATION_ERROR = "implementation_error"
INVALID_ARGUMENT = "invalid_argument"


class InvalidArgumentError(ValueError):
	"""Raised for catalog misuse or arguments that fail pre-dispatch validation."""


class ToolImplementationError(NotImplementedError):
	"""A tool did not honor its handler contract."""


class ToolError(Exception):
	"""Raised by a handler to report a failure with a specific error type."""

	def __init__(self, message: str, error_type: str = EXECUTION_ERROR) -> None:
		super().__init__(message)
		self.error_type = error_type


def success_envelope(result: Any = None) -> dict[str, Any]:
	return {"success": True, "result": result}


def error_envelope(message: str, error_type: str = "error") -> dict[str, Any]:
	return {"error": {"type": error_type, "message": message}}


def is_error(envelope: dict[str, Any]) -> bool:
	return "error" in envelope
