"""Tool descriptors: the schema and handlers of one callable operation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from beacon.errors import InvalidArgumentError, ToolImplementationError


class ParameterKind(str, Enum):
	"""Wire types a tool parameter may declare."""

	STRING = "string"
	NUMBER = "number"
	BOOLEAN = "boolean"
	OBJECT = "object"
	ARRAY = "array"


_KIND_TYPES: dict[ParameterKind, Any] = {
	ParameterKind.STRING: str,
	ParameterKind.NUMBER: int | float,
	ParameterKind.BOOLEAN: bool,
	ParameterKind.OBJECT: dict[str, Any],
	ParameterKind.ARRAY: list[Any],
}


@dataclass
class ToolParameter:
	"""One declared parameter of a tool."""

	name: str
	description: str = ""
	kind: ParameterKind = ParameterKind.STRING
	required: bool = False
	default: Any = None

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {
			"name": self.name,
			"description": self.description,
			"type": ParameterKind(self.kind).value,
			"required": self.required,
		}
		if self.default is not None:
			data["default_value"] = self.default
		return data


class Tool:
	"""Base class for tools exposed by an instance.

	Subclasses set the class attributes and override `execute` (synchronous
	tools) or `execute_async` (asynchronous tools, `is_async = True`). An
	asynchronous tool receives a future and must eventually resolve it with a
	result or reject it with an exception.
	"""

	name: str = ""
	description: str = ""
	parameters: list[ToolParameter] = []
	structured_output: bool = True
	is_async: bool = False
	requires_polling: bool = False
	poll_action: str | None = None

	_argument_model: type[BaseModel] | None = None

	def execute(self, params: dict[str, Any]) -> Any:
		raise ToolImplementationError(
			f"Tool '{self.name}' must override execute() when is_async is False"
		)

	def execute_async(self, params: dict[str, Any], future: asyncio.Future[Any]) -> None:
		future.set_exception(ToolImplementationError(
			f"Tool '{self.name}' must override execute_async() when is_async is True"
		))

	def to_registration_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {
			"name": self.name,
			"description": self.description,
			"structured_output": self.structured_output,
			"requires_polling": self.requires_polling,
		}
		if self.poll_action:
			data["poll_action"] = self.poll_action
		data["parameters"] = [p.to_dict() for p in self.parameters]
		return data

	def argument_model(self) -> type[BaseModel]:
		"""Pydantic model generated from `parameters`, built once per instance."""
		if self._argument_model is None:
			fields: dict[str, Any] = {}
			for param in self.parameters:
				annotation = _KIND_TYPES[ParameterKind(param.kind)]
				if param.required:
					fields[param.name] = (annotation, ...)
				else:
					fields[param.name] = (annotation | None, param.default)
			self._argument_model = create_model(
				f"{self.name or type(self).__name__}Arguments",
				__config__=ConfigDict(extra="allow"),
				**fields,
			)
		return self._argument_model

	def validate_arguments(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
		"""Check required and typed fields, filling declared defaults.

		Raises:
			InvalidArgumentError: If the arguments do not match the parameters.
		"""
		if arguments is None:
			arguments = {}
		if not isinstance(arguments, dict):
			raise InvalidArgumentError("Tool arguments must be a JSON object")
		try:
			validated = self.argument_model().model_validate(arguments)
		except ValidationError as exc:
			problems = "; ".join(
				f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
				for err in exc.errors()
			)
			raise InvalidArgumentError(f"Invalid arguments for '{self.name}': {problems}") from exc

		params = validated.model_dump(exclude_unset=True)
		for param in self.parameters:
			if param.name not in params and param.default is not None:
				params[param.name] = param.default
		return params

	# -- Parameter helpers --

	@staticmethod
	def get_required_str(params: dict[str, Any], name: str) -> str:
		value = params.get(name)
		if value is None or str(value) == "":
			raise InvalidArgumentError(f"Required parameter '{name}' is missing or empty")
		return str(value)

	@staticmethod
	def get_optional_str(params: dict[str, Any], name: str, default: str | None = None) -> str | None:
		value = params.get(name)
		return default if value is None else str(value)

	@staticmethod
	def get_optional_float(params: dict[str, Any], name: str, default: float = 0.0) -> float:
		value = params.get(name)
		return default if value is None else float(value)


class FunctionTool(Tool):
	"""Tool built from plain callables, for registration without subclassing."""

	def __init__(
		self,
		name: str,
		description: str = "",
		handler: Callable[[dict[str, Any]], Any] | None = None,
		async_handler: Callable[[dict[str, Any], asyncio.Future[Any]], None] | None = None,
		parameters: list[ToolParameter] | None = None,
		structured_output: bool = True,
		requires_polling: bool = False,
		poll_action: str | None = None,
	) -> None:
		self.name = name
		self.description = description
		self.parameters = list(parameters or [])
		self.structured_output = structured_output
		self.is_async = async_handler is not None
		self.requires_polling = requires_polling
		self.poll_action = poll_action
		self._handler = handler
		self._async_handler = async_handler

	def execute(self, params: dict[str, Any]) -> Any:
		if self._handler is None:
			return super().execute(params)
		return self._handler(params)

	def execute_async(self, params: dict[str, Any], future: asyncio.Future[Any]) -> None:
		if self._async_handler is None:
			super().execute_async(params, future)
			return
		self._async_handler(params, future)

