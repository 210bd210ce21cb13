"""Data models for the discovery registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
	return uuid4().hex[:12]


def parse_timestamp(value: str) -> datetime | None:
	"""Parse an ISO-8601 timestamp, returning None when it cannot be read.

	A trailing ``Z`` is accepted and naive values are treated as UTC.
	"""
	if not value:
		return None
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except (ValueError, TypeError, AttributeError):
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


class InstanceEntrySchema(BaseModel):
	"""Pydantic schema for one row of the registry file."""

	model_config = ConfigDict(extra="ignore")

	projectPath: str = Field(min_length=1)
	projectName: str = ""
	pipeName: str = ""
	port: int | None = None
	pid: int = 0
	unityVersion: str = ""
	lastSeen: str = ""
	isActive: bool = False

	# Only projectPath can reject a row; other writers may leave nulls or odd
	# types behind and their rows must survive a load/save cycle.
	@field_validator("projectName", "pipeName", "unityVersion", "lastSeen", mode="before")
	@classmethod
	def _coerce_str(cls, value: Any) -> str:
		if value is None:
			return ""
		return value if isinstance(value, str) else str(value)

	@field_validator("port", mode="before")
	@classmethod
	def _coerce_port(cls, value: Any) -> int | None:
		if isinstance(value, bool):
			return None
		try:
			return int(value)
		except (TypeError, ValueError):
			return None

	@field_validator("pid", mode="before")
	@classmethod
	def _coerce_pid(cls, value: Any) -> int:
		if isinstance(value, bool):
			return 0
		try:
			return int(value)
		except (TypeError, ValueError):
			return 0

	@field_validator("isActive", mode="before")
	@classmethod
	def _coerce_active(cls, value: Any) -> bool:
		return value if isinstance(value, bool) else False


@dataclass
class InstanceEntry:
	"""One discoverable instance in the shared registry."""

	identity: str = ""
	display_name: str = ""
	channel_id: str = ""
	legacy_port: int | None = None
	process_id: int = 0
	version_tag: str = ""
	last_seen: str = field(default_factory=now_iso)
	active: bool = True

	def to_dict(self) -> dict[str, Any]:
		return {
			"projectPath": self.identity,
			"projectName": self.display_name,
			"pipeName": self.channel_id,
			"port": self.legacy_port,
			"pid": self.process_id,
			"unityVersion": self.version_tag,
			"lastSeen": self.last_seen,
			"isActive": self.active,
		}

	@classmethod
	def from_dict(cls, raw: dict[str, Any]) -> InstanceEntry:
		"""Build an entry from a registry row.

		Raises:
			pydantic.ValidationError: If the row is malformed.
		"""
		row = InstanceEntrySchema.model_validate(raw)
		return cls(
			identity=row.projectPath,
			display_name=row.projectName,
			channel_id=row.pipeName,
			legacy_port=row.port,
			process_id=row.pid,
			version_tag=row.unityVersion,
			last_seen=row.lastSeen,
			active=row.isActive,
		)

	def age_seconds(self, now: datetime) -> float | None:
		"""Seconds since last_seen, or None if the timestamp is unreadable."""
		seen = parse_timestamp(self.last_seen)
		if seen is None:
			return None
		return (now - seen).total_seconds()
