"""Derive the identity, display name and channel id of an instance."""

from __future__ import annotations

import hashlib
from pathlib import Path

from beacon.constants import DEFAULT_CHANNEL_PREFIX


def resolve_identity(path: str | Path | None = None) -> str:
	"""Absolute path used as the unique registry key for an instance."""
	if path is None or str(path) == "":
		path = Path.cwd()
	return str(Path(path).expanduser().resolve())


def display_name_for(identity: str) -> str:
	name = Path(identity).name
	return name or "Unknown Project"


def channel_id_for(identity: str, prefix: str = DEFAULT_CHANNEL_PREFIX) -> str:
	"""Stable transport handle: prefix plus the first 8 hex chars of md5(identity)."""
	digest = hashlib.md5(identity.encode("utf-8"), usedforsecurity=False).hexdigest()[:8]
	return f"{prefix}-{digest}"
