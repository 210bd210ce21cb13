"""CLI interface for beacon."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import signal
import sys
from datetime import datetime, timezone
from typing import Any

from beacon.config import BeaconConfig, load_config, validate_config
from beacon.constants import MAX_LOG_BYTES
from beacon.discovery import DiscoveryQuery
from beacon.models import parse_timestamp
from beacon.registry import RegistryStore


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="beacon",
		description="Beacon - discovery registry and tool dispatch for local instances",
	)
	parser.add_argument("--config", default=None, help="Config file path (beacon.toml)")
	sub = parser.add_subparsers(dest="command")

	# beacon instances
	inst = sub.add_parser("instances", help="List registered instances")
	inst.add_argument("--all", action="store_true", dest="show_all", help="Include inactive instances")
	inst.add_argument("--json", action="store_true", dest="json_output", help="JSON output")

	# beacon evict
	evict = sub.add_parser("evict", help="Remove stale inactive instances from the registry")
	evict.add_argument("--threshold", type=float, default=None, help="Age in seconds (default: config)")

	# beacon tools
	sub.add_parser("tools", help="Print the tool registration schema as JSON")

	# beacon host
	host = sub.add_parser("host", help="Run an instance: register, heartbeat, serve health")
	host.add_argument("--path", default=None, help="Instance identity path (default: cwd)")
	host.add_argument("--no-health", action="store_true", help="Do not serve the health endpoint")

	# beacon mcp
	sub.add_parser("mcp", help="Start the MCP server (stdio)")

	# beacon validate-config
	sub.add_parser("validate-config", help="Validate config file semantically")

	return parser


def _load(args: argparse.Namespace) -> BeaconConfig:
	loaded = getattr(args, "loaded_config", None)
	if loaded is not None:
		return loaded
	return load_config(args.config)


def _format_age(last_seen: str) -> str:
	seen = parse_timestamp(last_seen)
	if seen is None:
		return "unknown"
	secs = int((datetime.now(timezone.utc) - seen).total_seconds())
	return f"{secs}s ago"


def cmd_instances(args: argparse.Namespace) -> int:
	"""List instances from the shared registry."""
	config = _load(args)
	query = DiscoveryQuery(RegistryStore(config.registry.resolved_path))
	if args.show_all:
		entries = query.list_all()
	else:
		entries = query.list_active(config.discovery.active_threshold)

	if args.json_output:
		print(json.dumps([e.to_dict() for e in entries], indent=2))
		return 0

	if not entries:
		print("No instances found. Start one with 'beacon host'.")
		return 0

	for e in entries:
		state = "active" if e.active else "inactive"
		port_info = f" port={e.legacy_port}" if e.legacy_port else ""
		print(
			f"  {e.display_name} (PID {e.process_id}) [{state}, {_format_age(e.last_seen)}]"
			f" {e.channel_id}{port_info}: {e.identity}"
		)
	return 0


def cmd_evict(args: argparse.Namespace) -> int:
	"""Remove stale inactive entries."""
	config = _load(args)
	threshold = args.threshold if args.threshold is not None else config.discovery.stale_threshold
	query = DiscoveryQuery(RegistryStore(config.registry.resolved_path))
	removed = query.evict_stale(threshold)
	for e in removed:
		print(f"Evicted '{e.display_name}' -> {e.identity}")
	print(f"{len(removed)} entr{'y' if len(removed) == 1 else 'ies'} removed")
	return 0


def cmd_tools(args: argparse.Namespace) -> int:
	"""Print the registration schema of the built-in tools."""
	from beacon.builtin_tools import builtin_tools
	from beacon.host import InstanceHost

	config = _load(args)
	host = InstanceHost(config, serve_health=False)
	host.catalog.populate(builtin_tools(
		host.catalog, host.scheduler, host.query, config.discovery.stale_threshold,
	))
	print(json.dumps(host.catalog.export_schema(), indent=2))
	return 0


def cmd_host(args: argparse.Namespace) -> int:
	"""Run an instance until interrupted."""
	from beacon.host import InstanceHost

	config = _load(args)
	if args.path:
		config.instance.path = args.path
	host = InstanceHost(config, serve_health=False if args.no_health else None)

	async def _run() -> None:
		stop_event = asyncio.Event()
		loop = asyncio.get_running_loop()
		for sig in (signal.SIGINT, signal.SIGTERM):
			try:
				loop.add_signal_handler(sig, stop_event.set)
			except (NotImplementedError, RuntimeError):
				pass
		host.start()
		entry = host.scheduler.current_entry
		name = entry.display_name if entry else host.identity
		print(f"Instance '{name}' registered in {host.store.path}")
		print("Press Ctrl-C to stop.")
		try:
			await host.run(stop_event)
		finally:
			host.shutdown()

	try:
		asyncio.run(_run())
	except KeyboardInterrupt:
		host.shutdown()
	return 0


def cmd_mcp(args: argparse.Namespace) -> int:
	"""Start the MCP server."""
	try:
		from beacon.mcp_server import run_mcp_server
	except ImportError:
		print("MCP dependencies not installed. Run: pip install mcp")
		return 1

	run_mcp_server(_load(args))
	return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
	"""Validate config file semantically."""
	config = _load(args)
	issues = validate_config(config)

	errors = [(lvl, msg) for lvl, msg in issues if lvl == "error"]
	warnings = [(lvl, msg) for lvl, msg in issues if lvl == "warning"]

	for level, msg in issues:
		print(f"[{level.upper()}] {msg}")

	if not issues:
		print("Config OK")

	print(f"\n{len(errors)} error(s), {len(warnings)} warning(s)")
	return 1 if errors else 0


COMMANDS = {
	"instances": cmd_instances,
	"evict": cmd_evict,
	"tools": cmd_tools,
	"host": cmd_host,
	"mcp": cmd_mcp,
	"validate-config": cmd_validate_config,
}


def _configure_logging(level: str = "INFO", log_file: str = "") -> None:
	logging.basicConfig(
		level=getattr(logging, level.upper(), logging.INFO),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
		stream=sys.stderr,
		force=True,
	)
	if log_file:
		handler = logging.handlers.RotatingFileHandler(
			log_file, maxBytes=MAX_LOG_BYTES, backupCount=3, encoding="utf-8",
		)
		handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
		logging.getLogger().addHandler(handler)


def main(argv: list[str] | None = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)

	if args.command is None:
		parser.print_help()
		return 0

	try:
		config = _load(args)
	except (FileNotFoundError, ValueError) as e:
		print(f"Error: {e}")
		return 1
	args.loaded_config = config
	_configure_logging(config.logging.level, config.logging.file)

	handler: Any = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1

	return handler(args)


if __name__ == "__main__":
	sys.exit(main())
