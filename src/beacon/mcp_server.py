"""MCP server the automation process uses to discover and target instances."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from beacon.config import BeaconConfig, load_config
from beacon.discovery import DiscoveryQuery, InstanceSelector
from beacon.models import InstanceEntry
from beacon.healthcheck import HealthChecker
from beacon.registry import RegistryStore

logger = logging.getLogger(__name__)

server = Server("beacon")


@dataclass
class DiscoveryContext:
	"""Discovery state shared by MCP tool calls for the server's lifetime."""

	config: BeaconConfig
	query: DiscoveryQuery
	selector: InstanceSelector
	checker: HealthChecker

	@classmethod
	def from_config(cls, config: BeaconConfig) -> DiscoveryContext:
		query = DiscoveryQuery(RegistryStore(config.registry.resolved_path))
		return cls(
			config=config,
			query=query,
			selector=InstanceSelector(query, config.discovery.active_threshold),
			checker=HealthChecker(config.bridge.host, config.discovery.health_timeout),
		)


_context: DiscoveryContext | None = None


def _get_context() -> DiscoveryContext:
	global _context
	if _context is None:
		_context = DiscoveryContext.from_config(load_config())
	return _context


# -- Tool definitions --

TOOLS = [
	Tool(
		name="list_instances",
		description=(
			"List running instances with their name, path, channel, version and "
			"liveness. Use this before switch_instance."
		),
		inputSchema={
			"type": "object",
			"properties": {
				"include_inactive": {
					"type": "boolean",
					"description": "Include registered instances that are no longer live",
					"default": False,
				},
				"check_health": {
					"type": "boolean",
					"description": "Check each instance's health endpoint",
					"default": False,
				},
			},
		},
	),
	Tool(
		name="switch_instance",
		description="Target a different live instance. All later calls are routed to it.",
		inputSchema={
			"type": "object",
			"properties": {
				"identifier": {"type": "string", "description": "Instance path or name"},
			},
			"required": ["identifier"],
		},
	),
	Tool(
		name="get_active_instance",
		description="Get the currently targeted instance, or null if none is live.",
		inputSchema={
			"type": "object",
			"properties": {},
		},
	),
	Tool(
		name="evict_stale_instances",
		description="Remove registry entries of instances that shut down long ago.",
		inputSchema={
			"type": "object",
			"properties": {
				"threshold": {
					"type": "number",
					"description": "Age in seconds after which inactive entries are removed",
				},
			},
		},
	),
]


@server.list_tools()
async def list_tools() -> list[Tool]:
	return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
	try:
		result = await _dispatch(name, arguments or {}, _get_context())
		return [TextContent(type="text", text=json.dumps(result, indent=2))]
	except Exception as e:
		logger.error("MCP tool %s failed: %s", name, e)
		return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


async def _dispatch(name: str, args: dict, ctx: DiscoveryContext) -> dict:
	if name == "list_instances":
		return await _tool_list_instances(ctx, args)
	elif name == "switch_instance":
		return _tool_switch_instance(ctx, args["identifier"])
	elif name == "get_active_instance":
		return _tool_get_active_instance(ctx)
	elif name == "evict_stale_instances":
		return _tool_evict_stale(ctx, args)
	else:
		return {"error": f"Unknown tool: {name}"}


def _summarize(entry: InstanceEntry) -> dict[str, Any]:
	return {
		"name": entry.display_name,
		"path": entry.identity,
		"channel": entry.channel_id,
		"port": entry.legacy_port,
		"pid": entry.process_id,
		"version": entry.version_tag,
		"last_seen": entry.last_seen,
		"active": entry.active,
	}


async def _tool_list_instances(ctx: DiscoveryContext, args: dict) -> dict:
	if args.get("include_inactive"):
		entries = ctx.query.list_all()
	else:
		entries = ctx.query.list_active(ctx.config.discovery.active_threshold)

	if not entries and args.get("check_health"):
		entries = await ctx.checker.scan_ports(ctx.config.discovery.scan_start, ctx.config.discovery.scan_end)

	selected = ctx.selector.active()
	instances = []
	for entry in entries:
		info = _summarize(entry)
		info["selected"] = selected is not None and selected.identity == entry.identity
		instances.append(info)

	if args.get("check_health"):
		results = await ctx.checker.check_all(entries)
		for info, res in zip(instances, results):
			info["status"] = res.status
			info["latency_ms"] = res.latency_ms

	if instances:
		message = f"Found {len(instances)} instance(s)"
	else:
		message = "No instances found. Make sure an instance is running with beacon enabled."
	return {
		"instances": instances,
		"count": len(instances),
		"active_instance": selected.identity if selected else None,
		"message": message,
	}


def _tool_switch_instance(ctx: DiscoveryContext, identifier: str) -> dict:
	entry = ctx.selector.switch(identifier)
	if entry is None:
		live = ctx.query.list_active(ctx.config.discovery.active_threshold)
		message = f'Could not switch to instance "{identifier}". '
		if live:
			message += "Available instances: " + ", ".join(e.display_name for e in live)
		else:
			message += "No instances are currently live."
		return {"success": False, "instance": None, "message": message}
	return {
		"success": True,
		"instance": _summarize(entry),
		"message": f'Switched to instance "{entry.display_name}" (channel {entry.channel_id})',
	}


def _tool_get_active_instance(ctx: DiscoveryContext) -> dict:
	entry = ctx.selector.active()
	if entry is None:
		return {"has_active_instance": False, "instance": None, "message": "No live instance."}
	return {
		"has_active_instance": True,
		"instance": _summarize(entry),
		"message": f'Active instance: "{entry.display_name}"',
	}


def _tool_evict_stale(ctx: DiscoveryContext, args: dict) -> dict:
	threshold = args.get("threshold")
	if threshold is None:
		threshold = ctx.config.discovery.stale_threshold
	removed = ctx.query.evict_stale(float(threshold))
	return {"removed": [e.identity for e in removed], "count": len(removed)}


def run_mcp_server(config: BeaconConfig | None = None) -> None:
	"""Entry point for `beacon mcp` CLI command."""
	import asyncio

	global _context
	if config is not None:
		_context = DiscoveryContext.from_config(config)

	async def _run():
		async with stdio_server() as (read_stream, write_stream):
			await server.run(read_stream, write_stream, server.create_initialization_options())

	asyncio.run(_run())
