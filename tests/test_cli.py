"""Tests for the beacon CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from beacon.cli import build_parser, main
from beacon.registry import RegistryStore
from conftest import make_entry


@pytest.fixture()
def cli_config(tmp_path: Path, registry_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
	monkeypatch.delenv("BEACON_REGISTRY_PATH", raising=False)
	monkeypatch.delenv("BEACON_PORT", raising=False)
	toml = tmp_path / "beacon.toml"
	toml.write_text(
		f'[registry]\npath = "{registry_path}"\n'
		f'[instance]\npath = "{tmp_path / "my-game"}"\n'
		'[bridge]\nhealth_enabled = false\n'
	)
	return toml


class TestParser:
	def test_no_command_returns_0(self) -> None:
		assert main([]) == 0

	def test_instances_flags(self) -> None:
		args = build_parser().parse_args(["instances", "--all", "--json"])
		assert args.show_all is True
		assert args.json_output is True

	def test_host_flags(self) -> None:
		args = build_parser().parse_args(["host", "--path", "/work/game", "--no-health"])
		assert args.path == "/work/game"
		assert args.no_health is True

	def test_missing_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
		assert main(["--config", str(tmp_path / "absent.toml"), "instances"]) == 1
		assert "Config file not found" in capsys.readouterr().out

	def test_invalid_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
		bad = tmp_path / "beacon.toml"
		bad.write_text("[registry\n")
		assert main(["--config", str(bad), "instances"]) == 1
		assert capsys.readouterr().out.startswith("Error:")


class TestInstances:
	def test_empty(self, cli_config: Path, capsys: pytest.CaptureFixture) -> None:
		assert main(["--config", str(cli_config), "instances"]) == 0
		assert "No instances found" in capsys.readouterr().out

	def test_lists_live(self, cli_config: Path, store: RegistryStore, capsys: pytest.CaptureFixture) -> None:
		store.save([
			make_entry(identity="/projects/alpha", display_name="alpha", last_seen=_now()),
			make_entry(identity="/projects/beta", display_name="beta", active=False, last_seen=_now()),
		])
		main(["--config", str(cli_config), "instances"])
		out = capsys.readouterr().out
		assert "alpha" in out
		assert "beta" not in out

	def test_all_as_json(self, cli_config: Path, store: RegistryStore, capsys: pytest.CaptureFixture) -> None:
		store.save([
			make_entry(identity="/projects/alpha", last_seen=_now()),
			make_entry(identity="/projects/beta", active=False, last_seen="2001-01-01T00:00:00+00:00"),
		])
		main(["--config", str(cli_config), "instances", "--all", "--json"])
		data = json.loads(capsys.readouterr().out)
		assert [row["projectPath"] for row in data] == ["/projects/alpha", "/projects/beta"]


class TestEvict:
	def test_removes_stale(self, cli_config: Path, store: RegistryStore, capsys: pytest.CaptureFixture) -> None:
		store.save([make_entry(identity="/projects/old", active=False, last_seen="2001-01-01T00:00:00+00:00")])
		assert main(["--config", str(cli_config), "evict"]) == 0
		assert "1 entry removed" in capsys.readouterr().out
		assert store.load() == []

	def test_threshold_flag(self, cli_config: Path, store: RegistryStore, capsys: pytest.CaptureFixture) -> None:
		store.save([make_entry(identity="/projects/recent", active=False, last_seen=_now())])
		main(["--config", str(cli_config), "evict", "--threshold", "3600"])
		assert "0 entries removed" in capsys.readouterr().out
		assert len(store.load()) == 1


class TestTools:
	def test_prints_schema(self, cli_config: Path, capsys: pytest.CaptureFixture) -> None:
		assert main(["--config", str(cli_config), "tools"]) == 0
		schema = json.loads(capsys.readouterr().out)
		assert schema[0]["name"] == "ping"
		assert any(t.get("poll_action") == "cleanup_status" for t in schema)

	def test_does_not_register(self, cli_config: Path, store: RegistryStore) -> None:
		main(["--config", str(cli_config), "tools"])
		assert store.load() == []


class TestHost:
	def test_registers_and_deactivates(self, cli_config: Path, store: RegistryStore) -> None:
		from beacon.host import InstanceHost

		async def stop_immediately(self, stop_event) -> None:
			self.start()

		with patch.object(InstanceHost, "run", stop_immediately):
			assert main(["--config", str(cli_config), "host"]) == 0
		[entry] = store.load()
		assert entry.display_name == "my-game"
		assert entry.active is False

	def test_path_override(self, cli_config: Path, store: RegistryStore, tmp_path: Path) -> None:
		from beacon.host import InstanceHost

		async def stop_immediately(self, stop_event) -> None:
			self.start()

		with patch.object(InstanceHost, "run", stop_immediately):
			main(["--config", str(cli_config), "host", "--path", str(tmp_path / "other-game")])
		assert store.load()[0].display_name == "other-game"

	def test_recovers_corrupt_registry(self, cli_config: Path, registry_path: Path) -> None:
		from beacon.host import InstanceHost

		registry_path.parent.mkdir(parents=True)
		registry_path.write_text("not json")

		async def stop_immediately(self, stop_event) -> None:
			self.start()

		with patch.object(InstanceHost, "run", stop_immediately):
			assert main(["--config", str(cli_config), "host"]) == 0
		raw = json.loads(registry_path.read_text())
		assert len(raw) == 1
		assert raw[0]["projectName"] == "my-game"


class TestValidateConfig:
	def test_ok(self, cli_config: Path, capsys: pytest.CaptureFixture) -> None:
		assert main(["--config", str(cli_config), "validate-config"]) == 0
		assert "Config OK" in capsys.readouterr().out

	def test_errors_return_1(self, tmp_path: Path, cli_config: Path, capsys: pytest.CaptureFixture) -> None:
		cli_config.write_text(cli_config.read_text() + "[heartbeat]\ninterval = 0\n")
		assert main(["--config", str(cli_config), "validate-config"]) == 1
		assert "[ERROR]" in capsys.readouterr().out


class TestMcp:
	def test_runs_server_with_loaded_config(self, cli_config: Path) -> None:
		pytest.importorskip("mcp")
		with patch("beacon.mcp_server.run_mcp_server") as mock_run:
			assert main(["--config", str(cli_config), "mcp"]) == 0
		config = mock_run.call_args.args[0]
		assert config.registry.path.endswith("projects.json")


def _now() -> str:
	from beacon.models import now_iso

	return now_iso()
