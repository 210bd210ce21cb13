"""Tests for the shared registry file store."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import pytest

from beacon.heartbeat import HeartbeatScheduler
from beacon.models import InstanceEntry
from beacon.registry import RegistryStore
from conftest import make_entry


class TestLoad:
	def test_missing_file_is_empty(self, store: RegistryStore) -> None:
		assert not store.path.exists()
		assert store.load() == []

	def test_corrupt_file_is_empty(self, store: RegistryStore, caplog: pytest.LogCaptureFixture) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text("{not json at all")
		with caplog.at_level(logging.WARNING, logger="beacon.registry"):
			assert store.load() == []
		assert any("Failed to load registry" in msg for msg in caplog.messages)

	def test_non_array_is_empty(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps({"projectPath": "/x"}))
		assert store.load() == []

	def test_null_is_empty(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text("null")
		assert store.load() == []

	def test_reads_wire_format(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps([{
			"projectPath": "/projects/alpha",
			"projectName": "alpha",
			"pipeName": "beacon-1234abcd",
			"port": 7891,
			"pid": 99,
			"unityVersion": "6000.0.1f1",
			"lastSeen": "2026-03-01T12:00:00Z",
			"isActive": True,
		}]))
		entries = store.load()
		assert len(entries) == 1
		e = entries[0]
		assert e.identity == "/projects/alpha"
		assert e.display_name == "alpha"
		assert e.channel_id == "beacon-1234abcd"
		assert e.legacy_port == 7891
		assert e.process_id == 99
		assert e.version_tag == "6000.0.1f1"
		assert e.active is True

	def test_skips_rows_without_path(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps([
			"garbage",
			{"projectName": "no path"},
			{"projectPath": "", "projectName": "empty path"},
			{"projectPath": "/projects/good", "isActive": True},
		]))
		entries = store.load()
		assert [e.identity for e in entries] == ["/projects/good"]

	def test_tolerates_nulls_and_odd_types(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps([{
			"projectPath": "/projects/other",
			"projectName": None,
			"pipeName": None,
			"port": "not-a-port",
			"pid": "not-a-number",
			"unityVersion": 2022,
			"lastSeen": None,
			"isActive": "yes",
		}]))
		[entry] = store.load()
		assert entry.identity == "/projects/other"
		assert entry.display_name == ""
		assert entry.channel_id == ""
		assert entry.legacy_port is None
		assert entry.process_id == 0
		assert entry.version_tag == "2022"
		assert entry.last_seen == ""
		assert entry.active is False

	def test_null_timestamp_row_survives_other_writer(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps([{
			"projectPath": "/projects/other", "projectName": "other",
			"lastSeen": None, "isActive": False,
		}]))
		HeartbeatScheduler(store, identity="/projects/me").register_or_update()
		raw = json.loads(store.path.read_text())
		assert [row["projectPath"] for row in raw] == ["/projects/other", "/projects/me"]

	def test_unreadable_directory_is_empty(
		self, store: RegistryStore, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
	) -> None:
		def deny(self, *args, **kwargs):
			raise PermissionError(13, "Permission denied", str(self))

		monkeypatch.setattr(Path, "read_text", deny)
		with caplog.at_level(logging.WARNING, logger="beacon.registry"):
			assert store.load() == []
		assert any("Failed to load registry" in msg for msg in caplog.messages)

	def test_drops_duplicate_identities(self, store: RegistryStore) -> None:
		store.path.parent.mkdir(parents=True)
		store.path.write_text(json.dumps([
			{"projectPath": "/projects/a", "pid": 1},
			{"projectPath": "/projects/a", "pid": 2},
		]))
		entries = store.load()
		assert len(entries) == 1
		assert entries[0].process_id == 1

	def test_unparsable_timestamp_survives_round_trip(self, store: RegistryStore) -> None:
		store.save([make_entry(last_seen="yesterday-ish")])
		assert store.load()[0].last_seen == "yesterday-ish"


class TestSave:
	def test_creates_directory(self, store: RegistryStore) -> None:
		assert store.save([make_entry()]) is True
		assert store.path.exists()

	def test_writes_wire_keys(self, store: RegistryStore) -> None:
		store.save([make_entry(legacy_port=None)])
		raw = json.loads(store.path.read_text())
		assert set(raw[0]) == {
			"projectPath", "projectName", "pipeName", "port",
			"pid", "unityVersion", "lastSeen", "isActive",
		}
		assert raw[0]["port"] is None

	def test_overwrites_whole_file(self, store: RegistryStore) -> None:
		store.save([make_entry(identity="/a"), make_entry(identity="/b")])
		store.save([make_entry(identity="/c")])
		assert [e.identity for e in store.load()] == ["/c"]

	def test_leaves_no_temp_files(self, store: RegistryStore) -> None:
		store.save([make_entry()])
		assert [p.name for p in store.path.parent.iterdir()] == ["projects.json"]

	def test_concurrent_saves_in_one_process(self, store: RegistryStore) -> None:
		failures: list[bool] = []

		def writer(n: int) -> None:
			for i in range(50):
				if not store.save([make_entry(identity=f"/projects/t{n}-{i}")]):
					failures.append(True)

		threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
		for t in threads:
			t.start()
		for t in threads:
			t.join()

		assert failures == []
		assert len(store.load()) == 1
		assert [p.name for p in store.path.parent.iterdir()] == ["projects.json"]

	def test_write_failure_is_swallowed(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
		blocker = tmp_path / "blocker"
		blocker.write_text("a file, not a directory")
		store = RegistryStore(blocker / "projects.json")
		with caplog.at_level(logging.ERROR, logger="beacon.registry"):
			assert store.save([make_entry()]) is False
		assert any("Failed to save registry" in msg for msg in caplog.messages)


class TestLookup:
	def test_find_index(self) -> None:
		entries = [make_entry(identity="/a"), make_entry(identity="/b")]
		assert RegistryStore.find_index(entries, "/b") == 1
		assert RegistryStore.find_index(entries, "/missing") == -1

	def test_get(self, store: RegistryStore) -> None:
		store.save([make_entry(identity="/a", display_name="a")])
		found = store.get("/a")
		assert isinstance(found, InstanceEntry)
		assert found.display_name == "a"
		assert store.get("/nope") is None

	def test_default_path_under_home(self) -> None:
		assert RegistryStore().path.name == "projects.json"
		assert RegistryStore().path.parent.name == ".beacon"
