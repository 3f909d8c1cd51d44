"""Tests for the file-backed PersistentRegistry."""

import json
import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

import mycoq
from mycoq.runtime.persistent import (
    PersistentRegistry,
    RegistryEntry,
    default_registry_path,
    is_process_alive,
)


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / "state" / "registry.json"


@pytest.fixture
def sleeper():
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    yield proc
    if proc.poll() is None:
        proc.kill()
        proc.wait(5)


class TestIsProcessAlive:
    def test_own_process(self):
        assert is_process_alive(os.getpid())

    @pytest.mark.parametrize("pid", [0, -1])
    def test_non_positive_pid(self, pid):
        assert is_process_alive(pid) is False

    def test_permission_error_counts_as_dead(self):
        with patch("mycoq.runtime.persistent.os.kill", side_effect=PermissionError):
            assert is_process_alive(12345) is False

    def test_exited_process(self):
        proc = subprocess.Popen([sys.executable, "-c", "pass"])
        proc.wait(10)
        assert is_process_alive(proc.pid) is False


class TestRoundTrip:
    def test_default_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert default_registry_path() == tmp_path / ".mycoq" / "registry.json"
        assert PersistentRegistry().path == default_registry_path()

    def test_register_visible_to_fresh_instance(self, registry_path):
        PersistentRegistry(registry_path).register("payment-service", os.getpid())

        services = PersistentRegistry(registry_path).get_all_services()
        assert list(services) == ["payment-service"]
        entry = services["payment-service"]
        assert entry.service_name == "payment-service"
        assert entry.process_id == os.getpid()
        assert entry.status == "RUNNING"
        assert entry.start_time.tzinfo is not None

    def test_file_format(self, registry_path):
        PersistentRegistry(registry_path).register("payment-service", os.getpid())
        data = json.loads(registry_path.read_text())
        entry = data["payment-service"]
        assert set(entry) == {"serviceName", "processId", "startTime", "status"}
        assert entry["serviceName"] == "payment-service"
        assert entry["processId"] == os.getpid()
        assert entry["status"] == "RUNNING"

    def test_reads_camel_case_file(self, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text(json.dumps({
            "order-service": {
                "serviceName": "order-service",
                "processId": os.getpid(),
                "startTime": "2026-10-19T08:15:02.113Z",
                "status": "RUNNING",
            }
        }))
        entry = PersistentRegistry(registry_path).get_service("order-service")
        assert isinstance(entry, RegistryEntry)
        assert entry.start_time.year == 2026

    def test_unregister(self, registry_path):
        registry = PersistentRegistry(registry_path)
        registry.register("payment-service", os.getpid())
        assert registry.unregister("payment-service") is True
        assert registry.unregister("payment-service") is False
        assert registry.get_all_services() == {}

    def test_reregister_overwrites(self, registry_path):
        registry = PersistentRegistry(registry_path)
        registry.register("payment-service", 1)
        registry.register("payment-service", os.getpid())
        assert registry.get_service("payment-service").process_id == os.getpid()


class TestPruning:
    def test_dead_process_is_pruned(self, registry_path, sleeper):
        registry = PersistentRegistry(registry_path)
        registry.register("payment-service", sleeper.pid)
        registry.register("user-service", os.getpid())
        assert set(registry.get_all_services()) == {"payment-service", "user-service"}

        sleeper.terminate()
        sleeper.wait(10)

        assert set(registry.get_all_services()) == {"user-service"}
        assert "payment-service" not in json.loads(registry_path.read_text())

    def test_no_rewrite_without_pruning(self, registry_path):
        registry = PersistentRegistry(registry_path)
        registry.register("payment-service", os.getpid())
        with patch.object(registry, "_save") as save:
            registry.get_all_services()
        save.assert_not_called()


class TestFailureTolerance:
    def test_missing_file(self, registry_path):
        assert PersistentRegistry(registry_path).get_all_services() == {}

    def test_empty_file(self, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text("")
        assert PersistentRegistry(registry_path).get_all_services() == {}

    def test_corrupt_file_is_left_untouched(self, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text("{not json")
        registry = PersistentRegistry(registry_path)
        assert registry.get_all_services() == {}

        with patch("mycoq.runtime.persistent.logger") as mock_logger:
            entry = registry.register("payment-service", os.getpid())
        assert entry.service_name == "payment-service"
        assert mock_logger.warning.call_args.args[0] == "registry_write_skipped"
        assert registry.unregister("payment-service") is False
        assert registry_path.read_text() == "{not json"

    def test_non_object_file_is_left_untouched(self, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text("[1, 2]")
        registry = PersistentRegistry(registry_path)
        registry.register("payment-service", os.getpid())
        assert registry.get_all_services() == {}
        assert registry_path.read_text() == "[1, 2]"

    def test_one_invalid_entry_keeps_the_rest(self, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text(
            json.dumps(
                {
                    "payment-service": {
                        "serviceName": "payment-service",
                        "processId": os.getpid(),
                        "startTime": "2026-10-19T08:15:02Z",
                        "status": "RUNNING",
                    },
                    "user-service": {"serviceName": "user-service", "processId": "not-a-pid"},
                }
            )
        )
        registry = PersistentRegistry(registry_path)

        with patch("mycoq.runtime.persistent.logger") as mock_logger:
            assert list(registry.get_all_services()) == ["payment-service"]
        event, fields = mock_logger.warning.call_args.args[0], mock_logger.warning.call_args.kwargs
        assert event == "registry_entry_invalid"
        assert fields["error_type"] == "RegistryError"
        assert fields["context"]["service"] == "user-service"

        registry.register("order-service", os.getpid())
        on_disk = json.loads(registry_path.read_text())
        assert set(on_disk) == {"payment-service", "order-service"}

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "registry.json"
        blocker.mkdir()
        registry = PersistentRegistry(blocker)
        registry.register("payment-service", os.getpid())
        assert registry.unregister("payment-service") is False


def _register_from_subprocess(path, service_name, pid):
    """Register *service_name* from a separate interpreter process."""
    src_root = str(Path(mycoq.__file__).resolve().parents[1])
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, [src_root, os.environ.get("PYTHONPATH")]))}
    code = (
        "import sys\n"
        "from mycoq.runtime.persistent import PersistentRegistry\n"
        "PersistentRegistry(sys.argv[1]).register(sys.argv[2], int(sys.argv[3]))\n"
    )
    subprocess.run(
        [sys.executable, "-c", code, str(path), service_name, str(pid)],
        env=env,
        check=True,
        timeout=30,
    )


@pytest.mark.integration
class TestSeparateProcesses:
    def test_sequential_writers_both_survive(self, registry_path):
        _register_from_subprocess(registry_path, "payment-service", os.getpid())
        _register_from_subprocess(registry_path, "user-service", os.getpid())

        assert set(PersistentRegistry(registry_path).get_all_services()) == {
            "payment-service",
            "user-service",
        }

    def test_stale_write_drops_other_process_update(self, registry_path):
        """No cross-process lock: a save based on an older read wins over a newer write."""
        local = PersistentRegistry(registry_path)
        stale = local._load()

        _register_from_subprocess(registry_path, "payment-service", os.getpid())
        assert "payment-service" in json.loads(registry_path.read_text())

        with patch.object(local, "_load", return_value=stale):
            local.register("user-service", os.getpid())

        assert set(PersistentRegistry(registry_path).get_all_services()) == {"user-service"}
