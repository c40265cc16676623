import io
import signal
import subprocess
from contextlib import contextmanager
from pathlib import Path

import pytest
from rich.console import Console

import branchdb.core as core_module
from branchdb.core import BranchDb
from branchdb.errors import UnsupportedAdapterError
from branchdb.models import Credentials, DatabaseConfig


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(core_module, "console", Console(file=buffer, width=400))
    return buffer


class RecordingTransport:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.commands = []

    def __call__(self, cmd, env=None, stdin_path=None, stdout_path=None):
        self.commands.append(cmd)
        if stdout_path:
            Path(stdout_path).write_text("-- dump\n", encoding="utf-8")
        return self.succeed


class FakeCoordinator:
    def __init__(self):
        self.signals = []

    @contextmanager
    def paused(self):
        self.signals.append(signal.SIGUSR1)
        try:
            yield self
        finally:
            self.signals.append(signal.SIGUSR2)


def _config(adapter_kind="postgres"):
    return DatabaseConfig(
        adapter_kind=adapter_kind,
        database_name="app_development",
        credentials=Credentials(username="app"),
    )


def build_branchdb(tmp_path, monkeypatch, transport, coordinator=None, **kwargs):
    monkeypatch.chdir(tmp_path)
    branchdb = BranchDb(database_config=_config(), dump_folder="dumps", **kwargs)
    monkeypatch.setattr(branchdb.transport, "run", transport)
    coordinator = coordinator or FakeCoordinator()
    branchdb.orchestrator.coordinator_factory = lambda: coordinator
    return branchdb


def test_unsupported_adapter_fails_at_construction(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(UnsupportedAdapterError):
        BranchDb(database_config=_config("sqlite3"))


def test_first_visit_to_branch_saves_source_and_skips_restore(tmp_path, monkeypatch, output):
    transport = RecordingTransport()
    coordinator = FakeCoordinator()
    branchdb = build_branchdb(tmp_path, monkeypatch, transport, coordinator)

    exit_code = branchdb.run(["main"], "feature")

    assert exit_code == 0
    assert (tmp_path / "dumps" / "app_development-main").exists()
    assert not (tmp_path / "dumps" / "app_development-feature").exists()
    assert [cmd[0] for cmd in transport.commands] == ["pg_dump"]
    assert coordinator.signals == []
    assert "No DB dump for app_development on branch 'feature' was found!" in output.getvalue()


def test_return_to_known_branch_restores_its_dump(tmp_path, monkeypatch, output):
    transport = RecordingTransport()
    coordinator = FakeCoordinator()
    branchdb = build_branchdb(tmp_path, monkeypatch, transport, coordinator)
    (tmp_path / "dumps").mkdir()
    (tmp_path / "dumps" / "app_development-main").write_text("-- main\n", encoding="utf-8")

    exit_code = branchdb.run(["feature"], "main")

    assert exit_code == 0
    programs = [cmd[0] for cmd in transport.commands]
    assert programs.count("dropdb") == 1
    assert programs.count("createdb") == 1
    assert "datname = 'app_test'" in transport.commands[-1][-1]
    assert coordinator.signals == [signal.SIGUSR1, signal.SIGUSR2]
    assert "now holds the state of branch 'main'" in output.getvalue()


def test_same_branch_has_no_side_effects(tmp_path, monkeypatch, output):
    transport = RecordingTransport()
    coordinator = FakeCoordinator()
    branchdb = build_branchdb(tmp_path, monkeypatch, transport, coordinator)

    exit_code = branchdb.run(["main"], "main")

    assert exit_code == 0
    assert transport.commands == []
    assert coordinator.signals == []
    assert not (tmp_path / "dumps" / "app_development-main").exists()


def test_failed_dump_returns_non_zero(tmp_path, monkeypatch, output):
    branchdb = build_branchdb(tmp_path, monkeypatch, RecordingTransport(succeed=False))

    exit_code = branchdb.run(["main"], "feature")

    assert exit_code == 1
    assert "Could not save the state of database app_development" in output.getvalue()


def test_concurrent_run_is_rejected(tmp_path, monkeypatch, output):
    transport = RecordingTransport()
    branchdb = build_branchdb(tmp_path, monkeypatch, transport)
    (tmp_path / "dumps").mkdir()

    with branchdb.filesystem_service.exclusive_lock(str(tmp_path / "dumps")):
        exit_code = branchdb.run(["main"], "feature")

    assert exit_code == 1
    assert transport.commands == []
    assert "Another branchdb run" in output.getvalue()


def test_post_checkout_resolves_branches_with_git(tmp_path, monkeypatch, output):
    transport = RecordingTransport()
    branchdb = build_branchdb(tmp_path, monkeypatch, transport)

    def fake_run(cmd, check=True, capture_output=False, **_kwargs):
        if cmd[1] == "symbolic-ref":
            return subprocess.CompletedProcess(cmd, 0, stdout="feature\n", stderr="")
        if cmd[1] == "branch":
            assert "abc123" in cmd
            return subprocess.CompletedProcess(cmd, 0, stdout="main\n", stderr="")
        raise AssertionError(f"unexpected command {cmd}")

    monkeypatch.setattr(branchdb.command_runner, "run", fake_run)

    exit_code = branchdb.run_post_checkout("abc123")

    assert exit_code == 0
    assert (tmp_path / "dumps" / "app_development-main").exists()
