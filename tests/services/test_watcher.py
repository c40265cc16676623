import signal
import subprocess

import pytest

from branchdb.services.watcher import WatcherCoordinator

PS_OUTPUT = (
    "    1 /sbin/init\n"
    "  101 ruby /usr/local/bin/guard --no-interactions\n"
    "  202 ruby /usr/local/bin/rspec --format progress spec/models\n"
)


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def _ps(stdout):
    def fake_run_cmd(cmd, check=False, capture_output=True):
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    return fake_run_cmd


def _coordinator(stdout=PS_OUTPUT, kill=None):
    signals = []
    sleeps = []
    coordinator = WatcherCoordinator(
        logger=DummyLogger(),
        run_cmd=_ps(stdout),
        watcher_marker="guard",
        formatter_marker="rspec",
        kill=kill or (lambda pid, signum: signals.append((pid, signum))),
        sleep=sleeps.append,
    )
    return coordinator, signals, sleeps


def test_discovers_core_process_on_construction():
    coordinator, _signals, _sleeps = _coordinator()

    assert coordinator.handle.core_pid == 101
    assert coordinator.active is True


def test_pause_sends_signals_in_handshake_order():
    coordinator, signals, sleeps = _coordinator()

    coordinator.pause()

    assert signals == [
        (101, signal.SIGUSR1),
        (101, signal.SIGINT),
        (202, signal.SIGINT),
        (101, signal.SIGINT),
    ]
    assert sleeps == [1.0, 1.0]
    assert coordinator.handle.formatter_pid == 202


def test_resume_sends_signals_in_handshake_order():
    coordinator, signals, sleeps = _coordinator()

    coordinator.resume()

    assert signals == [
        (101, signal.SIGINT),
        (202, signal.SIGINT),
        (101, signal.SIGUSR2),
        (202, signal.SIGINT),
        (101, signal.SIGINT),
    ]
    assert sleeps == []


def test_formatter_is_optional():
    coordinator, signals, _sleeps = _coordinator(stdout="  101 ruby bin/guard\n")

    coordinator.pause()

    assert signals == [(101, signal.SIGUSR1), (101, signal.SIGINT), (101, signal.SIGINT)]


def test_inert_without_watcher_process():
    coordinator, signals, sleeps = _coordinator(stdout="    1 /sbin/init\n")

    coordinator.pause()
    coordinator.resume()

    assert coordinator.active is False
    assert signals == []
    assert sleeps == []


def test_inert_when_process_listing_fails():
    def failing_run_cmd(cmd, check=False, capture_output=True):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="ps: not permitted")

    coordinator = WatcherCoordinator(
        logger=DummyLogger(),
        run_cmd=failing_run_cmd,
        watcher_marker="guard",
        formatter_marker="rspec",
        kill=lambda *_args: pytest.fail("no signal expected"),
        sleep=lambda *_args: None,
    )

    coordinator.pause()

    assert coordinator.handle.core_pid is None


def test_vanished_process_does_not_abort_handshake():
    sent = []

    def kill(pid, signum):
        if pid == 202:
            raise ProcessLookupError(pid)
        sent.append((pid, signum))

    coordinator, _signals, _sleeps = _coordinator(kill=kill)

    coordinator.resume()

    assert sent == [(101, signal.SIGINT), (101, signal.SIGUSR2), (101, signal.SIGINT)]


def test_paused_context_resumes_after_error():
    coordinator, signals, _sleeps = _coordinator()

    with pytest.raises(RuntimeError):
        with coordinator.paused():
            raise RuntimeError("restore blew up")

    assert signals[0] == (101, signal.SIGUSR1)
    assert (101, signal.SIGUSR2) in signals


def test_formatter_discovery_skips_watcher_process_matching_formatter_marker():
    stdout = (
        "  101 ruby /usr/local/bin/guard -g rspec\n"
        "  202 ruby /usr/local/bin/rspec spec\n"
    )
    coordinator, signals, _sleeps = _coordinator(stdout)

    coordinator.pause()

    assert coordinator.handle.formatter_pid == 202
    assert signals == [
        (101, signal.SIGUSR1),
        (101, signal.SIGINT),
        (202, signal.SIGINT),
        (101, signal.SIGINT),
    ]


def test_paused_context_resumes_when_pause_is_interrupted():
    signals = []
    sleeps = []

    def interrupted_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 1:
            raise KeyboardInterrupt

    coordinator = WatcherCoordinator(
        logger=DummyLogger(),
        run_cmd=_ps(PS_OUTPUT),
        watcher_marker="guard",
        formatter_marker="rspec",
        kill=lambda pid, signum: signals.append((pid, signum)),
        sleep=interrupted_sleep,
    )

    with pytest.raises(KeyboardInterrupt):
        with coordinator.paused():
            raise AssertionError("body must not run")

    assert (101, signal.SIGUSR2) in signals
