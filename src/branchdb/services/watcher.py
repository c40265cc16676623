"""Pause/resume handshake with a running file-watching test runner."""

import os
import signal
import time
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional

from branchdb.models import WatcherHandle

PAUSE_SIGNAL = signal.SIGUSR1
RESUME_SIGNAL = signal.SIGUSR2
INTERRUPT_SIGNAL = signal.SIGINT


class WatcherCoordinator:
    """Keeps the test watcher from observing the database while it is swapped.

    The watcher's signal handling is stateful: one interrupt cancels a running
    test, a second one is needed to halt or restart the watch loop. The signal
    order and the settle delays below must therefore stay as they are.
    """

    SETTLE_SECONDS = 1.0

    def __init__(
        self,
        logger,
        run_cmd: Callable,
        watcher_marker: str,
        formatter_marker: str,
        kill: Callable[[int, int], None] = os.kill,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = logger
        self.run_cmd = run_cmd
        self.watcher_marker = watcher_marker
        self.formatter_marker = formatter_marker
        self.kill = kill
        self.sleep = sleep
        self.handle = WatcherHandle(core_pid=self.find_pid(watcher_marker))

        if self.handle.core_pid is None:
            self.logger.debug("No running '%s' process found.", watcher_marker)
        else:
            self.logger.debug("Found '%s' process: %s", watcher_marker, self.handle.core_pid)

    @property
    def active(self) -> bool:
        return self.handle.core_pid is not None

    def find_pid(self, marker: str, exclude: Iterable[Optional[int]] = ()) -> Optional[int]:
        result = self.run_cmd(["ps", "-eo", "pid=,args="], check=False, capture_output=True)
        if result.returncode != 0:
            return None

        skipped = {os.getpid(), *exclude}
        for line in (result.stdout or "").splitlines():
            parts = line.strip().split(None, 1)
            if len(parts) != 2 or not parts[0].isdigit():
                continue
            pid = int(parts[0])
            if pid not in skipped and marker in parts[1]:
                return pid
        return None

    def pause(self):
        if not self.active:
            return

        self._refresh_formatter()
        core_pid = self.handle.core_pid
        self.logger.info("Pausing '%s' (pid %s)...", self.watcher_marker, core_pid)

        self._send(core_pid, PAUSE_SIGNAL)
        self._send(core_pid, INTERRUPT_SIGNAL)
        self._send(self.handle.formatter_pid, INTERRUPT_SIGNAL)
        self.sleep(self.SETTLE_SECONDS)
        self._send(core_pid, INTERRUPT_SIGNAL)
        self.sleep(self.SETTLE_SECONDS)

    def resume(self):
        if not self.active:
            return

        self._refresh_formatter()
        core_pid = self.handle.core_pid
        formatter_pid = self.handle.formatter_pid
        self.logger.info("Resuming '%s' (pid %s)...", self.watcher_marker, core_pid)

        self._send(core_pid, INTERRUPT_SIGNAL)
        self._send(formatter_pid, INTERRUPT_SIGNAL)
        self._send(core_pid, RESUME_SIGNAL)
        self._send(formatter_pid, INTERRUPT_SIGNAL)
        self._send(core_pid, INTERRUPT_SIGNAL)

    @contextmanager
    def paused(self) -> Iterator["WatcherCoordinator"]:
        try:
            self.pause()
            yield self
        finally:
            self.resume()

    def _refresh_formatter(self):
        self.handle = WatcherHandle(
            core_pid=self.handle.core_pid,
            formatter_pid=self.find_pid(self.formatter_marker, exclude=[self.handle.core_pid]),
        )

    def _send(self, pid: Optional[int], signum: int) -> bool:
        if pid is None:
            return False
        try:
            self.kill(pid, signum)
        except (ProcessLookupError, PermissionError) as exc:
            self.logger.warning("Could not send signal %s to process %s: %s", signum, pid, exc)
            return False
        return True
