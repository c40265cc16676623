"""Filesystem helpers for branchdb."""

import fcntl
import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator

from branchdb.constants import LOCK_FILE_NAME
from branchdb.errors import BranchDbError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str, mode: int):
        if os.path.isdir(path):
            return

        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise BranchDbError(f"Could not create directory {path}: {exc}") from exc
        self.set_permissions(path, mode)
        self.logger.debug("Created directory: %s", path)

    @contextmanager
    def exclusive_lock(self, directory: str) -> Iterator[str]:
        """Holds an advisory lock on ``directory`` for the duration of the block."""
        lock_path = os.path.join(directory, LOCK_FILE_NAME)
        try:
            lock_file = open(lock_path, "a", encoding="utf-8")
        except OSError as exc:
            raise BranchDbError(f"Could not open lock file {lock_path}: {exc}") from exc

        with lock_file:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as exc:
                raise BranchDbError(
                    f"Another branchdb run holds {lock_path}. "
                    "Wait for it to finish before switching branches again."
                ) from exc

            self.logger.debug("Acquired lock: %s", lock_path)
            try:
                yield lock_path
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
