"""Subprocess execution service for branchdb."""

import os
import re
import subprocess
from contextlib import ExitStack
from typing import Dict, List, Optional

from branchdb.errors import BranchDbError

_SECRET_ARG = re.compile(r"(--password=|PASSWORD=|_PWD=)(.+)")


def redact(cmd: List[str]) -> str:
    return " ".join(_SECRET_ARG.sub(r"\g<1>***", part) for part in cmd)


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        stdin_path: Optional[str] = None,
        stdout_path: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = redact(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        effective_env = {**os.environ, **env} if env else None

        with ExitStack() as stack:
            try:
                stdin = stack.enter_context(open(stdin_path, "rb")) if stdin_path else None
                if stdout_path:
                    stdout = stack.enter_context(open(stdout_path, "wb"))
                else:
                    stdout = subprocess.PIPE if capture_output else None
            except OSError as exc:
                raise BranchDbError(f"Could not open redirect file for {cmd_str}: {exc}") from exc

            try:
                result = subprocess.run(
                    cmd,
                    stdin=stdin,
                    stdout=stdout,
                    stderr=subprocess.PIPE if capture_output else None,
                    text=True,
                    errors="replace",
                    env=effective_env,
                    timeout=effective_timeout,
                )
            except FileNotFoundError as exc:
                raise BranchDbError(
                    f"Required command not found: {cmd[0]}. Please install it and try again."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise BranchDbError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except Exception as exc:
                raise BranchDbError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise BranchDbError(message)

        self.logger.warning(message)
        return result
