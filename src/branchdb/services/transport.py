"""Command transport for database tools: local host or a docker compose service."""

import subprocess
from typing import Dict, List, Optional, Tuple

from branchdb.errors import BranchDbError


class CommandTransport:
    """Runs database commands locally or inside a running compose service."""

    def __init__(
        self,
        logger,
        command_runner,
        container_service: Optional[str] = None,
        timeout: Optional[float] = None,
        subprocess_module=subprocess,
    ):
        self.logger = logger
        self.command_runner = command_runner
        self.container_service = container_service
        self.timeout = timeout
        self.subprocess = subprocess_module
        self._compose_cmd: Optional[List[str]] = None

    def get_docker_compose_cmd(self) -> List[str]:
        try:
            self.subprocess.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"]
        except (self.subprocess.CalledProcessError, FileNotFoundError):
            try:
                self.subprocess.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"]
            except (self.subprocess.CalledProcessError, FileNotFoundError):
                raise BranchDbError(
                    "Docker Compose is not available but `container_service` is configured. "
                    "Install Docker Compose v2 (`docker compose`) or v1 (`docker-compose`)."
                )

    def wrap(
        self, cmd: List[str], env: Optional[Dict[str, str]] = None
    ) -> Tuple[List[str], Dict[str, str]]:
        """Returns the command and environment to execute on the host."""
        if not self.container_service:
            return list(cmd), dict(env or {})

        if self._compose_cmd is None:
            self._compose_cmd = self.get_docker_compose_cmd()

        env_flags: List[str] = []
        for key, value in sorted((env or {}).items()):
            env_flags.extend(["-e", f"{key}={value}"])

        wrapped = self._compose_cmd + ["exec", "-T"] + env_flags + [self.container_service] + list(cmd)
        return wrapped, {}

    def run(
        self,
        cmd: List[str],
        env: Optional[Dict[str, str]] = None,
        stdin_path: Optional[str] = None,
        stdout_path: Optional[str] = None,
    ) -> bool:
        wrapped, host_env = self.wrap(cmd, env)
        result = self.command_runner.run(
            wrapped,
            check=False,
            capture_output=True,
            timeout=self.timeout,
            env=host_env or None,
            stdin_path=stdin_path,
            stdout_path=stdout_path,
        )
        return result.returncode == 0
