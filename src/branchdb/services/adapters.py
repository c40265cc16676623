"""Engine-specific dump/restore command sequences."""

import os
from typing import Dict, List, Optional, Tuple

from rich.markup import escape

from branchdb.errors import BranchDbError, UnsupportedAdapterError
from branchdb.models import ADAPTER_ALIASES, AdapterKind, DatabaseConfig, RestoreStep

# (step name, stdin from dump file)
RestorePlan = List[Tuple[str, bool]]


def quote_identifier(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DatabaseAdapter:
    """Dumps and restores one database, one file per branch.

    Subclasses only provide ``COMMANDS`` (argv templates keyed by step name),
    ``RESTORE_PLAN`` and the engine's connection flags. Command failure is a
    normal outcome reported as ``False``; only OS-level failures to launch a
    command raise ``BranchDbError``.
    """

    COMMANDS: Dict[str, Tuple[str, ...]] = {}
    RESTORE_PLAN: RestorePlan = []
    PARTIAL_DIR_NAME = ".partial"

    def __init__(
        self,
        config: DatabaseConfig,
        namer,
        transport,
        logger,
        console,
        strict_restore: bool = False,
    ):
        self.config = config
        self.namer = namer
        self.transport = transport
        self.logger = logger
        self.console = console
        self.strict_restore = strict_restore
        self.last_restore_steps: List[RestoreStep] = []

    @property
    def database_name(self) -> str:
        return self.config.database_name

    def dump_path(self, branch_name: str) -> str:
        return self.namer.path(self.database_name, branch_name)

    def dump_exists(self, branch_name: str) -> bool:
        return os.path.isfile(self.dump_path(branch_name))

    def partial_path(self, branch_name: str) -> str:
        # sanitized names never contain a separator, so this cannot clash with a dump
        path = self.dump_path(branch_name)
        return os.path.join(os.path.dirname(path), self.PARTIAL_DIR_NAME, os.path.basename(path))

    def connection_flags(self) -> List[str]:
        return []

    def connection_env(self) -> Dict[str, str]:
        return {}

    def command(self, step: str, database_name: Optional[str] = None) -> List[str]:
        template = self.COMMANDS[step]
        database = database_name or self.database_name
        values = {
            "database": database,
            "database_identifier": quote_identifier(database),
            "database_literal": quote_literal(database),
        }
        return [template[0]] + self.connection_flags() + [part.format(**values) for part in template[1:]]

    def dump(self, branch_name: str) -> bool:
        path = self.dump_path(branch_name)
        partial_path = self.partial_path(branch_name)
        self._progress_started(f"Saving state of database on '{branch_name}' branch...")

        try:
            os.makedirs(os.path.dirname(partial_path), exist_ok=True)
            succeeded = self.transport.run(
                self.command("dump"), env=self.connection_env(), stdout_path=partial_path
            )
        except BranchDbError:
            self._discard(partial_path)
            self._progress_finished(False)
            raise
        except OSError as exc:
            self._progress_finished(False)
            raise BranchDbError(f"Could not prepare dump file {partial_path}: {exc}") from exc

        try:
            if succeeded:
                os.replace(partial_path, path)
            elif os.path.exists(partial_path):
                os.remove(partial_path)
        except OSError as exc:
            raise BranchDbError(f"Could not store dump file {path}: {exc}") from exc

        self._progress_finished(succeeded)
        self.logger.info("Dump of %s for branch '%s': %s", self.database_name, branch_name, path)
        return succeeded

    def restore(self, branch_name: str) -> bool:
        path = self.dump_path(branch_name)
        self._progress_started(f"Restoring state of database on '{branch_name}' branch...")

        steps: List[RestoreStep] = []
        for step_name, reads_dump in self.RESTORE_PLAN:
            succeeded = self.transport.run(
                self.command(step_name),
                env=self.connection_env(),
                stdin_path=path if reads_dump else None,
            )
            self.logger.debug("Restore step %s: %s", step_name, "ok" if succeeded else "failed")
            steps.append(RestoreStep(name=step_name, succeeded=succeeded))
        self.last_restore_steps = steps

        restored = bool(steps) and steps[-1].succeeded
        if self.strict_restore:
            restored = restored and all(step.succeeded for step in steps)

        self._progress_finished(restored)
        return restored

    def terminate_connections(self, database_name: str) -> bool:
        return True

    def _discard(self, path: str):
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as exc:
            self.logger.warning("Could not remove %s: %s", path, exc)

    def _progress_started(self, message: str):
        self.logger.debug(message)
        self.console.print(escape(message), end=" ")

    def _progress_finished(self, succeeded: bool):
        if succeeded:
            self.console.print("[green]done![/green]")
        else:
            self.console.print("[red]failed![/red]")


class PostgresAdapter(DatabaseAdapter):
    """PostgreSQL: drains connections before dropping and recreating the database."""

    MAINTENANCE_DATABASE = "postgres"

    COMMANDS = {
        "dump": ("pg_dump", "--no-owner", "--no-privileges", "{database}"),
        "disallow_connections": (
            "psql",
            "-d",
            MAINTENANCE_DATABASE,
            "-c",
            "ALTER DATABASE {database_identifier} WITH ALLOW_CONNECTIONS false",
        ),
        "terminate_connections": (
            "psql",
            "-d",
            MAINTENANCE_DATABASE,
            "-c",
            "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
            "WHERE datname = {database_literal} AND pid <> pg_backend_pid()",
        ),
        "drop": ("dropdb", "--if-exists", "{database}"),
        "create": ("createdb", "{database}"),
        "allow_connections": (
            "psql",
            "-d",
            MAINTENANCE_DATABASE,
            "-c",
            "ALTER DATABASE {database_identifier} WITH ALLOW_CONNECTIONS true",
        ),
        "import": ("psql", "--quiet", "-v", "ON_ERROR_STOP=1", "-d", "{database}"),
    }

    # Connections can be re-established between steps, so termination runs
    # before the drop and again after both drop and create.
    RESTORE_PLAN = [
        ("disallow_connections", False),
        ("terminate_connections", False),
        ("drop", False),
        ("terminate_connections", False),
        ("create", False),
        ("terminate_connections", False),
        ("allow_connections", False),
        ("import", True),
    ]

    def connection_flags(self) -> List[str]:
        flags: List[str] = []
        if self.config.host:
            flags.extend(["-h", self.config.host])
        if self.config.port:
            flags.extend(["-p", str(self.config.port)])
        if self.config.credentials:
            flags.extend(["-U", self.config.credentials.username])
        return flags

    def connection_env(self) -> Dict[str, str]:
        if self.config.credentials and self.config.credentials.password:
            return {"PGPASSWORD": self.config.credentials.password}
        return {}

    def terminate_connections(self, database_name: str) -> bool:
        return self.transport.run(
            self.command("terminate_connections", database_name=database_name),
            env=self.connection_env(),
        )


class MySQLAdapter(DatabaseAdapter):
    """MySQL: single mysqldump/mysql invocations, no connection draining."""

    COMMANDS = {
        "dump": ("mysqldump", "{database}"),
        "import": ("mysql", "{database}"),
    }

    RESTORE_PLAN = [("import", True)]

    def connection_flags(self) -> List[str]:
        flags: List[str] = []
        if self.config.host:
            flags.append(f"--host={self.config.host}")
        if self.config.port:
            flags.append(f"--port={self.config.port}")
        if self.config.credentials:
            flags.append(f"--user={self.config.credentials.username}")
            if self.config.credentials.password:
                flags.append(f"--password={self.config.credentials.password}")
        return flags


ADAPTERS = {
    AdapterKind.POSTGRES: PostgresAdapter,
    AdapterKind.MYSQL: MySQLAdapter,
}


def build_adapter(
    config: DatabaseConfig,
    namer,
    transport,
    logger,
    console,
    strict_restore: bool = False,
) -> DatabaseAdapter:
    kind = ADAPTER_ALIASES.get(str(config.adapter_kind).strip().lower())
    if kind is None:
        raise UnsupportedAdapterError(config.adapter_kind)

    return ADAPTERS[kind](
        config=config,
        namer=namer,
        transport=transport,
        logger=logger,
        console=console,
        strict_restore=strict_restore,
    )
