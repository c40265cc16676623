"""Shared domain models for branchdb."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AdapterKind(str, Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"


ADAPTER_ALIASES = {
    "postgres": AdapterKind.POSTGRES,
    "postgresql": AdapterKind.POSTGRES,
    "mysql": AdapterKind.MYSQL,
    "mysql2": AdapterKind.MYSQL,
}


@dataclass(frozen=True)
class Credentials:
    username: str
    password: Optional[str] = None


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the database that follows the checked out branch."""

    adapter_kind: str
    database_name: str
    credentials: Optional[Credentials] = None
    host: Optional[str] = None
    port: Optional[int] = None


@dataclass(frozen=True)
class WatcherHandle:
    """Process ids of the running test watcher, resolved fresh on every run."""

    core_pid: Optional[int] = None
    formatter_pid: Optional[int] = None


@dataclass(frozen=True)
class RestoreStep:
    name: str
    succeeded: bool


class TransferOutcome(Enum):
    NOOP_SAME_BRANCH = "noop_same_branch"
    NOOP_NO_SOURCE_BRANCHES = "noop_no_source_branches"
    NOOP_INVALID_BRANCH = "noop_invalid_branch"
    DUMP_FAILED = "dump_failed"
    RESTORE_SKIPPED_NO_DUMP = "restore_skipped_no_dump"
    RESTORE_SUCCEEDED = "restore_succeeded"
    RESTORE_FAILED = "restore_failed"

    @property
    def is_failure(self) -> bool:
        return self in (TransferOutcome.DUMP_FAILED, TransferOutcome.RESTORE_FAILED)
