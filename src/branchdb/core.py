import logging
import os
from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

from .constants import (
    DEFAULT_DUMP_FOLDER,
    DEFAULT_ENVIRONMENT_TOKEN,
    DEFAULT_FORMATTER_MARKER,
    DEFAULT_TEST_ENVIRONMENT_TOKEN,
    DEFAULT_WATCHER_MARKER,
    DIR_MODE,
)
from .errors import BranchDbError
from .messages import outcome_message
from .models import DatabaseConfig, TransferOutcome
from .services.adapters import build_adapter
from .services.command_runner import CommandRunner
from .services.dump_namer import DumpFileNamer
from .services.filesystem import FileSystemService
from .services.git import GitService
from .services.transfer import TransferOrchestrator, sibling_test_database
from .services.transport import CommandTransport
from .services.watcher import WatcherCoordinator

console = Console()
logger = logging.getLogger("branchdb")

OUTCOME_STYLES = {
    TransferOutcome.NOOP_SAME_BRANCH: "dim",
    TransferOutcome.NOOP_NO_SOURCE_BRANCHES: "dim",
    TransferOutcome.NOOP_INVALID_BRANCH: "dim",
    TransferOutcome.DUMP_FAILED: "bold red",
    TransferOutcome.RESTORE_SKIPPED_NO_DUMP: "yellow",
    TransferOutcome.RESTORE_SUCCEEDED: "bold green",
    TransferOutcome.RESTORE_FAILED: "bold red",
}


class BranchDb:
    def __init__(
        self,
        database_config: DatabaseConfig,
        dump_folder: str = DEFAULT_DUMP_FOLDER,
        container_service: Optional[str] = None,
        environment_token: str = DEFAULT_ENVIRONMENT_TOKEN,
        test_environment_token: str = DEFAULT_TEST_ENVIRONMENT_TOKEN,
        watcher_marker: str = DEFAULT_WATCHER_MARKER,
        formatter_marker: str = DEFAULT_FORMATTER_MARKER,
        strict_restore: bool = False,
        command_timeout: Optional[float] = None,
    ):
        self.database_config = database_config
        self.dump_folder = os.path.abspath(dump_folder)
        self.watcher_marker = watcher_marker
        self.formatter_marker = formatter_marker

        self.filesystem_service = FileSystemService(logger=logger)
        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.transport = CommandTransport(
            logger=logger,
            command_runner=self.command_runner,
            container_service=container_service,
            timeout=command_timeout,
        )
        self.namer = DumpFileNamer(self.dump_folder)
        self.adapter = build_adapter(
            config=database_config,
            namer=self.namer,
            transport=self.transport,
            logger=logger,
            console=console,
            strict_restore=strict_restore,
        )
        self.git_service = GitService(logger=logger, run_cmd=self._run_cmd)
        self.test_database_name = sibling_test_database(
            database_config.database_name,
            environment_token,
            test_environment_token,
        )
        self.orchestrator = TransferOrchestrator(
            adapter=self.adapter,
            coordinator_factory=self._build_coordinator,
            logger=logger,
            test_database_name=self.test_database_name,
        )

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def _build_coordinator(self) -> WatcherCoordinator:
        return WatcherCoordinator(
            logger=logger,
            run_cmd=self._run_cmd,
            watcher_marker=self.watcher_marker,
            formatter_marker=self.formatter_marker,
        )

    def report(self, outcome: TransferOutcome, destination_branch: str):
        message = outcome_message(
            outcome,
            database=self.database_config.database_name,
            destination=destination_branch,
            dump_path=self.adapter.dump_path(destination_branch) if destination_branch else "",
        )
        style = OUTCOME_STYLES[outcome]
        console.print(f"[{style}]{escape(message)}[/{style}]")
        logger.debug("Transfer outcome: %s", outcome.value)

    def run_post_checkout(self, previous_head: str) -> int:
        """Transfers state after a branch checkout away from ``previous_head``."""
        try:
            destination_branch = self.git_service.current_branch()
            source_branches = self.git_service.branches_at(previous_head)
        except BranchDbError as exc:
            return self._fail(exc)

        logger.debug("Branch switch %s -> %s", source_branches, destination_branch or "<detached>")
        return self.run(source_branches, destination_branch)

    def run(self, source_branches: Iterable[str], destination_branch: str) -> int:
        try:
            self.filesystem_service.ensure_dir(self.dump_folder, DIR_MODE)
            with self.filesystem_service.exclusive_lock(self.dump_folder):
                outcome = self.orchestrator.transfer(source_branches, destination_branch)
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except BranchDbError as exc:
            return self._fail(exc)
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return 1

        self.report(outcome, destination_branch)
        return 1 if outcome.is_failure else 0

    def _fail(self, exc: BranchDbError) -> int:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        logger.error(str(exc))
        return 1
