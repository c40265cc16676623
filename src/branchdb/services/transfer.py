"""Branch transfer policy: dump the branches being left, restore the one entered."""

from typing import Callable, Iterable, Optional

from branchdb.models import TransferOutcome


def sibling_test_database(
    database_name: str, environment_token: str, test_environment_token: str
) -> Optional[str]:
    """Derives ``app_test`` from ``app_development``; None when the token is absent."""
    if not environment_token or environment_token not in database_name:
        return None
    sibling = database_name.replace(environment_token, test_environment_token)
    if sibling == database_name:
        return None
    return sibling


class TransferOrchestrator:
    """Runs one state transfer for a branch switch.

    The coordinator is built through ``coordinator_factory`` only once a
    restore is about to happen, so watcher discovery is fresh and skipped
    entirely for runs that never reach the restore phase.
    """

    def __init__(
        self,
        adapter,
        coordinator_factory: Callable,
        logger,
        test_database_name: Optional[str] = None,
    ):
        self.adapter = adapter
        self.coordinator_factory = coordinator_factory
        self.logger = logger
        self.test_database_name = test_database_name

    def transfer(self, source_branches: Iterable[str], destination_branch: str) -> TransferOutcome:
        sources = list(source_branches)

        if not destination_branch:
            return TransferOutcome.NOOP_INVALID_BRANCH
        if not sources:
            return TransferOutcome.NOOP_NO_SOURCE_BRANCHES
        if any(not branch for branch in sources):
            return TransferOutcome.NOOP_INVALID_BRANCH
        if destination_branch in sources:
            return TransferOutcome.NOOP_SAME_BRANCH

        for branch in sources:
            if not self.adapter.dump(branch):
                self.logger.error("Dump failed for branch '%s'; stopping.", branch)
                return TransferOutcome.DUMP_FAILED

        if not self.adapter.dump_exists(destination_branch):
            self.logger.info("No dump found for branch '%s'.", destination_branch)
            return TransferOutcome.RESTORE_SKIPPED_NO_DUMP

        coordinator = self.coordinator_factory()
        with coordinator.paused():
            restored = self.adapter.restore(destination_branch)
            if restored and self.test_database_name:
                self.logger.debug("Terminating connections to %s", self.test_database_name)
                self.adapter.terminate_connections(self.test_database_name)

        if restored:
            return TransferOutcome.RESTORE_SUCCEEDED
        return TransferOutcome.RESTORE_FAILED
