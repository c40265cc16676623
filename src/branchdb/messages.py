"""User-facing summary messages for each branch transfer outcome."""

from typing import Dict

from branchdb.models import TransferOutcome

_OUTCOME_MESSAGES: Dict[TransferOutcome, Dict[str, str]] = {
    TransferOutcome.NOOP_SAME_BRANCH: {
        "what": "Branch '{destination}' was already checked out. Database left as is.",
        "next": "",
    },
    TransferOutcome.NOOP_NO_SOURCE_BRANCHES: {
        "what": "No branch points at the previous HEAD. Database left as is.",
        "next": "",
    },
    TransferOutcome.NOOP_INVALID_BRANCH: {
        "what": "Checkout involves a detached HEAD or an unnamed branch. Database left as is.",
        "next": "",
    },
    TransferOutcome.DUMP_FAILED: {
        "what": "Could not save the state of database {database}.",
        "next": (
            "Check that the database server is running and the credentials in your "
            "branchdb config are correct, then run `branchdb switch` manually."
        ),
    },
    TransferOutcome.RESTORE_SKIPPED_NO_DUMP: {
        "what": "No DB dump for {database} on branch '{destination}' was found!",
        "next": (
            "The database keeps the state of the previous branch. It will be saved "
            "for '{destination}' on the next branch switch."
        ),
    },
    TransferOutcome.RESTORE_SUCCEEDED: {
        "what": "Database {database} now holds the state of branch '{destination}'.",
        "next": "",
    },
    TransferOutcome.RESTORE_FAILED: {
        "what": "Could not restore the state of database {database} for branch '{destination}'.",
        "next": "The dump is kept at {dump_path}. Inspect the log above and restore it manually.",
    },
}


def outcome_message(outcome: TransferOutcome, **kwargs: str) -> str:
    if outcome not in _OUTCOME_MESSAGES:
        raise KeyError(f"Unknown transfer outcome: {outcome}")

    template = _OUTCOME_MESSAGES[outcome]
    what = template["what"].format(**kwargs)
    if not template["next"]:
        return what
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
