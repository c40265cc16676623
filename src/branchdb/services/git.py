"""Git queries and hook installation for branchdb."""

import os
from typing import Callable, List

from branchdb.constants import HOOK_MODE
from branchdb.errors import BranchDbError

HOOK_NAME = "post-checkout"
HOOK_MARKER = "# installed by branchdb"
HOOK_SCRIPT = f"""#!/bin/sh
{HOOK_MARKER}
exec branchdb post-checkout "$@"
"""


class GitService:
    """Resolves branch names around a checkout."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def current_branch(self) -> str:
        """Returns the checked out branch, or an empty string on a detached HEAD."""
        result = self.run_cmd(
            ["git", "symbolic-ref", "--short", "-q", "HEAD"], check=False, capture_output=True
        )
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip()

    def branches_at(self, ref: str) -> List[str]:
        result = self.run_cmd(
            ["git", "branch", "--points-at", ref, "--format=%(refname:short)"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return []

        branches = []
        for line in (result.stdout or "").splitlines():
            name = line.strip()
            # detached HEAD shows up as "(HEAD detached at ...)"
            if name and not name.startswith("("):
                branches.append(name)
        return branches

    def hooks_dir(self) -> str:
        result = self.run_cmd(["git", "rev-parse", "--git-path", "hooks"], capture_output=True)
        return os.path.abspath((result.stdout or "").strip())

    def install_hook(self, force: bool = False) -> str:
        hooks_dir = self.hooks_dir()
        hook_path = os.path.join(hooks_dir, HOOK_NAME)

        if os.path.exists(hook_path) and not force:
            with open(hook_path, "r", encoding="utf-8", errors="ignore") as file_obj:
                if HOOK_MARKER not in file_obj.read():
                    raise BranchDbError(
                        f"A {HOOK_NAME} hook already exists at {hook_path}. "
                        "Re-run with --force to replace it."
                    )

        try:
            os.makedirs(hooks_dir, exist_ok=True)
            with open(hook_path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(HOOK_SCRIPT)
            os.chmod(hook_path, HOOK_MODE)
        except OSError as exc:
            raise BranchDbError(f"Could not write hook {hook_path}: {exc}") from exc

        self.logger.info("Installed %s hook at %s", HOOK_NAME, hook_path)
        return hook_path
