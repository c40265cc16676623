"""Maps (database, branch) pairs to dump file paths."""

import os
import re

_UNSAFE_CHARACTERS = re.compile(r"[^0-9A-Za-z.\-_]")


def sanitize_branch_name(branch_name: str) -> str:
    """Replaces every character outside ``[0-9A-Za-z.-_]`` with an underscore."""
    return _UNSAFE_CHARACTERS.sub("_", branch_name)


class DumpFileNamer:
    """Deterministic dump paths: ``{dump_folder}/{database}-{sanitized branch}``."""

    def __init__(self, dump_folder: str):
        self.dump_folder = dump_folder

    def path(self, database_name: str, branch_name: str) -> str:
        return os.path.join(self.dump_folder, f"{database_name}-{sanitize_branch_name(branch_name)}")
