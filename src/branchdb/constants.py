"""Shared constants for branchdb."""

DIR_MODE = 0o755
HOOK_MODE = 0o755

DEFAULT_CONFIG_FILE = ".branchdb.yml"
DEFAULT_DUMP_FOLDER = ".branchdb/dumps"
LOCK_FILE_NAME = ".branchdb.lock"

DEFAULT_ENVIRONMENT_TOKEN = "development"
DEFAULT_TEST_ENVIRONMENT_TOKEN = "test"

DEFAULT_WATCHER_MARKER = "guard"
DEFAULT_FORMATTER_MARKER = "rspec"
