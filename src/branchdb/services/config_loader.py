"""Configuration loader for branchdb."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from branchdb.errors import BranchDbError
from branchdb.models import Credentials, DatabaseConfig


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "adapter",
        "database",
        "username",
        "password",
        "host",
        "port",
        "dump_folder",
        "container_service",
        "environment_token",
        "test_environment_token",
        "watcher_marker",
        "formatter_marker",
        "strict_restore",
        "command_timeout",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise BranchDbError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise BranchDbError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise BranchDbError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(str(key) for key in unknown)
            raise BranchDbError(f"Unknown configuration keys: {unknown_list}")

        return parsed


def build_database_config(values: Dict[str, Any]) -> DatabaseConfig:
    missing = [key for key in ("adapter", "database") if not values.get(key)]
    if missing:
        raise BranchDbError(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set them in .branchdb.yml or pass --config."
        )

    credentials = None
    if values.get("username"):
        password = values.get("password")
        credentials = Credentials(
            username=str(values["username"]),
            password=str(password) if password is not None else None,
        )

    port = values.get("port")
    try:
        port = int(port) if port is not None else None
    except (TypeError, ValueError) as exc:
        raise BranchDbError(f"Invalid port in configuration: {port!r}") from exc

    return DatabaseConfig(
        adapter_kind=str(values["adapter"]),
        database_name=str(values["database"]),
        credentials=credentials,
        host=str(values["host"]) if values.get("host") else None,
        port=port,
    )
