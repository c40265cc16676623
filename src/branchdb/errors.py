"""Domain errors for branchdb."""


class BranchDbError(RuntimeError):
    """Raised when a branch switch cannot continue safely."""


class UnsupportedAdapterError(BranchDbError):
    """Raised when the configured database engine has no adapter."""

    def __init__(self, adapter_kind: str):
        self.adapter_kind = adapter_kind
        super().__init__(
            f"Unsupported database adapter: {adapter_kind!r}. "
            "Supported adapters: postgres, mysql."
        )
