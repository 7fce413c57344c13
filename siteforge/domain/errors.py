class StorageError(Exception):
    """Transient failure reported by a persistence adapter."""


class DuplicateKeyError(Exception):
    """A write violated a unique index."""

    def __init__(self, field: str, value: str = "") -> None:
        super().__init__(f"Duplicate value for {field}: {value}")
        self.field = field
        self.value = value


class InvalidTransitionError(ValueError):
    """A post status change not permitted by the lifecycle."""

    def __init__(self, current: str, new: str, reason: str = "") -> None:
        message = f"Invalid transition from {current} to {new}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.new = new
