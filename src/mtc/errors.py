"""Exception hierarchy for mtc.

Every error a command can report derives from ``MtcError`` so the CLI can
surface it uniformly and exit non-zero.
"""


class MtcError(Exception):
    """Base exception for mtc operations."""
    pass


class InvalidInput(MtcError):
    """Malformed arguments for an add or set operation."""

    def __init__(self, message: str, field_name: str = None, value=None):
        self.field_name = field_name
        self.value = value
        super().__init__(message)


class NotFound(MtcError):
    """An id is out of range for the current listing of a kind."""

    def __init__(self, kind: str, item_id: int):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"No {kind} with id {item_id}.")


class CorruptSnapshot(MtcError):
    """A fetched or loaded snapshot cannot be parsed."""
    pass


class TransportError(MtcError):
    """The remote channel failed (unreachable, auth rejected, I/O)."""
    pass


class RemoteNotFound(TransportError):
    """The remote location holds no snapshot for the requested kind."""
    pass


class ConfigError(MtcError):
    """Configuration could not be read."""
    pass


class ConfigMissing(ConfigError):
    """A required configuration file does not exist."""
    pass


class StorageError(MtcError):
    """The local replica could not be read or written."""
    pass
