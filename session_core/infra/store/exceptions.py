"""Exception hierarchy for key-value store access.

Absence of a key is never an exception: reads return ``None``.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    pass


class StoreConnectionError(StoreError):
    """Store unreachable or the connection handshake failed."""

    pass


class StoreOperationError(StoreError):
    """A single store command failed after the connection was established.

    Attributes:
        operation: Command name that failed (get, set, sadd, ...)
        key: Key the command targeted
        cause: Underlying transport or protocol error
    """

    def __init__(self, operation: str, key: str, cause: BaseException) -> None:
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Store {operation} failed for key '{key}': {cause}")


class SerializationError(StoreError):
    """Stored payload could not be decoded (malformed JSON, failed decryption)."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Failed to decode payload for key '{key}': {message}")
