"""JSON payload codec with optional encryption at rest."""

import json
from typing import Any

from session_core.infra.store.exceptions import SerializationError
from session_core.security.crypto import EncryptionError, PayloadEncryption


class PayloadCodec:
    """Serialize mappings to stored strings and back.

    Decoding is fail-closed: anything that does not round-trip to a JSON
    object raises SerializationError.
    """

    def __init__(self, encryption: PayloadEncryption | None = None) -> None:
        self.encryption = encryption

    def encode(self, data: dict[str, Any]) -> str:
        payload = json.dumps(data)
        if self.encryption:
            payload = self.encryption.encrypt(payload)
        return payload

    def decode(self, key: str, raw: str, required: tuple[str, ...] = ()) -> dict[str, Any]:
        """Decode a stored payload.

        Args:
            key: Key the payload was read from (for error context)
            raw: Stored string
            required: Fields the decoded object must contain

        Raises:
            SerializationError: On decryption, JSON or shape errors
        """
        try:
            payload = self.encryption.decrypt(raw) if self.encryption else raw
            data = json.loads(payload)
        except (EncryptionError, json.JSONDecodeError) as e:
            raise SerializationError(key, str(e)) from e

        if not isinstance(data, dict):
            raise SerializationError(key, f"expected JSON object, got {type(data).__name__}")

        missing = [field for field in required if field not in data]
        if missing:
            raise SerializationError(key, f"missing fields: {', '.join(missing)}")
        return data
