# Core: Error Taxonomy
#
# Every failure the credential store and its boundary layer can surface.
# Callers catch the specific class; the API layer maps each one to an
# HTTP status (see api/main.py).


class KeyswitchError(Exception):
    """Base class for all keyswitch errors."""


class EncryptionError(KeyswitchError):
    """Raised when a plaintext value cannot be encrypted."""


class DecryptionError(KeyswitchError):
    """Raised when a stored blob is malformed, tampered with, or keyed
    with a different master key."""


class NotFoundError(KeyswitchError, LookupError):
    """Raised when a referenced source id does not exist."""

    def __init__(self, source_id):
        self.source_id = source_id
        super().__init__(f"API source not found: {source_id}")


class StorageError(KeyswitchError):
    """Raised on filesystem failures reading or writing the store."""


class InvalidInputError(KeyswitchError, ValueError):
    """Raised when a source record carries unknown or ill-typed fields."""


class ActivationError(KeyswitchError):
    """Raised when an activation sink cannot apply a credential."""

    def __init__(self, sink: str, message: str):
        self.sink = sink
        super().__init__(f"{sink}: {message}")
