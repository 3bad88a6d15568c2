# Core Module - Shared Utilities
#
# - Error taxonomy
# - Structured event logging

from .errors import (
    ActivationError,
    DecryptionError,
    EncryptionError,
    InvalidInputError,
    KeyswitchError,
    NotFoundError,
    StorageError,
)
from .event_log import (
    EventLogger,
    EventType,
    configure_logging,
    get_event_logger,
    mask_secret,
    set_event_logger,
)

__all__ = [
    # Errors
    "KeyswitchError",
    "EncryptionError",
    "DecryptionError",
    "NotFoundError",
    "StorageError",
    "InvalidInputError",
    "ActivationError",
    # Event Logging
    "EventLogger",
    "EventType",
    "configure_logging",
    "get_event_logger",
    "mask_secret",
    "set_event_logger",
]
