# keyswitch - Encrypted API credential profiles with active-source switching
#
# Stores named API sources (key, base URL, model) encrypted at rest and
# exports the active one to this process, the user's environment and
# consumer config files.

__version__ = "0.1.0"
__description__ = "Encrypted API credential profiles with active-source switching"

from .core import (
    ActivationError,
    DecryptionError,
    EncryptionError,
    InvalidInputError,
    KeyswitchError,
    NotFoundError,
    StorageError,
)
from .vault import Cipher, CredentialStore, ProfileInput

__all__ = [
    "__version__",
    "Cipher",
    "CredentialStore",
    "ProfileInput",
    "KeyswitchError",
    "EncryptionError",
    "DecryptionError",
    "NotFoundError",
    "StorageError",
    "InvalidInputError",
    "ActivationError",
]
