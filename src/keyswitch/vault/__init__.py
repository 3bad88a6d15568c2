# Vault Module - Encrypted API Source Store
#
# Per-entry AES-256-GCM encryption of API keys
# Master key file with PBKDF2 per-value key derivation
# Single-active / single-default source bookkeeping

from .credential_store import CredentialStore
from .encryption import Cipher
from .master_key import load_or_create_master_key
from .models import ActiveCredential, DecryptedProfile, Profile, ProfileInput

__all__ = [
    "CredentialStore",
    "Cipher",
    "load_or_create_master_key",
    "ActiveCredential",
    "DecryptedProfile",
    "Profile",
    "ProfileInput",
]
