# Vault: Cipher
#
# Master key + random salt -> per-value key (PBKDF2-HMAC-SHA256)
# Value encryption (AES-256-GCM)
# Self-contained blob: base64(salt || iv || tag || ciphertext)

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.errors import DecryptionError, EncryptionError


class Cipher:
    """
    Encrypts and decrypts single text values with the store's master key.

    Flow:
    1. Fresh 16-byte salt and 16-byte IV per call
    2. PBKDF2 derives a 256-bit key from master key + salt
    3. AES-256-GCM encrypts the UTF-8 plaintext, producing a 16-byte tag
    4. salt, IV and tag travel with the ciphertext; only the master key is secret

    Because salt and IV are random, encrypting the same value twice gives
    two different blobs.
    """

    PBKDF2_ITERATIONS = 100_000
    KEY_LENGTH = 32
    SALT_LENGTH = 16
    IV_LENGTH = 16
    TAG_LENGTH = 16
    HEADER_LENGTH = SALT_LENGTH + IV_LENGTH + TAG_LENGTH

    def __init__(self, master_key: bytes):
        if not isinstance(master_key, (bytes, bytearray)) or not master_key:
            raise ValueError("master_key must be non-empty bytes")
        self._master_key = bytes(master_key)

    def derive_key(self, salt: bytes) -> bytes:
        """
        Derive the AES key for one blob.

        Args:
            salt: Random salt stored at the front of the blob

        Returns:
            256-bit encryption key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=salt,
            iterations=self.PBKDF2_ITERATIONS,
            backend=default_backend(),
        )
        return kdf.derive(self._master_key)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt ``plaintext`` into a base64 blob.

        Raises:
            EncryptionError: If the value is not text or the primitive fails
        """
        if not isinstance(plaintext, str):
            raise EncryptionError(
                f"Plaintext must be str, got {type(plaintext).__name__}"
            )

        salt = os.urandom(self.SALT_LENGTH)
        iv = os.urandom(self.IV_LENGTH)

        try:
            key = self.derive_key(salt)
            sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        except (ValueError, TypeError, OverflowError) as exc:
            raise EncryptionError(f"Failed to encrypt data: {exc}") from exc

        # AESGCM appends the tag; the blob layout puts it before the ciphertext
        ciphertext, tag = sealed[: -self.TAG_LENGTH], sealed[-self.TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by :meth:`encrypt`.

        Raises:
            DecryptionError: On bad base64, a truncated header, a tag that
                does not verify (tampering or wrong master key), or
                non-UTF-8 plaintext
        """
        if not isinstance(blob, (str, bytes)):
            raise DecryptionError(f"Blob must be text, got {type(blob).__name__}")

        try:
            data = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Encrypted value is not valid base64") from exc

        if len(data) < self.HEADER_LENGTH:
            raise DecryptionError(
                f"Encrypted value too short: {len(data)} bytes, "
                f"need at least {self.HEADER_LENGTH}"
            )

        salt = data[: self.SALT_LENGTH]
        iv = data[self.SALT_LENGTH : self.SALT_LENGTH + self.IV_LENGTH]
        tag = data[self.SALT_LENGTH + self.IV_LENGTH : self.HEADER_LENGTH]
        ciphertext = data[self.HEADER_LENGTH :]

        key = self.derive_key(salt)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionError(
                "Authentication failed: value tampered, corrupted, or keyed "
                "with a different master key"
            ) from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted value is not valid UTF-8") from exc
