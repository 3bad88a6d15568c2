"""Tests for the Cipher: round-trip, blob layout, randomness, tamper detection."""

import base64
import os

import pytest

from keyswitch.core.errors import DecryptionError, EncryptionError
from keyswitch.vault.encryption import Cipher


class TestRoundTrip:

    @pytest.mark.parametrize(
        "plaintext",
        [
            "",
            "sk-ant-api03-abcdef",
            "line1\nline2\ttab\x00nul\x7f",
            "密钥-ключ-🔑",
            "x" * 4096,
        ],
    )
    def test_decrypt_returns_original(self, cipher, plaintext):
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_empty_string_is_valid(self, cipher):
        blob = cipher.encrypt("")
        assert len(base64.b64decode(blob)) == Cipher.HEADER_LENGTH
        assert cipher.decrypt(blob) == ""

    def test_blob_layout(self, cipher):
        raw = base64.b64decode(cipher.encrypt("abc"))
        # salt(16) + iv(16) + tag(16) + ciphertext(len of UTF-8 plaintext)
        assert len(raw) == 16 + 16 + 16 + 3

    def test_bytes_blob_accepted(self, cipher):
        blob = cipher.encrypt("sk-bytes").encode("ascii")
        assert cipher.decrypt(blob) == "sk-bytes"


class TestRandomness:

    def test_same_plaintext_gives_different_blobs(self, cipher):
        assert cipher.encrypt("sk-same") != cipher.encrypt("sk-same")

    def test_salt_and_iv_differ(self, cipher):
        a = base64.b64decode(cipher.encrypt("sk-same"))
        b = base64.b64decode(cipher.encrypt("sk-same"))
        assert a[:16] != b[:16]
        assert a[16:32] != b[16:32]


class TestTamperDetection:

    def _flip(self, blob: str, index: int) -> str:
        raw = bytearray(base64.b64decode(blob))
        raw[index] ^= 0x01
        return base64.b64encode(bytes(raw)).decode("ascii")

    def test_flipping_any_tag_or_ciphertext_byte_fails(self, cipher):
        blob = cipher.encrypt("sk-tamper-me")
        length = len(base64.b64decode(blob))
        for index in range(32, length):
            with pytest.raises(DecryptionError):
                cipher.decrypt(self._flip(blob, index))

    def test_flipping_salt_or_iv_fails(self, cipher):
        blob = cipher.encrypt("sk-tamper-me")
        for index in (0, 15, 16, 31):
            with pytest.raises(DecryptionError):
                cipher.decrypt(self._flip(blob, index))

    def test_wrong_master_key_fails(self, cipher):
        blob = cipher.encrypt("sk-secret")
        other = Cipher(os.urandom(32))
        with pytest.raises(DecryptionError):
            other.decrypt(blob)


class TestMalformedInput:

    def test_invalid_base64(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt("not-valid-base64!!")

    def test_non_ascii_blob(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt("ключ")

    def test_too_short(self, cipher):
        short = base64.b64encode(os.urandom(Cipher.HEADER_LENGTH - 1)).decode()
        with pytest.raises(DecryptionError, match="too short"):
            cipher.decrypt(short)

    def test_empty_blob(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt("")

    def test_non_text_blob(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt(12345)

    def test_encrypt_rejects_non_text(self, cipher):
        with pytest.raises(EncryptionError):
            cipher.encrypt(b"bytes-not-str")

    def test_empty_master_key_rejected(self):
        with pytest.raises(ValueError):
            Cipher(b"")
