"""
Master key persistence.

The master key is 32 random bytes, hex-encoded in ``master.key`` with
owner-only permissions. It is generated on first run only: a file that
exists but cannot be read or parsed is an error, because replacing it
would make every stored source undecryptable.
"""

import logging
import os
import secrets
import stat
from pathlib import Path

from ..core.errors import StorageError
from ..core.event_log import EventType, get_event_logger

logger = logging.getLogger(__name__)

MASTER_KEY_LENGTH = 32


def _write_new_key(path: Path) -> bytes:
    key = secrets.token_bytes(MASTER_KEY_LENGTH)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # O_EXCL: never clobber a key another process just created
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="ascii") as fh:
            fh.write(key.hex())
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except FileExistsError:
        return load_master_key(path)
    except OSError as exc:
        raise StorageError(f"Cannot create master key at {path}: {exc}") from exc

    logger.info("Generated new master key at %s", path)
    get_event_logger().log_event(
        EventType.MASTER_KEY_GENERATED,
        "Master key generated",
        details={"path": str(path)},
    )
    return key


def load_master_key(path: Path) -> bytes:
    """Read an existing master key. Raises StorageError if it is unusable."""
    try:
        raw = Path(path).read_text(encoding="ascii").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageError(f"Cannot read master key at {path}: {exc}") from exc

    try:
        key = bytes.fromhex(raw)
    except ValueError as exc:
        raise StorageError(f"Master key at {path} is not valid hex") from exc

    if len(key) != MASTER_KEY_LENGTH:
        raise StorageError(
            f"Master key at {path} must be {MASTER_KEY_LENGTH} bytes, got {len(key)}"
        )
    return key


def load_or_create_master_key(path: Path) -> bytes:
    """
    Return the master key stored at ``path``, generating it if absent.

    Raises:
        StorageError: If the file exists but is unreadable or malformed,
            or a new key cannot be written
    """
    path = Path(path)
    if not path.exists():
        return _write_new_key(path)
    return load_master_key(path)
