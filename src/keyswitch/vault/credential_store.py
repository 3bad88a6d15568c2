# Vault: Credential Store
#
# JSON-file backed collection of API sources with per-entry AES-256-GCM
# encryption of the key. Every operation reads the file, works on the
# whole collection and, for mutations, writes the whole document back
# (temp file + os.replace) before returning.
#
# Invariants kept here:
#   - ids are assigned from a persisted counter and never reused
#   - at most one source is_default, at most one is_active
#   - plaintext keys are produced on read and never written to disk

import json
import logging
import os
import stat
import tempfile
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.errors import InvalidInputError, NotFoundError, StorageError
from ..core.event_log import EventType, get_event_logger
from .encryption import Cipher
from .master_key import load_or_create_master_key
from .models import UNSET, ActiveCredential, DecryptedProfile, Profile, ProfileInput

logger = logging.getLogger(__name__)

SOURCES_KEY = "apiSources"
SETTINGS_KEY = "appSettings"
NEXT_ID_KEY = "nextId"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _StoreState:
    sources: List[Profile] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    next_id: int = 1

    def index_of(self, source_id: int) -> Optional[int]:
        for i, profile in enumerate(self.sources):
            if profile.id == source_id:
                return i
        return None


def _clear_flag_except(
    sources: List[Profile], flag: str, keep_id: int, now: str
) -> List[Profile]:
    """Return sources with ``flag`` True only on ``keep_id``."""
    result = []
    for profile in sources:
        wanted = profile.id == keep_id
        if getattr(profile, flag) != wanted:
            profile = replace(profile, **{flag: wanted, "updated_at": now})
        result.append(profile)
    return result


class CredentialStore:
    """
    Encrypted store of named API sources plus a flat settings space.

    Construct one per process and hand it to every caller.

    Args:
        data_path: Path to the JSON document (e.g. ~/.keyswitch/data.json)
        master_key_path: Path to the master key file. Defaults to
            ``master.key`` next to the data file.
        cipher: Pre-built Cipher (tests). When omitted the master key is
            loaded, or generated on first run, the first time it is needed.
    """

    def __init__(
        self,
        data_path: Union[str, Path],
        master_key_path: Optional[Union[str, Path]] = None,
        cipher: Optional[Cipher] = None,
    ):
        self.data_path = Path(data_path)
        self.master_key_path = (
            Path(master_key_path)
            if master_key_path
            else self.data_path.parent / "master.key"
        )
        self._cipher = cipher
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config) -> "CredentialStore":
        """Create a store at the paths named by an AppConfig."""
        return cls(config.data_path, master_key_path=config.master_key_path)

    @property
    def cipher(self) -> Cipher:
        if self._cipher is None:
            self._cipher = Cipher(load_or_create_master_key(self.master_key_path))
        return self._cipher

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_state(self) -> _StoreState:
        if not self.data_path.exists():
            return _StoreState()

        try:
            with open(self.data_path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except OSError as exc:
            raise StorageError(f"Cannot read store at {self.data_path}: {exc}") from exc
        except ValueError as exc:
            raise StorageError(f"Store at {self.data_path} is not valid JSON: {exc}") from exc

        if not isinstance(document, dict):
            raise StorageError(f"Store at {self.data_path} is not a JSON object")

        records = document.get(SOURCES_KEY, [])
        settings = document.get(SETTINGS_KEY, {})
        next_id = document.get(NEXT_ID_KEY, 1)

        if not isinstance(records, list) or not isinstance(settings, dict):
            raise StorageError(f"Store at {self.data_path} has an unexpected layout")
        if not isinstance(next_id, int) or isinstance(next_id, bool):
            raise StorageError(f"Store at {self.data_path} has a non-integer {NEXT_ID_KEY}")

        try:
            sources = [Profile.from_record(record) for record in records]
        except (KeyError, TypeError) as exc:
            raise StorageError(f"Malformed source record in {self.data_path}: {exc}") from exc

        # Never hand out an id that is already taken, even if the counter
        # was edited by hand.
        if sources:
            next_id = max(next_id, max(p.id for p in sources) + 1)

        return _StoreState(sources=sources, settings=settings, next_id=next_id)

    def _write_state(self, state: _StoreState) -> None:
        document = {
            SOURCES_KEY: [p.to_record() for p in state.sources],
            SETTINGS_KEY: state.settings,
            NEXT_ID_KEY: state.next_id,
        }

        directory = self.data_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create store directory {directory}: {exc}") from exc

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(directory), prefix=".data-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, self.data_path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Cannot write store at {self.data_path}: {exc}") from exc

    def _decrypt(self, profile: Profile) -> DecryptedProfile:
        return DecryptedProfile.from_profile(profile, self.cipher.decrypt(profile.encrypted_key))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_all(self) -> List[DecryptedProfile]:
        """
        All sources in insertion order with decrypted keys.

        Raises:
            DecryptionError: If any entry fails to decrypt
        """
        with self._lock:
            state = self._read_state()
            return [self._decrypt(p) for p in state.sources]

    def get_by_id(self, source_id: int) -> Optional[DecryptedProfile]:
        """Return the source with ``source_id`` or None."""
        with self._lock:
            state = self._read_state()
            index = state.index_of(source_id)
            if index is None:
                return None
            return self._decrypt(state.sources[index])

    def get_active(self) -> Optional[DecryptedProfile]:
        """Return the active source or None."""
        with self._lock:
            state = self._read_state()
            for profile in state.sources:
                if profile.is_active:
                    return self._decrypt(profile)
            return None

    def get_active_credential(self) -> Optional[ActiveCredential]:
        """Plaintext key/base/model of the active source, for activation sinks."""
        active = self.get_active()
        return active.credential if active else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def save(self, source: Union[ProfileInput, Mapping[str, Any]]) -> int:
        """
        Create (no id) or update (id given) a source.

        Args:
            source: ProfileInput or a mapping accepted by ProfileInput.from_dict

        Returns:
            The assigned or existing id

        Raises:
            InvalidInputError: Unknown fields, or create without api_key
            NotFoundError: Update of an id that does not exist
            EncryptionError: The key could not be encrypted
            StorageError: The store could not be written
        """
        if not isinstance(source, ProfileInput):
            source = ProfileInput.from_dict(source)

        with self._lock:
            state = self._read_state()
            now = _utcnow()

            if source.is_create:
                source_id, sources, next_id = self._create(state, source, now)
                event_type, verb = EventType.SOURCE_CREATED, "created"
            else:
                source_id, sources = self._update(state, source, now)
                next_id = state.next_id
                event_type, verb = EventType.SOURCE_UPDATED, "updated"

            self._write_state(
                _StoreState(sources=sources, settings=state.settings, next_id=next_id)
            )

        logger.info("API source %d %s", source_id, verb)
        get_event_logger().log_event(
            event_type,
            f"API source {verb}",
            details={"source_id": source_id, "fields": sorted(source.supplied())},
        )
        return source_id

    def _create(self, state: _StoreState, source: ProfileInput, now: str):
        if source.api_key is UNSET:
            raise InvalidInputError("api_key is required when creating a source")

        source_id = state.next_id
        profile = Profile(
            id=source_id,
            name=source.name if source.name is not UNSET else "",
            encrypted_key=self.cipher.encrypt(source.api_key),
            api_base=source.api_base if source.api_base is not UNSET else "",
            model=source.model if source.model is not UNSET else None,
            is_default=source.is_default is True,
            is_active=source.is_active is True,
            created_at=now,
            updated_at=now,
        )

        sources = list(state.sources) + [profile]
        if profile.is_default:
            sources = _clear_flag_except(sources, "is_default", source_id, now)
        if profile.is_active:
            sources = _clear_flag_except(sources, "is_active", source_id, now)
        return source_id, sources, source_id + 1

    def _update(self, state: _StoreState, source: ProfileInput, now: str):
        index = state.index_of(source.id)
        if index is None:
            raise NotFoundError(source.id)

        encrypted = None
        if source.api_key is not UNSET:
            encrypted = self.cipher.encrypt(source.api_key)

        sources = list(state.sources)
        sources[index] = sources[index].merged(source, encrypted, now)
        if source.is_default is True:
            sources = _clear_flag_except(sources, "is_default", source.id, now)
        if source.is_active is True:
            sources = _clear_flag_except(sources, "is_active", source.id, now)
        return source.id, sources

    def delete_by_id(self, source_id: int) -> bool:
        """
        Remove a source. Returns True if it existed.

        Deleting the active source leaves no source active.
        """
        with self._lock:
            state = self._read_state()
            remaining = [p for p in state.sources if p.id != source_id]
            if len(remaining) == len(state.sources):
                return False
            self._write_state(
                _StoreState(sources=remaining, settings=state.settings, next_id=state.next_id)
            )

        logger.info("API source %d deleted", source_id)
        get_event_logger().log_event(
            EventType.SOURCE_DELETED,
            "API source deleted",
            details={"source_id": source_id},
        )
        return True

    def set_active(self, source_id: int) -> None:
        """
        Mark ``source_id`` active and every other source inactive.

        Raises:
            NotFoundError: No such source; nothing is changed
        """
        with self._lock:
            state = self._read_state()
            if state.index_of(source_id) is None:
                raise NotFoundError(source_id)
            sources = _clear_flag_except(state.sources, "is_active", source_id, _utcnow())
            self._write_state(
                _StoreState(sources=sources, settings=state.settings, next_id=state.next_id)
            )
        logger.info("API source %d marked active", source_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting by key. Returns default if not set."""
        with self._lock:
            return self._read_state().settings.get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting. ``value`` must be JSON-serializable."""
        if not isinstance(key, str) or not key:
            raise InvalidInputError("Setting key must be a non-empty string")
        try:
            json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Setting {key!r} is not JSON-serializable: {exc}") from exc

        with self._lock:
            state = self._read_state()
            settings = dict(state.settings)
            settings[key] = value
            self._write_state(
                _StoreState(sources=state.sources, settings=settings, next_id=state.next_id)
            )
