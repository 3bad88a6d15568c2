# Vault: Source Data Models
#
#   Profile           - the persisted record (key kept encrypted)
#   ProfileInput      - a typed create/update request; unknown keys rejected
#   DecryptedProfile  - what the read API hands back (plaintext key, no blob)
#   ActiveCredential  - the key/base/model triple pushed to activation sinks

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping, NamedTuple, Optional

from ..core.errors import InvalidInputError


class _Unset:
    """Marker for a ProfileInput field the caller did not supply."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class ActiveCredential(NamedTuple):
    api_key: str
    api_base: str
    model: Optional[str] = None


def _record_flag(record: Mapping[str, Any], name: str) -> bool:
    value = record.get(name, False)
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class Profile:
    """One stored API source. ``encrypted_key`` is a Cipher blob."""

    id: int
    name: str
    encrypted_key: str
    api_base: str
    model: Optional[str] = None
    is_default: bool = False
    is_active: bool = False
    created_at: str = ""
    updated_at: str = ""

    # On-disk key names differ only for the encrypted field
    _STORED_KEY_FIELD = "api_key_encrypted"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Profile":
        """Build a Profile from its JSON record. Raises KeyError/TypeError
        when the record is malformed; the store turns those into
        StorageError."""
        if not isinstance(record, Mapping):
            raise TypeError(f"source record must be an object, got {type(record).__name__}")
        source_id = record["id"]
        if not isinstance(source_id, int) or isinstance(source_id, bool):
            raise TypeError(f"source id must be an integer, got {source_id!r}")
        return cls(
            id=source_id,
            name=record.get("name", ""),
            encrypted_key=record[cls._STORED_KEY_FIELD],
            api_base=record.get("api_base", ""),
            model=record.get("model"),
            is_default=_record_flag(record, "is_default"),
            is_active=_record_flag(record, "is_active"),
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            self._STORED_KEY_FIELD: self.encrypted_key,
            "api_base": self.api_base,
            "model": self.model,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def merged(
        self,
        update: "ProfileInput",
        encrypted_key: Optional[str],
        updated_at: str,
    ) -> "Profile":
        """Apply the supplied fields of ``update``; id and created_at never change."""
        changes = update.supplied()
        changes.pop("id", None)
        changes.pop("api_key", None)
        if encrypted_key is not None:
            changes["encrypted_key"] = encrypted_key
        changes["updated_at"] = updated_at
        return replace(self, **changes)


@dataclass(frozen=True)
class DecryptedProfile:
    """A source as returned by the read API, with the key in plaintext."""

    id: int
    name: str
    api_key: str
    api_base: str
    model: Optional[str]
    is_default: bool
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: Profile, api_key: str) -> "DecryptedProfile":
        return cls(
            id=profile.id,
            name=profile.name,
            api_key=api_key,
            api_base=profile.api_base,
            model=profile.model,
            is_default=profile.is_default,
            is_active=profile.is_active,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def credential(self) -> ActiveCredential:
        return ActiveCredential(self.api_key, self.api_base, self.model)


# field name -> accepted types (None allowed only for model)
_INPUT_TYPES = {
    "id": (int,),
    "name": (str,),
    "api_key": (str,),
    "api_base": (str,),
    "model": (str, type(None)),
    "is_default": (bool,),
    "is_active": (bool,),
}


@dataclass(frozen=True)
class ProfileInput:
    """
    A create or update request for one source.

    Fields left as UNSET are not touched on update. ``id`` absent means
    create; ``api_key`` is required on create.
    """

    id: Any = field(default=UNSET)
    name: Any = field(default=UNSET)
    api_key: Any = field(default=UNSET)
    api_base: Any = field(default=UNSET)
    model: Any = field(default=UNSET)
    is_default: Any = field(default=UNSET)
    is_active: Any = field(default=UNSET)

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            accepted = _INPUT_TYPES[f.name]
            # bool is an int subclass; an id of True is a caller bug
            if f.name == "id" and isinstance(value, bool):
                raise InvalidInputError("id must be an integer")
            if not isinstance(value, accepted):
                names = " or ".join("null" if t is type(None) else t.__name__ for t in accepted)
                raise InvalidInputError(
                    f"{f.name} must be {names}, got {type(value).__name__}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProfileInput":
        """
        Build an input from a plain mapping.

        Raises:
            InvalidInputError: On unknown keys or ill-typed values
        """
        if not isinstance(data, Mapping):
            raise InvalidInputError(
                f"source input must be a mapping, got {type(data).__name__}"
            )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidInputError(f"Unknown source field(s): {', '.join(unknown)}")
        # an explicit id of None means "create"
        values = {k: v for k, v in data.items() if not (k == "id" and v is None)}
        return cls(**values)

    @property
    def is_create(self) -> bool:
        return self.id is UNSET

    def supplied(self) -> Dict[str, Any]:
        """The fields the caller actually set."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }
