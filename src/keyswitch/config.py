# Application Configuration
#
# Defaults, then an optional dotenv file in the app home, then the real
# environment. Nothing secret lives here; keys are only ever in the
# encrypted store.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import dotenv_values

from .core.errors import InvalidInputError

ENV_PREFIX = "KEYSWITCH_"
CONFIG_FILENAME = "keyswitch.env"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_SHELL_PROFILES = (".bashrc", ".zshrc", ".profile")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _default_home() -> Path:
    return Path.home() / ".keyswitch"


def _default_consumer_dir() -> Path:
    return Path.home() / ".claude"


@dataclass(frozen=True)
class AppConfig:
    """Resolved runtime settings."""

    home: Path = field(default_factory=_default_home)
    consumer_dir: Path = field(default_factory=_default_consumer_dir)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    shell_profiles: Tuple[str, ...] = DEFAULT_SHELL_PROFILES

    @property
    def data_path(self) -> Path:
        return self.home / "data.json"

    @property
    def master_key_path(self) -> Path:
        return self.home / "master.key"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    @property
    def shell_profile_paths(self) -> Tuple[Path, ...]:
        return tuple(Path.home() / name for name in self.shell_profiles)


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except ValueError:
        raise InvalidInputError(f"{ENV_PREFIX}PORT must be an integer, got {raw!r}")
    if not 1 <= port <= 65535:
        raise InvalidInputError(f"{ENV_PREFIX}PORT out of range: {port}")
    return port


def _parse_log_level(raw: str) -> str:
    level = raw.strip().upper()
    if level not in LOG_LEVELS:
        raise InvalidInputError(
            f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {raw!r}"
        )
    return level


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build an AppConfig.

    Args:
        environ: Environment mapping to read (default: os.environ)

    Returns:
        AppConfig with dotenv-file values overridden by the environment.
    """
    env = dict(os.environ if environ is None else environ)

    home_raw = env.get(f"{ENV_PREFIX}HOME")
    home = Path(home_raw).expanduser() if home_raw else _default_home()

    values = {}
    dotenv_path = home / CONFIG_FILENAME
    if dotenv_path.is_file():
        values.update(
            {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        )
    values.update({k: v for k, v in env.items() if k.startswith(ENV_PREFIX)})

    kwargs = {"home": home}

    consumer_dir = values.get(f"{ENV_PREFIX}CONSUMER_DIR")
    if consumer_dir:
        kwargs["consumer_dir"] = Path(consumer_dir).expanduser()

    host = values.get(f"{ENV_PREFIX}HOST")
    if host:
        kwargs["host"] = host

    port = values.get(f"{ENV_PREFIX}PORT")
    if port:
        kwargs["port"] = _parse_port(port)

    log_level = values.get(f"{ENV_PREFIX}LOG_LEVEL")
    if log_level:
        kwargs["log_level"] = _parse_log_level(log_level)

    profiles = values.get(f"{ENV_PREFIX}SHELL_PROFILES")
    if profiles:
        kwargs["shell_profiles"] = tuple(
            name.strip() for name in profiles.split(",") if name.strip()
        )

    return AppConfig(**kwargs)
