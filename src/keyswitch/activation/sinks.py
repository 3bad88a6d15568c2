"""
Activation sinks.

A sink receives the plaintext credential of the source being switched to
and makes it visible somewhere: this process's environment, the user's
persistent environment, shell startup files, or a config directory read
by consumer tools. The store never performs any of this itself; the
switcher calls through these sinks so each destination can be tested
(or replaced) on its own.
"""

import json
import logging
import os
import re
import shlex
import subprocess
import sys
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from dotenv import set_key

from ..core.errors import ActivationError
from ..vault.models import ActiveCredential

logger = logging.getLogger(__name__)

# Variables read by consumer tools
AUTH_TOKEN_VAR = "ANTHROPIC_AUTH_TOKEN"
BASE_URL_VAR = "ANTHROPIC_BASE_URL"
MODEL_VAR = "ANTHROPIC_MODEL"
EXPORTED_VARS = (AUTH_TOKEN_VAR, BASE_URL_VAR, MODEL_VAR)

# Process-local aliases kept for older tooling
LEGACY_KEY_VAR = "CLAUDE_API_KEY"
LEGACY_BASE_VAR = "CLAUDE_API_BASE"
LEGACY_MODEL_VAR = "CLAUDE_MODEL"
PROCESS_VARS = EXPORTED_VARS + (LEGACY_KEY_VAR, LEGACY_BASE_VAR, LEGACY_MODEL_VAR)

DEFAULT_CONSUMER_MODEL = "claude-3-5-sonnet-20241022"
SHELL_BLOCK_MARKER = "# API credentials (managed by keyswitch)"

_EXPORT_LINE = re.compile(
    r"^export (?:%s)=.*$\n?" % "|".join(EXPORTED_VARS), re.MULTILINE
)
_MARKER_LINE = re.compile(r"^%s$\n?" % re.escape(SHELL_BLOCK_MARKER), re.MULTILINE)


def credential_variables(credential: ActiveCredential) -> Dict[str, str]:
    """The exported variables for a credential; model omitted when unset."""
    variables = {
        AUTH_TOKEN_VAR: credential.api_key,
        BASE_URL_VAR: credential.api_base,
    }
    if credential.model:
        variables[MODEL_VAR] = credential.model
    return variables


def _write_private(path: Path, text: str) -> None:
    """Write ``text`` to a file that is owner-only from the moment it exists."""
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        # an existing file keeps its old mode through O_CREAT
        os.chmod(path, 0o600)
        fh.write(text)


class ActivationSink(ABC):
    """A destination for the active credential."""

    #: Short identifier used in results and logs
    name = "sink"

    #: If True, a failure aborts the switch instead of being reported
    required = False

    @abstractmethod
    def apply(self, credential: ActiveCredential) -> None:
        """
        Make ``credential`` visible at this destination.

        Raises:
            ActivationError: If the destination could not be updated
        """


class ProcessEnvironmentSink(ActivationSink):
    """Sets the variables in ``os.environ`` for this process and its children."""

    name = "process_env"
    required = True

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def apply(self, credential: ActiveCredential) -> None:
        values = {
            AUTH_TOKEN_VAR: credential.api_key,
            BASE_URL_VAR: credential.api_base,
            LEGACY_KEY_VAR: credential.api_key,
            LEGACY_BASE_VAR: credential.api_base,
        }
        if credential.model:
            values[MODEL_VAR] = credential.model
            values[LEGACY_MODEL_VAR] = credential.model

        # the OS rejects NUL in environment values; fail before touching any
        for var, value in values.items():
            if "\x00" in value:
                raise ActivationError(self.name, f"{var} contains a NUL character")

        try:
            self.environ.update(values)
        except ValueError as exc:
            raise ActivationError(self.name, str(exc)) from exc
        if not credential.model:
            # a previous source's model must not leak into this one
            self.environ.pop(MODEL_VAR, None)
            self.environ.pop(LEGACY_MODEL_VAR, None)

    def clear(self) -> None:
        """Remove every variable this sink may have set."""
        for var in PROCESS_VARS:
            self.environ.pop(var, None)


class WindowsUserEnvironmentSink(ActivationSink):
    """Persists the variables as user-level environment variables via ``setx``."""

    name = "windows_user_env"

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    def apply(self, credential: ActiveCredential) -> None:
        for var, value in credential_variables(credential).items():
            try:
                subprocess.run(
                    ["setx", var, value],
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=True,
                )
            except subprocess.CalledProcessError as exc:
                raise ActivationError(
                    self.name,
                    f"setx {var} failed with code {exc.returncode}: {(exc.stderr or '').strip()}",
                ) from exc
            except (OSError, ValueError, subprocess.TimeoutExpired) as exc:
                raise ActivationError(self.name, f"setx {var} failed: {exc}") from exc
            logger.info("Set user environment variable %s", var)


class ShellProfileSink(ActivationSink):
    """
    Rewrites exported variables in existing shell startup files.

    Prior ``export ANTHROPIC_*=`` lines and the managed marker are
    removed, then a fresh managed block is appended. Files that do not
    exist are skipped; a file that exists but cannot be updated is an
    error.
    """

    name = "shell_profiles"

    def __init__(self, profile_paths: Iterable[Path]):
        self.profile_paths = [Path(p) for p in profile_paths]

    @staticmethod
    def render(content: str, credential: ActiveCredential) -> str:
        """Return ``content`` with the managed export block replaced."""
        stripped = _MARKER_LINE.sub("", _EXPORT_LINE.sub("", content)).rstrip("\n")
        exports = [
            f"export {var}={shlex.quote(value)}"
            for var, value in credential_variables(credential).items()
        ]
        block = "\n".join([SHELL_BLOCK_MARKER] + exports) + "\n"
        if not stripped:
            return block
        return f"{stripped}\n\n{block}"

    def apply(self, credential: ActiveCredential) -> None:
        failures: List[str] = []
        for path in self.profile_paths:
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
                path.write_text(self.render(content, credential), encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                failures.append(f"{path}: {exc}")
                continue
            logger.info("Updated shell profile %s", path)

        if failures:
            raise ActivationError(self.name, "; ".join(failures))


class ConsumerConfigSink(ActivationSink):
    """
    Writes ``config.json`` and a dotenv-format ``claude.env`` into the
    consumer config directory.
    """

    name = "consumer_config"

    CONFIG_FILENAME = "config.json"
    ENV_FILENAME = "claude.env"

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    @property
    def config_file(self) -> Path:
        return self.config_dir / self.CONFIG_FILENAME

    @property
    def env_file(self) -> Path:
        return self.config_dir / self.ENV_FILENAME

    def apply(self, credential: ActiveCredential) -> None:
        now = datetime.now(timezone.utc).isoformat()
        config = {
            "apiKey": credential.api_key,
            "apiBase": credential.api_base,
            "model": credential.model or DEFAULT_CONSUMER_MODEL,
            "lastUpdated": now,
        }
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            _write_private(self.config_file, json.dumps(config, indent=2))

            # Rewrite from scratch so a dropped model does not linger
            _write_private(self.env_file, f"# Last updated: {now}\n")
            for var, value in credential_variables(credential).items():
                set_key(str(self.env_file), var, value, quote_mode="auto")
            os.chmod(self.env_file, 0o600)
        except OSError as exc:
            raise ActivationError(self.name, str(exc)) from exc

        logger.info("Updated consumer config in %s", self.config_dir)


def default_sinks(
    consumer_dir: Path,
    shell_profiles: Sequence[Path],
    platform: Optional[str] = None,
) -> List[ActivationSink]:
    """
    The standard fan-out for this platform.

    Process environment first (required), then the persistent user-level
    destination for the OS, then the consumer config directory.
    """
    platform = platform or sys.platform
    sinks: List[ActivationSink] = [ProcessEnvironmentSink()]
    if platform.startswith("win"):
        sinks.append(WindowsUserEnvironmentSink())
    else:
        sinks.append(ShellProfileSink(shell_profiles))
    sinks.append(ConsumerConfigSink(consumer_dir))
    return sinks
