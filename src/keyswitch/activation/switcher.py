# Activation: Source Switcher
#
# "Switch active source" = push its plaintext credential through the
# required sinks, mark it active in the store, then push it through the
# remaining sinks. A required sink failure aborts before the store
# changes; persistent destinations are best effort and their failures are
# reported back rather than failing the switch.

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..core.errors import ActivationError, NotFoundError
from ..core.event_log import EventType, get_event_logger, mask_secret
from ..vault.credential_store import CredentialStore
from .sinks import EXPORTED_VARS, ActivationSink, ProcessEnvironmentSink

logger = logging.getLogger(__name__)


@dataclass
class SwitchResult:
    """Outcome of one switch."""

    source_id: int
    applied: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def message(self) -> str:
        if self.success:
            return (
                "API source switched successfully. Restart consumer tools "
                "for the new configuration to take effect."
            )
        return (
            "API source switched for this process; some destinations were "
            "not updated: " + ", ".join(sorted(self.failed))
        )

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "source_id": self.source_id,
            "message": self.message,
            "applied": list(self.applied),
            "failed": dict(self.failed),
        }


def _read_windows_user_environment() -> Dict[str, Optional[str]]:
    """User-level variables from HKCU\\Environment."""
    import winreg

    values: Dict[str, Optional[str]] = dict.fromkeys(EXPORTED_VARS)
    try:
        key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, "Environment")
    except OSError as exc:
        # no readable user environment means nothing has been exported
        logger.warning("Cannot open HKCU\\Environment: %s", exc)
        return values

    with key:
        for var in EXPORTED_VARS:
            try:
                value, _ = winreg.QueryValueEx(key, var)
            except OSError:
                value = None
            values[var] = value or None
    return values


class SourceSwitcher:
    """
    Switches the active API source and fans the credential out.

    Args:
        store: The process's CredentialStore
        sinks: Ordered activation sinks (see sinks.default_sinks)
    """

    def __init__(self, store: CredentialStore, sinks: Sequence[ActivationSink]):
        self.store = store
        self.sinks = list(sinks)

    def switch(self, source_id: int) -> SwitchResult:
        """
        Make ``source_id`` the active source everywhere.

        Raises:
            NotFoundError: No such source
            DecryptionError: The stored key cannot be decrypted
            ActivationError: A required sink failed
        """
        source = self.store.get_by_id(source_id)
        if source is None:
            raise NotFoundError(source_id)

        credential = source.credential
        result = SwitchResult(source_id=source_id)

        # Required sinks run before the store changes, so a failure there
        # leaves the previous source active everywhere.
        for sink in self.sinks:
            if not sink.required:
                continue
            try:
                sink.apply(credential)
            except ActivationError as exc:
                self._log_sink_failure(source_id, sink, exc)
                raise
            result.applied.append(sink.name)

        self.store.set_active(source_id)

        for sink in self.sinks:
            if sink.required:
                continue
            try:
                sink.apply(credential)
            except ActivationError as exc:
                self._log_sink_failure(source_id, sink, exc)
                result.failed[sink.name] = str(exc)
                continue
            result.applied.append(sink.name)

        get_event_logger().log_event(
            EventType.SOURCE_ACTIVATED,
            "API source activated",
            details={
                "source_id": source_id,
                "name": source.name,
                "api_base": source.api_base,
                "model": source.model,
                "key_preview": mask_secret(source.api_key),
                "applied": result.applied,
                "failed": sorted(result.failed),
            },
        )
        return result

    @staticmethod
    def _log_sink_failure(source_id: int, sink: ActivationSink, exc: ActivationError) -> None:
        logger.warning("Activation sink %s failed: %s", sink.name, exc)
        get_event_logger().log_event(
            EventType.SINK_FAILED,
            f"Activation sink {sink.name} failed",
            details={
                "source_id": source_id,
                "sink": sink.name,
                "required": sink.required,
                "error": str(exc),
            },
            level=logging.WARNING,
        )

    def verify_environment(self, platform: Optional[str] = None) -> Dict[str, Optional[str]]:
        """
        Read back the exported variables as consumer tools would see them.

        Windows: the persisted user-level values. Elsewhere: this process's
        environment.
        """
        platform = platform or sys.platform
        if platform.startswith("win"):
            return _read_windows_user_environment()
        return {var: os.environ.get(var) or None for var in EXPORTED_VARS}

    def clear_process_environment(self) -> None:
        """Remove process-local variables set by earlier switches."""
        for sink in self.sinks:
            if isinstance(sink, ProcessEnvironmentSink):
                sink.clear()
