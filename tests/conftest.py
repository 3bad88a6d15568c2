"""
Shared pytest fixtures for the keyswitch test suite.

Autouse fixtures below isolate tests from the live user environment:
  - Event logger        -> temp directory (no lines in ~/.keyswitch/logs)
  - Exported variables  -> restored after every test
"""

import os

import pytest

from keyswitch.activation.sinks import PROCESS_VARS
from keyswitch.vault import Cipher, CredentialStore


@pytest.fixture(autouse=True)
def _isolate_event_log(tmp_path):
    """Point the process-wide EventLogger at a temp directory."""
    import keyswitch.core.event_log as event_mod

    old_logger = event_mod._event_logger
    event_logger = event_mod.EventLogger(log_dir=tmp_path / "event_logs")
    event_mod.set_event_logger(event_logger)

    yield event_logger

    event_logger.close()
    event_mod.set_event_logger(old_logger)


@pytest.fixture(autouse=True)
def _isolate_process_env(monkeypatch):
    """Snapshot the exported variables so a test cannot leak them.

    setenv-then-delenv makes monkeypatch remember the original value
    (or its absence) and restore it on teardown.
    """
    for var in PROCESS_VARS:
        monkeypatch.setenv(var, "placeholder")
        monkeypatch.delenv(var)
    yield


@pytest.fixture
def master_key():
    return os.urandom(32)


@pytest.fixture
def cipher(master_key):
    return Cipher(master_key)


@pytest.fixture
def store(tmp_path, cipher):
    """A CredentialStore in a temp directory with a pre-built cipher."""
    return CredentialStore(tmp_path / "store" / "data.json", cipher=cipher)
