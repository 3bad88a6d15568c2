"""Tests for the command-line entry point."""

from unittest.mock import patch

import pytest

from keyswitch.__main__ import main
from keyswitch.core.errors import StorageError


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("KEYSWITCH_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("KEYSWITCH_PORT", raising=False)
    monkeypatch.delenv("KEYSWITCH_HOST", raising=False)
    return tmp_path / "home"


@patch("keyswitch.api.start_api_server")
def test_cli_overrides_config(mock_start, home):
    assert main(["--host", "localhost", "--port", "9001"]) == 0
    config = mock_start.call_args.args[0]
    assert config.host == "localhost"
    assert config.port == 9001
    assert config.home == home
    assert (home / "logs").is_dir()


@patch("keyswitch.api.start_api_server")
def test_bad_config_exits_2(mock_start, home, monkeypatch):
    monkeypatch.setenv("KEYSWITCH_PORT", "not-a-port")
    assert main([]) == 2
    mock_start.assert_not_called()


@patch("keyswitch.api.start_api_server", side_effect=StorageError("disk gone"))
def test_startup_error_exits_1(mock_start, home):
    assert main([]) == 1


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert "keyswitch v" in capsys.readouterr().out
