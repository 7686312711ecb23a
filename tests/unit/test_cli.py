"""Unit tests for the command line interface."""

import json

import pytest

from session_resilience.cli import build_runtime, main
from session_resilience.config.constants import BACKEND_URL_ENV_VAR
from session_resilience.storage.file import JsonFileStorageBackend
from tests.helpers.backend import stored_session


@pytest.fixture
def storage_path(tmp_path):
    return str(tmp_path / "session.json")


def run_cli(capsys, storage_path, *args):
    code = main(["--endpoint", "https://backend.test", "--storage", storage_path, *args])
    return code, capsys.readouterr()


class TestCli:
    """Test CLI commands against a file store."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "simulate-recovery" in capsys.readouterr().out

    def test_missing_configuration(self, monkeypatch, tmp_path, capsys, storage_path):
        monkeypatch.delenv(BACKEND_URL_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        assert main(["--storage", storage_path, "diagnostics"]) == 2
        assert BACKEND_URL_ENV_VAR in capsys.readouterr().err

    def test_build_runtime_uses_file_store(self, storage_path):
        runtime = build_runtime("https://backend.test", storage_path)
        assert isinstance(runtime.store.backend, JsonFileStorageBackend)
        assert str(runtime.store.backend.path) == storage_path

    def test_diagnostics(self, capsys, storage_path):
        code, captured = run_cli(capsys, storage_path, "diagnostics")
        assert code == 0
        info = json.loads(captured.out)
        assert info["endpoint"] == "https://backend.test"
        assert info["session_keys_present"] == []

    def test_validate_without_session(self, capsys, storage_path):
        code, captured = run_cli(capsys, storage_path, "validate")
        assert code == 1
        assert json.loads(captured.out)["valid"] is False

    def test_validate_corrupted_session_recovers(self, capsys, storage_path):
        backend = JsonFileStorageBackend(storage_path)
        backend.set_item("healthscan-auth-token", "corrupted-token")

        code, captured = run_cli(capsys, storage_path, "validate")

        assert code == 1
        assert json.loads(captured.out)["recovered"] is True
        assert backend.get_item("healthscan-auth-token") is None

    def test_clear_tokens(self, capsys, storage_path):
        backend = JsonFileStorageBackend(storage_path)
        backend.set_item("healthscan-auth-token", stored_session(1))
        backend.set_item("healthscan_user_data", "{}")
        backend.set_item("unrelated", "keep")

        code, captured = run_cli(capsys, storage_path, "clear-tokens")

        assert code == 0
        assert json.loads(captured.out) == {"cleared": True}
        assert list(backend.keys()) == ["unrelated"]

    def test_simulate_recovery(self, capsys, storage_path):
        code, captured = run_cli(capsys, storage_path, "simulate-recovery")
        assert code == 0
        events = json.loads(captured.out)
        assert len(events) == 1
        assert events[0]["context"] == "simulation"
        assert "tokens_cleared" in events[0]["actions_taken"]
