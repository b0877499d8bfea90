import subprocess

from copilotdb.models import ConnectionDescriptor
from copilotdb.services.sql_client import SqlClientService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def _descriptor():
    return ConnectionDescriptor("localhost", 5434, "copilot_user", "copilot_cli", "pw1")


def _which(available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


def test_verify_connection_prefers_psql_and_passes_password_via_env():
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, env=None):
        calls.append((cmd, env))
        return subprocess.CompletedProcess(cmd, 0, stdout="1", stderr="")

    service = SqlClientService(DummyLogger(), fake_run_cmd, which=_which({"psql", "pg_isready"}))

    assert service.verify_connection(_descriptor()) is True
    cmd, env = calls[0]
    assert cmd[0] == "psql"
    assert "pw1" not in cmd
    assert env == {"PGPASSWORD": "pw1"}


def test_verify_connection_falls_back_to_pg_isready():
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, env=None):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="")

    service = SqlClientService(DummyLogger(), fake_run_cmd, which=_which({"pg_isready"}))

    assert service.verify_connection(_descriptor()) is False
    assert calls[0][0] == "pg_isready"


def test_verify_connection_without_clients_returns_none():
    def fake_run_cmd(*_args, **_kwargs):
        raise AssertionError("no command should run without client tools")

    service = SqlClientService(DummyLogger(), fake_run_cmd, which=_which(set()))

    assert service.verify_connection(_descriptor()) is None
