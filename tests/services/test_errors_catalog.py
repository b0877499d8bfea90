import pytest

from copilotdb.constants import DEFAULT_CONTAINER_NAME
from copilotdb.errors import ConfigError, InvalidSetting, MissingSecret, PortInUse, ReadinessTimeout, UnreadableSecrets
from copilotdb.errors_catalog import actionable_error
from copilotdb.services.connection import parse_port


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("port_in_use", port=5434)

    assert "Port 5434 is already in use." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("does_not_exist")


def test_domain_errors_carry_context():
    assert PortInUse(5434).port == 5434
    assert "POSTGRES_PASSWORD" in str(MissingSecret("POSTGRES_PASSWORD"))

    timeout = ReadinessTimeout(30, 1.0, container=DEFAULT_CONTAINER_NAME)
    assert "30 attempts (30s)" in str(timeout)
    assert f"docker logs {DEFAULT_CONTAINER_NAME}" in str(timeout)


def test_invalid_setting_message_is_not_tied_to_ports():
    message = str(InvalidSetting("POSTGRES_HOST", "x"))

    assert "Invalid value for POSTGRES_HOST: 'x'." in message
    assert "port" not in message.lower()


def test_invalid_port_message_states_accepted_range():
    with pytest.raises(InvalidSetting) as excinfo:
        parse_port("99999")

    assert "Set POSTGRES_PORT to an integer port between 1 and 65535." in str(excinfo.value)


def test_unreadable_secrets_is_a_config_error():
    error = UnreadableSecrets("/work/.env", "Permission denied")

    assert isinstance(error, ConfigError)
    assert "/work/.env could not be read: Permission denied" in str(error)
