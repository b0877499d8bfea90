"""Domain errors for copilotdb."""

from copilotdb.errors_catalog import actionable_error


class ProvisionerError(RuntimeError):
    """Raised when provisioning or configuration cannot continue safely."""


class ConfigError(ProvisionerError):
    """Raised when a connection descriptor cannot be resolved."""


class MissingLocalSecrets(ConfigError):
    def __init__(self, path, password_missing: bool = False):
        self.path = str(path)
        self.password_missing = password_missing
        code = "missing_local_password" if password_missing else "missing_local_secrets"
        super().__init__(actionable_error(code, path=self.path))


class UnreadableSecrets(ConfigError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(actionable_error("unreadable_local_secrets", path=self.path, reason=reason))


class MissingSecret(ConfigError):
    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(actionable_error("missing_secret", variable=variable))


class InvalidSetting(ConfigError):
    def __init__(self, name: str, value: str, expected: str = "a valid value"):
        self.name = name
        self.value = value
        self.expected = expected
        super().__init__(actionable_error("invalid_setting", name=name, value=value, expected=expected))


class PortInUse(ProvisionerError):
    def __init__(self, port: int):
        self.port = port
        super().__init__(actionable_error("port_in_use", port=port))


class ReadinessTimeout(ProvisionerError):
    def __init__(self, attempts: int, interval: float, container: str):
        self.attempts = attempts
        self.interval = interval
        self.container = container
        elapsed = f"{attempts * interval:g}"
        super().__init__(
            actionable_error(
                "readiness_timeout",
                attempts=attempts,
                elapsed=elapsed,
                container=container,
            )
        )
