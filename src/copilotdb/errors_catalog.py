"""Actionable error catalog for copilotdb."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_local_secrets": {
        "what": "Local secrets file not found at {path}.",
        "next": "Run `copilotdb setup` to generate it.",
    },
    "missing_local_password": {
        "what": "Local secrets file {path} does not define POSTGRES_PASSWORD.",
        "next": "Remove the file and run `copilotdb setup` to regenerate credentials.",
    },
    "missing_secret": {
        "what": "{variable} not set in cloud environment.",
        "next": "Expose {variable} to the pipeline job as a secret variable.",
    },
    "unreadable_local_secrets": {
        "what": "Local secrets file {path} could not be read: {reason}",
        "next": "Check the file permissions and encoding (UTF-8), or regenerate it with `copilotdb setup`.",
    },
    "invalid_setting": {
        "what": "Invalid value for {name}: {value!r}.",
        "next": "Set {name} to {expected}.",
    },
    "port_in_use": {
        "what": "Port {port} is already in use.",
        "next": "Stop the conflicting service or change the configured port.",
    },
    "readiness_timeout": {
        "what": "PostgreSQL didn't become ready after {attempts} attempts ({elapsed}s).",
        "next": "Inspect `docker logs {container}` and available resources.",
    },
    "container_missing": {
        "what": "PostgreSQL container {container} does not exist.",
        "next": "Run `copilotdb setup` first.",
    },
    "docker_unavailable": {
        "what": "Docker daemon is not running or you don't have permission to access it.",
        "next": "Start Docker or add your user to the `docker` group.",
    },
}


def actionable_error(code: str, **kwargs) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
