"""Environment-aware connection configurator for copilotdb.

Resolution order for the non-secret fields is, lowest to highest:
built-in defaults, the local secrets file (workstation only) and explicit
ambient overrides. The secret itself comes from exactly one source: the
secrets file on a workstation, ``POSTGRES_PASSWORD`` in CI.
"""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from copilotdb.constants import (
    CI_PORT,
    DATABASE_VAR,
    DEFAULT_DATABASE,
    DEFAULT_HOST,
    DEFAULT_USER,
    HOST_VAR,
    PORT_VAR,
    SECRET_VAR,
    SECRETS_FILE_NAME,
    URL_VAR,
    USER_VAR,
    WORKSTATION_PORT,
)
from copilotdb.errors import InvalidSetting, MissingLocalSecrets, MissingSecret
from copilotdb.models import ConnectionDescriptor, EnvironmentReport, ExecutionContext
from copilotdb.services.environment import detect_context, detect_platform, find_project_root
from copilotdb.services.secrets_file import read_secrets_file

logger = logging.getLogger("copilotdb")

_OVERRIDABLE = (HOST_VAR, PORT_VAR, USER_VAR, DATABASE_VAR)


def _defaults(context: ExecutionContext) -> Dict[str, str]:
    return {
        HOST_VAR: DEFAULT_HOST,
        PORT_VAR: str(CI_PORT if context.is_ci else WORKSTATION_PORT),
        USER_VAR: DEFAULT_USER,
        DATABASE_VAR: DEFAULT_DATABASE,
    }


def _ambient_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    return {key: environ[key] for key in _OVERRIDABLE if environ.get(key)}


def parse_port(value: str, name: str = PORT_VAR) -> int:
    expected = "an integer port between 1 and 65535"
    try:
        port = int(str(value).strip())
    except ValueError:
        raise InvalidSetting(name, value, expected) from None
    if not 0 < port < 65536:
        raise InvalidSetting(name, value, expected)
    return port


def resolve_connection(
    context: ExecutionContext,
    environ: Mapping[str, str],
    secrets_path: Union[str, Path, None] = None,
) -> ConnectionDescriptor:
    """Builds a fresh descriptor for ``context``.

    Raises ``MissingLocalSecrets`` or ``UnreadableSecrets`` on a workstation
    without a usable secrets file and ``MissingSecret`` in CI without
    ``POSTGRES_PASSWORD``. Without ``secrets_path`` the file is looked up in
    the discovered project root.
    """
    values = _defaults(context)

    if context.is_ci:
        secret = environ.get(SECRET_VAR)
        if not secret:
            raise MissingSecret(SECRET_VAR)
    else:
        if secrets_path is None:
            secrets_path = find_project_root() / SECRETS_FILE_NAME
        path = Path(secrets_path)
        file_values = read_secrets_file(path)
        values.update({key: file_values[key] for key in _OVERRIDABLE if file_values.get(key)})
        secret = file_values.get(SECRET_VAR)
        if not secret:
            raise MissingLocalSecrets(path, password_missing=True)
        if environ.get(SECRET_VAR) and environ[SECRET_VAR] != secret:
            logger.debug("Ignoring ambient %s; local secrets file takes precedence.", SECRET_VAR)

    values.update(_ambient_overrides(environ))

    return ConnectionDescriptor(
        host=values[HOST_VAR],
        port=parse_port(values[PORT_VAR]),
        user=values[USER_VAR],
        database=values[DATABASE_VAR],
        secret=secret,
    )


def configure(
    environ: Mapping[str, str],
    project_root: Union[str, Path],
    require_database: bool = True,
) -> EnvironmentReport:
    """Detects the context once and resolves its descriptor.

    With ``require_database=False`` a missing CI secret becomes a warning and
    the report carries no descriptor.
    """
    platform = detect_platform(environ)
    context = detect_context(environ)
    secrets_path = Path(project_root) / SECRETS_FILE_NAME

    try:
        descriptor = resolve_connection(context, environ, secrets_path)
    except MissingSecret as exc:
        if require_database:
            raise
        warning = f"Database configuration incomplete (may not be needed): {exc}"
        logger.warning(warning)
        return EnvironmentReport(context=context, platform=platform, descriptor=None, warning=warning)

    label = "Cloud" if context.is_ci else "Local"
    logger.info("%s configuration loaded: %s", label, descriptor.display_url)
    return EnvironmentReport(context=context, platform=platform, descriptor=descriptor)


def export_variables(report: EnvironmentReport) -> Dict[str, str]:
    exported = {
        "DEPLOYMENT_ENV": report.context.value,
        "IS_CI": "true" if report.context.is_ci else "false",
    }
    descriptor: Optional[ConnectionDescriptor] = report.descriptor
    if descriptor is not None:
        exported.update(
            {
                HOST_VAR: descriptor.host,
                PORT_VAR: str(descriptor.port),
                USER_VAR: descriptor.user,
                DATABASE_VAR: descriptor.database,
                SECRET_VAR: descriptor.secret,
                URL_VAR: descriptor.connection_url,
            }
        )
    return exported
