"""Shared domain models for copilotdb."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote

from copilotdb.constants import (
    DEFAULT_CONTAINER_NAME,
    DEFAULT_DATABASE,
    DEFAULT_USER,
    URL_SCHEME,
    WORKSTATION_PORT,
)

MASK = "***"


class ExecutionContext(str, Enum):
    WORKSTATION = "local"
    CONTINUOUS_INTEGRATION = "cloud"

    @property
    def is_ci(self) -> bool:
        return self is ExecutionContext.CONTINUOUS_INTEGRATION


class ContainerState(str, Enum):
    ABSENT = "absent"
    STOPPED = "stopped"
    RUNNING = "running"


class Readiness(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Resolved parameters needed to reach the database.

    ``secret`` and ``connection_url`` stay out of ``repr()``; use
    ``display_url`` wherever the URL is shown to a human.
    """

    host: str
    port: int
    user: str
    database: str
    secret: str = field(repr=False)

    def _url(self, secret_segment: str) -> str:
        user = quote(self.user, safe="")
        return f"{URL_SCHEME}://{user}:{secret_segment}@{self.host}:{self.port}/{self.database}"

    @property
    def connection_url(self) -> str:
        return self._url(quote(self.secret, safe=""))

    @property
    def display_url(self) -> str:
        return self._url(MASK)


@dataclass(frozen=True)
class EnvironmentReport:
    """Outcome of one configuration pass."""

    context: ExecutionContext
    platform: Optional[str]
    descriptor: Optional[ConnectionDescriptor]
    warning: Optional[str] = None


@dataclass(frozen=True)
class ProvisionerSettings:
    """Container lifecycle defaults for the local PostgreSQL instance."""

    container_name: str = DEFAULT_CONTAINER_NAME
    pgadmin_name: str = "copilot-cli-pgadmin"
    postgres_version: str = "16-alpine"
    pgadmin_version: str = "latest"
    port: int = WORKSTATION_PORT
    pgadmin_port: int = 5435
    user: str = DEFAULT_USER
    database: str = DEFAULT_DATABASE
    data_volume: str = "copilot-cli-pgdata"
    pgadmin_volume: str = "copilot-cli-pgadmin"
    pgadmin_email: str = "admin@copilot-cli.local"
    readiness_attempts: int = 30
    readiness_interval: float = 1.0

    @property
    def postgres_image(self) -> str:
        return f"postgres:{self.postgres_version}"

    @property
    def pgadmin_image(self) -> str:
        return f"dpage/pgadmin4:{self.pgadmin_version}"


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    state: ContainerState
    readiness: Optional[Readiness] = None
    started_at: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.state is not ContainerState.ABSENT

    @property
    def running(self) -> bool:
        return self.state is ContainerState.RUNNING


@dataclass(frozen=True)
class StatusReport:
    """Status projection consumed by the CLI and calling scripts."""

    timestamp: str
    postgres: ContainerStatus
    pgadmin: ContainerStatus
    port: int
    pgadmin_port: int
    user: str
    database: str
    secrets_file: str
    secrets_file_exists: bool
    database_size: Optional[str] = None
    display_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
