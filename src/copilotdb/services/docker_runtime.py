"""Docker runtime services for copilotdb."""

from typing import Callable, Dict, Iterable, List, Optional

from copilotdb.errors import ProvisionerError
from copilotdb.errors_catalog import actionable_error
from copilotdb.models import ContainerState


class DockerRuntimeService:
    """Narrow container runtime capability backed by the ``docker`` CLI."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def check_available(self):
        self.run_cmd(["docker", "--version"], capture_output=True)
        result = self.run_cmd(["docker", "info"], check=False, capture_output=True)
        if result.returncode != 0:
            raise ProvisionerError(actionable_error("docker_unavailable"))

    def _inspect(self, name: str, template: str) -> Optional[str]:
        result = self.run_cmd(
            ["docker", "inspect", "--format", template, name],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip()

    def container_state(self, name: str) -> ContainerState:
        running = self._inspect(name, "{{.State.Running}}")
        if running is None:
            return ContainerState.ABSENT
        if running == "true":
            return ContainerState.RUNNING
        return ContainerState.STOPPED

    def started_at(self, name: str) -> Optional[str]:
        return self._inspect(name, "{{.State.StartedAt}}") or None

    def create_volume(self, name: str):
        self.run_cmd(["docker", "volume", "create", name], capture_output=True)
        self.logger.info("Created volume: %s", name)

    def run_container(
        self,
        name: str,
        image: str,
        ports: Iterable[str] = (),
        volumes: Iterable[str] = (),
        environment: Optional[Dict[str, str]] = None,
        restart: str = "unless-stopped",
    ):
        """Starts a detached container.

        Environment values are handed to the docker client process and
        referenced by name only, keeping them out of the command line.
        """
        cmd: List[str] = ["docker", "run", "-d", "--name", name, "--restart", restart]
        for key in sorted(environment or {}):
            cmd.extend(["-e", key])
        for mapping in ports:
            cmd.extend(["-p", mapping])
        for mapping in volumes:
            cmd.extend(["-v", mapping])
        cmd.append(image)

        self.run_cmd(cmd, capture_output=True, env=environment or None)
        self.logger.info("Started container %s from %s", name, image)

    def start(self, name: str):
        self.run_cmd(["docker", "start", name], capture_output=True)
        self.logger.info("Started container %s", name)

    def stop(self, name: str):
        self.run_cmd(["docker", "stop", name], capture_output=True)
        self.logger.info("Stopped container %s", name)

    def is_postgres_ready(self, name: str, user: str) -> bool:
        result = self.run_cmd(
            ["docker", "exec", name, "pg_isready", "-U", user],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def database_size(self, name: str, user: str, database: str) -> Optional[str]:
        query = f"SELECT pg_size_pretty(pg_database_size('{database}'));"
        result = self.run_cmd(
            ["docker", "exec", name, "psql", "-U", user, "-d", database, "-t", "-c", query],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None
