import json
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from rich.console import Console

from .constants import SECRETS_FILE_NAME
from .errors import InvalidSetting, MissingLocalSecrets, PortInUse, ProvisionerError
from .errors_catalog import actionable_error
from .models import (
    ConnectionDescriptor,
    ContainerState,
    ContainerStatus,
    ProvisionerSettings,
    Readiness,
    StatusReport,
)
from .services.command_runner import CommandRunner
from .services.connection import parse_port
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.ports import is_port_in_use
from .services.readiness import wait_until
from .services.secrets_file import SecretsFileService

console = Console()
logger = logging.getLogger("copilotdb")


class PostgresProvisioner:
    ACTIONS = ["setup", "start", "stop", "status"]

    def __init__(
        self,
        project_root,
        settings: Optional[ProvisionerSettings] = None,
        with_ui: bool = False,
        dry_run: bool = False,
        json_output: bool = False,
        docker_runtime: Optional[DockerRuntimeService] = None,
        port_check: Callable[[int], bool] = is_port_in_use,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.project_root = Path(project_root)
        self.settings = settings or ProvisionerSettings()
        self.with_ui = with_ui
        self.dry_run = dry_run
        self.json_output = json_output
        self.port_check = port_check
        self.sleep = sleep

        self.secrets_path = self.project_root / SECRETS_FILE_NAME
        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger)
        self.secrets_service = SecretsFileService(
            path=self.secrets_path,
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )
        self.docker_runtime = docker_runtime or DockerRuntimeService(
            logger=logger,
            run_cmd=self._run_cmd,
        )

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, env=env)

    def _dry(self, message: str):
        console.print(f"[blue][DRY-RUN] {message}[/blue]")
        logger.info("[DRY-RUN] %s", message)

    def check_prerequisites(self):
        logger.debug("Checking prerequisites...")
        self.docker_runtime.check_available()
        if not self.json_output:
            console.print("[green]All prerequisites met[/green]")

    def wait_for_db(self) -> int:
        console.print("[yellow]Waiting for PostgreSQL to be ready...[/yellow]")
        kwargs = {"sleep": self.sleep} if self.sleep is not None else {}
        attempt = wait_until(
            lambda: self.docker_runtime.is_postgres_ready(self.settings.container_name, self.settings.user),
            attempts=self.settings.readiness_attempts,
            interval=self.settings.readiness_interval,
            container=self.settings.container_name,
            **kwargs,
        )
        console.print("[green]PostgreSQL is ready and accepting connections![/green]")
        logger.info("PostgreSQL ready after %s attempt(s)", attempt)
        return attempt

    def setup(self):
        settings = self.settings
        console.print("[blue]Setting up PostgreSQL container...[/blue]")
        state = self.docker_runtime.container_state(settings.container_name)

        if state is ContainerState.RUNNING:
            console.print("[green]PostgreSQL container is already running[/green]")
            if self.with_ui:
                self.setup_pgadmin()
            return

        if state is ContainerState.STOPPED:
            console.print("[blue]Container exists but is stopped. Starting it...[/blue]")
            self.start()
            return

        if self.port_check(settings.port):
            raise PortInUse(settings.port)

        self.secrets_service.ensure(settings, dry_run=self.dry_run)

        if self.dry_run:
            self._dry(f"Would create Docker volume: {settings.data_volume}")
            self._dry(f"Would run PostgreSQL container {settings.container_name} with:")
            self._dry(f"  - Image: {settings.postgres_image}")
            self._dry(f"  - Port: {settings.port}:5432")
            self._dry(f"  - Database: {settings.database}")
            self._dry(f"  - User: {settings.user}")
            if self.with_ui:
                self._dry(f"Would also setup pgAdmin web UI on port {settings.pgadmin_port}")
            return

        password = self.secrets_service.read_password()

        self.docker_runtime.create_volume(settings.data_volume)
        console.print(f"[green]Created volume: {settings.data_volume}[/green]")

        console.print("[blue]Starting PostgreSQL container...[/blue]")
        self.docker_runtime.run_container(
            name=settings.container_name,
            image=settings.postgres_image,
            ports=[f"{settings.port}:5432"],
            volumes=[f"{settings.data_volume}:/var/lib/postgresql/data"],
            environment={
                "POSTGRES_PASSWORD": password,
                "POSTGRES_USER": settings.user,
                "POSTGRES_DB": settings.database,
            },
        )
        console.print("[green]PostgreSQL container started[/green]")

        self.wait_for_db()

        if self.with_ui:
            self.setup_pgadmin()

    def setup_pgadmin(self):
        settings = self.settings
        console.print("[blue]Setting up pgAdmin web UI...[/blue]")
        state = self.docker_runtime.container_state(settings.pgadmin_name)

        if state is ContainerState.RUNNING:
            console.print("[green]pgAdmin is already running[/green]")
            return

        if state is ContainerState.STOPPED:
            if self.dry_run:
                self._dry(f"Would start container: {settings.pgadmin_name}")
                return
            console.print("[blue]pgAdmin container exists, starting...[/blue]")
            self.docker_runtime.start(settings.pgadmin_name)
            console.print("[green]pgAdmin started[/green]")
            return

        if self.port_check(settings.pgadmin_port):
            console.print(
                f"[yellow]Port {settings.pgadmin_port} is already in use, skipping pgAdmin setup[/yellow]"
            )
            logger.warning("Port %s is already in use, skipping pgAdmin setup", settings.pgadmin_port)
            return

        if self.dry_run:
            self._dry(f"Would run pgAdmin container {settings.pgadmin_name} on port {settings.pgadmin_port}")
            return

        credentials = self.secrets_service.read()
        email = credentials.get("PGADMIN_DEFAULT_EMAIL") or settings.pgadmin_email
        password = credentials.get("PGADMIN_DEFAULT_PASSWORD")
        if not password:
            raise MissingLocalSecrets(self.secrets_path, password_missing=True)

        self.docker_runtime.create_volume(settings.pgadmin_volume)
        self.docker_runtime.run_container(
            name=settings.pgadmin_name,
            image=settings.pgadmin_image,
            ports=[f"{settings.pgadmin_port}:80"],
            volumes=[f"{settings.pgadmin_volume}:/var/lib/pgadmin"],
            environment={
                "PGADMIN_DEFAULT_EMAIL": email,
                "PGADMIN_DEFAULT_PASSWORD": password,
                "PGADMIN_CONFIG_SERVER_MODE": "False",
            },
        )
        console.print("[green]pgAdmin container started[/green]")
        console.print(f"[blue]Access web UI at: http://localhost:{settings.pgadmin_port}[/blue]")
        console.print(f"[blue]Login: {email}[/blue]")
        console.print("[blue]Password: (check .env file for PGADMIN_DEFAULT_PASSWORD)[/blue]")

    def start(self):
        settings = self.settings
        state = self.docker_runtime.container_state(settings.container_name)
        if state is ContainerState.ABSENT:
            raise ProvisionerError(actionable_error("container_missing", container=settings.container_name))

        if state is ContainerState.RUNNING:
            console.print("[blue]PostgreSQL is already running[/blue]")
        elif self.dry_run:
            self._dry(f"Would start container: {settings.container_name}")
        else:
            self.docker_runtime.start(settings.container_name)
            console.print("[green]PostgreSQL started[/green]")

        if self.docker_runtime.container_state(settings.pgadmin_name) is ContainerState.STOPPED:
            if self.dry_run:
                self._dry(f"Would start container: {settings.pgadmin_name}")
            else:
                console.print("[blue]Starting pgAdmin...[/blue]")
                self.docker_runtime.start(settings.pgadmin_name)
                console.print("[green]pgAdmin started[/green]")

    def stop(self):
        settings = self.settings
        state = self.docker_runtime.container_state(settings.container_name)

        if state is ContainerState.ABSENT:
            console.print("[yellow]PostgreSQL container does not exist[/yellow]")
            logger.warning("PostgreSQL container %s does not exist", settings.container_name)
            return

        if state is ContainerState.STOPPED:
            console.print("[blue]PostgreSQL is already stopped[/blue]")
            return

        pgadmin_state = self.docker_runtime.container_state(settings.pgadmin_name)

        if self.dry_run:
            self._dry(f"Would stop container: {settings.container_name}")
            if pgadmin_state is ContainerState.RUNNING:
                self._dry(f"Would stop container: {settings.pgadmin_name}")
            return

        console.print("[blue]Stopping PostgreSQL...[/blue]")
        self.docker_runtime.stop(settings.container_name)
        console.print("[green]PostgreSQL stopped[/green]")

        if pgadmin_state is ContainerState.RUNNING:
            console.print("[blue]Stopping pgAdmin...[/blue]")
            self.docker_runtime.stop(settings.pgadmin_name)
            console.print("[green]pgAdmin stopped[/green]")

    def _container_status(self, name: str, check_readiness: bool) -> ContainerStatus:
        state = self.docker_runtime.container_state(name)
        if state is not ContainerState.RUNNING:
            return ContainerStatus(name=name, state=state)

        readiness = None
        if check_readiness:
            ready = self.docker_runtime.is_postgres_ready(name, self.settings.user)
            readiness = Readiness.READY if ready else Readiness.NOT_READY
        return ContainerStatus(
            name=name,
            state=state,
            readiness=readiness,
            started_at=self.docker_runtime.started_at(name),
        )

    def collect_status(self) -> StatusReport:
        settings = self.settings
        postgres = self._container_status(settings.container_name, check_readiness=True)
        pgadmin = self._container_status(settings.pgadmin_name, check_readiness=False)

        database_size = None
        if postgres.running:
            database_size = self.docker_runtime.database_size(
                settings.container_name, settings.user, settings.database
            )

        display_url = None
        secrets: Dict[str, str] = {}
        if self.secrets_service.exists():
            secrets = self.secrets_service.read()
        if secrets.get("POSTGRES_PASSWORD"):
            try:
                port = settings.port
                if secrets.get("POSTGRES_PORT"):
                    port = parse_port(secrets["POSTGRES_PORT"])
            except InvalidSetting as exc:
                logger.warning("Skipping connection URL: %s", exc)
            else:
                display_url = ConnectionDescriptor(
                    host=secrets.get("POSTGRES_HOST") or "localhost",
                    port=port,
                    user=secrets.get("POSTGRES_USER") or settings.user,
                    database=secrets.get("POSTGRES_DB") or settings.database,
                    secret=secrets["POSTGRES_PASSWORD"],
                ).display_url

        return StatusReport(
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            postgres=postgres,
            pgadmin=pgadmin,
            port=settings.port,
            pgadmin_port=settings.pgadmin_port,
            user=settings.user,
            database=settings.database,
            secrets_file=str(self.secrets_path),
            secrets_file_exists=self.secrets_service.exists(),
            database_size=database_size,
            display_url=display_url,
        )

    def show_status(self) -> StatusReport:
        report = self.collect_status()
        if self.json_output:
            console.print_json(json.dumps(report.to_dict()))
            return report

        postgres = report.postgres
        console.rule(f"Copilot CLI Database Status - {report.timestamp}")
        console.print("[bold]PostgreSQL Database:[/bold]")
        if postgres.running:
            console.print("[green]  Status: Running[/green]")
            console.print(f"  Port: {report.port}")
            console.print(f"  Database: {report.database}")
            console.print(f"  User: {report.user}")
            console.print(f"  Started: {postgres.started_at or 'Unknown'}")
            if postgres.readiness is Readiness.READY:
                console.print("[green]  Connection: Accepting connections[/green]")
            else:
                console.print("[yellow]  Connection: Not ready[/yellow]")
            if report.database_size:
                console.print(f"  Size: {report.database_size}")
        elif postgres.exists:
            console.print("[yellow]  Status: Stopped (run `copilotdb start` to start)[/yellow]")
        else:
            console.print("[yellow]  Status: Not configured (run `copilotdb setup` to initialize)[/yellow]")

        console.print()
        console.print("[bold]Web UI (pgAdmin):[/bold]")
        if report.pgadmin.running:
            console.print("[green]  Status: Running[/green]")
            console.print(f"  URL: http://localhost:{report.pgadmin_port}")
            console.print(f"  Started: {report.pgadmin.started_at or 'Unknown'}")
        elif report.pgadmin.exists:
            console.print("[yellow]  Status: Stopped (run `copilotdb start` to start)[/yellow]")
        else:
            console.print("[blue]  Status: Not installed (use --with-ui to enable)[/blue]")

        console.print()
        console.print("[bold]Configuration:[/bold]")
        if report.secrets_file_exists:
            console.print(f"[green]  Config file: {report.secrets_file}[/green]")
            if report.display_url:
                console.print(f"  Connection: {report.display_url}")
            console.print(
                f"  Quick connect: docker exec -it {self.settings.container_name} "
                f"psql -U {report.user} -d {report.database}"
            )
        else:
            console.print("[yellow]  Config file not found (will be created on setup)[/yellow]")
        console.rule()
        return report

    def run(self, action: str) -> int:
        try:
            if action not in self.ACTIONS:
                raise ProvisionerError(f"Invalid action. Supported actions: {', '.join(self.ACTIONS)}")

            if self.dry_run:
                console.print("[yellow]DRY-RUN MODE - No changes will be made[/yellow]")

            self.check_prerequisites()

            if action == "setup":
                self.setup()
                console.print()
                self.show_status()
            elif action == "start":
                self.start()
            elif action == "stop":
                self.stop()
            else:
                self.show_status()

            if not self.json_output:
                console.print("[green]Operation completed[/green]")
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except ProvisionerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1
