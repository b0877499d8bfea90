"""Host-side SQL client checks for copilotdb."""

import shutil
from typing import Callable, Optional

from copilotdb.models import ConnectionDescriptor


class SqlClientService:
    """Verifies connectivity through ``psql`` or ``pg_isready`` when installed."""

    def __init__(self, logger, run_cmd: Callable, which: Callable[[str], Optional[str]] = shutil.which):
        self.logger = logger
        self.run_cmd = run_cmd
        self.which = which

    def verify_connection(self, descriptor: ConnectionDescriptor) -> Optional[bool]:
        """Returns ``None`` when no client tool is available to check with."""
        env = {"PGPASSWORD": descriptor.secret}
        target = [
            "-h",
            descriptor.host,
            "-p",
            str(descriptor.port),
            "-U",
            descriptor.user,
        ]

        if self.which("psql"):
            cmd = ["psql", *target, "-d", descriptor.database, "-c", "SELECT 1;"]
        elif self.which("pg_isready"):
            cmd = ["pg_isready", *target, "-d", descriptor.database]
        else:
            self.logger.warning("Cannot verify connection (psql not installed)")
            return None

        result = self.run_cmd(cmd, check=False, capture_output=True, env=env)
        if result.returncode == 0:
            self.logger.info("Database connection successful: %s", descriptor.display_url)
            return True

        self.logger.warning("Database connection failed: %s", descriptor.display_url)
        return False
