"""Subprocess execution service for copilotdb."""

import os
import subprocess
from typing import List, Mapping, Optional

from copilotdb.errors import ProvisionerError


class CommandRunner:
    """Runs external commands with consistent error handling.

    Secrets travel through ``env`` so they never show up in the logged
    command line.
    """

    def __init__(self, logger):
        self.logger = logger

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        child_env = {**os.environ, **env} if env else None

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                env=child_env,
            )
        except FileNotFoundError as exc:
            raise ProvisionerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except Exception as exc:
            raise ProvisionerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise ProvisionerError(message)

        self.logger.debug(message)
        return result
