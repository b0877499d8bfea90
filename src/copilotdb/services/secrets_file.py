"""Local secrets file service for copilotdb."""

import secrets
import string
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from copilotdb.constants import (
    DEFAULT_HOST,
    GENERATED_PASSWORD_LENGTH,
    SECRET_VAR,
    SECRETS_FILE_MODE,
)
from copilotdb.errors import MissingLocalSecrets, ProvisionerError, UnreadableSecrets
from copilotdb.models import ProvisionerSettings

_ALPHANUMERIC = set(string.ascii_letters + string.digits)


def read_secrets_file(path) -> Dict[str, str]:
    """Parses the flat KEY=value secrets file without touching ``os.environ``."""
    path = Path(path)
    if not path.is_file():
        raise MissingLocalSecrets(path)

    try:
        values = dotenv_values(path, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UnreadableSecrets(path, str(exc)) from exc

    return {key: value for key, value in values.items() if value is not None}


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    password = ""
    while len(password) < length:
        password += "".join(c for c in secrets.token_urlsafe(32) if c in _ALPHANUMERIC)
    return password[:length]


class SecretsFileService:
    """Reads and provisions the owner-only ``.env`` credentials file."""

    def __init__(self, path, logger, console, filesystem_service):
        self.path = Path(path)
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Dict[str, str]:
        return read_secrets_file(self.path)

    def get(self, key: str) -> Optional[str]:
        if not self.exists():
            return None
        return self.read().get(key)

    def read_password(self) -> str:
        password = self.get(SECRET_VAR)
        if not password:
            raise MissingLocalSecrets(self.path, password_missing=self.exists())
        return password

    def ensure(self, settings: ProvisionerSettings, dry_run: bool = False) -> bool:
        """Generates credentials unless the file already holds a password.

        Returns ``True`` when new credentials were written.
        """
        if self.get(SECRET_VAR) is not None:
            self.console.print("[blue]Password already exists in .env file[/blue]")
            self.logger.info("Password already exists in %s", self.path)
            return False

        if dry_run:
            self.console.print(f"[blue][DRY-RUN] Would generate passwords and save to {self.path}[/blue]")
            return False

        password = generate_password()
        pgadmin_password = generate_password()
        block = self._render_block(settings, password, pgadmin_password)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "a", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(block)
        except OSError as exc:
            raise ProvisionerError(f"Could not write secrets file '{self.path}': {exc}") from exc

        self.filesystem_service.set_permissions(str(self.path), SECRETS_FILE_MODE)
        self.console.print("[green]Generated passwords and saved to .env[/green]")
        self.logger.info("Generated credentials in %s", self.path)
        return True

    @staticmethod
    def _render_block(settings: ProvisionerSettings, password: str, pgadmin_password: str) -> str:
        generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        database_url = (
            f"postgresql://{settings.user}:{password}@{DEFAULT_HOST}:{settings.port}/{settings.database}"
        )
        lines = [
            f"# PostgreSQL Configuration - Generated {generated_at}",
            f"POSTGRES_PASSWORD={password}",
            f"POSTGRES_USER={settings.user}",
            f"POSTGRES_DB={settings.database}",
            f"POSTGRES_HOST={DEFAULT_HOST}",
            f"POSTGRES_PORT={settings.port}",
            f"DATABASE_URL={database_url}",
            "",
            "# pgAdmin Configuration (Web UI)",
            f"PGADMIN_DEFAULT_EMAIL={settings.pgadmin_email}",
            f"PGADMIN_DEFAULT_PASSWORD={pgadmin_password}",
            f"PGADMIN_PORT={settings.pgadmin_port}",
            f"PGADMIN_URL=http://localhost:{settings.pgadmin_port}",
        ]
        return "\n".join(lines) + "\n"
