"""Shared defaults for copilotdb."""

SECRETS_FILE_NAME = ".env"
SECRETS_FILE_MODE = 0o600
CONFIG_FILE_NAME = ".copilotdb.yml"
LOG_FILE_RELPATH = "logs/postgres-setup.log"
PROJECT_ROOT_MARKERS = (".git", "pyproject.toml")

DEFAULT_HOST = "localhost"
WORKSTATION_PORT = 5434
CI_PORT = 5432
DEFAULT_USER = "copilot_user"
DEFAULT_DATABASE = "copilot_cli"
URL_SCHEME = "postgresql"

HOST_VAR = "POSTGRES_HOST"
PORT_VAR = "POSTGRES_PORT"
USER_VAR = "POSTGRES_USER"
DATABASE_VAR = "POSTGRES_DB"
SECRET_VAR = "POSTGRES_PASSWORD"
URL_VAR = "DATABASE_URL"

# Ordered: the first match names the platform.
CI_INDICATORS = (
    ("GITHUB_ACTIONS", "GitHub Actions"),
    ("GITLAB_CI", "GitLab CI"),
    ("CIRCLECI", "CircleCI"),
    ("JENKINS_URL", "Jenkins"),
    ("TRAVIS", "Travis CI"),
    ("CI", "Generic CI"),
)

GENERATED_PASSWORD_LENGTH = 25
DEFAULT_CONTAINER_NAME = "copilot-cli-postgres"
