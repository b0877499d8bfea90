"""
copilotdb - Local and CI PostgreSQL provisioning for the copilot-cli configuration store
"""

__version__ = "0.1.0"

from .core import PostgresProvisioner
from .errors import ConfigError, ProvisionerError
from .services.connection import configure, resolve_connection
from .services.environment import detect_context

__all__ = [
    "ConfigError",
    "PostgresProvisioner",
    "ProvisionerError",
    "configure",
    "detect_context",
    "resolve_connection",
]
