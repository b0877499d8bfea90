"""Execution context detection for copilotdb."""

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from copilotdb.constants import CI_INDICATORS, PROJECT_ROOT_MARKERS
from copilotdb.models import ExecutionContext

logger = logging.getLogger("copilotdb")


def detect_platform(environ: Mapping[str, str]) -> Optional[str]:
    """Returns the label of the first CI platform whose marker is set."""
    for variable, label in CI_INDICATORS:
        if environ.get(variable):
            return label
    return None


def detect_context(environ: Mapping[str, str]) -> ExecutionContext:
    platform = detect_platform(environ)
    if platform is None:
        logger.info("Detected: Local development environment")
        return ExecutionContext.WORKSTATION

    logger.info("Detected: %s environment", platform)
    return ExecutionContext.CONTINUOUS_INTEGRATION


def find_project_root(start: Union[str, Path, None] = None) -> Path:
    """Walks upward from ``start`` to the first directory holding a project marker."""
    origin = Path(start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if any((candidate / marker).exists() for marker in PROJECT_ROOT_MARKERS):
            return candidate
    return origin
