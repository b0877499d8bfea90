"""Bounded readiness polling."""

import time
from typing import Callable

from copilotdb.errors import ReadinessTimeout


def wait_until(
    check: Callable[[], bool],
    attempts: int,
    interval: float,
    container: str,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Polls ``check`` at a fixed interval, no backoff.

    Returns the 1-based attempt that succeeded, raises ``ReadinessTimeout``
    once ``attempts`` checks have failed.
    """
    for attempt in range(1, attempts + 1):
        if check():
            return attempt
        if attempt < attempts:
            sleep(interval)

    raise ReadinessTimeout(attempts, interval, container=container)
