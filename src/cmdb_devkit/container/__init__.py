"""
Container lifecycle through docker compose and readiness polling.
"""

from .compose import ComposeClient, ComposeError  # noqa: F401
from .readiness import RESTART_WAIT, START_WAIT, Readiness, ReadinessPoller  # noqa: F401
