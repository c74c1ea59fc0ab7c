"""Routers package."""

from . import (
    health,
    report,
    public,
)
