"""Agency registry service with tax registration checks."""

from __future__ import annotations

from typing import Any

from .models import Agency, RegistrationState, RegistrationStatus
from .store import InMemoryAgencyStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the agency HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Agency",
    "InMemoryAgencyStore",
    "RegistrationState",
    "RegistrationStatus",
    "create_app",
]
