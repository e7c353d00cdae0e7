"""
Pointledger configuration.

Usage in settings.py:
    POINTLEDGER = {
        "STORAGE_TIMEOUT": 5.0,
        "MANAGER_ROLES": ("admin", "manager"),
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class PointledgerSettings:
    """Pointledger configuration settings."""

    # Upper bound (seconds) on database waits inside a balance mutation
    STORAGE_TIMEOUT: float = 5.0

    # Loyalty settings cache lifetime (seconds); 0 disables caching
    SETTINGS_CACHE_TIMEOUT: int = 300

    # Transaction history pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Django group names allowed to change settings and adjust points
    MANAGER_ROLES: tuple = ("admin", "manager")

    # Backend used by the POS order flow
    LOYALTY_BACKEND: str = "pointledger.adapters.local.LocalLoyaltyBackend"


def get_pointledger_settings() -> PointledgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "POINTLEDGER", {})
    return PointledgerSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_pointledger_settings(), name)


ledger_settings = _LazySettings()
