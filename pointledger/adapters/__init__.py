"""Pointledger adapters."""

from django.utils.module_loading import import_string

from pointledger.conf import ledger_settings
from pointledger.protocols.loyalty import LoyaltyBackend


def get_loyalty_backend() -> LoyaltyBackend:
    """Instantiate the configured LoyaltyBackend."""
    backend_class = import_string(ledger_settings.LOYALTY_BACKEND)
    return backend_class()
