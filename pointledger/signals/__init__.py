"""
Pointledger signals - public event API.

Emitted signals:
- points_changed: Emitted on commit of every ledger write (services.ledger)
- settings_updated: Emitted by services.program.update_settings()
"""

from django.dispatch import Signal

points_changed = Signal()  # sender=LoyaltyTransaction, transaction=, customer_id=
settings_updated = Signal()  # sender=LoyaltySettings, settings=, updated_by=
