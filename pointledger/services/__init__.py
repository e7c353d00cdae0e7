"""Pointledger services.

- program: loyalty settings store
- accrual: pure points calculation
- ledger: balance mutations (earn, redeem, adjust, expire)
- history: ledger queries and audit
"""

from pointledger.services import program
from pointledger.services import accrual
from pointledger.services import ledger
from pointledger.services import history

__all__ = ["program", "accrual", "ledger", "history"]
