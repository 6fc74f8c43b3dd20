"""
Utility modules for Zeta Rewards.

This package contains the ledger service and its collaborators:
- ledger: LedgerService, the only writer of ledger tables
- balance: derived employee balance
- audit / notifications / push_client: best-effort side effects
- feed: social feed aggregation
- helpers: Common utility functions (date formatting, pagination)
"""

from zeta_rewards.utils.helpers import format_utc_iso

__all__ = [
    'format_utc_iso',
]
