"""
Marketplace Ledger Service
Metering and ledger backend for a job marketplace.

Architecture:
- MongoDB: every document (users, quotas, orders, escrows, wallets, skills)
- Quota ledger: per-user, per-period premium entitlements
- Escrow ledger: funds held per order until release or refund
"""

__version__ = "1.0.0"
