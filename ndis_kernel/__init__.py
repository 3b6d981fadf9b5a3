"""
NDIS Kernel -- tenant-isolated budget ledger and deduction engine.

Tracks each participant's remaining support-budget balances, charges every
completed shift exactly once, resolves billing rates through a precedence
chain and keeps a hash-chained audit trail per tenant.
"""

__version__ = "0.1.0"
