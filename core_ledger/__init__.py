"""
Core Ledger

A concurrency-safe account ledger with per-account locking, Decimal
money handling, daily withdrawal limits and reversible transactions.
"""

__version__ = "1.0.0"
