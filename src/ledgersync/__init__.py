"""Ledger Sync: cached, optimistic data-sync layer for a personal loan ledger."""

__version__ = "0.1.0"
