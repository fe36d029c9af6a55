"""Append-only transaction ledger."""

from familybank.ledger.store import LedgerStore

__all__ = ["LedgerStore"]
