"""
Family Bank - Source Package

A small household ledger for two kinds of accounts:
- HomeBank accounts, where a requester proposes deposits and withdrawals
  that an administrator approves before they reach the ledger
- EtterBank goal accounts, where every contribution toward a savings goal
  is matched 1:1 by the bank

DESIGN PRINCIPLES:
1. The ledger is append-only; balances are derived, never written
2. Every request is decided exactly once
3. Money is counted in whole cents
4. Every mutating step is serialized per account and audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Family Bank Team"
