"""Queries package."""

from familybank.queries.executor import AccountBalance, QueryExecutor, Statement

__all__ = ["AccountBalance", "QueryExecutor", "Statement"]
