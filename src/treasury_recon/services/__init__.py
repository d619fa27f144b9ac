"""Reconciliation and statement services."""

from .reconciliation import ReconciliationService
from .statements import StatementService

__all__ = ["ReconciliationService", "StatementService"]
