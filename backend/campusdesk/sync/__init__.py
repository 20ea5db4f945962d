"""Sync layer - local cache / remote replica coordination"""
from .coordinator import SyncCoordinator
from .reconcile import ReconcileResult, InvariantResult, reconcile
from .repository import SyncedRepository
from .session import SessionManager

__all__ = [
    "SyncCoordinator",
    "SyncedRepository",
    "SessionManager",
    "ReconcileResult",
    "InvariantResult",
    "reconcile",
]
