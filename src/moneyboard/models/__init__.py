"""Typed data models for moneyboard."""

from moneyboard.models.record import EMPTY_SNAPSHOT, Record, Snapshot
from moneyboard.models.user import AuthUser
from moneyboard.models.view import DashboardState, DashboardView

__all__ = [
    "EMPTY_SNAPSHOT",
    "AuthUser",
    "DashboardState",
    "DashboardView",
    "Record",
    "Snapshot",
]
