"""View model handed to presentation listeners."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from moneyboard._constants import LIABILITY_PER_RECORD, SHARED_EXPENSE_PER_RECORD
from moneyboard.models.record import EMPTY_SNAPSHOT, Snapshot
from moneyboard.session import Session


class DashboardState(StrEnum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    SUBSCRIBED = "subscribed"
    AUTH_ERROR = "auth_error"
    SUBSCRIPTION_ERROR = "subscription_error"

    @property
    def is_error(self) -> bool:
        return self in (DashboardState.AUTH_ERROR, DashboardState.SUBSCRIPTION_ERROR)


class DashboardView(BaseModel):
    """Latest published dashboard state. Read-only for presentation code."""

    model_config = ConfigDict(frozen=True)

    state: DashboardState = DashboardState.IDLE
    session: Session = Session()
    snapshot: Snapshot = EMPTY_SNAPSHOT
    error: str | None = None
    collection_path: str = ""

    @property
    def loading(self) -> bool:
        """True until the first auth-state event or an error."""
        return self.state in (DashboardState.IDLE, DashboardState.AUTHENTICATING)

    @property
    def record_count(self) -> int:
        return len(self.snapshot)

    @property
    def total_shared_expenses(self) -> int:
        return self.record_count * SHARED_EXPENSE_PER_RECORD

    @property
    def current_liability(self) -> int:
        return self.record_count * LIABILITY_PER_RECORD
