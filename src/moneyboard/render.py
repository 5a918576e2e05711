"""Plain-text rendering of a dashboard view."""

from __future__ import annotations

from moneyboard._constants import SHARED_EXPENSE_PER_RECORD
from moneyboard.models.record import Record
from moneyboard.models.view import DashboardState, DashboardView

TITLE = "Global Money Manager"
_RULE = "-" * 60


def _money(amount: int) -> str:
    return f"${amount:,}.00"


def _record_line(record: Record) -> str:
    added = record.timestamp.date().isoformat() if record.timestamp is not None else "unknown"
    return f"  {record.id:<36} Added on: {added:<10}  {_money(SHARED_EXPENSE_PER_RECORD)}"


def render_text(view: DashboardView) -> str:
    """Render *view* the way the dashboard screen lays it out."""
    if view.loading:
        return "Loading Application..."

    if view.error is not None and view.state is not DashboardState.SUBSCRIPTION_ERROR:
        return "\n".join(
            [
                "Application Error",
                _RULE,
                view.error,
                "Check the log for details and make sure the Firebase configuration is set up.",
            ]
        )

    count = view.record_count
    lines: list[str] = []
    if view.error is not None:
        # Stream failures keep the last snapshot below the banner.
        lines.extend([f"Application Error: {view.error}", _RULE])
    lines += [
        f"{TITLE}    User: {view.session.subject_id}",
        _RULE,
        f"Total Shared Expenses:  {_money(view.total_shared_expenses)}  (based on {count} records)",
        f"Your Current Liability: {_money(view.current_liability)}  (50% of shared total)",
        _RULE,
        f"Expense History ({count})",
    ]
    if count == 0:
        lines.append(f"  No expenses recorded yet. Data path: {view.collection_path}")
    else:
        lines.extend(_record_line(record) for record in view.snapshot.records)
    return "\n".join(lines)
