"""Tests for session, record and view models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from moneyboard.models import EMPTY_SNAPSHOT, DashboardState, DashboardView, Record, Snapshot
from moneyboard.models._base import parse_timestamp
from moneyboard.models.user import AuthUser
from moneyboard.session import Session

NEW_YEAR = datetime(2026, 1, 1, tzinfo=UTC)

# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "value",
        [
            NEW_YEAR,
            datetime(2026, 1, 1),
            {"seconds": 1_767_225_600, "nanoseconds": 0},
            {"_seconds": 1_767_225_600, "_nanoseconds": 0},
            1_767_225_600,
            1_767_225_600_000,
            "2026-01-01T00:00:00Z",
        ],
    )
    def test_supported_shapes(self, value: object) -> None:
        assert parse_timestamp(value) == NEW_YEAR

    @pytest.mark.parametrize("value", [None, True, "", "yesterday", {"seconds": "x"}, [1]])
    def test_unreadable_values_yield_none(self, value: object) -> None:
        assert parse_timestamp(value) is None


# ------------------------------------------------------------------
# Session
# ------------------------------------------------------------------


class TestSession:
    def test_initial_session_is_not_ready(self) -> None:
        assert Session() == Session(subject_id="", is_ready=False)

    def test_resolved_without_user_uses_sentinel(self) -> None:
        session = Session().resolved(None)

        assert session.is_ready is True
        assert session.subject_id == "anonymous"

    def test_resolved_is_sticky_and_reuses_identical_session(self) -> None:
        ready = Session().resolved("user-1")

        assert ready.resolved("user-1") is ready
        assert ready.resolved(None).is_ready is True

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            Session().is_ready = True  # type: ignore[misc]


# ------------------------------------------------------------------
# Records and snapshots
# ------------------------------------------------------------------


class TestSnapshot:
    def test_record_from_document(self) -> None:
        record = Record.from_document("a", {"amount": 12.5, "timestamp": "2026-01-01T00:00:00Z"})

        assert record.get("amount") == 12.5
        assert record.get("missing", "n/a") == "n/a"
        assert record.timestamp == NEW_YEAR

    def test_record_requires_an_id(self) -> None:
        with pytest.raises(ValidationError):
            Record.from_document("", {})

    def test_order_is_preserved(self) -> None:
        snapshot = Snapshot(records=tuple(Record(id=i) for i in ("c", "a", "b")))

        assert snapshot.ids == ["c", "a", "b"]
        assert [r.id for r in snapshot] == ["c", "a", "b"]
        assert len(snapshot) == 3

    def test_duplicate_ids_are_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicate record id"):
            Snapshot(records=(Record(id="a"), Record(id="a")))

    def test_empty_snapshot(self) -> None:
        assert len(EMPTY_SNAPSHOT) == 0
        assert EMPTY_SNAPSHOT.ids == []


# ------------------------------------------------------------------
# View
# ------------------------------------------------------------------


class TestDashboardView:
    @pytest.mark.parametrize(
        ("state", "loading"),
        [
            (DashboardState.IDLE, True),
            (DashboardState.AUTHENTICATING, True),
            (DashboardState.READY, False),
            (DashboardState.SUBSCRIBED, False),
            (DashboardState.AUTH_ERROR, False),
            (DashboardState.SUBSCRIPTION_ERROR, False),
        ],
    )
    def test_loading_until_first_auth_event_or_error(self, state: DashboardState, loading: bool) -> None:
        assert DashboardView(state=state).loading is loading

    def test_placeholder_figures_scale_with_record_count(self) -> None:
        snapshot = Snapshot(records=tuple(Record(id=str(i)) for i in range(3)))
        view = DashboardView(state=DashboardState.SUBSCRIBED, snapshot=snapshot)

        assert view.record_count == 3
        assert view.total_shared_expenses == 300
        assert view.current_liability == 150

    def test_error_states(self) -> None:
        assert DashboardState.AUTH_ERROR.is_error
        assert DashboardState.SUBSCRIPTION_ERROR.is_error
        assert not DashboardState.SUBSCRIBED.is_error


def test_auth_user_hides_tokens_from_repr() -> None:
    user = AuthUser(uid="u1", id_token="secret-id", refresh_token="secret-refresh")

    assert "secret" not in repr(user)
    assert user.is_token_expired is True
