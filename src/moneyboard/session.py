"""Session state published by the identity bootstrapper."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from moneyboard._constants import ANONYMOUS_SUBJECT


class Session(BaseModel):
    """Identity session as seen by the rest of the dashboard.

    Parameters
    ----------
    subject_id : str
        Identifier of the signed-in user, ``"anonymous"`` when none has
        resolved yet, or ``""`` before the first auth-state event.
    is_ready : bool
        Becomes ``True`` on the first auth-state event and never reverts.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    subject_id: str = ""
    is_ready: bool = False

    def resolved(self, subject_id: str | None) -> Session:
        """Return the session after an auth-state event.

        Readiness is sticky: the result is always ready, whatever the
        previous state or subject.
        """
        subject = (subject_id or "").strip() or ANONYMOUS_SUBJECT
        if self.is_ready and subject == self.subject_id:
            return self
        return Session(subject_id=subject, is_ready=True)
