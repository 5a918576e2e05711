"""Signed-in user model."""

from __future__ import annotations

import time

from pydantic import Field

from moneyboard._constants import TOKEN_EXPIRY_MARGIN_S
from moneyboard.models._base import MoneyboardBaseModel


class AuthUser(MoneyboardBaseModel):
    """User resolved by the identity provider.

    Parameters
    ----------
    uid : str
        Firebase user id (``localId`` / ``user_id`` claim).
    is_anonymous : bool
        Whether the account was created by anonymous sign-in.
    id_token : str
        Firebase ID token, presented to Firestore as a bearer token.
    refresh_token : str
        Token exchanged at the Secure Token endpoint for a new ID token.
    expires_at : float
        Wall-clock epoch seconds at which ``id_token`` expires.
    """

    uid: str = Field(min_length=1)
    is_anonymous: bool = False
    id_token: str = Field(default="", repr=False)
    refresh_token: str = Field(default="", repr=False)
    expires_at: float = 0.0

    @property
    def is_token_expired(self) -> bool:
        return time.time() >= self.expires_at - TOKEN_EXPIRY_MARGIN_S
