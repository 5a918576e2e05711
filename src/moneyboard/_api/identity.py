"""Identity Toolkit and Secure Token endpoints.

Endpoints:
  - /accounts:signUp (anonymous sign-in)
  - /accounts:signInWithCustomToken
  - /token (ID-token refresh)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from google.auth import jwt

from moneyboard._constants import (
    IDENTITY_TOOLKIT_URL,
    REFRESH_TOKEN_ENDPOINT,
    SECURE_TOKEN_URL,
    SIGN_IN_WITH_CUSTOM_TOKEN_ENDPOINT,
    SIGN_UP_ENDPOINT,
)
from moneyboard._redact import redact_for_log
from moneyboard._transport import Transport
from moneyboard.exceptions import ApiError, AuthenticationError
from moneyboard.models.user import AuthUser

_logger = logging.getLogger(__name__)


def decode_id_token_claims(id_token: str) -> dict[str, Any]:
    """Read the claims of a Firebase ID token without verifying it.

    The client only needs ``user_id`` and the sign-in provider; the
    signature is checked by Firestore when the token is presented.
    """
    try:
        claims = jwt.decode(id_token, verify=False)
    except ValueError as exc:
        raise AuthenticationError(f"ID token is unreadable: {exc}") from exc
    if not isinstance(claims, dict):
        raise AuthenticationError("ID token payload is not an object")
    return claims


def _expires_at(expires_in: Any, now: float) -> float:
    try:
        return now + float(expires_in)
    except (TypeError, ValueError):
        return now


def parse_sign_in_response(
    response: Mapping[str, Any],
    *,
    endpoint: str,
    now: float | None = None,
) -> AuthUser:
    """Build an :class:`AuthUser` from a sign-in reply.

    ``accounts:signUp`` returns ``localId``; ``accounts:signInWithCustomToken``
    does not, so the uid is then read from the ID token's claims.
    """
    now = time.time() if now is None else now
    _logger.debug("Sign-in reply endpoint=%s parsed=%s", endpoint, redact_for_log(dict(response)))

    id_token = response.get("idToken")
    if not isinstance(id_token, str) or not id_token:
        raise AuthenticationError("Sign-in response missing idToken", endpoint=endpoint)

    claims: dict[str, Any] = {}
    uid = response.get("localId")
    if not isinstance(uid, str) or not uid:
        claims = decode_id_token_claims(id_token)
        uid = claims.get("user_id") or claims.get("sub")
    if not isinstance(uid, str) or not uid:
        raise AuthenticationError("Sign-in response carries no user id", endpoint=endpoint)

    if endpoint == SIGN_UP_ENDPOINT:
        is_anonymous = True
    else:
        if not claims:
            claims = decode_id_token_claims(id_token)
        firebase_claim = claims.get("firebase")
        provider = firebase_claim.get("sign_in_provider") if isinstance(firebase_claim, dict) else None
        is_anonymous = provider == "anonymous"

    return AuthUser(
        uid=uid,
        is_anonymous=is_anonymous,
        id_token=id_token,
        refresh_token=str(response.get("refreshToken") or ""),
        expires_at=_expires_at(response.get("expiresIn"), now),
    )


def _as_auth_error(exc: ApiError) -> AuthenticationError:
    return AuthenticationError(str(exc), code=exc.code, endpoint=exc.endpoint)


async def sign_in_anonymously(transport: Transport) -> AuthUser:
    """Create an anonymous account and return its user."""
    try:
        response = await transport.post_json(
            IDENTITY_TOOLKIT_URL,
            SIGN_UP_ENDPOINT,
            {"returnSecureToken": True},
        )
    except AuthenticationError:
        raise
    except ApiError as exc:
        raise _as_auth_error(exc) from exc
    return parse_sign_in_response(response, endpoint=SIGN_UP_ENDPOINT)


async def sign_in_with_custom_token(transport: Transport, token: str) -> AuthUser:
    """Exchange a custom token minted by a trusted server for a user."""
    if not token.strip():
        raise AuthenticationError("Custom token is empty", endpoint=SIGN_IN_WITH_CUSTOM_TOKEN_ENDPOINT)
    try:
        response = await transport.post_json(
            IDENTITY_TOOLKIT_URL,
            SIGN_IN_WITH_CUSTOM_TOKEN_ENDPOINT,
            {"token": token, "returnSecureToken": True},
        )
    except AuthenticationError:
        raise
    except ApiError as exc:
        raise _as_auth_error(exc) from exc
    return parse_sign_in_response(response, endpoint=SIGN_IN_WITH_CUSTOM_TOKEN_ENDPOINT)


async def refresh_id_token(transport: Transport, user: AuthUser) -> AuthUser:
    """Return *user* with a fresh ID token from the Secure Token endpoint."""
    if not user.refresh_token:
        raise AuthenticationError("User has no refresh token", endpoint=REFRESH_TOKEN_ENDPOINT)
    try:
        response = await transport.post_json(
            SECURE_TOKEN_URL,
            REFRESH_TOKEN_ENDPOINT,
            {"grant_type": "refresh_token", "refresh_token": user.refresh_token},
            form=True,
        )
    except AuthenticationError:
        raise
    except ApiError as exc:
        raise _as_auth_error(exc) from exc

    id_token = response.get("id_token")
    if not isinstance(id_token, str) or not id_token:
        raise AuthenticationError("Refresh response missing id_token", endpoint=REFRESH_TOKEN_ENDPOINT)
    return user.model_copy(
        update={
            "id_token": id_token,
            "refresh_token": str(response.get("refresh_token") or user.refresh_token),
            "expires_at": _expires_at(response.get("expires_in"), time.time()),
        }
    )
