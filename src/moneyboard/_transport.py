"""HTTP transport for the Firebase identity REST endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from moneyboard._constants import USER_AGENT
from moneyboard._redact import redact_for_log
from moneyboard.exceptions import ApiError, TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Endpoint modules only need ``post_json``; tests pass doubles that
    implement it without any HTTP.
    """

    async def post_json(
        self,
        base_url: str,
        endpoint: str,
        payload: Mapping[str, Any],
        *,
        form: bool = False,
    ) -> dict[str, Any]:
        ...


class RestTransport:
    """Posts JSON (or form) bodies with the project's API key attached."""

    def __init__(
        self,
        api_key: str,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def post_json(
        self,
        base_url: str,
        endpoint: str,
        payload: Mapping[str, Any],
        *,
        form: bool = False,
    ) -> dict[str, Any]:
        """POST *payload* to ``base_url + endpoint`` and return the JSON reply.

        Google API error bodies (``{"error": {"code": ..., "message": ...}}``)
        are raised as :class:`ApiError` with the message as ``code``; other
        non-200 replies and unreadable bodies raise :class:`TransportError`.
        """
        url = f"{base_url}{endpoint}"
        headers = {"user-agent": USER_AGENT}
        kwargs: dict[str, Any] = {"params": {"key": self._api_key}, "headers": headers, "timeout": self._timeout}
        if form:
            kwargs["data"] = dict(payload)
        else:
            kwargs["json"] = dict(payload)

        _logger.debug("POST %s payload=%s", url, redact_for_log(payload))

        try:
            async with self._http.post(url, **kwargs) as resp:
                status = resp.status
                text = await resp.text()
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except TimeoutError as exc:
            raise TransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc

        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected reply from {endpoint}", status_code=status, endpoint=endpoint)

        if status != 200:
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                raise ApiError(
                    f"{endpoint} rejected: {error.get('message')}",
                    code=str(error.get("message")),
                    endpoint=endpoint,
                )
            raise TransportError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        return body
