"""Client configuration for moneyboard."""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Mapping
from typing import Any

from moneyboard._constants import DEFAULT_APPLICATION_ID, EXPENSES_COLLECTION_TEMPLATE
from moneyboard.exceptions import ConfigurationError

# camelCase keys of a Firebase web config mapped to FirebaseOptions fields.
_OPTION_KEYS: dict[str, str] = {
    "apiKey": "api_key",
    "authDomain": "auth_domain",
    "projectId": "project_id",
    "storageBucket": "storage_bucket",
    "messagingSenderId": "messaging_sender_id",
    "appId": "app_id",
}


@dataclasses.dataclass(frozen=True)
class FirebaseOptions:
    """Firebase web-app configuration.

    Parameters
    ----------
    api_key : str
        Browser API key; sent as ``?key=`` to the identity endpoints.
    auth_domain : str
        Hosting domain used for auth redirects (informational here).
    project_id : str
        Google Cloud project holding the Firestore database.
    storage_bucket : str
        Default Cloud Storage bucket (informational here).
    messaging_sender_id : str
        Cloud Messaging sender id (informational here).
    app_id : str
        Firebase app id, e.g. ``"1:776465310724:web:1d4e..."``.
    """

    api_key: str
    project_id: str
    auth_domain: str = ""
    storage_bucket: str = ""
    messaging_sender_id: str = ""
    app_id: str = ""

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> FirebaseOptions:
        """Build options from a camelCase (or snake_case) Firebase config mapping.

        Unknown keys are ignored. Raises :class:`ConfigurationError` when a
        required key is missing or empty.
        """
        kwargs: dict[str, str] = {}
        for key, value in values.items():
            field_name = _OPTION_KEYS.get(key, key)
            if field_name in _OPTION_KEYS.values() and value is not None:
                kwargs[field_name] = str(value).strip()
        options = cls(
            api_key=kwargs.pop("api_key", ""),
            project_id=kwargs.pop("project_id", ""),
            **kwargs,
        )
        options.validate()
        return options

    def validate(self) -> None:
        missing = [name for name in ("api_key", "project_id") if not getattr(self, name).strip()]
        if missing:
            raise ConfigurationError(f"Firebase configuration is missing required keys: {', '.join(missing)}")


@dataclasses.dataclass(frozen=True)
class DashboardConfig:
    """Dashboard configuration.

    Parameters
    ----------
    firebase : FirebaseOptions or None
        Provider configuration. ``None`` means missing, which is reported
        as a :class:`ConfigurationError` when the dashboard starts.
    application_id : str
        Scopes the expenses collection path.
    initial_auth_token : str or None
        Pre-issued Firebase custom token. When set, it is used instead of
        anonymous sign-in.
    request_timeout : float
        Total timeout in seconds for identity REST calls.
    watch_check_interval : float
        Seconds between liveness checks of an attached watch stream. A
        stream found closed without being cancelled is reported as a
        subscription error.
    """

    firebase: FirebaseOptions | None
    application_id: str = DEFAULT_APPLICATION_ID
    initial_auth_token: str | None = None
    request_timeout: float = 15.0
    watch_check_interval: float = 2.0

    @property
    def collection_path(self) -> str:
        """Path of the shared expenses collection for this application."""
        return EXPENSES_COLLECTION_TEMPLATE.format(application_id=self.application_id)

    def validate(self) -> FirebaseOptions:
        """Check the configuration and return the Firebase options.

        Raises
        ------
        ConfigurationError
            If the Firebase options are missing/invalid or the application
            id cannot be used as a path segment.
        """
        if self.firebase is None:
            raise ConfigurationError("Firebase configuration is missing.")
        self.firebase.validate()
        app_id = self.application_id.strip()
        if not app_id or "/" in app_id:
            raise ConfigurationError(f"Invalid application id: {self.application_id!r}")
        return self.firebase

    @classmethod
    def from_env(cls, **overrides: Any) -> DashboardConfig:
        """Create configuration from environment variables.

        Reads ``MONEYBOARD_FIREBASE_CONFIG`` (a JSON Firebase web config),
        individual ``FIREBASE_*`` variables that override keys of that JSON,
        and optional ``MONEYBOARD_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars. A
            ``firebase`` override may be a :class:`FirebaseOptions` or a
            mapping.

        Returns
        -------
        DashboardConfig
            Populated configuration. ``firebase`` is ``None`` when no
            Firebase settings were found at all.
        """
        env = os.environ

        raw_options: dict[str, Any] = {}
        raw_json = env.get("MONEYBOARD_FIREBASE_CONFIG")
        if raw_json is not None and raw_json.strip():
            raw_options.update(_parse_json_config(raw_json, source="MONEYBOARD_FIREBASE_CONFIG"))

        _ENV_OPTION_MAP = {
            "FIREBASE_API_KEY": "apiKey",
            "FIREBASE_AUTH_DOMAIN": "authDomain",
            "FIREBASE_PROJECT_ID": "projectId",
            "FIREBASE_STORAGE_BUCKET": "storageBucket",
            "FIREBASE_MESSAGING_SENDER_ID": "messagingSenderId",
            "FIREBASE_APP_ID": "appId",
        }
        for env_key, option_key in _ENV_OPTION_MAP.items():
            val = env.get(env_key)
            if val is not None:
                raw_options[option_key] = val

        firebase_override = overrides.pop("firebase", None)
        firebase: FirebaseOptions | None
        if isinstance(firebase_override, FirebaseOptions):
            firebase = firebase_override
        elif isinstance(firebase_override, Mapping):
            firebase = FirebaseOptions.from_mapping({**raw_options, **firebase_override})
        elif raw_options:
            firebase = FirebaseOptions.from_mapping(raw_options)
        else:
            firebase = None

        config_kwargs: dict[str, Any] = {"firebase": firebase}

        app_id = env.get("MONEYBOARD_APP_ID")
        if app_id is not None and app_id.strip():
            config_kwargs["application_id"] = app_id.strip()

        token = env.get("MONEYBOARD_INITIAL_AUTH_TOKEN")
        if token is not None and token.strip():
            config_kwargs["initial_auth_token"] = token.strip()

        timeout_env = env.get("MONEYBOARD_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = _env_float(timeout_env, "MONEYBOARD_REQUEST_TIMEOUT")

        interval_env = env.get("MONEYBOARD_WATCH_CHECK_INTERVAL")
        if interval_env is not None and "watch_check_interval" not in overrides:
            config_kwargs["watch_check_interval"] = _env_float(interval_env, "MONEYBOARD_WATCH_CHECK_INTERVAL")

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


def load_firebase_options(path: str | os.PathLike[str]) -> FirebaseOptions:
    """Read Firebase options from a JSON file holding a web config object."""
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read Firebase configuration file {path}: {exc}") from exc
    return FirebaseOptions.from_mapping(_parse_json_config(text, source=str(path)))


def _parse_json_config(text: str, *, source: str) -> dict[str, Any]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ConfigurationError(f"{source} must contain a JSON object")
    return parsed


def _env_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
