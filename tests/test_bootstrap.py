from __future__ import annotations

from typing import Any

import pytest
from conftest import FakeApp, drain

from moneyboard.bootstrap import BootstrapState, IdentityBootstrapper
from moneyboard.config import DashboardConfig, FirebaseOptions
from moneyboard.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InitializationError,
    TransportError,
)
from moneyboard.models.user import AuthUser
from moneyboard.session import Session


def test_missing_config_fails_fast_without_sdk_calls(app_factory: Any) -> None:
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)

    with pytest.raises(ConfigurationError):
        bootstrapper.start(None)

    assert app_factory.calls == []
    assert bootstrapper.state is BootstrapState.FAILED
    assert bootstrapper.session.is_ready is False


def test_config_without_firebase_options_is_a_configuration_error(app_factory: Any) -> None:
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)

    with pytest.raises(ConfigurationError):
        bootstrapper.start(DashboardConfig(firebase=None))

    assert app_factory.calls == []


def test_invalid_options_are_a_configuration_error(app_factory: Any) -> None:
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)
    config = DashboardConfig(firebase=FirebaseOptions(api_key="", project_id="p"))

    with pytest.raises(ConfigurationError):
        bootstrapper.start(config)

    assert app_factory.calls == []


@pytest.mark.asyncio
async def test_initialization_failure_is_reported_and_never_ready(config: DashboardConfig) -> None:
    def broken_factory(_cfg: DashboardConfig) -> FakeApp:
        raise RuntimeError("boom")

    sessions: list[Session] = []
    bootstrapper = IdentityBootstrapper(app_factory=broken_factory, on_session=sessions.append)

    with pytest.raises(InitializationError) as excinfo:
        bootstrapper.start(config)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    await drain()
    assert bootstrapper.state is BootstrapState.FAILED
    assert bootstrapper.session.is_ready is False
    assert sessions == []


@pytest.mark.asyncio
async def test_anonymous_sign_in_when_no_token_and_no_user(
    config: DashboardConfig, fake_app: FakeApp, app_factory: Any
) -> None:
    sessions: list[Session] = []
    bootstrapper = IdentityBootstrapper(app_factory=app_factory, on_session=sessions.append)

    registration = bootstrapper.start(config)
    assert bootstrapper.state is BootstrapState.AUTHENTICATING
    assert bootstrapper.session.is_ready is False

    await drain()

    assert "sign_in_anonymously" in fake_app.auth_service.calls
    # First event: no user yet, so the sentinel subject is published.
    assert sessions[0] == Session(subject_id="anonymous", is_ready=True)
    # Sign-in completion arrives as another auth-state event.
    assert sessions[-1] == Session(subject_id="anon-uid-1", is_ready=True)
    assert bootstrapper.state is BootstrapState.READY
    registration.cancel()


@pytest.mark.asyncio
async def test_custom_token_is_used_instead_of_anonymous_sign_in(
    options: FirebaseOptions, fake_app: FakeApp, app_factory: Any
) -> None:
    config = DashboardConfig(firebase=options, initial_auth_token="custom-token-xyz")
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)

    bootstrapper.start(config)
    await drain()

    calls = fake_app.auth_service.calls
    assert "sign_in_with_custom_token:custom-token-xyz" in calls
    assert "sign_in_anonymously" not in calls
    assert bootstrapper.session.subject_id == "token-uid-1"


@pytest.mark.asyncio
async def test_explicit_token_overrides_config_token(
    options: FirebaseOptions, fake_app: FakeApp, app_factory: Any
) -> None:
    config = DashboardConfig(firebase=options, initial_auth_token="from-config")
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)

    bootstrapper.start(config, token="from-caller")
    await drain()

    assert "sign_in_with_custom_token:from-caller" in fake_app.auth_service.calls


@pytest.mark.asyncio
async def test_already_signed_in_user_skips_sign_in(
    config: DashboardConfig, fake_app: FakeApp, app_factory: Any
) -> None:
    fake_app.auth_service.current_user = AuthUser(uid="existing-user")
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)

    bootstrapper.start(config)
    await drain()

    assert fake_app.auth_service.calls == ["on_auth_state_changed"]
    assert bootstrapper.session == Session(subject_id="existing-user", is_ready=True)


@pytest.mark.asyncio
async def test_readiness_is_sticky_across_auth_events(
    config: DashboardConfig, fake_app: FakeApp, app_factory: Any
) -> None:
    sessions: list[Session] = []
    bootstrapper = IdentityBootstrapper(app_factory=app_factory, on_session=sessions.append)
    bootstrapper.start(config)
    await drain()

    auth = fake_app.auth_service
    auth.set_user(None)
    await drain()
    auth.set_user(AuthUser(uid="someone-else"))
    await drain()

    assert sessions
    assert all(session.is_ready for session in sessions)
    assert bootstrapper.session.subject_id == "someone-else"


@pytest.mark.asyncio
async def test_sign_in_failure_is_reported_as_authentication_error(
    config: DashboardConfig, fake_app: FakeApp, app_factory: Any
) -> None:
    fake_app.auth_service.sign_in_error = TransportError("network down", endpoint="/accounts:signUp")
    errors: list[AuthenticationError] = []
    bootstrapper = IdentityBootstrapper(app_factory=app_factory, on_error=errors.append)

    bootstrapper.start(config)
    await drain()

    assert len(errors) == 1
    assert isinstance(errors[0], AuthenticationError)
    assert "network down" in str(errors[0])
    # Readiness was already reached on the auth-state event.
    assert bootstrapper.session.is_ready is True


@pytest.mark.asyncio
async def test_deregistration_detaches_listener_and_is_idempotent(
    config: DashboardConfig, fake_app: FakeApp, app_factory: Any
) -> None:
    sessions: list[Session] = []
    bootstrapper = IdentityBootstrapper(app_factory=app_factory, on_session=sessions.append)
    registration = bootstrapper.start(config)

    registration.cancel()
    registration.cancel()
    await drain()

    assert fake_app.auth_service.listeners == []
    assert sessions == []
    assert bootstrapper.session.is_ready is False


@pytest.mark.asyncio
async def test_start_twice_is_rejected(config: DashboardConfig, app_factory: Any) -> None:
    bootstrapper = IdentityBootstrapper(app_factory=app_factory)
    bootstrapper.start(config)

    with pytest.raises(Exception, match="already started"):
        bootstrapper.start(config)
