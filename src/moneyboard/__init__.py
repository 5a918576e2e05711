"""moneyboard - Live Firestore expense dashboard client."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("moneyboard")
except PackageNotFoundError:
    __version__ = "0+local"
from moneyboard.bootstrap import BootstrapState, IdentityBootstrapper
from moneyboard.config import DashboardConfig, FirebaseOptions
from moneyboard.dashboard import Dashboard
from moneyboard.exceptions import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    InitializationError,
    MoneyboardError,
    SubscriptionError,
    TransportError,
)
from moneyboard.firebase import FirebaseApp, get_auth, get_firestore, initialize_app
from moneyboard.models import (
    AuthUser,
    DashboardState,
    DashboardView,
    Record,
    Snapshot,
)
from moneyboard.session import Session
from moneyboard.subscriber import ActivationKey, LiveCollectionSubscriber
from moneyboard.subscription import Subscription

__all__ = [
    "__version__",
    "ActivationKey",
    "ApiError",
    "AuthUser",
    "AuthenticationError",
    "BootstrapState",
    "ConfigurationError",
    "Dashboard",
    "DashboardConfig",
    "DashboardState",
    "DashboardView",
    "FirebaseApp",
    "FirebaseOptions",
    "IdentityBootstrapper",
    "InitializationError",
    "LiveCollectionSubscriber",
    "MoneyboardError",
    "Record",
    "Session",
    "Snapshot",
    "Subscription",
    "SubscriptionError",
    "TransportError",
    "get_auth",
    "get_firestore",
    "initialize_app",
]
