#!/usr/bin/env python3
"""Watch the shared expenses collection and print the dashboard.

Signs in (with a custom token when one is configured, anonymously
otherwise), attaches a real-time listener to
``/artifacts/{app id}/public/data/expenses`` and prints the dashboard
every time it changes.

Usage
-----
Set environment variables and run::

    export MONEYBOARD_FIREBASE_CONFIG='{"apiKey": "...", "projectId": "..."}'
    export MONEYBOARD_APP_ID="my-app"
    python scripts/watch_expenses.py

Options::

    --config FILE        Read the Firebase web config from a JSON file
    --app-id ID          Application id scoping the collection path
    --token TOKEN        Custom auth token (default: anonymous sign-in)
    --once               Exit after the first snapshot (or an error)
    --timeout SECONDS    Give up waiting after SECONDS (with --once)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from moneyboard import ConfigurationError, Dashboard, DashboardConfig, DashboardState, DashboardView  # noqa: E402
from moneyboard.config import load_firebase_options  # noqa: E402
from moneyboard.render import render_text  # noqa: E402


def _build_config(args: argparse.Namespace) -> DashboardConfig:
    overrides: dict[str, Any] = {}
    if args.config:
        overrides["firebase"] = load_firebase_options(args.config)
    if args.app_id:
        overrides["application_id"] = args.app_id
    if args.token:
        overrides["initial_auth_token"] = args.token
    return DashboardConfig.from_env(**overrides)


def _print_view(view: DashboardView) -> None:
    print(render_text(view))
    print()


def _settled(view: DashboardView) -> bool:
    return view.state.is_error or (view.state is DashboardState.SUBSCRIBED and view.snapshot.sequence > 0)


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print the live expense dashboard for a Firebase project.",
    )
    parser.add_argument("--config", help="JSON file holding the Firebase web config")
    parser.add_argument("--app-id", help="Application id scoping the collection path")
    parser.add_argument("--token", help="Custom auth token (default: anonymous sign-in)")
    parser.add_argument("--once", action="store_true", help="Exit after the first snapshot or error")
    parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait with --once")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = _build_config(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    async with Dashboard(config) as dashboard:
        if args.once:
            view = await dashboard.wait_for_view(_settled, timeout=args.timeout)
            if view is None:
                print(f"No snapshot within {args.timeout:.0f}s", file=sys.stderr)
                _print_view(dashboard.view)
                return 1
            _print_view(view)
            return 1 if view.state.is_error else 0

        dashboard.add_listener(_print_view)
        _print_view(dashboard.view)
        try:
            await dashboard.wait_for_view(lambda v: v.state.is_error)
        except asyncio.CancelledError:
            return 0
    return 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
