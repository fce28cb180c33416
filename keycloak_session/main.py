"""
Command line entry point for the Keycloak session client.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from datetime import timedelta

from .application_context import ApplicationContext
from .auth_token.types import AuthState
from .config import AuthConfig, load_config_from_env
from .errors.handling import log_error
from .errors.internal import ConfigurationError, InternalError
from .logging_config import LoggerConfigurator
from .utils import format_duration

ContextFactory = Callable[[AuthConfig], Awaitable[ApplicationContext]]

COMMANDS = ("status", "login", "logout", "userinfo", "refresh")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keycloak-session",
        description="Manage a Keycloak OAuth2/OIDC session from the terminal.",
    )
    parser.add_argument(
        "command",
        choices=COMMANDS,
        nargs="?",
        default="status",
        help="Action to perform (default: status)",
    )
    parser.add_argument(
        "--lookahead",
        type=int,
        default=0,
        metavar="SECONDS",
        help="refresh: treat the refresh token as expired this many seconds early",
    )
    return parser


def _print_status(ctx: ApplicationContext) -> None:
    manager = ctx.session_manager
    if manager is None:
        return
    print(f"🔐 State: {manager.state.value}")
    token_set = manager.token_set
    if token_set is not None:
        print(f"⏳ Access token expires in {format_duration(token_set.remaining_seconds())}")


async def _run_command(ctx: ApplicationContext, command: str, lookahead: int) -> int:
    manager = ctx.session_manager
    if manager is None:
        return 1
    if command == "status":
        _print_status(ctx)
        return 0
    if not manager.is_initialized:
        print("❌ Session could not be initialized, see log for details")
        return 1
    if command == "login":
        ok = await manager.login()
        print("✅ Logged in" if ok else "❌ Login failed")
        _print_status(ctx)
        return 0 if ok else 1
    if command == "logout":
        ok = await manager.logout()
        print("👋 Logged out" if ok else "❌ Logout failed")
        return 0 if ok else 1
    if command == "userinfo":
        info = await manager.get_user_info()
        if info is None:
            print("❌ User info unavailable")
            return 1
        print(json.dumps(info, indent=2, sort_keys=True))
        return 0
    # refresh
    state = await manager.update_token(timedelta(seconds=lookahead))
    _print_status(ctx)
    return 0 if state is AuthState.AUTHENTICATED else 1


async def main(
    argv: Sequence[str] | None = None,
    *,
    context_factory: ContextFactory | None = None,
) -> int:
    """Run one CLI command against the configured realm.

    The session is initialized first (first-run storage reset and silent
    refresh), so every command starts from the persisted session.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    try:
        config = load_config_from_env()
    except ConfigurationError as e:
        logging.error(f"⚙️ Invalid configuration: {str(e)}")
        return 2

    factory = context_factory or ApplicationContext.create
    ctx = await factory(config)
    try:
        await ctx.start()
        return await _run_command(ctx, args.command, args.lookahead)
    except InternalError as e:
        log_error(f"Command '{args.command}' failed", e)
        return 1
    finally:
        await ctx.shutdown()


def run(argv: Sequence[str] | None = None) -> None:
    """Synchronous entry point for the application.

    Raises:
        SystemExit: Always, with the command's exit code.
    """
    LoggerConfigurator().configure()
    try:
        code = asyncio.run(main(argv))
    except KeyboardInterrupt:
        sys.exit(130)
    except asyncio.CancelledError:
        sys.exit(1)
    except Exception as e:
        log_error("Top-level error", e)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    run()
