from __future__ import annotations

import argparse
import asyncio
import getpass
import json
from typing import Any

from .config import SDKConfig
from .errors import ApiError
from .models import Role
from .pipeline import SessionExpired
from .session import ApiSession


def _summary_line(records: list[dict[str, Any]]) -> str:
    statuses: dict[str, int] = {}
    for record in records:
        status = str(record.get("status") or "UNKNOWN")
        statuses[status] = statuses.get(status, 0) + 1
    return json.dumps({"orders": len(records), "by_status": statuses}, sort_keys=True)


async def cmd_login(args: argparse.Namespace) -> None:
    session = ApiSession(SDKConfig.from_env(args.env_file), Role(args.role))
    password = args.password or getpass.getpass("Password: ")
    try:
        established = await session.auth_client().login(args.email, password)
        print(json.dumps({"role": established.role.value, "user": established.user_summary}, indent=2))
    finally:
        await session.aclose()


async def cmd_logout(args: argparse.Namespace) -> None:
    session = ApiSession(SDKConfig.from_env(args.env_file), Role(args.role))
    try:
        await session.auth_client().logout()
        print(json.dumps({"role": args.role, "logged_out": True}))
    finally:
        await session.aclose()


async def cmd_watch(args: argparse.Namespace) -> None:
    session = ApiSession(SDKConfig.from_env(args.env_file), Role(args.role))
    if not session.is_authenticated():
        await session.aclose()
        raise SystemExit(f"No stored {args.role} session; run `login` first.")

    expired = asyncio.Event()

    def _on_expired(signal: SessionExpired) -> None:
        print(json.dumps({"session_expired": signal.role.value, "redirect_to": signal.redirect_to}))
        expired.set()

    session.pipeline.on_session_expired(_on_expired)
    realtime = session.realtime_orders()
    realtime.reconciler.subscribe(lambda records: print(_summary_line(records), flush=True))
    try:
        realtime.reconciler.load(await session.orders_client().list_orders())
        await realtime.enable(session.channel_credential())
        await expired.wait()
    finally:
        await realtime.disable()
        await session.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bambite console client: sessions and live order list")
    parser.add_argument("--env-file", default=".env")
    subparsers = parser.add_subparsers(dest="command", required=True)
    roles = [role.value for role in Role]

    login_parser = subparsers.add_parser("login")
    login_parser.add_argument("--role", choices=roles, required=True)
    login_parser.add_argument("--email", required=True)
    login_parser.add_argument("--password", default=None)
    login_parser.set_defaults(func=cmd_login)

    logout_parser = subparsers.add_parser("logout")
    logout_parser.add_argument("--role", choices=roles, required=True)
    logout_parser.set_defaults(func=cmd_logout)

    watch_parser = subparsers.add_parser("watch")
    watch_parser.add_argument("--role", choices=[Role.ADMIN.value, Role.STAFF.value], default=Role.ADMIN.value)
    watch_parser.set_defaults(func=cmd_watch)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(args.func(args))
    except ApiError as exc:
        print(json.dumps({"error": exc.code, "message": exc.message, "trace_id": exc.trace_id}, indent=2))
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
