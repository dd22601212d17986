#!/usr/bin/env python3
"""
InviteGate admin CLI -- out-of-band management of the record store.

Works directly on the JSON documents the API serves from, through the same
RecordStore. Collection locks are file locks shared with a running server, so
minting codes while users register cannot lose an update.

Usage:
  python main.py init
  python main.py invite create
  python main.py invite create --count 5 --length 10
  python main.py invite list --unused
  python main.py users
  python main.py audit --limit 20
  python main.py --data-dir /srv/invitegate/data users

Environment variables:
  DATA_DIR   Data directory used when --data-dir is not given (read through
             core.config, so SECRET_KEY / PASSWORD_SALT or DEBUG=true must be
             set as for the API).
"""

import argparse
import json
from typing import Optional

from auth.invitations import DEFAULT_CODE_LENGTH, create_invitations, list_invitations
from auth.models import User
from core.config import get_settings
from records.store import AUDIT_LOG, USERS, RecordStore


def _open_store(data_dir: Optional[str]) -> RecordStore:
    store = RecordStore(data_dir or get_settings().data_dir)
    store.initialize()
    return store


def _cmd_init(store: RecordStore, args: argparse.Namespace) -> None:
    print(f"Data directory ready: {store.data_dir}")
    for name in store.collections:
        print(f"  {name}")


def _cmd_invite(store: RecordStore, args: argparse.Namespace) -> None:
    if args.invite_command == "create":
        for code in create_invitations(store, count=args.count, length=args.length):
            print(code)
        return

    invites = list_invitations(store, unused_only=args.unused)
    if not invites:
        print("  No invitation codes.")
        return
    for invite in invites:
        if invite.used:
            print(f"  {invite.code}  used by {invite.used_by} on {invite.used_date}")
        else:
            print(f"  {invite.code}  unused")


def _cmd_users(store: RecordStore, args: argparse.Namespace) -> None:
    records = store.read(USERS)
    users = [User.from_record(r) for r in records if isinstance(r, dict)] if isinstance(records, list) else []
    if not users:
        print("  No users.")
        return
    for user in users:
        # Hand-edited records may hold null for any field
        uid, name, tier = (str(v) if v is not None else "-" for v in (user.id, user.username, user.user_type))
        print(f"  {uid:<16} {name:<24} {tier:<10} last login {user.last_login or '-'}")


def _cmd_audit(store: RecordStore, args: argparse.Namespace) -> None:
    entries = store.read(AUDIT_LOG)
    if not isinstance(entries, list):
        return
    for entry in entries[-args.limit :]:
        print(json.dumps(entry, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invitegate",
        description="Manage InviteGate users, invitation codes and the audit log.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init
  python main.py invite create --count 5
  python main.py invite list --unused
  python main.py audit --limit 50
        """,
    )
    parser.add_argument(
        "--data-dir",
        metavar="PATH",
        default=None,
        help="Data directory (default: DATA_DIR setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("init", help="Create the data directory and any missing collections")

    invite = sub.add_parser("invite", help="Create or list invitation codes")
    invite_sub = invite.add_subparsers(dest="invite_command", metavar="ACTION", required=True)
    create = invite_sub.add_parser("create", help="Mint new single-use codes")
    create.add_argument("--count", type=int, default=1, help="Number of codes to mint (default: 1)")
    create.add_argument(
        "--length",
        type=int,
        default=DEFAULT_CODE_LENGTH,
        help=f"Characters per code (default: {DEFAULT_CODE_LENGTH})",
    )
    listing = invite_sub.add_parser("list", help="Show codes and whether they were used")
    listing.add_argument("--unused", action="store_true", help="Only show codes that are still available")

    sub.add_parser("users", help="List registered users (never shows password hashes)")

    audit = sub.add_parser("audit", help="Print the most recent audit entries as JSON lines")
    audit.add_argument("--limit", type=int, default=20, help="Number of entries to show (default: 20)")

    return parser


_COMMANDS = {
    "init": _cmd_init,
    "invite": _cmd_invite,
    "users": _cmd_users,
    "audit": _cmd_audit,
}


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return
    if args.command == "invite" and args.invite_command == "create" and args.count < 1:
        parser.error("--count must be at least 1")
    if args.command == "invite" and args.invite_command == "create" and args.length < 4:
        parser.error("--length must be at least 4")
    if args.command == "audit" and args.limit < 1:
        parser.error("--limit must be at least 1")

    store = _open_store(args.data_dir)
    _COMMANDS[args.command](store, args)


if __name__ == "__main__":
    main()
