"""Command-line interface for administering Expense Manager.

Provides subcommands: `import-csv`, `create-user`, `confirm-email`,
`delete-user` and `serve`. Each command is implemented as a `cmd_*`
function that accepts an argparse namespace and returns an exit code.
"""

import argparse
import asyncio
import secrets
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from expense_manager.audit import configure_logging
from expense_manager.config import get_settings
from expense_manager.importer import parse_expenses_csv
from expense_manager.services.auth import AuthenticationError, FirebaseIdentityProvider
from expense_manager.services.storage import StorageError


log = structlog.get_logger(__name__)


# --------------------------------------------------
# IMPORT
# --------------------------------------------------
def cmd_import_csv(args: argparse.Namespace) -> int:
    """Import expenses for one user from a CSV export."""
    from expense_manager.orchestrator import create_app_components

    path = Path(args.path)
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    parsed = parse_expenses_csv(path.read_text(encoding="utf-8"))
    if not parsed.drafts:
        print("No expenses found in CSV file", file=sys.stderr)
        return 1

    print(f"Parsed {len(parsed.drafts)} expenses from {path.name}")
    if parsed.skipped_lines:
        print(f"Skipped lines: {', '.join(str(n) for n in parsed.skipped_lines)}")

    expense_flow, _, _, _ = create_app_components()
    try:
        report = asyncio.run(
            expense_flow.import_expenses(
                args.user,
                parsed.drafts,
                batch_size=args.batch_size,
                source=path.name,
            )
        )
    except StorageError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        return 1

    print(f"Imported: {report.imported}")
    if report.failed:
        print(f"Failed: {report.failed}")
        return 1
    return 0


# --------------------------------------------------
# USERS
# --------------------------------------------------
def cmd_create_user(args: argparse.Namespace) -> int:
    """Create a user with a verified email, or report the existing one."""
    password = args.password or secrets.token_urlsafe(12)
    provider = FirebaseIdentityProvider()

    try:
        user, created = asyncio.run(provider.create_or_get_user(args.email, password))
    except AuthenticationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if created:
        print(f"User created: {user.id}")
        if not args.password:
            print(f"Generated password: {password}")
    else:
        print(f"User already exists: {user.id}")
    return 0


def cmd_confirm_email(args: argparse.Namespace) -> int:
    provider = FirebaseIdentityProvider()
    try:
        user = asyncio.run(provider.confirm_email(args.email))
    except AuthenticationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Email confirmed for {user.email} ({user.id})")
    return 0


def cmd_delete_user(args: argparse.Namespace) -> int:
    provider = FirebaseIdentityProvider()
    try:
        deleted = asyncio.run(provider.delete_user(args.email))
    except AuthenticationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Deleted {args.email}" if deleted else f"No user with email {args.email}")
    return 0


# --------------------------------------------------
# SERVER
# --------------------------------------------------
def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP session bridge with uvicorn."""
    import uvicorn

    from expense_manager.api import create_app

    log.info("starting_server", host=args.host, port=args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser with all subcommands."""
    parser = argparse.ArgumentParser(prog="expense-manager", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_import = sub.add_parser("import-csv", help="Import expenses from a CSV file")
    p_import.add_argument("path")
    p_import.add_argument("--user", required=True, help="uid of the owning user")
    p_import.add_argument("--batch-size", type=int, default=None)
    p_import.set_defaults(func=cmd_import_csv)

    p_create = sub.add_parser("create-user", help="Create a user with a verified email")
    p_create.add_argument("email")
    p_create.add_argument("password", nargs="?", default=None)
    p_create.set_defaults(func=cmd_create_user)

    p_confirm = sub.add_parser("confirm-email", help="Mark a user's email as verified")
    p_confirm.add_argument("email")
    p_confirm.set_defaults(func=cmd_confirm_email)

    p_delete = sub.add_parser("delete-user", help="Delete a user if present")
    p_delete.add_argument("email")
    p_delete.set_defaults(func=cmd_delete_user)

    p_serve = sub.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point: parse args, configure logging and dispatch commands."""
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().app.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
