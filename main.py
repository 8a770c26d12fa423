#!/usr/bin/env python3
"""
Folio -- Portfolio backend with accounts, tasks, contact form and projects.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-admin --email me@example.com --password 'S3curePass' --name "Site Owner"
  ADMIN_EMAIL=me@example.com ADMIN_PASSWORD=S3curePass python main.py create-admin

Environment variables:
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DEBUG         true enables development mode (auto-generated key, create-admin over HTTP).
  SMTP_HOST     Mail server for verification emails. Unset = links are logged.
"""

import argparse
import sys

from core.config import get_settings


def _create_admin(args: argparse.Namespace) -> int:
    """Create the admin, or reset the existing admin's credentials.

    Runs with server access, so unlike POST /auth/create-admin it is not
    limited to development mode.
    """
    from api.main import open_stores
    from api.models import check_password_strength
    from auth.service import AuthService
    from auth.verification import VerificationFlow
    from core.errors import DuplicateEmail
    from mail.mailer import Mailer

    settings = get_settings()
    email = args.email or settings.admin_email
    password = args.password or settings.admin_password
    name = args.name or settings.admin_name
    if not email or not password:
        print("  [!] Admin email and password are required (flags or ADMIN_EMAIL / ADMIN_PASSWORD).")
        return 2
    if len(password) < 6:
        print("  [!] Password must be at least 6 characters long.")
        return 2
    try:
        check_password_strength(password)
    except ValueError as e:
        print(f"  [!] {e}.")
        return 2

    identity_store, content_store = open_stores(settings)
    try:
        service = AuthService(identity_store, VerificationFlow(identity_store, Mailer(settings)), settings)
        admin, created = service.bootstrap_admin(email, password, name)
    except DuplicateEmail:
        print(f"  [!] {email} already belongs to another account.")
        return 2
    finally:
        identity_store.close()
        content_store.close()

    action = "Created" if created else "Updated"
    print(f"{action} admin account: {admin.email} ({admin.display_name})")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="folio",
        description="Portfolio backend: accounts, tasks, contact form, projects and site settings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-admin --email me@example.com --password 'S3curePass'
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin_parser = subparsers.add_parser("create-admin", help="Create or update the single admin account")
    admin_parser.add_argument("--email", metavar="EMAIL", help="Admin email (default: ADMIN_EMAIL)")
    admin_parser.add_argument("--password", metavar="PASSWORD", help="Admin password (default: ADMIN_PASSWORD)")
    admin_parser.add_argument("--name", metavar="NAME", help="Display name (default: ADMIN_NAME)")
    admin_parser.set_defaults(handler=_create_admin)

    serve_parser = subparsers.add_parser("serve", help="Run the API server with uvicorn")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve_parser.set_defaults(handler=_serve)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return
    sys.exit(args.handler(args))


if __name__ == "__main__":
    main()
