"""
Tokenvault CLI — operator entry point.

Usage:
    tokenvault init                     # Generate pepper + master key in the workspace
    tokenvault migrate [--dry-run]      # Apply pending SQL migrations
    tokenvault migrate --status         # Show applied vs pending migrations
    tokenvault status                   # Show database and key status
    tokenvault serve                    # Start the secure-tokens API
    tokenvault store  SITE TYPE ID      # Store a secret (prompted, never on argv)
    tokenvault verify SITE TYPE ID      # Verify a secret (prompted)
    tokenvault check  SITE TYPE ID      # Does a secret exist?
    tokenvault delete SITE TYPE ID      # Remove a secret
    tokenvault list   SITE [--type T]   # List stored secrets (metadata only)
    tokenvault version                  # Show version
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys


def _add_key_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("site_id", help="Tenant (site) id")
    p.add_argument("token_type", help="Secret class, e.g. email, twilio_whatsapp, api")
    p.add_argument("identifier", help="Identifier, e.g. the mailbox address")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokenvault",
        description="Tokenvault — tenant-scoped credential vault.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Generate key material")
    init_parser.add_argument("--workspace", type=str, help="Workspace dir (default: ~/.tokenvault)")

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Run database migrations")
    migrate_parser.add_argument("--dry-run", action="store_true", help="List without executing")
    migrate_parser.add_argument("--status", action="store_true", help="Show migration status")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port")

    # status
    subparsers.add_parser("status", help="Show system status")

    # key operations
    for name, help_text in (
        ("store", "Store a secret"),
        ("verify", "Verify a secret"),
        ("check", "Check whether a secret exists"),
        ("delete", "Delete a secret"),
    ):
        _add_key_args(subparsers.add_parser(name, help=help_text))

    list_parser = subparsers.add_parser("list", help="List stored secrets")
    list_parser.add_argument("site_id", help="Tenant (site) id")
    list_parser.add_argument("--type", dest="token_type", default=None, help="Filter by class")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.version or args.command == "version":
        from tokenvault import __version__

        print(f"tokenvault {__version__}")
        return 0

    if args.command == "init":
        return _cmd_init(args)
    elif args.command == "migrate":
        return _cmd_migrate(args)
    elif args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "status":
        return _cmd_status()
    elif args.command in ("store", "verify", "check", "delete", "list"):
        return _cmd_token(args)
    else:
        parser.print_help()
        return 0


def _configure_logging(verbose: bool) -> None:
    from tokenvault.config import get_config

    level = logging.DEBUG if verbose else getattr(logging, get_config().log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _cmd_init(args: argparse.Namespace) -> int:
    from pathlib import Path

    from tokenvault.config import get_config
    from tokenvault.vault.keys import init_keys

    workspace = Path(args.workspace) if args.workspace else get_config().workspace
    pepper_path, key_path = init_keys(workspace)
    print(f"Pepper:     {pepper_path}")
    print(f"Master key: {key_path}")
    print("Keep both files private (mode 600) and back them up: losing them invalidates every stored secret.")
    return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    from tokenvault.db import migrate

    try:
        if args.status:
            return migrate.main(["status"])
        applied = migrate.apply(dry_run=args.dry_run)
        verb = "Would apply" if args.dry_run else "Applied"
        for version in applied:
            print(f"{verb} {version}")
        if not applied:
            print("Nothing to apply.")
        if args.dry_run:
            return 0
        missing = migrate.check_schema()
    except Exception as e:
        print(f"Error: Migration failed: {e}")
        print("Check TOKENVAULT_DB_* environment variables and ensure PostgreSQL is running.")
        return 1

    for table in missing:
        print(f"Error: {table} lacks UNIQUE ({', '.join(migrate.KEY_COLUMNS)})")
    return 1 if missing else 0


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is required. Install with: pip install tokenvault[api]")
        return 1

    from tokenvault.config import get_config

    cfg = get_config()
    host = args.host or cfg.api_host
    port = args.port or cfg.api_port
    print(f"Starting Secure Tokens API on {host}:{port}...")
    uvicorn.run("tokenvault.api.app:app", host=host, port=port)
    return 0


def _cmd_status() -> int:
    from tokenvault import __version__
    from tokenvault.config import get_config
    from tokenvault.vault.keys import MASTER_KEY_FILE, PEPPER_ENV, PEPPER_FILE

    cfg = get_config()
    print(f"Tokenvault v{__version__}")
    print()

    print(f"  PostgreSQL:  {cfg.db.host or '(socket)'}:{cfg.db.port}/{cfg.db.name}")
    try:
        import psycopg2

        conn = psycopg2.connect(**cfg.db.dict)
        with conn.cursor() as cur:
            cur.execute("SELECT version()")
            pg_version = cur.fetchone()[0].split(",")[0]
            cur.execute("SELECT count(*) FROM secure_tokens")
            token_count = cur.fetchone()[0]
        conn.close()
        print(f"               Connected — {pg_version}")
        print(f"               {token_count} stored token(s)")
    except Exception as e:
        print(f"               UNREACHABLE — {e}")

    pepper_source = (
        f"${PEPPER_ENV}"
        if os.environ.get(PEPPER_ENV)
        else ("present" if (cfg.workspace / PEPPER_FILE).exists() else "MISSING")
    )
    master_key = "present" if (cfg.workspace / MASTER_KEY_FILE).exists() else "MISSING"
    print(f"  Pepper:      {pepper_source}")
    print(f"  Master key:  {master_key}")
    print(f"  Hasher:      {cfg.vault.hasher}")
    reversible = ", ".join(cfg.vault.reversible_classes) or "(none)"
    print(f"  Reversible:  {reversible}")
    print()
    print(f"  Workspace:   {cfg.workspace}")
    return 0


def _cmd_token(args: argparse.Namespace) -> int:
    from tokenvault.vault.dispatch import get_dispatcher
    from tokenvault.vault.errors import StorageError, ValidationError

    payload: dict = {"operation": args.command, "siteId": args.site_id}
    if args.token_type:
        payload["tokenType"] = args.token_type
    if args.command != "list":
        payload["identifier"] = args.identifier

    try:
        if args.command in ("store", "verify"):
            payload["tokenValue"] = getpass.getpass("Secret: ")
        result = get_dispatcher().dispatch(payload)
    except ValidationError as e:
        print(f"Error: {e}")
        return 2
    except StorageError as e:
        hint = " (retry later)" if e.retryable else ""
        print(f"Error: {e}{hint}")
        return 1

    if args.command == "store":
        print(f"Stored: id {result['tokenId']}")
        return 0
    if args.command == "verify":
        print("valid" if result["isValid"] else "invalid")
        return 0 if result["isValid"] else 1
    if args.command == "check":
        print("exists" if result["exists"] else "absent")
        return 0 if result["exists"] else 1
    if args.command == "list":
        return _print_tokens(result["tokens"])
    print("Deleted.")
    return 0


def _print_tokens(tokens: list[dict]) -> int:
    if not tokens:
        print("No tokens stored.")
        return 0
    print(f"{'Type':<18} {'Identifier':<40} {'Last used'}")
    print("-" * 80)
    for t in tokens:
        last_used = t["lastUsed"][:19] if t["lastUsed"] else "never"
        print(f"{t['tokenType']:<18} {t['identifier']:<40} {last_used}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
