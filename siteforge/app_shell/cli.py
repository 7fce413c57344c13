import argparse
import logging
import sys

from siteforge.adapters.sqlite.migrator import SQLiteMigrator
from siteforge.adapters.sqlite.repos import SQLitePostRepo, SQLiteRoleRepo, SQLiteUserRepo
from siteforge.api.deps import Settings, get_clock, get_notifier, get_registry, get_rules
from siteforge.app_shell.config import validate_ops_rules
from siteforge.components.roles import SeedRolesInput, run_seed
from siteforge.components.scheduler import (
    PurgeUnverifiedInput,
    SweepInput,
    run_purge_unverified,
    run_sweep,
)

logger = logging.getLogger("cli")


def _migrate(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()
    print(f"Applied {len(applied)} migrations.")


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    _migrate(settings)


def handle_seed_roles(settings: Settings, args: argparse.Namespace) -> None:
    result = run_seed(
        SeedRolesInput(),
        registry=get_registry(settings),
        repo=SQLiteRoleRepo(settings.db_path),
    )
    print(f"Seeded {len(result.seeded)} roles.")


def handle_sweep(settings: Settings, args: argparse.Namespace) -> None:
    result = run_sweep(
        SweepInput(),
        post_repo=SQLitePostRepo(settings.db_path),
        time=get_clock(),
        notifier=get_notifier(),
        rooms=tuple(get_rules(settings).notifications.rooms),
    )
    print(f"Published {result.count} scheduled posts.")
    for error in result.errors:
        print(f"  failed: {error.message}", file=sys.stderr)


def handle_purge_unverified(settings: Settings, args: argparse.Namespace) -> None:
    hours = args.hours
    if hours is None:
        hours = get_rules(settings).auth.unverified_retention_hours
    result = run_purge_unverified(
        PurgeUnverifiedInput(retention_hours=hours),
        user_repo=SQLiteUserRepo(settings.db_path),
        time=get_clock(),
    )
    print(f"Removed {result.deleted} unverified accounts.")


def handle_serve(settings: Settings, args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("siteforge.api.main:app", host=args.host, port=args.port, reload=args.reload)


HANDLERS = {
    "migrate": handle_migrate,
    "seed-roles": handle_seed_roles,
    "sweep": handle_sweep,
    "purge-unverified": handle_purge_unverified,
    "serve": handle_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SiteForge CMS CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migrate", help="Apply pending database migrations")
    subparsers.add_parser("seed-roles", help="Replace the stored role catalog from rules.yaml")
    subparsers.add_parser("sweep", help="Publish scheduled posts that are due")

    purge_parser = subparsers.add_parser(
        "purge-unverified", help="Delete accounts that never verified their email"
    )
    purge_parser.add_argument(
        "--hours", type=int, default=None, help="Retention window (defaults to rules.yaml)"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings()
    logging.basicConfig(level=settings.log_level)

    try:
        rules = get_rules(settings)
        validate_ops_rules(rules)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Startup checks failed: %s", e)
        sys.exit(1)

    HANDLERS[args.command](settings, args)


if __name__ == "__main__":
    main()
