"""
Gateway CLI

Commands:
  serve     - Run the compliance server
  migrate   - Apply schema migrations for one or more components
"""

import argparse
import sys

from .config import get_settings
from .log import configure_logging


def cmd_serve(args):
    """Run the compliance server."""
    import uvicorn

    settings = get_settings()
    port = args.port or settings.port
    host = args.host or settings.host

    print(f"Starting gateway compliance server on {host}:{port}")

    uvicorn.run(
        "gateway.api.server:app",
        host=host,
        port=port,
        reload=args.reload,
    )


def cmd_migrate(args):
    """Apply pending migrations."""
    from .persistence import MigrationError, PersistenceDriver, DatabaseConnectionError

    settings = get_settings()
    database_url = args.database_url or settings.database_url
    components = args.components or settings.migration_components

    driver = PersistenceDriver()
    try:
        driver.init(database_url)
        for component in components:
            applied = driver.migrate_up(component)
            print(f"{component}: applied {applied} migration(s)")
    except DatabaseConnectionError as e:
        print(f"Connection failed: {e}")
        sys.exit(1)
    except MigrationError as e:
        print(f"Migration failed ({e.component}/{e.migration_id}): {e}")
        sys.exit(1)
    finally:
        driver.close()


def main(argv=None):
    settings = get_settings()
    configure_logging(settings.log_level, settings.json_logs)

    parser = argparse.ArgumentParser(
        description="Gateway - compliance record storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Apply schema migrations")
    migrate_parser.add_argument("components", nargs="*", help="Components to migrate (default: all configured)")
    migrate_parser.add_argument("--database-url", help="Override DATABASE_URL")

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "migrate":
        cmd_migrate(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
