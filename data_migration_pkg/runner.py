"""CLI runner to generate and execute maintenance scripts."""
import argparse
import importlib.util
import inspect
import json
import logging
from pathlib import Path

from data_migration_pkg.config import get_configuration
from data_migration_pkg.data_migration_operator import MigrationCanceled
from data_migration_pkg.generator import generate_maintenance_script
from data_migration_pkg.migration import Migration

logger = logging.getLogger(__name__)


def load_migrations(script_path):
    """Import a script file and return the Migration subclasses it defines."""
    path = Path(script_path)
    if not path.is_file():
        raise FileNotFoundError(f"No such maintenance script: {path}")
    spec = importlib.util.spec_from_file_location(f"maintenance_script_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return [
        obj for _, obj in inspect.getmembers(module, inspect.isclass)
        if issubclass(obj, Migration) and obj is not Migration and obj.__module__ == module.__name__
    ]


def build_parser():
    parser = argparse.ArgumentParser(description="Run supervised one-off data migrations")
    parser.add_argument("--config-preview", action="store_true", help="Print resolved configuration and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    generate = subparsers.add_parser("generate", help="Create a dated maintenance script")
    generate.add_argument("name", help="Script name, e.g. BackfillUserNames")
    generate.add_argument("--directory", help="Target directory (default: configured script directory)")

    run = subparsers.add_parser("run", help="Run the migrations defined in a maintenance script")
    run.add_argument("script", help="Path to the maintenance script")
    run.add_argument("--without-transaction", action="store_true",
                     help="Run without transaction and commit confirmation")
    run.add_argument("--skip-side-effects", action="store_true",
                     help="Don't summarize writes, jobs and notifications")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config_preview:
        print("CONFIGURATION:")
        print(json.dumps(get_configuration().describe(), indent=2))
        return

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "generate":
        path = generate_maintenance_script(args.name, directory=args.directory)
        print(f"create {path}")

    elif args.command == "run":
        migrations = load_migrations(args.script)
        if not migrations:
            raise SystemExit(f"No Migration subclass found in {args.script}")
        for migration_class in migrations:
            try:
                migration_class.run(
                    without_transaction=args.without_transaction,
                    warning_side_effects=not args.skip_side_effects,
                )
            except MigrationCanceled:
                logger.warning(f"{migration_class.__name__} was canceled; changes were rolled back")
                raise SystemExit(1)


if __name__ == "__main__":
    main()
