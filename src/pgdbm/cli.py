# src/pgdbm/cli.py

"""
Command-line interface for pgdbm.

    pgdbm --name myapp --sql-file schema.sql install --drop
    pgdbm --config pgdbm.yaml update
    pgdbm --config pgdbm.yaml --steps-module myapp.db_steps update
    pgdbm --config pgdbm.yaml status
    pgdbm --config pgdbm.yaml plan

Settings come from an optional YAML file; command-line options override it.
Errors are printed to stderr and the process exits with status 1.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from .core.config import ConfigManager, LogLevel, ManagerConfig
from .core.constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, EXIT_FAILURE, EXIT_SUCCESS
from .core.exceptions import DatabaseManagerError
from .core.logger import initialize_logging
from .database.manager import DatabaseManager
from .database.migrations.base_migration import import_step_modules


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument('--config', type=Path, help='YAML configuration file')

    conn = parser.add_argument_group('connection')
    conn.add_argument('--name', dest='db_name', help='Database name')
    conn.add_argument('--host', help='Server host')
    conn.add_argument('--port', type=int, help='Server port')
    conn.add_argument('--username', help='Database user (also the owner of a created database)')
    conn.add_argument('--password', help='Database password')
    conn.add_argument('--require-ssl', action='store_true', default=None, help='Require SSL')

    schema = parser.add_argument_group('schema')
    schema.add_argument('--app-name', help='Application name used in messages')
    schema.add_argument('--sql-file', type=Path, help='Canonical schema SQL file')
    schema.add_argument('--migrations-dir', type=Path, help='Root of the migration tree')
    schema.add_argument('--contrib-file', action='append', dest='contrib_files',
                        help='Contrib SQL file to import before a fresh build (repeatable)')
    schema.add_argument('--steps-module', action='append', dest='step_modules',
                        help='Module to import for its registered migration steps (repeatable)')
    schema.add_argument('--seeder', help='Seeding function as package.module:function')

    output = parser.add_argument_group('output')
    output.add_argument('--quiet', action='store_true', default=None, help='Suppress progress messages')
    output.add_argument('--log-level', choices=[level.value for level in LogLevel], help='Logging level')
    output.add_argument('--log-json', action='store_true', default=None, help='Emit JSON log records')
    output.add_argument('--log-file', type=Path, help='Rotating log file')

    commands = parser.add_subparsers(dest='command', required=True)

    install = commands.add_parser('install', help='Drop (with --drop) and recreate the database')
    install.add_argument('--drop', action='store_true', default=None,
                         help='Allow dropping an existing database')
    install.add_argument('--seed', action='store_true', default=None, help='Seed data after install')

    update = commands.add_parser('update', help='Install a fresh database or apply pending migrations')
    update.add_argument('--seed', action='store_true', default=None, help='Seed data after a fresh install')
    update.add_argument('--skip-dump', action='store_true', help='Do not dump before migrating')

    commands.add_parser('status', help='Show installed and target schema versions')
    commands.add_parser('plan', help='List the migration steps update would run')

    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed options onto the configuration structure; unset options are None."""
    return {
        'connection': {
            'name': args.db_name,
            'host': args.host,
            'port': args.port,
            'username': args.username,
            'password': args.password,
            'require_ssl': args.require_ssl,
        },
        'app_name': args.app_name,
        'sql_file': args.sql_file,
        'migrations_dir': args.migrations_dir,
        'contrib_files': args.contrib_files,
        'step_modules': args.step_modules,
        'seeder': args.seeder,
        'quiet': args.quiet,
        'drop': getattr(args, 'drop', None),
        'seed': getattr(args, 'seed', None),
        'logging': {
            'level': args.log_level,
            'json_format': args.log_json,
            'log_file': args.log_file,
        },
    }


def _print_status(status: Dict[str, Any], out: TextIO) -> None:
    installed = status['installed_version']
    out.write(f"database:  {status['database']}\n")
    out.write(f"installed: {installed if installed is not None else 'none'}\n")
    out.write(f"target:    {status['target_version']}\n")
    pending = status['pending_versions']
    out.write(f"pending:   {', '.join(str(v) for v in pending) if pending else 'none'}\n")


def _print_error(error: DatabaseManagerError, err: TextIO) -> None:
    if error.message.startswith("\n"):
        err.write(f"{error.message}\n")
    else:
        err.write(f"\n  {error.message}\n\n")
    for problem in getattr(error, 'errors', []):
        err.write(f"    {problem}\n")


def run_command(manager: DatabaseManager, args: argparse.Namespace, out: TextIO) -> None:
    if args.command == 'install':
        manager.run()
    elif args.command == 'update':
        manager.update_or_install(skip_dump=args.skip_dump)
    elif args.command == 'status':
        _print_status(manager.status(), out)
    elif args.command == 'plan':
        steps = manager.plan()
        if not steps:
            out.write("No migrations to run.\n")
        for step in steps:
            out.write(f"{step.version}\t{step.kind.value}\t{step.path}\n")


def main(argv: Optional[List[str]] = None, stdout: Optional[TextIO] = None,
         stderr: Optional[TextIO] = None) -> int:
    """
    Entry point.

    Returns:
        Process exit status
    """
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config: ManagerConfig = ConfigManager(args.config).load(overrides_from_args(args))
        initialize_logging(config.logging)
        import_step_modules(config.step_modules)

        manager = DatabaseManager(config, out=stdout)
        run_command(manager, args, stdout)
    except DatabaseManagerError as e:
        _print_error(e, stderr)
        return EXIT_FAILURE

    return EXIT_SUCCESS

