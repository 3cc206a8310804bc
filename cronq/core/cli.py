# cronq/core/cli.py
"""
CLI for the cronq engine.

`cronq run` is what the external scheduler (cron, a systemd timer, an HTTP
cron route) invokes; the other commands are producer and operator tools.

The database URL comes from --database-url or CRONQ_DATABASE_URL.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from cronq.core.app import Cronq
from cronq.core.codec.serde import dumps_json
from cronq.core.defaults import DEFAULT_LIST_LIMIT, DEFAULT_MAX_ATTEMPTS, DEFAULT_PRIORITY
from cronq.core.errors import (
    ConfigurationError,
    CronqError,
    ErrorCode,
    StoreUnavailableError,
    ValidationReport,
)
from cronq.core.logging import apply_level, get_logger
from cronq.core.models.app import EngineConfig
from cronq.core.models.store import StoreConfig
from cronq.core.models.tasks import NewTask
from cronq.core.types.status import TaskStatus, TaskType
from cronq.core.utils.clock import utc_now

DATABASE_URL_ENV = 'CRONQ_DATABASE_URL'

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_STORE_UNAVAILABLE = 2


def setup_logging(loglevel: str) -> None:
    """Configure logging level globally."""
    apply_level(getattr(logging, loglevel.upper(), logging.INFO))


def _no_location(error: ConfigurationError) -> ConfigurationError:
    """Strip the auto-detected source location; CLI errors are about arguments."""
    error.location = None
    return error


def store_error_exit_code(error: StoreUnavailableError) -> int:
    """Transient connection failures exit 2; any other store error exits 1."""
    return EXIT_STORE_UNAVAILABLE if error.retryable else EXIT_ERROR


def _emit(value: Any) -> None:
    print(dumps_json(value))


def _build_app(args: argparse.Namespace) -> Cronq:
    url: Optional[str] = args.database_url or os.environ.get(DATABASE_URL_ENV)
    if not url:
        raise _no_location(ConfigurationError(
            message='no database URL configured',
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[f'neither --database-url nor {DATABASE_URL_ENV} is set'],
            help_text=f"pass --database-url or export {DATABASE_URL_ENV}='postgresql+psycopg://...'",
        ))
    return Cronq(EngineConfig(store=StoreConfig(database_url=url)))


def _execute(
    args: argparse.Namespace,
    body: Callable[[Cronq], Awaitable[int]],
    *,
    init_schema: bool = True,
) -> int:
    """Build the app, run `body` on a fresh event loop, and map errors to exit codes."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)

    try:
        app = _build_app(args)
    except CronqError as e:
        print(e.format_rust_style(), file=sys.stderr)
        return EXIT_ERROR

    async def _run() -> int:
        async with app:
            if init_schema:
                await app.get_store().ensure_schema()
            return await body(app)

    try:
        return asyncio.run(_run())
    except StoreUnavailableError as e:
        if e.retryable:
            logger.error(f'{e.message} (transient, next run retries): {"; ".join(e.notes)}')
        else:
            print(e.format_rust_style(), file=sys.stderr)
        return store_error_exit_code(e)
    except CronqError as e:
        print(e.format_rust_style(), file=sys.stderr)
        return EXIT_ERROR


def init_db_command(args: argparse.Namespace) -> int:
    """Handle init-db command."""

    async def body(app: Cronq) -> int:
        _emit({'initialized': True})
        return EXIT_OK

    return _execute(args, body)


def run_command(args: argparse.Namespace) -> int:
    """Handle run command: one batch, summary as JSON."""
    limit: Optional[int] = args.limit
    if limit is not None and limit < 1:
        print(
            _no_location(ConfigurationError(
                message='--limit must be a positive integer',
                code=ErrorCode.CONFIG_INVALID_LIMIT,
                notes=[f'got: {limit}'],
            )).format_rust_style(),
            file=sys.stderr,
        )
        return EXIT_ERROR

    async def body(app: Cronq) -> int:
        app.config.log_config()
        summary = await app.run_batch(limit)
        _emit(summary.to_dict())
        return EXIT_OK

    return _execute(args, body)


def enqueue_command(args: argparse.Namespace) -> int:
    """Handle enqueue command."""
    try:
        parameters = json.loads(args.params) if args.params else {}
    except json.JSONDecodeError:
        parameters = None
    if not isinstance(parameters, dict):
        print(
            _no_location(ConfigurationError(
                message='--params must be a JSON object',
                code=ErrorCode.CLI_INVALID_ARGS,
                notes=[f'got: {args.params}'],
                help_text='example: --params \'{"action": "cleanup_old_tasks"}\'',
            )).format_rust_style(),
            file=sys.stderr,
        )
        return EXIT_ERROR

    try:
        new_task = NewTask(
            task_type=args.task_type,
            task_name=args.task_name,
            parameters=parameters,
            priority=args.priority,
            max_attempts=args.max_attempts,
            scheduled_for=utc_now() + timedelta(seconds=max(args.delay_seconds, 0)),
        )
    except ValidationError as e:
        print(
            _no_location(ConfigurationError(
                message='invalid task',
                code=ErrorCode.CLI_INVALID_ARGS,
                notes=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ],
            )).format_rust_style(),
            file=sys.stderr,
        )
        return EXIT_ERROR

    async def body(app: Cronq) -> int:
        record = await app.get_store().enqueue(new_task)
        _emit(record.to_dict())
        return EXIT_OK

    return _execute(args, body)


def stats_command(args: argparse.Namespace) -> int:
    """Handle stats command."""

    async def body(app: Cronq) -> int:
        _emit(await app.get_store().queue_stats())
        return EXIT_OK

    return _execute(args, body)


def list_command(args: argparse.Namespace) -> int:
    """Handle list command."""

    async def body(app: Cronq) -> int:
        records = await app.get_store().list_tasks(
            status=TaskStatus(args.status) if args.status else None,
            task_type=args.task_type,
            limit=args.limit,
        )
        _emit([r.to_dict() for r in records])
        return EXIT_OK

    return _execute(args, body)


def cancel_command(args: argparse.Namespace) -> int:
    """Handle cancel command. Exit 1 if the task is missing or not queued."""

    async def body(app: Cronq) -> int:
        cancelled = await app.get_store().cancel(args.task_id)
        _emit({'id': args.task_id, 'cancelled': cancelled})
        return EXIT_OK if cancelled else EXIT_ERROR

    return _execute(args, body)


def check_command(args: argparse.Namespace) -> int:
    """Handle check command: validate wiring without running tasks."""

    async def body(app: Cronq) -> int:
        errors = await app.check(live=args.live)
        if errors:
            report = ValidationReport('check')
            for error in errors:
                report.add(error)
            print(report.format_rust_style(), file=sys.stderr)
            return EXIT_ERROR
        print(f'ok: all validations passed\n  {len(app.registry)} handler(s) registered')
        return EXIT_OK

    return _execute(args, body, init_schema=False)


def _add_common(parser: argparse.ArgumentParser, default_loglevel: str) -> None:
    parser.add_argument(
        '--database-url',
        dest='database_url',
        default=None,
        help=f'SQLAlchemy async URL (default: ${DATABASE_URL_ENV})',
    )
    parser.add_argument(
        '--loglevel',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=default_loglevel,
        type=str.upper,
        help=f'Logging level (default: {default_loglevel})',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cronq',
        description='cronq - cron-triggered background task engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create tables
  cronq init-db --database-url sqlite+aiosqlite:///cronq.db

  # Run one batch (what cron calls)
  cronq run --limit 10

  # Queue a maintenance sweep
  cronq enqueue maintenance "purge old tasks" --params '{"action": "cleanup_old_tasks"}'
""",
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    init_parser = subparsers.add_parser('init-db', help='Create the task tables')
    _add_common(init_parser, 'WARNING')

    run_parser = subparsers.add_parser('run', help='Claim and process one batch')
    _add_common(run_parser, 'INFO')
    run_parser.add_argument(
        '--limit',
        type=int,
        default=None,
        help='Max tasks to claim (default: engine default_batch_limit)',
    )

    enqueue_parser = subparsers.add_parser('enqueue', help='Queue a new task')
    _add_common(enqueue_parser, 'WARNING')
    enqueue_parser.add_argument(
        'task_type', choices=[t.value for t in TaskType], help='Task type'
    )
    enqueue_parser.add_argument('task_name', help='Human-readable task label')
    enqueue_parser.add_argument('--params', default=None, help='Parameters as a JSON object')
    enqueue_parser.add_argument(
        '--priority',
        type=int,
        default=DEFAULT_PRIORITY,
        help=f'Lower runs first (default: {DEFAULT_PRIORITY})',
    )
    enqueue_parser.add_argument(
        '--max-attempts',
        dest='max_attempts',
        type=int,
        default=DEFAULT_MAX_ATTEMPTS,
        help=f'Attempts before failing permanently (default: {DEFAULT_MAX_ATTEMPTS})',
    )
    enqueue_parser.add_argument(
        '--delay-seconds',
        dest='delay_seconds',
        type=int,
        default=0,
        help='Seconds before the task becomes eligible (default: 0)',
    )

    stats_parser = subparsers.add_parser('stats', help='Task counts per status')
    _add_common(stats_parser, 'WARNING')

    list_parser = subparsers.add_parser('list', help='List recent tasks')
    _add_common(list_parser, 'WARNING')
    list_parser.add_argument('--status', choices=[s.value for s in TaskStatus], default=None)
    list_parser.add_argument(
        '--type', dest='task_type', choices=[t.value for t in TaskType], default=None
    )
    list_parser.add_argument('--limit', type=int, default=DEFAULT_LIST_LIMIT)

    cancel_parser = subparsers.add_parser('cancel', help='Cancel a queued task')
    _add_common(cancel_parser, 'WARNING')
    cancel_parser.add_argument('task_id', help='Task id')

    check_parser = subparsers.add_parser(
        'check', help='Validate configuration and handlers without running tasks'
    )
    _add_common(check_parser, 'WARNING')
    check_parser.add_argument(
        '--live',
        action='store_true',
        default=False,
        help='Also check store connectivity (SELECT 1)',
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)

        match args.command:
            case 'init-db':
                code = init_db_command(args)
            case 'run':
                code = run_command(args)
            case 'enqueue':
                code = enqueue_command(args)
            case 'stats':
                code = stats_command(args)
            case 'list':
                code = list_command(args)
            case 'cancel':
                code = cancel_command(args)
            case 'check':
                code = check_command(args)
            case _:
                parser.print_help()
                code = EXIT_ERROR
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        code = EXIT_OK
    sys.exit(code)


if __name__ == '__main__':
    main()
