from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from dotenv import load_dotenv

from sheetpush.client.write_client import WriteClient, run_diagnostics
from sheetpush.config.loader import DEFAULT_CONFIG_PATH, PropertyStore, document_key
from sheetpush.config.resolver import load_document_config, load_effective_config, save_document_config
from sheetpush.errors import AuthorizationError, ConfigurationError, GridError, SheetPushError
from sheetpush.grid.reader import read_grid, write_grid
from sheetpush.logging.error_log import ErrorLogBuffer
from sheetpush.logging.init import log_summary, set_debug, setup_logging
from sheetpush.models.run_summary import RunSummary
from sheetpush.services.form_submit import push_submission_auto_id, stamp_and_push_row
from sheetpush.services.push import PushPlan, execute_push, plan_push_all, plan_push_rows
from sheetpush.services.summary import format_summary, render_summary_line
from sheetpush.session import AppSecret, SecretSession

"""CLI entrypoint.

    sheetpush push-all FILE            every row below the header
    sheetpush push-rows FILE --start N --count K
    sheetpush form-submit FILE --row N [--auto-id]
    sheetpush diagnose [FILE]          dry-run write against the endpoint
    sheetpush config show|set FILE     per-workbook settings
    sheetpush serve                    run the write endpoint

The secret is never read from the settings file: --secret-stdin, then the
SHEETPUSH_APP_SECRET environment variable, then an interactive prompt.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

SECRET_ENV = "SHEETPUSH_APP_SECRET"


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load .env (non-secret settings such as DATABASE_URL) via python-dotenv."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _add_secret_option(p: argparse.ArgumentParser) -> None:
    p.add_argument("--secret-stdin", action="store_true", help="Read APP_SECRET from the first line of stdin")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheetpush", description="Spreadsheet rows -> document store")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Settings file (YAML)")
    sub = p.add_subparsers(dest="command", required=True)

    push_all = sub.add_parser("push-all", help="Push every row below the header")
    push_all.add_argument("file", type=Path)
    push_all.add_argument("--sheet", default=None)
    _add_secret_option(push_all)

    push_rows = sub.add_parser("push-rows", help="Push a block of rows")
    push_rows.add_argument("file", type=Path)
    push_rows.add_argument("--start", type=int, required=True, help="First sheet row (1-based)")
    push_rows.add_argument("--count", type=int, default=1)
    push_rows.add_argument("--sheet", default=None)
    _add_secret_option(push_rows)

    form = sub.add_parser("form-submit", help="Handle one form response row")
    form.add_argument("file", type=Path)
    form.add_argument("--row", type=int, required=True)
    form.add_argument("--sheet", default=None)
    form.add_argument("--auto-id", action="store_true", help="Let the endpoint assign the document id")
    form.add_argument("--timezone", default=None, help="IANA zone for the yyyymmdd identifier")
    _add_secret_option(form)

    diag = sub.add_parser("diagnose", help="Dry-run write against the endpoint")
    diag.add_argument("file", type=Path, nargs="?", default=None)
    _add_secret_option(diag)

    cfg = sub.add_parser("config", help="Show or change per-workbook settings")
    cfg_sub = cfg.add_subparsers(dest="config_command", required=True)
    show = cfg_sub.add_parser("show")
    show.add_argument("file", type=Path)
    setp = cfg_sub.add_parser("set")
    setp.add_argument("file", type=Path)
    setp.add_argument("--endpoint")
    setp.add_argument("--collection")
    setp.add_argument("--id-field", dest="id_field")
    setp.add_argument("--include-id-field", dest="include_id_field", action=argparse.BooleanOptionalAction, default=None)

    serve = sub.add_parser("serve", help="Run the write endpoint")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)
    return p.parse_args(argv)


def _secret_session(args: argparse.Namespace) -> SecretSession:
    initial = None
    if getattr(args, "secret_stdin", False):
        # stdin を指定したらプロンプトには落とさない
        initial = sys.stdin.readline().strip()
        if not initial:
            raise AuthorizationError("APP_SECRET is required to push.")
    elif os.getenv(SECRET_ENV):
        initial = os.getenv(SECRET_ENV)
    return SecretSession(initial=initial)


def _report(summary: RunSummary, id_field_name: str) -> int:
    print(format_summary(summary, id_field_name))
    log_summary(render_summary_line(summary)[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if summary.has_errors else EXIT_SUCCESS_ALL


def _run_push(args: argparse.Namespace, logger) -> int:
    store = PropertyStore(args.config)
    grid = read_grid(args.file, sheet=args.sheet)
    config = load_effective_config(store, document_key(args.file))

    plan: PushPlan
    if args.command == "push-all":
        plan = plan_push_all(grid, config)
    else:
        plan = plan_push_rows(grid, config, args.start, args.count)

    with _secret_session(args) as session:
        secret = session.get()
        if secret is None:
            logger.info("push cancelled: no APP_SECRET given")
            return EXIT_FATAL
        error_log = ErrorLogBuffer()
        with WriteClient.from_config(config, secret) as client:
            summary = execute_push(plan, client, error_log=error_log)
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    return _report(summary, config.id_field_name)


def _run_form_submit(args: argparse.Namespace, logger) -> int:
    store = PropertyStore(args.config)
    grid = read_grid(args.file, sheet=args.sheet)
    config = load_effective_config(store, document_key(args.file))

    tz = None
    if args.timezone:
        try:
            tz = ZoneInfo(args.timezone)
        except ZoneInfoNotFoundError as e:
            raise ConfigurationError(f"unknown timezone: {args.timezone}") from e

    # triggers never prompt
    with _secret_session(args) as session:
        secret = session.peek() or AppSecret("")
        with WriteClient.from_config(config, secret) as client:
            if args.auto_id:
                try:
                    push_submission_auto_id(grid, args.row, config, client)
                except (SheetPushError, httpx.HTTPError) as e:
                    logger.error(f"push of row {args.row} failed: {e}")
                    return EXIT_PARTIAL_FAILURE
                logger.info(f"row {args.row} pushed with an assigned id")
                return EXIT_SUCCESS_ALL
            summary = stamp_and_push_row(grid, args.row, config, client, tz=tz)
    write_grid(grid, args.file)
    return _report(summary, config.id_field_name)


def _run_diagnose(args: argparse.Namespace, logger) -> int:
    store = PropertyStore(args.config)
    key = document_key(args.file) if args.file is not None else ""
    config = load_effective_config(store, key)
    with _secret_session(args) as session:
        result = run_diagnostics(config, session.get())
    if result.ok:
        logger.info(result.message)
        return EXIT_SUCCESS_ALL
    logger.error(result.message)
    return EXIT_FATAL


def _run_config(args: argparse.Namespace, logger) -> int:
    store = PropertyStore(args.config)
    key = document_key(args.file)
    if args.config_command == "set":
        save_document_config(
            store,
            key,
            endpoint=args.endpoint,
            collection=args.collection,
            id_field_name=args.id_field,
            include_id_field=args.include_id_field,
        )
        logger.info(f"settings saved for {key}")
    for name, value in load_document_config(store, key).items():
        print(f"{name}={value}")
    return EXIT_SUCCESS_ALL


def _run_serve(args: argparse.Namespace, logger) -> int:
    import uvicorn

    logger.info(f"write endpoint listening on {args.host}:{args.port}")
    uvicorn.run("sheetpush.server.app:create_app_from_env", factory=True, host=args.host, port=args.port)
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "push-all": _run_push,
    "push-rows": _run_push,
    "form-submit": _run_form_submit,
    "diagnose": _run_diagnose,
    "config": _run_config,
    "serve": _run_serve,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示的な空指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        return COMMANDS[args.command](args, logger)
    except ConfigurationError as e:
        logger.error(f"config: {e}")
    except AuthorizationError as e:
        logger.error(f"auth: {e}")
    except GridError as e:
        logger.error(f"grid: {e}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
