from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_app_config
from ..db.store import StoreError
from ..excel.codec import CodecError, decode, import_table
from ..logging.init import set_debug, setup_logging
from ..mapping.extractor import RowFieldExtractor
from ..mapping.projector import FixedSchemaProjector, display_headers
from ..mapping.resolver import KeywordResolver
from ..models.projection import FIXED_COLUMNS
from ..models.row import InventoryRow
from ..runtime import Runtime, build_runtime
from ..services.briefing import generate_briefing

"""Command-line entry point.

    python -m inventory_alarm.cli [--debug] [--config PATH] <command> ...

Commands: inspect, import, confirm, alarms, briefing, serve.

Exit codes:
    0  success
    1  fatal (config, file or storage error)
    2  partial failure (some rows failed to confirm)

DISABLE_DB_CONNECT=1 runs every command against an in-memory store.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

INSPECT_ROWS = 5


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="inventory_alarm", description="Inventory stock-alarm service")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config YAML (default config/alarm.yml)")
    sub = p.add_subparsers(dest="command", required=True)

    ins = sub.add_parser("inspect", help="Print headers and the fixed projection of a spreadsheet")
    ins.add_argument("file", type=Path)
    ins.add_argument("--rows", type=int, default=INSPECT_ROWS)

    imp = sub.add_parser("import", help="Decode a spreadsheet and append its rows")
    imp.add_argument("file", type=Path)
    imp.add_argument("--file-group", default=None, help="Defaults to the file name")

    con = sub.add_parser("confirm", help="Bulk-confirm baselines")
    target = con.add_mutually_exclusive_group(required=True)
    target.add_argument("--file-group")
    target.add_argument("--row-id", dest="row_ids", type=int, action="append")

    ala = sub.add_parser("alarms", help="List rows currently alarming")
    ala.add_argument("--file-group", default=None)

    bri = sub.add_parser("briefing", help="Print the inventory briefing of a file group")
    bri.add_argument("--file-group", required=True)
    bri.add_argument("--no-llm", action="store_true", help="Use the deterministic template only")

    srv = sub.add_parser("serve", help="Run the HTTP service")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    return p.parse_args(argv)


@contextmanager
def _runtime(args: argparse.Namespace) -> Iterator[Runtime]:
    runtime = build_runtime(config_path=args.config, show_progress=None)
    try:
        yield runtime
    finally:
        runtime.close()


def _inspect(args: argparse.Namespace, logger: logging.Logger) -> int:
    cfg = load_app_config(args.config)
    table = decode(args.file.read_bytes(), args.file.suffix)
    extractor = RowFieldExtractor(KeywordResolver(cfg.keywords))
    projector = FixedSchemaProjector(extractor, expiry_warning_days=cfg.expiry_warning_days)
    resolver = extractor.resolver

    print(f"FILE: {args.file.name} rows={len(table.rows)}")
    for header in display_headers(table.headers):
        role = resolver.classify_header(header)
        print(f"  {header} -> {role.value if role else '-'}")
    # unsaved preview rows, numbered by position
    preview = [
        InventoryRow(id=None, file_group=args.file.name, sequence_index=i, fields=fields)
        for i, fields in enumerate(table.records()[: args.rows])
    ]
    print("  " + " | ".join(FIXED_COLUMNS))
    for fixed in projector.project_rows(preview):
        print("  " + " | ".join(str(v) for v in fixed.values()))
    return EXIT_SUCCESS


def _import(args: argparse.Namespace, logger: logging.Logger) -> int:
    file_group = args.file_group or args.file.name
    table = decode(args.file.read_bytes(), args.file.suffix)
    with _runtime(args) as runtime:
        created = import_table(runtime.store, file_group, table)
        logger.info(f"mode={runtime.db_mode} imported file_group={file_group} rows={len(created)}")
    return EXIT_SUCCESS


def _confirm(args: argparse.Namespace, logger: logging.Logger) -> int:
    with _runtime(args) as runtime:
        result = runtime.service.bulk_confirm(file_group=args.file_group, row_ids=args.row_ids)
    if result.total_processed == 0:
        logger.warning("no rows to confirm")
    return EXIT_PARTIAL_FAILURE if result.partial_failure else EXIT_SUCCESS


def _alarms(args: argparse.Namespace, logger: logging.Logger) -> int:
    with _runtime(args) as runtime:
        rows = runtime.service.list_alarms(args.file_group)
        for row in rows:
            current = runtime.service.current_quantity(row)
            name = runtime.projector.item_name(row, row.sequence_index)
            print(f"{row.file_group}\t{row.id}\t{name}\t{current}/{row.baseline}")
    logger.info(f"alarming rows={len(rows)}")
    return EXIT_SUCCESS


def _briefing(args: argparse.Namespace, logger: logging.Logger) -> int:
    with _runtime(args) as runtime:
        rows = runtime.store.range_by_file_group(args.file_group)
        summarizer = None if args.no_llm else runtime.summarizer
        result = generate_briefing(rows, args.file_group, summarizer, runtime.extractor)
    print(result.text)
    logger.debug(json.dumps(result.stats.to_dict(), ensure_ascii=False, default=str))
    return EXIT_SUCCESS


def _serve(args: argparse.Namespace, logger: logging.Logger) -> int:  # pragma: no cover (blocks)
    logger.info(f"serving on http://{args.host}:{args.port}")
    uvicorn.run("inventory_alarm.api.app:create_app", factory=True, host=args.host, port=args.port)
    return EXIT_SUCCESS


COMMANDS = {
    "inspect": _inspect,
    "import": _import,
    "confirm": _confirm,
    "alarms": _alarms,
    "briefing": _briefing,
    "serve": _serve,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # read sys.argv only when argv is None; [] must not pick up pytest's own flags
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        return COMMANDS[args.command](args, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
    except CodecError as e:
        logger.error(f"decode: {e}")
    except OSError as e:
        logger.error(f"file: {e}")
    except StoreError as e:
        logger.error(f"storage: {e}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
