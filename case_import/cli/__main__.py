from __future__ import annotations

import argparse
import json
import mimetypes
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from case_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, build_config, load_config
from case_import.db.case_store import CaseStore, StoreError
from case_import.db.memory_store import InMemoryCaseStore
from case_import.db.postgres_store import PostgresCaseStore, resolve_dsn
from case_import.logging.init import log_summary, set_debug, setup_logging
from case_import.models.config_models import ImportConfig
from case_import.parsing.table_parser import ParseError
from case_import.services.committer import EmptyBatch
from case_import.services.session import ImportSession, UploadRejected
from case_import.services.staging import BulkFix, StagingSet
from case_import.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- preview: parse + validate a CSV (optionally apply bulk fixes) and report invalid rows
- commit:  preview, then commit the valid rows and print the SUMMARY line
- jobs:    list recent import jobs for an actor

Exit codes: 0 = every row committed / valid, 2 = some rows invalid or rejected,
1 = fatal (config, unreadable or malformed file, store unavailable).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _open_store(cfg: ImportConfig, dry_run: bool) -> Iterator[CaseStore]:
    """Yield the Case Store for this run.

    DISABLE_DB_CONNECT=1 or --dry-run selects the in-memory store; otherwise a
    PostgreSQL pool is opened (DSN resolved env-first, see resolve_dsn).
    """
    if dry_run or os.getenv("DISABLE_DB_CONNECT") == "1":
        yield InMemoryCaseStore()
        return
    # コーディネータ (ジョブ作成/更新) 分として +1
    store = PostgresCaseStore.connect(resolve_dsn(cfg.database), cfg.commit.max_workers + 1)
    try:
        store.ensure_schema()
        yield store
    finally:
        store.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True: .env の値で既存環境変数を上書きし、接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    fixes = [f.value for f in BulkFix]
    p = argparse.ArgumentParser(prog="case-import", description="CSV -> case store bulk importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default {DEFAULT_CONFIG_PATH})")
    sub = p.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Validate a CSV without committing")
    preview.add_argument("file", type=Path)
    preview.add_argument("--fix", action="append", choices=fixes, default=[], help="Bulk fix to apply (repeatable)")
    preview.add_argument("--json", action="store_true", help="Print the staged rows as JSON")

    commit = sub.add_parser("commit", help="Validate a CSV and commit its valid rows")
    commit.add_argument("file", type=Path)
    commit.add_argument("--actor", required=True, help="Acting user id recorded in the audit log")
    commit.add_argument("--fix", action="append", choices=fixes, default=[], help="Bulk fix to apply (repeatable)")
    commit.add_argument("--file-name", default=None, help="Display name for the import job")
    commit.add_argument("--dry-run", action="store_true", help="Commit into an in-memory store")

    jobs = sub.add_parser("jobs", help="List recent import jobs")
    jobs.add_argument("--actor", required=True)
    jobs.add_argument("--limit", type=int, default=50)
    return p.parse_args(argv)


def _load(args: argparse.Namespace) -> ImportConfig:
    if args.config is not None:
        return load_config(args.config)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return build_config(None)


def _stage(session: ImportSession, path: Path, display_name: str, fixes: list[str]) -> StagingSet:
    content = path.read_bytes()
    content_type, _ = mimetypes.guess_type(path.name)
    session.upload(content, display_name, content_type)
    staging = session.staging
    for fix in fixes:
        staging = session.fix_all(fix)
    return staging


def _report_invalid(logger, staging: StagingSet) -> None:
    for row in staging.invalid_rows():
        logger.warning(f"row={row.row_index} case_id={row.fields.case_id or '-'} {'; '.join(row.errors)}")


def _preview(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    session = ImportSession(InMemoryCaseStore(), cfg, actor_id="preview")
    staging = _stage(session, args.file, args.file.name, args.fix)
    if args.json:
        print(json.dumps(staging.to_dict(), ensure_ascii=False, indent=2))
    else:
        _report_invalid(logger, staging)
    invalid = len(staging.invalid_rows())
    logger.info(f"file={args.file.name} rows={len(staging)} valid={len(staging) - invalid} invalid={invalid}")
    return EXIT_PARTIAL_FAILURE if invalid else EXIT_SUCCESS_ALL


def _commit(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    with _open_store(cfg, args.dry_run) as store:
        session = ImportSession(store, cfg, actor_id=args.actor)
        staging = _stage(session, args.file, args.file_name or args.file.name, args.fix)
        skipped = len(staging.invalid_rows())
        if skipped:
            logger.info(f"{skipped} invalid row(s) will be skipped")
            _report_invalid(logger, staging)
        result = session.commit()

    for rejected in result.rejected:
        logger.warning(f"row={rejected.row_index} rejected: {'; '.join(rejected.reasons)}")
    # log_summary が "SUMMARY " を付与するため除去
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.summary.failed or skipped:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _jobs(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    with _open_store(cfg, dry_run=False) as store:
        jobs = store.list_import_jobs(args.actor, limit=args.limit)
    if not jobs:
        logger.info(f"no import jobs for actor={args.actor}")
    for job in jobs:
        print(
            f"{job.id} {job.status.value} file={job.file_name} total={job.total_rows} "
            f"success={job.success_rows} failed={job.failed_rows} "
            f"created={job.created_at.isoformat() if job.created_at else '-'}"
        )
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] はそのまま使う (None のときのみ sys.argv を読む)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path('.env'), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = _load(args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    handlers = {"preview": _preview, "commit": _commit, "jobs": _jobs}
    try:
        return handlers[args.command](args, cfg, logger)
    except (ParseError, UploadRejected) as e:
        logger.error(f"upload: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL
    except EmptyBatch:
        logger.error("no valid rows to commit")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
