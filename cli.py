import argparse
import json
import sqlite3
from pathlib import Path
from typing import Any

from config.settings import get_settings
from db.connection import get_connection, open_database
from db import schema
from db.gateway import SqliteGateway
from models import AnalysisRequest, Scope
from services.analysis_client import AIAnalysisClient
from services.background import BackgroundJobScheduler
from services.job_store import SqliteJobStore
from services.llm_client import LLMClient
from services.orchestrator import ExtractionOrchestrator
from services import records
from utils.logging_setup import init_logging


def _print_json(payload: Any) -> None:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json", by_alias=False)
    elif isinstance(payload, list):
        payload = [p.model_dump(mode="json") if hasattr(p, "model_dump") else p for p in payload]
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _scope(args) -> Scope:
    user_id = getattr(args, "user_id", None)
    if user_id:
        return Scope.user(user_id, getattr(args, "user_email", None))
    return Scope.shared()


def _scheduler(conn: sqlite3.Connection) -> BackgroundJobScheduler:
    # Jobs must outlive one CLI invocation, so the CLI always uses the durable store
    return BackgroundJobScheduler(
        SqliteGateway(conn),
        AIAnalysisClient(LLMClient()),
        store=SqliteJobStore(conn),
    )


def cmd_bootstrap(args):
    conn = get_connection(args.db)
    schema.bootstrap(conn)
    print("Schema ready")


def cmd_extract(args):
    conn = open_database(args.db)
    orchestrator = ExtractionOrchestrator(SqliteGateway(conn), AIAnalysisClient(LLMClient()))
    meta = AnalysisRequest(
        extraction_type=args.type,
        source=args.source or ("file_upload" if args.input else "text_input"),
        description=args.description,
    )
    if args.input:
        path = Path(args.input)
        result = orchestrator.extract_file(path.read_bytes(), path.name, meta, _scope(args))
    else:
        result = orchestrator.extract_text(args.text, meta, _scope(args))
    _print_json(result)


def cmd_submit_job(args):
    conn = open_database(args.db)
    out = _scheduler(conn).submit(args.input, args.type, args.source, args.description)
    _print_json(out)


def cmd_tick(args):
    conn = open_database(args.db)
    job = _scheduler(conn).tick()
    if job is None:
        print("No pending jobs")
        return
    _print_json(job)


def cmd_run_scheduler(args):
    conn = open_database(args.db)
    scheduler = _scheduler(conn)
    if args.ticks:
        # Bounded run: tick back to back without waiting for the interval
        for _ in range(args.ticks):
            if scheduler.tick() is None:
                break
        _print_json(scheduler.list_jobs())
        return
    scheduler.start()
    try:
        scheduler.join()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()


def cmd_jobs(args):
    conn = open_database(args.db)
    _print_json(_scheduler(conn).list_jobs())


def cmd_job_status(args):
    conn = open_database(args.db)
    job = _scheduler(conn).get_job_status(args.job_id)
    if job is None:
        print("Job not found")
        return
    _print_json(job)


def cmd_search(args):
    conn = open_database(args.db)
    filters = {
        "text": args.text,
        "company": args.company,
        "position": args.position,
        "status": args.status,
        "batch_id": args.batch_id,
        "is_duplicate_in_master": args.duplicates_only or None,
        "limit": args.limit,
        "offset": args.offset,
    }
    _print_json(records.search_records(SqliteGateway(conn), _scope(args), filters))


def cmd_delete_batch(args):
    conn = open_database(args.db)
    deleted = records.delete_batch(SqliteGateway(conn), _scope(args), args.batch_id)
    _print_json({"batch_id": args.batch_id, "deleted_count": deleted})


def cmd_stats(args):
    conn = open_database(args.db)
    _print_json(records.stats(SqliteGateway(conn), _scope(args)))


def _add_scope_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--user-id", help="Operate on this user's corpus instead of the shared one")
    p.add_argument("--user-email", help="Email stored with user-scoped records")


def _add_meta_args(p: argparse.ArgumentParser, default_source: str | None) -> None:
    p.add_argument("--type", default="general", help="Extraction type (default: general)")
    p.add_argument("--source", default=default_source, help="Source label stored on records")
    p.add_argument("--description", default=None, help="Free-form description passed to the model")


def main(argv=None):
    settings = get_settings()
    init_logging(settings.log_level)
    parser = argparse.ArgumentParser(description="People extraction CLI")
    parser.add_argument("--db", default=settings.db_path, help="Path to SQLite DB (default from settings)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_boot = sub.add_parser("bootstrap", help="Create tables and indexes")
    p_boot.set_defaults(func=cmd_bootstrap)

    p_ext = sub.add_parser("extract", help="Extract people from a file or text and store them")
    src = p_ext.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Path to a file (txt, md, csv or a registered kind)")
    src.add_argument("--text", help="Raw text to analyze")
    _add_meta_args(p_ext, None)
    _add_scope_args(p_ext)
    p_ext.set_defaults(func=cmd_extract)

    p_sub = sub.add_parser("submit-job", help="Register a large text file for paced background extraction")
    p_sub.add_argument("--input", required=True, help="Path to a UTF-8 text file")
    _add_meta_args(p_sub, "background_upload")
    p_sub.set_defaults(func=cmd_submit_job)

    p_tick = sub.add_parser("tick", help="Process one chunk of the next pending job")
    p_tick.set_defaults(func=cmd_tick)

    p_run = sub.add_parser("run-scheduler", help="Run the background scheduler")
    p_run.add_argument("--ticks", type=int, default=None, help="Run N ticks back to back and exit")
    p_run.set_defaults(func=cmd_run_scheduler)

    p_jobs = sub.add_parser("jobs", help="List background jobs")
    p_jobs.set_defaults(func=cmd_jobs)

    p_js = sub.add_parser("job-status", help="Show one background job")
    p_js.add_argument("--job-id", required=True)
    p_js.set_defaults(func=cmd_job_status)

    p_search = sub.add_parser("search", help="Search stored people, newest first")
    p_search.add_argument("--text", help="Matches name, email, company or position")
    p_search.add_argument("--company")
    p_search.add_argument("--position")
    p_search.add_argument("--status", choices=["pending", "processed", "failed"])
    p_search.add_argument("--batch-id")
    p_search.add_argument("--duplicates-only", action="store_true", help="User scope: only records also in the shared corpus")
    p_search.add_argument("--limit", type=int, default=50)
    p_search.add_argument("--offset", type=int, default=0)
    _add_scope_args(p_search)
    p_search.set_defaults(func=cmd_search)

    p_del = sub.add_parser("delete-batch", help="Delete every record of a batch")
    p_del.add_argument("--batch-id", required=True)
    _add_scope_args(p_del)
    p_del.set_defaults(func=cmd_delete_batch)

    p_stats = sub.add_parser("stats", help="Record statistics for a scope")
    _add_scope_args(p_stats)
    p_stats.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
