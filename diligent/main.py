# diligent/main.py
import argparse
import dataclasses
import json
import sys
from typing import List, Optional

import requests

import diligent.config as config
from diligent.audit import persist_report, write_report
from diligent.bedrock import BedrockClient
from diligent.catalog import checks_for, detect_os, load_catalog
from diligent.driver import run_checks
from diligent.engine import Analyzer
from diligent.errors import DiligentError
from diligent.logger import get_logger
from diligent.models import Report
from diligent.oracle import BedrockJudge
from diligent.store import ReportStore
from diligent.tools.render import render_tree

logger = get_logger(__name__)


def _settings(args: argparse.Namespace) -> config.Settings:
    """Apply CLI overrides on top of the environment-derived settings."""
    overrides = {}
    for field, attr in (
        ("catalog_path", "catalog"),
        ("report_path", "output"),
        ("db_path", "db"),
        ("max_followups", "max_followups"),
        ("workers", "workers"),
        ("command_timeout", "timeout"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            overrides[field] = value
    return dataclasses.replace(config.settings, **overrides)


def _analyzer(s: config.Settings, os_name: str) -> Analyzer:
    client = BedrockClient.from_settings(s)
    client.require_credentials()
    judge = BedrockJudge.from_settings(s, os_name, client=client)
    return Analyzer.from_settings(judge, s)


# ======================================================
# Subcommands
# ======================================================

def cmd_scan(args: argparse.Namespace) -> int:
    s = _settings(args)
    os_name = args.os or detect_os()

    # Preconditions: nothing runs unless all of these hold
    analyzer = _analyzer(s, os_name)
    store = None if args.no_db else ReportStore(s.db_path)
    checks = checks_for(load_catalog(s.catalog_path), os_name)

    logger.info("scan_started", os_name=os_name, checks=len(checks), model_id=s.bedrock_model_id)
    report = run_checks(checks, analyzer, workers=s.workers, os_name=os_name)
    persist_report(report, s.report_path, store)

    print(render_tree(report))
    print(f"\n{len(report.items)} checks, {report.flagged_count()} flagged. Report: {s.report_path}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    s = _settings(args)
    os_name = args.os or detect_os()
    item = _analyzer(s, os_name).analyze(args.prompt, args.command, 0)
    print(item.model_dump_json(indent=2, exclude_none=True))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("diligent.server:app", host=args.host, port=args.port)
    return 0


def cmd_remote_scan(args: argparse.Namespace) -> int:
    url = args.url.rstrip("/") + "/scan"
    logger.info("remote_scan_started", url=url)
    try:
        r = requests.post(url, timeout=args.request_timeout)
    except requests.RequestException as e:
        logger.error("remote_scan_failed", url=url, error=str(e))
        return 1
    if not r.ok:
        logger.error("remote_scan_failed", url=url, status=r.status_code, body=r.text)
        return 1

    report = Report.model_validate(r.json())
    write_report(args.output, report)
    print(render_tree(report))
    print(f"\n{len(report.items)} checks, {report.flagged_count()} flagged. Report: {args.output}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    store = ReportStore(_settings(args).db_path)
    if args.id is not None:
        row = store.get(args.id)
        if row is None:
            print(f"no report with id {args.id}")
            return 1
        print(json.dumps(json.loads(row["content"]), indent=2))
        return 0

    for row in store.recent(args.limit):
        print(f'{row["id"]:>5}  {row["date"]}  {row["size"]} bytes')
    return 0


# ======================================================
# Parser
# ======================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diligent",
        description="Run host diagnostics and let an LLM judge the output.",
    )
    sub = parser.add_subparsers(dest="cmd")

    scan = sub.add_parser("scan", help="run the full check catalog (default)")
    scan.add_argument("--os", help="catalog to use: macOS, Linux or Windows (default: detected)")
    scan.add_argument("--catalog", help="YAML catalog replacing the built-in one")
    scan.add_argument("--output", help="report file path")
    scan.add_argument("--db", help="SQLite report store path")
    scan.add_argument("--no-db", action="store_true", help="do not store the report in the database")
    scan.add_argument("--max-followups", type=int)
    scan.add_argument("--workers", type=int, help="checks analyzed in parallel")
    scan.add_argument("--timeout", type=float, help="per-command timeout in seconds")
    scan.set_defaults(func=cmd_scan)

    check = sub.add_parser("check", help="analyze a single ad-hoc command")
    check.add_argument("--command", required=True)
    check.add_argument("--prompt", required=True)
    check.add_argument("--os")
    check.add_argument("--max-followups", type=int)
    check.add_argument("--timeout", type=float)
    check.set_defaults(func=cmd_check)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    remote = sub.add_parser("remote-scan", help="trigger a scan on a running agent")
    remote.add_argument("--url", required=True, help="base URL, e.g. http://host:8000")
    remote.add_argument("--output", default="report.json")
    remote.add_argument("--request-timeout", type=float, default=900.0)
    remote.set_defaults(func=cmd_remote_scan)

    history = sub.add_parser("history", help="list stored reports")
    history.add_argument("--db")
    history.add_argument("--limit", type=int, default=10)
    history.add_argument("--id", type=int, help="print one stored report")
    history.set_defaults(func=cmd_history)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd is None:
        args = parser.parse_args(["scan"])

    try:
        return args.func(args)
    except DiligentError as e:
        logger.error("run_aborted", error_type=type(e).__name__, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
