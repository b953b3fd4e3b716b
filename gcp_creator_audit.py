#!/usr/bin/env python3

import argparse
import sys
from typing import Optional

from creatoraudit.config import load_config_yaml
from creatoraudit.console import err, info, ok
from creatoraudit.gcloud import DEFAULT_LOG_FRESHNESS, Gcloud
from creatoraudit.progress import ProgressReporter
from creatoraudit.report import CsvReport, atomic_write_json, build_summary
from creatoraudit.run import (
    DEFAULT_LOG_VIEWER_ROLE,
    DEFAULT_PROPAGATION_WAIT,
    RunContext,
    RunOptions,
    run_audit,
)


DEFAULT_OUTPUT = "output.csv"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="gcp-creator-audit",
        description=(
            "Recover the original creator (from audit logs) and the current owners (from IAM) of every "
            "project in a Google Cloud organization and write them to a CSV file (uses your current gcloud login)."
        ),
        epilog=(
            "Exit status: 0 on completion (also when no projects are found), 1 when no gcloud identity is active, "
            "the config file is invalid or the project listing fails, 2 on argument errors, 130 when interrupted. "
            "Example: gcp-creator-audit --org 1093290206792 --out my_audit.csv"
        ),
    )
    ap.add_argument("-o", "--org", help="The Google Cloud Organization ID (e.g., 123456789). Required.")
    ap.add_argument(
        "-f",
        "--out",
        "--file",
        dest="out",
        help=f"Output CSV filename (default: {DEFAULT_OUTPUT}).",
    )
    ap.add_argument("--out-json", help="Also write a JSON run summary to this path.")
    ap.add_argument("--config", help="YAML file with defaults for any of the options below (flags win).")
    ap.add_argument("--filter", help="gcloud filter expression applied to the project listing.")
    ap.add_argument(
        "--propagation-wait",
        type=int,
        help=f"Seconds to let the log-viewer grant propagate before retrying denied projects (default: {DEFAULT_PROPAGATION_WAIT}).",
    )
    ap.add_argument(
        "--role",
        dest="log_viewer_role",
        help=f"Role granted at organization level when log access is denied (default: {DEFAULT_LOG_VIEWER_ROLE}).",
    )
    ap.add_argument(
        "--log-freshness",
        help=f"How far back to search audit logs for the project creation event (default: {DEFAULT_LOG_FRESHNESS}).",
    )
    ap.add_argument(
        "--no-self-heal",
        dest="self_heal",
        action="store_false",
        default=None,
        help="Never grant the log-viewer role; denied projects are still retried once.",
    )
    ap.add_argument("-q", "--quiet", action="store_true", help="Hide the progress bar and countdown.")
    return ap


def _pick(args: argparse.Namespace, config: dict, key: str, default):
    value = getattr(args, key, None)
    if value is not None:
        return value
    return config.get(key, default)


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    config = load_config_yaml(args.config) if args.config else {}

    org_id = (_pick(args, config, "org", "") or "").strip()
    if not org_id:
        ap.error("Organization ID (--org) is required.")
    out_path = _pick(args, config, "out", DEFAULT_OUTPUT)
    out_json = _pick(args, config, "out_json", None)
    propagation_wait = _pick(args, config, "propagation_wait", DEFAULT_PROPAGATION_WAIT)
    if propagation_wait < 0:
        ap.error("--propagation-wait must be >= 0.")
    options = RunOptions(
        propagation_wait=propagation_wait,
        log_viewer_role=_pick(args, config, "log_viewer_role", DEFAULT_LOG_VIEWER_ROLE),
        log_freshness=_pick(args, config, "log_freshness", DEFAULT_LOG_FRESHNESS),
        self_heal=_pick(args, config, "self_heal", True),
        show_progress=not args.quiet,
    )

    gcloud = Gcloud()

    print(info("Detecting user identity..."), file=sys.stderr)
    account = gcloud.active_account()
    if not account:
        print(err("Could not determine active user. Please run `gcloud auth login`."), file=sys.stderr)
        return 1

    print(info(f"Authenticated as: {account}"), file=sys.stderr)
    print(info(f"Target Org ID:    {org_id}"), file=sys.stderr)
    print(info(f"Output File:      {out_path}"), file=sys.stderr)

    try:
        report = CsvReport(out_path).open()
    except OSError as exc:
        print(err(f"Unable to write `{out_path}`: {exc}"), file=sys.stderr)
        return 1

    with report:
        print(info("Fetching project list..."), file=sys.stderr)
        try:
            projects = gcloud.list_projects(_pick(args, config, "filter", None))
        except RuntimeError as exc:
            print(err(f"Unable to list projects: {exc}"), file=sys.stderr)
            return 1

        if not projects:
            print(info("No projects found."), file=sys.stderr)
            return 0

        print(info(f"Found {len(projects)} projects. Starting scan..."), file=sys.stderr)

        ctx = RunContext(
            org_id=org_id,
            account=account,
            gcloud=gcloud,
            report=report,
            progress=ProgressReporter(total=len(projects), enabled=options.show_progress),
            options=options,
        )
        try:
            summary = run_audit(ctx, projects)
        except KeyboardInterrupt:
            print(
                "\n" + err(f"Interrupted. {report.rows} of {len(projects)} rows were saved to: {out_path}"),
                file=sys.stderr,
            )
            return 130

    if out_json:
        atomic_write_json(
            out_json,
            build_summary(
                organization=org_id,
                account=account,
                results=ctx.results,
                summary=summary.to_dict(),
                extra={"output_csv": out_path},
            ),
        )

    print("\n\n" + ok(f"Done! Output saved to: {out_path}"), file=sys.stderr)
    print(
        info(
            f"Rows: {summary.rows_written}/{summary.total_projects} | creators found: {summary.creators_resolved} | "
            f"retried: {summary.retried} | permission fix triggered: {'yes' if summary.fix_triggered else 'no'}"
        ),
        file=sys.stderr,
    )
    if out_json:
        print(info(f"JSON summary saved to: {out_json}"), file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
