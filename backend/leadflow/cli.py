"""Command line entry points for the batch jobs and the lead import."""

import argparse
import sys

import structlog

from leadflow.config import get_settings
from leadflow.database import SessionLocal
from leadflow.logging_config import configure_logging
from leadflow.services.importer import MissingColumnsError, import_csv
from leadflow.workers.follow_up import cleanup_stale_leads, send_follow_ups
from leadflow.workers.initial_outreach import send_initial_emails
from leadflow.workers.replies import process_replies

logger = structlog.get_logger()

JOBS = {
    "initial_outreach": send_initial_emails,
    "follow_up": send_follow_ups,
    "replies": process_replies,
    "cleanup": cleanup_stale_leads,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="leadflow", description="Outreach batch jobs and lead import")
    parser.add_argument("--log-level", default="INFO", help="Logging level (e.g. DEBUG, INFO, WARNING)")
    subcommands = parser.add_subparsers(dest="command", required=True)

    run = subcommands.add_parser("run", help="Run one batch job now")
    run.add_argument("job", choices=sorted(JOBS))

    imp = subcommands.add_parser("import-leads", help="Import leads from a CSV export")
    imp.add_argument("csv_path", help="CSV file with First Name, Email and Last Service columns")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(debug=settings.debug, level=args.log_level)

    if args.command == "import-leads":
        with SessionLocal() as session:
            try:
                summary = import_csv(args.csv_path, session)
            except (MissingColumnsError, FileNotFoundError) as e:
                logger.error("import_failed", path=args.csv_path, error=str(e))
                return 1
        for error in summary.errors:
            logger.warning("import_row_rejected", detail=error)
        return 0

    run = JOBS[args.job](settings=settings)
    if run is None:
        return 0  # skipped: another run holds the lock
    return 0 if run.status == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
