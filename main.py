# main.py
import argparse
import logging
import sys
from pathlib import Path

# --- Setup Logging ---
# Configure logging BEFORE importing other project modules so their
# module level loggers pick up the handlers.
from sfbulk.config.logging_config import LOG_LEVEL, setup_logging

setup_logging(LOG_LEVEL)

from sfbulk.config.settings import load_settings  # noqa: E402
from sfbulk.core.exceptions import ConfigError, SfBulkError  # noqa: E402
from sfbulk.services.orchestrator import BulkExportService  # noqa: E402

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_DEGRADED = 2


def parse_arguments(argv=None):
    """Parses command-line arguments."""
    parser = argparse.ArgumentParser(
        description=
        "Generate and download Silverfin PDF exports for every company of a firm.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter)

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        metavar='DIR',
        help="Directory for the PDFs (default from EXPORT_OUTPUT_DIR).")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        metavar='N',
        help="Companies processed concurrently per batch (default from settings).")
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        metavar='SECONDS',
        help="Seconds between export job status polls (default from settings).")
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        metavar='N',
        help="Polls before an export job is considered timed out (default from settings).")
    parser.add_argument(
        "--depth",
        type=int,
        default=None,
        metavar='N',
        help="How many closed fiscal years to export per company, max 5 (default from settings).")
    parser.add_argument(
        "--min-closed-periods",
        type=int,
        default=None,
        metavar='N',
        help="Skip companies with fewer closed fiscal years than this (default from settings).")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        metavar='N',
        help="Only process the first N discovered companies.")

    args = parser.parse_args(argv)
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be at least 1")
    return args


def main(argv=None) -> int:
    """Main execution function. Returns the process exit code."""
    args = parse_arguments(argv)

    try:
        settings = load_settings(
            export_overrides={
                "output_dir": args.output_dir,
                "batch_size": args.batch_size,
                "poll_interval": args.poll_interval,
                "max_poll_attempts": args.max_attempts,
                "period_depth": args.depth,
                "min_closed_periods": args.min_closed_periods,
            })
    except ConfigError as ce:
        logger.critical(f"Configuration error: {ce}")
        return EXIT_FATAL

    service = None
    exit_code = EXIT_OK
    try:
        service = BulkExportService.from_settings(settings, limit=args.limit)
        report = service.run()
        report.log(logger)
        if not report.succeeded:
            exit_code = EXIT_DEGRADED
    except SfBulkError as fe:
        logger.critical(f"Bulk export aborted: {fe}", exc_info=True)
        exit_code = EXIT_FATAL
    except Exception as e:
        logger.critical(f"An unexpected error occurred during the export run: {e}",
                        exc_info=True)
        exit_code = EXIT_FATAL
    finally:
        if service:
            service.close()
        logger.info(f"Bulk export finished with exit code {exit_code}.")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
