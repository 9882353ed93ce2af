#!/usr/bin/env python3
"""
Backtrack - Threema Backup Reconciliation

Reorganizes an unpacked Threema backup in place: attachment files are moved
into one folder per conversation, renamed after the time their message was
sent and given their real extension; message texts are collected into
transcripts; thumbnails and duplicates are removed.

Usage:
    backtrack.py [source_dir] [--recursive] [--config FILE] [--verbose]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add current directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from common import __version__
from common.config import DEFAULT_CONFIG_FILENAME, load_config
from common.logging_config import (
    add_run_log_handler,
    remove_run_log_handler,
    setup_logging,
)
from common.processing import print_processing_summary
from processors.threema.processor import SourceDirectoryError, ThreemaProcessor

logger = logging.getLogger("backtrack")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backtrack",
        description="Reorganize an unpacked Threema backup: sort attachments into "
        "conversation folders, name them by message time, extract texts and remove duplicates.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Process the backup in the current directory
  %(prog)s

  # Process a backup including its sub-folders (e.g. a second run)
  %(prog)s /path/to/backup --recursive

  # Use a specific configuration file (default: ./{DEFAULT_CONFIG_FILENAME})
  %(prog)s /path/to/backup --config my.config --verbose
        """,
    )
    parser.add_argument(
        "source_dir",
        nargs="?",
        default=".",
        help="Folder containing the unpacked backup (default: current directory)",
    )
    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Also process files in sub-folders",
    )
    parser.add_argument(
        "--config",
        "-c",
        metavar="FILE",
        help=f"JSON configuration file (default: ./{DEFAULT_CONFIG_FILENAME} if present)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show log messages of the configured level on the console",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    # Console logging first so configuration problems are visible
    setup_logging(verbose=args.verbose)
    config = load_config(Path(args.config) if args.config else None)
    setup_logging(verbose=args.verbose, level_name=config.minimum_level_for_logging)

    source_dir = Path(args.source_dir).resolve()
    run_log = None
    if config.log_to and source_dir.is_dir():
        run_log = add_run_log_handler(
            str(source_dir / config.log_to), config.minimum_level_for_logging
        )

    try:
        processor = ThreemaProcessor(config)
        if not processor.detect(source_dir):
            logger.warning(
                f"'{source_dir}' does not look like an unpacked {processor.get_name()} backup "
                "(no contacts.csv or message_*.csv); processing anyway"
            )

        try:
            summary = processor.process(str(source_dir), recursive=args.recursive)
        except SourceDirectoryError as e:
            logger.critical(str(e))
            return 1
        except KeyboardInterrupt:
            print()
            print("Processing interrupted by user")
            return 130

        print_processing_summary(
            success=summary.renamed + summary.unchanged,
            failed=summary.failures,
            total=summary.files_found,
            output_dir=str(source_dir),
            extra_stats=summary.extra_stats(),
        )
        return 0

    finally:
        remove_run_log_handler(run_log)


if __name__ == "__main__":
    sys.exit(main())
