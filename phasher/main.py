#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main CLI entry point for the frame fingerprinting tool.
"""

import argparse
import faulthandler
import logging
import signal
import sqlite3
import sys
from pathlib import Path

from .config import (
    ConfigError, Mode, PipelineConfig, UniquePolicy,
    DEFAULT_BATCH_SIZE, DEFAULT_DB_TIMEOUT, DEFAULT_LOOKUP_WORKERS, default_workers,
)
from .jsonio import enable_json_logging
from .scanning.pipeline import Pipeline


def setup_logging(verbose: bool):
    """Configure logging for the CLI tool."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    logging.debug("Verbose logging enabled (DEBUG level).")


def install_stack_dump() -> bool:
    """Dump every thread's stack to stderr on SIGQUIT, for stuck pipelines.

    Returns False when the process has no signal or stderr file descriptor to
    dump to; the run continues without it.
    """
    if not hasattr(signal, "SIGQUIT"):
        return False
    stream = sys.__stderr__
    try:
        stream.fileno()
        faulthandler.register(signal.SIGQUIT, file=stream, all_threads=True, chain=False)
    except (AttributeError, ValueError, OSError, RuntimeError) as e:
        logging.debug("Stack dump on SIGQUIT unavailable: %s", e)
        return False
    return True


def create_parser():
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="phasher",
        description="Fingerprint numbered image frames and store or query them in SQLite",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Print fingerprints
  %(prog)s --show frames/clip1 frames/clip2

  # Store fingerprints, one key per directory
  %(prog)s --store --db hashes.db --keyfile KEY --procs 8 frames/*

  # Look up fingerprints of new frames
  %(prog)s --query --db hashes.db --json incoming/
        """
    )

    parser.add_argument("paths", nargs="+", help="Directories of <name>-<frame>.jpg images")

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--show", dest="mode", action="store_const", const=Mode.SHOW,
                      help="Print fingerprints of input images")
    mode.add_argument("--store", dest="mode", action="store_const", const=Mode.STORE,
                      help="Add fingerprints to the database")
    mode.add_argument("--query", dest="mode", action="store_const", const=Mode.QUERY,
                      help="Query the database for input matches")

    parser.add_argument("--procs", type=int, default=default_workers(),
                        help="Number of fingerprint worker threads (default: CPU count)")
    parser.add_argument("--db", type=Path,
                        help="SQLite database file (required for --store and --query)")
    parser.add_argument("--keyfile",
                        help="Read each directory's key from this filename in the directory")
    parser.add_argument("--dbtimeout", type=float, default=DEFAULT_DB_TIMEOUT,
                        help=f"Seconds to keep retrying a locked database (default: {DEFAULT_DB_TIMEOUT:g})")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                        help=f"Rows per store transaction (default: {DEFAULT_BATCH_SIZE})")
    parser.add_argument("--lookup-workers", type=int, default=DEFAULT_LOOKUP_WORKERS,
                        help=f"Concurrent lookups in query mode (default: {DEFAULT_LOOKUP_WORKERS})")
    parser.add_argument("--unique", choices=[p.value for p in UniquePolicy], default=UniquePolicy.TUPLE.value,
                        help="Uniqueness of stored rows for a new database: 'tuple' keeps changed "
                             "fingerprints of a frame, 'frame' keeps only the first (default: tuple)")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar on stderr")
    parser.add_argument("--json", action="store_true",
                        help="Output results as JSON lines instead of human-readable text")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose (DEBUG) output")
    return parser


def config_from_args(args) -> PipelineConfig:
    return PipelineConfig(
        mode=args.mode,
        paths=tuple(args.paths),
        db_path=args.db,
        key_file=args.keyfile,
        workers=args.procs,
        db_timeout=args.dbtimeout,
        batch_size=args.batch_size,
        lookup_workers=args.lookup_workers,
        unique_policy=UniquePolicy(args.unique),
        progress=args.progress,
    )


def _log_summary(mode: Mode, summary: dict):
    logging.info(
        "Scanned %d directories (%d failed); %d images emitted, %d skipped",
        summary["dirs_scanned"], summary["dirs_failed"], summary["files_emitted"], summary["files_skipped"],
    )
    logging.info("Fingerprinted %d images (%d failed)", summary["fingerprinted"], summary["fingerprint_failed"])
    if mode is Mode.STORE:
        logging.info(
            "Committed %d batches (%d failed): %d rows inserted, %d duplicates",
            summary["batches_committed"], summary["batches_failed"],
            summary["rows_inserted"], summary["rows_duplicate"],
        )
    elif mode is Mode.QUERY:
        logging.info(
            "Ran %d lookups: %d matched, %d failed",
            summary["lookups"], summary["lookups_matched"], summary["lookups_failed"],
        )


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # For JSON output, send logs to stderr and suppress info noise
    if args.json:
        enable_json_logging()
    else:
        setup_logging(args.verbose)
    install_stack_dump()

    logging.debug("Parsed arguments: %s", args)
    command = args.mode.value

    try:
        config = config_from_args(args)
        stats = Pipeline(config, as_json=args.json).run()
    except KeyboardInterrupt:
        if args.json:
            from .jsonio import error
            return error(command, "Operation interrupted by user", code=130)
        logging.warning("Operation interrupted by user.")
        return 130
    except (ConfigError, sqlite3.Error, OSError) as e:
        if args.json:
            from .jsonio import error
            return error(command, str(e), code=1)
        logging.error("%s", e)
        return 1
    except Exception as e:
        if args.json:
            from .jsonio import error
            debug_info = {"exception_type": type(e).__name__} if args.verbose else None
            return error(command, str(e), debug=debug_info, code=1)
        logging.error("Error occurred: %s", e, exc_info=args.verbose)
        return 1

    summary = stats.to_dict()
    if args.json:
        from .jsonio import success
        return success(command, summary)
    _log_summary(config.mode, summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
