"""Main pipeline orchestration for the application tracker."""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Protocol

from filelock import FileLock, Timeout

from .config import Config, get_config, load_config
from .gmail_client import GmailSource, build_gmail_query
from .maintenance import cleanup_existing_data, validate_column_data, verify_sheet_layout
from .models import Action, SideEffectResult, Thread
from .parser import build_candidate
from .reconcile import Reconciler
from .sheets import (
    ActivityLog,
    SheetNotFoundError,
    SheetsActivityLog,
    SheetsTable,
    TrackerTable,
    ensure_thread_id_column,
)
from .state import StateStore

LOCK_FILE = Path("/tmp/inbox_app_tracker.lock")
LOG_DIR = Path(__file__).parent.parent / "logs"


class MessageSource(Protocol):
    def search(self, query: str) -> list[Thread]: ...

    def add_label(self, thread_id: str, name: str) -> SideEffectResult: ...


def setup_logging() -> None:
    """Configure logging for the application."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "app.log"

    config = get_config()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout),
        ],
    )


def run_pipeline(
    config: Config,
    source: MessageSource,
    table: TrackerTable,
    activity: ActivityLog,
    state: StateStore,
) -> dict:
    """Reconcile every matching inbox thread into the tracker."""
    logger = logging.getLogger(__name__)

    stats = {
        "threads_found": 0,
        "inserted": 0,
        "updated": 0,
        "skipped": 0,
        "recovered": 0,
        "labels_failed": 0,
        "errors": 0,
    }

    logger.info("Starting application tracker pipeline")

    thread_col = ensure_thread_id_column(table, config)
    if thread_col != config.columns.thread_id:
        logger.warning(f"Thread ID column is {thread_col}, not {config.columns.thread_id}; using {thread_col}")
        columns = config.columns.model_copy(update={"thread_id": thread_col})
        config = config.model_copy(update={"columns": columns})

    reconciler = Reconciler(table, config)
    rows = reconciler.load()
    logger.info(f"Indexed {rows} existing rows")

    state.init_db()
    since = state.get_property(config.watermark_key)
    started_at = int(time.time())

    threads = source.search(build_gmail_query(config, since))
    stats["threads_found"] = len(threads)

    handled = set()
    for thread in threads:
        if thread.id in handled:
            continue
        handled.add(thread.id)

        message = thread.latest
        if message is None:
            logger.debug(f"Thread {thread.id} has no messages")
            continue

        try:
            candidate = build_candidate(message, thread.id, config)
            activity.append(
                f'Processing: Role="{candidate.role}", Company="{candidate.company}", '
                f'Term="{candidate.term}", Location="{candidate.location}"'
            )

            outcome = reconciler.reconcile(candidate)
            stats[outcome.action.value] += 1

            if outcome.action == Action.INSERTED:
                if outcome.recovered:
                    stats["recovered"] += 1
                    activity.append(f"Added (recovered) - thread {thread.id}")
                else:
                    activity.append(f'Added "{candidate.role}" at {candidate.company} (thread {thread.id})')
            elif outcome.matched_by == "thread_id":
                activity.append(f"Updated by ThreadID {thread.id} - {outcome.describe()}")
            else:
                activity.append(f"Updated by Key ({candidate.role}|{candidate.company}) - {outcome.describe()}")

            if not source.add_label(thread.id, config.processed_label).ok:
                stats["labels_failed"] += 1

        except Exception as e:
            logger.error(f"Error processing thread {thread.id}: {e}")
            stats["errors"] += 1

    if stats["inserted"] == 0:
        activity.append("No new unique applications added (all matched existing by ThreadID or Key).")

    if stats["errors"] == 0:
        state.set_property(config.watermark_key, str(started_at))
    else:
        logger.warning("Errors during run; watermark left unchanged")

    logger.info(
        f"Pipeline complete: {stats['threads_found']} threads, "
        f"{stats['inserted']} added, {stats['updated']} updated, "
        f"{stats['skipped']} unchanged, {stats['errors']} errors"
    )

    return stats


def run_maintenance(command: str, config: Config, table: TrackerTable, activity: ActivityLog) -> int:
    """Run a maintenance command; non-zero when it found problems."""
    if command == "cleanup":
        cleanup_existing_data(table, activity, config)
        return 0
    if command == "validate":
        return 1 if validate_column_data(table, activity, config) else 0
    if command == "verify-layout":
        report = verify_sheet_layout(table, activity, config)
        return 0 if all(want == actual for want, actual in report.values()) else 1
    raise ValueError(f"Unknown command: {command}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Log job application confirmations from Gmail to Google Sheets")
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "cleanup", "validate", "verify-layout"],
        help="what to do (default: run)",
    )
    parser.add_argument("--config", type=Path, default=None, help="path to config.yaml")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point with concurrency protection."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logging()
    except FileNotFoundError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logger = logging.getLogger(__name__)

    try:
        with FileLock(LOCK_FILE, timeout=10):
            logger.info("Acquired lock, starting")

            table = SheetsTable.open(config)
            activity = SheetsActivityLog(table.service, config.spreadsheet_id, config.log_sheet_name)

            if args.command != "run":
                return run_maintenance(args.command, config, table, activity)

            stats = run_pipeline(
                config, GmailSource(), table, activity, StateStore(config.state_db_path)
            )
            return 0 if stats["errors"] == 0 else 1

    except Timeout:
        logger.warning("Could not acquire lock - another instance is running")
        return 0

    except SheetNotFoundError as e:
        logger.error(f"{e}; aborting before any mail is read")
        return 1

    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
