"""Insert-or-merge of extracted applications into the tracker sheet.

For each candidate the engine looks for an existing row in this order:

1. same thread id
2. same normalized role + company (known roles only)
3. unknown role, same company and date applied

A matched row is patched field by field, only moving placeholders toward
observed values. Anything unmatched is appended as a new row. The in-memory
index is updated after every decision so a single run never appends the same
application twice.
"""

import logging
from typing import Optional

from .config import Config
from .dedupe import DedupIndex
from .formatting import highlight_directives
from .models import (
    REFINABLE_FIELDS,
    YES_NO_FIELDS,
    Action,
    ApplicationRecord,
    ReconcileOutcome,
    SideEffectResult,
)
from .sheets import TrackerTable

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "progress": "Progress",
    "role": "Role",
    "company": "Company",
    "term": "Term",
    "location": "Location",
    "date_applied": "Date Applied",
    "thread_id": "ThreadID",
}


def coerce_progress(desired: str, accepted: Optional[list[str]], aliases: list[str]) -> str:
    """Pick the spelling of ``desired`` the sheet's dropdown accepts.

    A dropdown that only lists a misspelled alias gets the alias. An unreadable
    or absent dropdown, or one listing neither spelling, gets ``desired``.
    """
    if not accepted:
        return desired
    if desired in accepted:
        return desired
    for alias in aliases:
        if alias in accepted:
            return alias
    return desired


def merge_fields(
    existing: ApplicationRecord,
    candidate: ApplicationRecord,
    config: Config,
    progress_value: Optional[str] = None,
) -> dict[str, str]:
    """Compute the field writes that refine ``existing`` with ``candidate``.

    Returns ``{field: new_value}`` in column order, leaving out any field
    whose new value equals the stored one. Hand-tracked Yes/No columns and
    the platform are never part of the result.
    """
    unknown = config.unknown.lower()
    updates: dict[str, str] = {}

    def prev(name: str) -> str:
        return (getattr(existing, name) or "").strip()

    def new(name: str) -> str:
        return (getattr(candidate, name) or "").strip()

    def propose(name: str, value: str) -> None:
        if not value or value == prev(name):
            return
        # A fill-in default never replaces a value that is already there.
        if name in candidate.placeholders and prev(name):
            return
        updates[name] = value

    if prev("progress").lower() != config.progress_value.lower():
        propose("progress", progress_value or config.progress_value)

    old_role, new_role = prev("role"), new("role")
    if (
        not old_role
        or old_role.lower() == unknown
        or (
            new_role.lower() != unknown
            and len(new_role) > len(old_role)
            and new_role.lower().startswith(old_role.lower())
        )
    ):
        if new_role.lower() != unknown or not old_role:
            propose("role", new_role)

    old_company, new_company = prev("company"), new("company")
    if not old_company or old_company.lower() == unknown or (new_company.lower() != unknown and new_company != old_company):
        if new_company.lower() != unknown or not old_company:
            propose("company", new_company)

    old_term, new_term = prev("term"), new("term")
    if not old_term or old_term == config.default_term or (new_term != old_term and new_term.lower() != unknown):
        propose("term", new_term)

    old_location, new_location = prev("location"), new("location")
    if (
        not old_location
        or old_location == config.default_location
        or (new_location != old_location and new_location.lower() != config.default_location.lower())
    ):
        propose("location", new_location)

    old_date, new_date = prev("date_applied"), new("date_applied")
    if not old_date or new_date != old_date:
        propose("date_applied", new_date)

    if not existing.thread_id and candidate.thread_id:
        propose("thread_id", candidate.thread_id)

    return {name: updates[name] for name in REFINABLE_FIELDS if name in updates}


def describe_changes(updates: dict[str, str]) -> list[str]:
    """Activity-log phrases for the fields written."""
    changes = []
    for name, value in updates.items():
        if name == "thread_id":
            changes.append("ThreadID set")
        else:
            changes.append(f"{FIELD_LABELS[name]} -> {value}")
    return changes


class Reconciler:
    """Applies candidates to a tracker table, one row mutation at a time."""

    def __init__(self, table: TrackerTable, config: Config):
        self.table = table
        self.config = config
        self.columns = config.columns
        self.index = DedupIndex(config.unknown)
        self.vocabulary: Optional[SideEffectResult] = None
        self._progress_value: Optional[str] = None

    def load(self) -> int:
        """Rebuild the index from every data row; returns the row count."""
        last_row = self.table.last_row()
        if last_row <= 1:
            self.index = DedupIndex(self.config.unknown)
            return 0
        values = self.table.get_values(2, 1, last_row - 1, self.columns.width)
        rows = [(i + 2, ApplicationRecord.from_row(row, self.columns)) for i, row in enumerate(values)]
        self.index = DedupIndex.build(rows, self.config.unknown)
        return len(rows)

    def read_record(self, row: int) -> Optional[ApplicationRecord]:
        """The record stored at ``row``, or None outside the data range."""
        if row < 2 or row > self.table.last_row():
            return None
        values = self.table.get_values(row, 1, 1, self.columns.width)
        if not values:
            return None
        return ApplicationRecord.from_row(values[0], self.columns)

    def progress_value(self) -> str:
        """The progress spelling to write, resolved once per run."""
        if self._progress_value is None:
            accepted = None
            try:
                accepted = self.table.validation_values(2, self.columns.progress)
                self.vocabulary = SideEffectResult.succeeded()
            except Exception as e:
                self.vocabulary = SideEffectResult.skipped(f"could not read progress validation: {e}")
                logger.debug(self.vocabulary.reason)
            self._progress_value = coerce_progress(
                self.config.progress_value, accepted, self.config.progress_aliases
            )
        return self._progress_value

    def apply_formatting(self, row: int, record: ApplicationRecord) -> None:
        self.table.set_backgrounds(row, highlight_directives(record, self.config))

    def reconcile(self, candidate: ApplicationRecord) -> ReconcileOutcome:
        """Insert ``candidate`` or merge it into the row it duplicates."""
        thread_id = candidate.thread_id

        row = self.index.lookup_thread(thread_id)
        if row is not None:
            existing = self.read_record(row)
            if existing is not None and existing.thread_id == thread_id:
                return self._update(row, existing, candidate, "thread_id")
            logger.warning(f"Thread {thread_id} indexed at row {row} but not found there; appending")
            self.index.forget_thread(thread_id)
            return self._insert(candidate, recovered=True)

        if self.index.is_known_role(candidate.role):
            matched_by = "key"
            row = self.index.lookup_key(candidate.role, candidate.company)
        else:
            matched_by = "unknown_key"
            row = self.index.lookup_unknown(candidate.company, candidate.date_applied)

        if row is not None:
            existing = self.read_record(row)
            if existing is not None:
                return self._update(row, existing, candidate, matched_by)
            logger.warning(f"Key match points at missing row {row}; appending")

        return self._insert(candidate)

    def _update(
        self, row: int, existing: ApplicationRecord, candidate: ApplicationRecord, matched_by: str
    ) -> ReconcileOutcome:
        progress = None
        if (existing.progress or "").strip().lower() != self.config.progress_value.lower():
            progress = self.progress_value()
        updates = merge_fields(existing, candidate, self.config, progress)

        for name, value in updates.items():
            self.table.set_value(row, getattr(self.columns, name), value)

        stored = self.read_record(row) or existing.model_copy(update=updates)
        self.apply_formatting(row, stored)
        self.index.register(row, stored)

        changes = describe_changes(updates)
        action = Action.UPDATED if updates else Action.SKIPPED
        logger.info(f"Row {row} matched by {matched_by}: {', '.join(changes) or 'no field changes'}")
        return ReconcileOutcome(action=action, row=row, matched_by=matched_by, changes=changes)

    def _insert(self, candidate: ApplicationRecord, recovered: bool = False) -> ReconcileOutcome:
        fill = {name: "No" for name in YES_NO_FIELDS}
        fill.update(progress=self.progress_value(), platform=self.config.platform)
        record = candidate.model_copy(update=fill)

        row = self.table.append_row(record.to_row(self.columns))
        self.apply_formatting(row, record)
        self.index.register(row, record)

        logger.info(f'Appended row {row}: "{record.role}" at {record.company} (thread {record.thread_id})')
        return ReconcileOutcome(action=Action.INSERTED, row=row, recovered=recovered)
