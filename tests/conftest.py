"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Optional

import pytest

from tracker.config import Config
from tracker.models import ApplicationRecord, Message, SideEffectResult, Thread

HEADERS = [
    "Progress",
    "Role",
    "Company",
    "Term",
    "Location",
    "@ Recruiters?",
    "First Round",
    "Second Round",
    "Third Round",
    "Thank You Email?",
    "Offer",
    "Date Applied",
    "Platform",
]


class FakeTable:
    """In-memory stand-in for a tracker sheet."""

    def __init__(self, rows: Optional[list[list[Any]]] = None, validation=None, fail_validation=False):
        self.rows = [list(r) for r in (rows if rows is not None else [list(HEADERS)])]
        self.validation = validation
        self.fail_validation = fail_validation
        self.backgrounds: dict[tuple[int, int], Optional[str]] = {}
        self.writes: list[tuple[int, int, Any]] = []
        self.appended: list[list[Any]] = []
        self.hidden: set[int] = set()
        self.fail_append = False

    def last_row(self) -> int:
        return len(self.rows)

    def last_column(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def get_values(self, row, col, num_rows, num_cols):
        block = []
        for r in range(row - 1, row - 1 + num_rows):
            source = self.rows[r] if r < len(self.rows) else []
            block.append([source[c] if c < len(source) else "" for c in range(col - 1, col - 1 + num_cols)])
        return block

    def set_value(self, row, col, value):
        while len(self.rows) < row:
            self.rows.append([])
        cells = self.rows[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = value
        self.writes.append((row, col, value))

    def set_backgrounds(self, row, colors):
        for col, color in colors.items():
            self.backgrounds[(row, col)] = color

    def validation_values(self, row, col):
        if self.fail_validation:
            raise RuntimeError("validation unavailable")
        return self.validation

    def append_row(self, values):
        if self.fail_append:
            raise RuntimeError("append failed")
        self.rows.append(list(values))
        self.appended.append(list(values))
        return len(self.rows)

    def hide_column(self, col):
        self.hidden.add(col)

    def cell(self, row, col):
        cells = self.rows[row - 1]
        return cells[col - 1] if col - 1 < len(cells) else ""

    def thread_ids(self, col=14):
        return [self.cell(r, col) for r in range(2, len(self.rows) + 1) if self.cell(r, col)]


class FakeLog:
    def __init__(self):
        self.messages: list[str] = []

    def append(self, message: str) -> SideEffectResult:
        self.messages.append(message)
        return SideEffectResult.succeeded()


class FakeSource:
    def __init__(self, threads: list[Thread], fail_labels: bool = False):
        self.threads = threads
        self.fail_labels = fail_labels
        self.queries: list[str] = []
        self.labelled: list[tuple[str, str]] = []

    def search(self, query: str) -> list[Thread]:
        self.queries.append(query)
        return list(self.threads)

    def add_label(self, thread_id: str, name: str) -> SideEffectResult:
        if self.fail_labels:
            return SideEffectResult.skipped("label service down")
        self.labelled.append((thread_id, name))
        return SideEffectResult.succeeded()


def make_row(
    role="Unknown",
    company="Unknown",
    term="Spring 2026",
    location="Not Specified",
    date_applied="2026-01-05",
    thread_id=None,
    progress="In Progress",
    **yes_no,
) -> list[str]:
    record = ApplicationRecord(
        progress=progress,
        role=role,
        company=company,
        term=term,
        location=location,
        date_applied=date_applied,
        thread_id=thread_id,
        **yes_no,
    )
    row = record.to_row(Config(spreadsheet_id="test-sheet").columns)
    if thread_id is None:
        row = row[:13]
    return row


@pytest.fixture
def config() -> Config:
    return Config(spreadsheet_id="test-sheet")


@pytest.fixture
def table() -> FakeTable:
    return FakeTable([list(HEADERS) + ["Thread ID"]])


@pytest.fixture
def activity() -> FakeLog:
    return FakeLog()


@pytest.fixture
def acme_message() -> Message:
    return Message(
        id="m1",
        subject="Application received – Acme – Software Engineer Intern",
        body="Hi Sam,\nThanks for applying.\nLocation: Austin, TX\nThis is a Summer 2026 internship.",
        sender="Acme Careers <careers@acme.com>",
    )
