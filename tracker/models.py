"""Data models for job application tracking."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .config import ColumnLayout

# Fields written from extracted mail, in merge order.
REFINABLE_FIELDS = ["progress", "role", "company", "term", "location", "date_applied", "thread_id"]

# Fields only a person edits.
YES_NO_FIELDS = ["recruiter_contacted", "round1", "round2", "round3", "thank_you_sent", "offer"]


def cell_text(value: Any) -> str:
    """Render a sheet cell as trimmed text, treating blanks as empty."""
    if value is None:
        return ""
    return str(value).strip()


class ApplicationRecord(BaseModel):
    """One tracked job application, as stored in a tracker row."""

    progress: str = "In Progress"
    role: str = "Unknown"
    company: str = "Unknown"
    term: str = "Spring 2026"
    location: str = "Not Specified"
    recruiter_contacted: str = "No"
    round1: str = "No"
    round2: str = "No"
    round3: str = "No"
    thank_you_sent: str = "No"
    offer: str = "No"
    date_applied: str = ""  # yyyy-MM-dd
    platform: str = "Email"
    thread_id: Optional[str] = None
    # Fields holding a fill-in default rather than a value read from mail.
    placeholders: set[str] = Field(default_factory=set, exclude=True)

    def to_row(self, columns: ColumnLayout) -> list[str]:
        """Convert to a spreadsheet row laid out per the column mapping."""
        row = [""] * columns.width
        for name, index in columns.model_dump().items():
            value = getattr(self, name)
            row[index - 1] = value if value is not None else ""
        return row

    @classmethod
    def from_row(cls, values: list[Any], columns: ColumnLayout) -> "ApplicationRecord":
        """Build a record from raw row values; missing cells read as empty."""
        data: dict[str, Any] = {}
        for name, index in columns.model_dump().items():
            data[name] = cell_text(values[index - 1]) if index - 1 < len(values) else ""
        data["thread_id"] = data["thread_id"] or None
        return cls(**data)


class Message(BaseModel):
    """The parts of an email the extractors look at."""

    id: str = ""
    subject: str = ""
    body: str = ""
    sender: str = ""
    date: Optional[datetime] = None


class Thread(BaseModel):
    """A mail conversation; the unit of de-duplication."""

    id: str
    messages: list[Message] = Field(default_factory=list)

    @property
    def latest(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None


class Action(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ReconcileOutcome(BaseModel):
    """What reconciliation did with one candidate."""

    action: Action
    row: int
    matched_by: Optional[str] = None  # thread_id, key, unknown_key
    changes: list[str] = Field(default_factory=list)
    recovered: bool = False  # thread id was indexed but its row was gone

    def describe(self) -> str:
        return ", ".join(self.changes) or "no field changes"


class SideEffectResult(BaseModel):
    """Outcome of a best-effort call that must never abort a run."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def succeeded(cls) -> "SideEffectResult":
        return cls(ok=True)

    @classmethod
    def skipped(cls, reason: str) -> "SideEffectResult":
        return cls(ok=False, reason=reason)
