"""Row highlight rules."""

from typing import Optional

from .config import Config
from .models import YES_NO_FIELDS, ApplicationRecord


def is_in_progress(value: str, config: Config) -> bool:
    """Case-insensitive match on the progress value or a known misspelling."""
    spellings = {config.progress_value.lower(), *(alias.lower() for alias in config.progress_aliases)}
    return (value or "").strip().lower() in spellings


def highlight_directives(record: ApplicationRecord, config: Config) -> dict[int, Optional[str]]:
    """Background colour per column; None clears it.

    Pass the row as stored, not the candidate that was merged into it:
    rounds and offer may already say "Yes".
    """
    columns = config.columns
    directives: dict[int, Optional[str]] = {
        columns.progress: config.colors.in_progress if is_in_progress(record.progress, config) else None,
    }
    for name in YES_NO_FIELDS:
        value = (getattr(record, name) or "").strip()
        directives[getattr(columns, name)] = config.colors.yes if value == "Yes" else None
    return directives
