"""One-off repair and sanity checks for tracker rows."""

import logging
import re
from datetime import datetime
from typing import Optional

from .config import Config
from .models import cell_text
from .sheets import ActivityLog, TrackerTable

logger = logging.getLogger(__name__)

TERM_LIKE = re.compile(r"^(?:Spring|Summer|Fall|Winter|Year-Round)\s*20\d{2}$", re.IGNORECASE)

# JavaScript Date.toString(): "Mon Sep 15 2025 00:00:00 GMT-0400 (Eastern Daylight Time)"
WEEKDAY_DATE = re.compile(
    r"^(?:Sun|Mon|Tue|Wed|Thu|Fri|Sat)[a-z]*,?\s+([A-Z][a-z]{2})[a-z]*\.?\s+(\d{1,2}),?\s+(\d{4})"
)

EXPECTED_HEADERS = {
    "progress": "Progress",
    "role": "Role",
    "company": "Company",
    "term": "Term",
    "location": "Location",
    "recruiter_contacted": "Recruiter",
    "round1": "First Round",
    "round2": "Second Round",
    "round3": "Third Round",
    "thank_you_sent": "Thank You",
    "offer": "Offer",
    "date_applied": "Date Applied",
    "platform": "Platform",
}


def fix_weekday_date(value: str) -> Optional[str]:
    """Rewrite a weekday-style date string as yyyy-MM-dd, else None."""
    match = WEEKDAY_DATE.match(value.strip())
    if not match:
        return None
    month, day, year = match.groups()
    try:
        return datetime.strptime(f"{month} {day} {year}", "%b %d %Y").date().isoformat()
    except ValueError:
        return None


def _data_rows(table: TrackerTable, config: Config) -> list[tuple[int, list[str]]]:
    last_row = table.last_row()
    if last_row <= 1:
        return []
    values = table.get_values(2, 1, last_row - 1, config.columns.width)
    return [(i + 2, [cell_text(v) for v in row]) for i, row in enumerate(values)]


def cleanup_existing_data(table: TrackerTable, activity: ActivityLog, config: Config) -> int:
    """Swap Company/Term where a term landed in Company, and fix weekday dates.

    Returns the number of rows changed.
    """
    columns = config.columns
    rows = _data_rows(table, config)
    if not rows:
        activity.append("No data rows to clean up")
        return 0

    fixed = 0
    for row, values in rows:
        changes = []
        company = values[columns.company - 1]
        term = values[columns.term - 1]
        if term and TERM_LIKE.match(company) and not TERM_LIKE.match(term):
            table.set_value(row, columns.company, term)
            table.set_value(row, columns.term, company)
            changes.append(f'Swapped Company/Term: "{term}" <-> "{company}"')

        applied = values[columns.date_applied - 1]
        formatted = fix_weekday_date(applied) if applied else None
        if formatted:
            table.set_value(row, columns.date_applied, formatted)
            changes.append(f'Fixed date format: "{applied}" -> "{formatted}"')

        if changes:
            fixed += 1
            activity.append(f"Fixed row {row}: {', '.join(changes)}")

    if fixed:
        activity.append(f"Cleaned up {fixed} rows with data issues")
    else:
        activity.append("No data issues found to fix")
    return fixed


def validate_column_data(table: TrackerTable, activity: ActivityLog, config: Config) -> dict[int, list[str]]:
    """Report rows whose values look like they sit in the wrong column."""
    columns = config.columns
    rows = _data_rows(table, config)
    if not rows:
        activity.append("No data rows to validate")
        return {}

    issues: dict[int, list[str]] = {}
    for row, values in rows:
        found = []
        role = values[columns.role - 1]
        company = values[columns.company - 1]
        term = values[columns.term - 1]
        applied = values[columns.date_applied - 1]

        if TERM_LIKE.match(role):
            found.append(f'Role column contains term: "{role}"')
        if TERM_LIKE.match(company):
            found.append(f'Company column contains term: "{company}"')
        if term and not TERM_LIKE.match(term):
            found.append(f'Term column does not hold a term: "{term}"')
        if applied and WEEKDAY_DATE.match(applied):
            found.append(f'Date Applied has wrong format: "{applied}"')

        if found:
            issues[row] = found
            activity.append(f"Row {row} issues: {'; '.join(found)}")

    if issues:
        activity.append(f"Found {len(issues)} rows with column data issues")
    else:
        activity.append("All rows have correct column data placement")
    return issues


def verify_sheet_layout(table: TrackerTable, activity: ActivityLog, config: Config) -> dict[str, tuple[int, Optional[int]]]:
    """Compare configured column positions with the header row.

    Returns ``{header: (expected, actual)}``; ``actual`` is None when no
    header contains the expected name.
    """
    width = table.last_column()
    headers = [cell_text(h) for h in table.get_values(1, 1, 1, width)[0]] if width else []

    activity.append(f"Sheet layout: {len(headers)} columns")
    for index, header in enumerate(headers, start=1):
        activity.append(f'Column {index}: "{header}"')

    expected = dict(EXPECTED_HEADERS, thread_id=config.thread_header)
    report: dict[str, tuple[int, Optional[int]]] = {}
    for field, name in expected.items():
        want = getattr(config.columns, field)
        actual = next((i for i, h in enumerate(headers, start=1) if name.lower() in h.lower()), None)
        report[name] = (want, actual)
        status = "OK" if actual == want else "MISMATCH"
        activity.append(f"{status} {name}: expected {want}, actual {actual if actual else 'NOT FOUND'}")

    if any(want != actual for want, actual in report.values()):
        logger.warning("Column layout does not match configuration; update `columns` in config.yaml")
    return report
