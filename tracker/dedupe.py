"""Deduplication index over the tracker rows."""

import logging
import re
from typing import Iterable, Optional

from .models import ApplicationRecord

logger = logging.getLogger(__name__)

_KEY_NOISE = re.compile(r"[\s\-–—_/.,()+:'\"’]")


def normalize_key(value: Optional[str]) -> str:
    """Lowercase and drop whitespace and separator punctuation."""
    return _KEY_NOISE.sub("", str(value or "").lower()).strip()


class DedupIndex:
    """Row lookups by thread id, role+company, and unknown-role+company+date.

    Built once per run from the sheet and updated after every insert or merge
    so later threads in the same run see earlier ones.
    """

    def __init__(self, unknown: str = "Unknown"):
        self.unknown_key = normalize_key(unknown)
        self.by_thread_id: dict[str, int] = {}
        self.by_key: dict[str, int] = {}
        self.by_unknown_key: dict[str, int] = {}

    @classmethod
    def build(cls, rows: Iterable[tuple[int, ApplicationRecord]], unknown: str = "Unknown") -> "DedupIndex":
        index = cls(unknown)
        count = 0
        for row, record in rows:
            index.register(row, record)
            count += 1
        logger.debug(
            f"Indexed {count} rows: {len(index.by_thread_id)} thread ids, "
            f"{len(index.by_key)} role keys, {len(index.by_unknown_key)} unknown-role keys"
        )
        return index

    def is_known_role(self, role: Optional[str]) -> bool:
        """True unless the role is blank or the unknown sentinel."""
        key = normalize_key(role)
        return bool(key) and key != self.unknown_key

    def role_key(self, role: str, company: str) -> str:
        return f"{normalize_key(role)}|{normalize_key(company or self.unknown_key)}"

    def unknown_role_key(self, company: str, date_applied: str) -> str:
        return f"{self.unknown_key}|{normalize_key(company or self.unknown_key)}|{normalize_key(date_applied)}"

    def register(self, row: int, record: ApplicationRecord) -> None:
        """Index a row under every key its current values produce."""
        if record.thread_id:
            # First row wins, matching a top-down scan of the thread column.
            self.by_thread_id.setdefault(record.thread_id, row)
        if self.is_known_role(record.role):
            self.by_key[self.role_key(record.role, record.company)] = row
        else:
            self.by_unknown_key[self.unknown_role_key(record.company, record.date_applied)] = row

    def forget_thread(self, thread_id: str) -> None:
        """Drop a thread id whose row no longer holds it."""
        self.by_thread_id.pop(thread_id, None)

    def lookup_thread(self, thread_id: Optional[str]) -> Optional[int]:
        """Row holding ``thread_id``, if indexed."""
        if not thread_id:
            return None
        return self.by_thread_id.get(thread_id)

    def lookup_key(self, role: str, company: str) -> Optional[int]:
        """Row with the same role and company, for known roles only."""
        if not self.is_known_role(role):
            return None
        return self.by_key.get(self.role_key(role, company))

    def lookup_unknown(self, company: str, date_applied: str) -> Optional[int]:
        """Row with an unknown role, the same company and the same date."""
        return self.by_unknown_key.get(self.unknown_role_key(company, date_applied))
