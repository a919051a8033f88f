from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from ..contracts.v1 import MessageRecord
from ..util.time import parse_utc_iso


MESSAGES_PAGE_LIMIT = 20
STATUS_RECENT_LIMIT = 10


class MessageHistory:
    """Append-only log of message records, oldest first.

    Queries filter and slice; they never mutate. There is no eviction.
    """

    def __init__(self) -> None:
        self._records: List[MessageRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: MessageRecord) -> MessageRecord:
        self._records.append(record)
        return record

    def recent(self, n: int) -> List[MessageRecord]:
        if n <= 0:
            return []
        return self._records[-n:]

    def query(
        self,
        *,
        instance: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = MESSAGES_PAGE_LIMIT,
    ) -> Tuple[List[MessageRecord], int]:
        """Return (most recent `limit` matches in chronological order, total matches).

        `instance` matches the recipient id; `since` keeps records strictly newer.
        """
        matches: List[MessageRecord] = self._records
        if instance:
            matches = [r for r in matches if r.to == instance]
        if since is not None:
            kept: List[MessageRecord] = []
            for r in matches:
                ts = parse_utc_iso(r.timestamp)
                if ts is not None and ts > since:
                    kept.append(r)
            matches = kept
        page = matches[-limit:] if limit > 0 else []
        return list(page), len(matches)
