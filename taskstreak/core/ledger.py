"""Per-day completion ledger and the log of days that ever saw activity.

The ledger only ever grows by day: completing something adds its id to the
record for "today", and reversing a completion only removes it from today's
record. Earlier days are never rewritten, so ids of deleted tasks may linger
there; readers resolve them leniently.
"""
import bisect
import logging
from datetime import date
from typing import Dict, Iterator, List, Optional, Tuple, Union

from taskstreak.models import (
    SUBTASK_KIND,
    TASK_KIND,
    CompleteCascade,
    DayRecord,
    SubtaskToggle,
    UncompleteLocal,
)
from taskstreak.utils.utils import parse_date

logger = logging.getLogger(__name__)

LedgerChange = Union[CompleteCascade, UncompleteLocal, SubtaskToggle]


class ActivityLog:
    """Ascending, duplicate-free list of active dates"""

    def __init__(self, dates: Optional[List[date]] = None):
        self._dates: List[date] = sorted(set(dates or []))

    def add(self, day: date) -> bool:
        """Insert a date keeping order; returns False if it was already logged"""
        i = bisect.bisect_left(self._dates, day)
        if i < len(self._dates) and self._dates[i] == day:
            return False
        self._dates.insert(i, day)
        return True

    def __contains__(self, day: date) -> bool:
        i = bisect.bisect_left(self._dates, day)
        return i < len(self._dates) and self._dates[i] == day

    def __iter__(self) -> Iterator[date]:
        return iter(self._dates)

    def __len__(self) -> int:
        return len(self._dates)

    def __eq__(self, other) -> bool:
        return isinstance(other, ActivityLog) and self._dates == other._dates

    def to_list(self) -> List[str]:
        return [d.isoformat() for d in self._dates]

    @classmethod
    def from_list(cls, data) -> 'ActivityLog':
        if data is None:
            return cls()
        dates = []
        for raw in data:
            day = parse_date(raw)
            if day is None:
                raise ValueError(f"invalid activity log date: {raw!r}")
            dates.append(day)
        return cls(dates)


class ActivityLedger:
    """Maps calendar days to the task and subtask ids completed on them"""

    def __init__(self, log: Optional[ActivityLog] = None,
                 records: Optional[Dict[date, DayRecord]] = None):
        self.log = log if log is not None else ActivityLog()
        self._records: Dict[date, DayRecord] = dict(records or {})

    # -------------------- serialization --------------------
    def to_dict(self) -> dict:
        return {d.isoformat(): r.to_dict() for d, r in sorted(self._records.items())}

    @staticmethod
    def records_from_dict(data) -> Dict[date, DayRecord]:
        if data is None:
            return {}
        records = {}
        for raw_day, raw_record in data.items():
            day = parse_date(raw_day)
            if day is None:
                raise ValueError(f"invalid ledger date: {raw_day!r}")
            records[day] = DayRecord.from_dict(raw_record)
        return records

    # -------------------- queries --------------------
    def get(self, day: date) -> DayRecord:
        """Record for a day; an unknown day yields an empty, unstored record"""
        return self._records.get(day) or DayRecord()

    def has_activity(self, day: date) -> bool:
        record = self._records.get(day)
        return record is not None and not record.is_empty()

    def days(self) -> List[date]:
        return sorted(self._records)

    def is_empty(self) -> bool:
        return not self._records

    def highest_ids(self) -> Tuple[int, int]:
        """Largest task id and subtask id mentioned in any record"""
        records = self._records.values()
        return (
            max((i for r in records for i in r.tasks_completed), default=0),
            max((i for r in records for i in r.subtasks_completed), default=0),
        )

    def __eq__(self, other) -> bool:
        return isinstance(other, ActivityLedger) and self._records == other._records

    # -------------------- mutations --------------------
    def record_completion(self, day: date, kind: str, item_id: int):
        record = self._records.setdefault(day, DayRecord())
        record.ids(kind).add(item_id)
        self._touch(day, record)

    def revert_completion(self, day: date, kind: str, item_id: int):
        record = self._records.get(day)
        if record is None:
            return
        record.ids(kind).discard(item_id)
        self._touch(day, record)

    def _touch(self, day: date, record: DayRecord):
        # The log is never pruned, even when a revert empties the record
        if not record.is_empty() and self.log.add(day):
            logger.debug("logged %s as active", day)

    def apply(self, change: LedgerChange):
        """Mirror a TaskStore toggle into the record for the change's day"""
        if isinstance(change, CompleteCascade):
            self.record_completion(change.on, TASK_KIND, change.task_id)
            for subtask_id in change.subtask_ids:
                self.record_completion(change.on, SUBTASK_KIND, subtask_id)
        elif isinstance(change, UncompleteLocal):
            self.revert_completion(change.on, TASK_KIND, change.task_id)
            for subtask_id in change.subtask_ids:
                self.revert_completion(change.on, SUBTASK_KIND, subtask_id)
        elif isinstance(change, SubtaskToggle):
            if change.completed:
                self.record_completion(change.on, SUBTASK_KIND, change.subtask_id)
            else:
                self.revert_completion(change.on, SUBTASK_KIND, change.subtask_id)
        else:
            raise TypeError(f"unsupported ledger change: {change!r}")

    def bootstrap(self, store, today: date) -> bool:
        """Seed today's record from already-completed items when the ledger is empty.

        Everything currently completed is attributed to today; this is an
        approximation for snapshots saved before the ledger existed.
        """
        if not self.is_empty() or len(store) == 0:
            return False
        task_ids, subtask_ids = store.completed_ids()
        if not task_ids and not subtask_ids:
            return False
        self._records[today] = DayRecord(set(task_ids), set(subtask_ids))
        self.log.add(today)
        logger.info("bootstrapped activity for %s from %d tasks and %d subtasks",
                    today, len(task_ids), len(subtask_ids))
        return True
