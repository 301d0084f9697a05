"""The single application state aggregate and the actions performed on it.

Every top-level action reads the clock at most once and threads that
``today`` through the store, the ledger, the streak and the heatmap, so a
single action never straddles midnight.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple, TypeVar

from taskstreak.core.heatmap import Grid, HeatmapProjector
from taskstreak.core.ledger import ActivityLedger, ActivityLog
from taskstreak.core.streak import StreakTracker
from taskstreak.core.task_store import TaskStore
from taskstreak.models import DayDetails, DaySummary, StreakState, Subtask, Task
from taskstreak.storage.json_storage import (
    ACTIVITY_LOG_KEY,
    DAILY_ACTIVITY_KEY,
    STREAK_KEY,
    TASKS_KEY,
)
from taskstreak.utils import utils
from taskstreak.utils.utils import round_half_up

logger = logging.getLogger(__name__)

FILTERS = ('all', 'active', 'completed')
ALL_KEYS = (TASKS_KEY, STREAK_KEY, ACTIVITY_LOG_KEY, DAILY_ACTIVITY_KEY)
LOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)

T = TypeVar('T')


def _load_value(storage, key: str, parse: Callable[[object], T], empty: Callable[[], T]) -> T:
    """Parse one persisted value, falling back to empty state if it is damaged"""
    raw = storage.read(key)
    if raw is None:
        return empty()
    try:
        return parse(raw)
    except LOAD_ERRORS as e:
        logger.warning("discarding malformed %r snapshot: %s", key, e)
        return empty()


@dataclass
class TrackerState:
    """Everything that is persisted, owned as one unit"""
    store: TaskStore
    ledger: ActivityLedger
    streak: StreakState

    @property
    def log(self) -> ActivityLog:
        return self.ledger.log


class Tracker:
    """Task tracker with activity accounting, streaks and heatmap"""

    def __init__(self, state: TrackerState, storage=None):
        self.state = state
        self.storage = storage
        self.streaks = StreakTracker(state.ledger, state.streak)
        self.heatmap = HeatmapProjector(state.ledger)

    @classmethod
    def load(cls, storage, today: Optional[date] = None) -> 'Tracker':
        """Read the four persisted values independently and bring them up to date"""
        today = today or utils.today()
        store = _load_value(storage, TASKS_KEY, TaskStore.from_dict, TaskStore)
        streak = _load_value(storage, STREAK_KEY, StreakState.from_dict, StreakState)
        log = _load_value(storage, ACTIVITY_LOG_KEY, ActivityLog.from_list, ActivityLog)
        records = _load_value(storage, DAILY_ACTIVITY_KEY, ActivityLedger.records_from_dict, dict)
        ledger = ActivityLedger(log, records)
        # Ids still named by history stay taken even if the task snapshot lost them
        store.reserve_ids(*ledger.highest_ids())
        tracker = cls(TrackerState(store, ledger, streak), storage)

        if tracker.state.ledger.bootstrap(store, today):
            tracker.save(DAILY_ACTIVITY_KEY, ACTIVITY_LOG_KEY)
        tracker.streaks.recompute(today)
        tracker.save(STREAK_KEY, ACTIVITY_LOG_KEY)
        return tracker

    def save(self, *keys: str):
        """Rewrite the given persisted values (all of them by default)"""
        if self.storage is None:
            return
        for key in keys or ALL_KEYS:
            if key == TASKS_KEY:
                self.storage.write(key, self.state.store.to_dict())
            elif key == STREAK_KEY:
                self.storage.write(key, self.state.streak.to_dict())
            elif key == ACTIVITY_LOG_KEY:
                self.storage.write(key, self.state.log.to_list())
            elif key == DAILY_ACTIVITY_KEY:
                self.storage.write(key, self.state.ledger.to_dict())

    @property
    def store(self) -> TaskStore:
        return self.state.store

    @property
    def streak(self) -> StreakState:
        return self.state.streak

    # -------------------- actions --------------------
    def add_task(self, text: str, now: Optional[datetime] = None) -> Optional[Task]:
        task = self.store.add_task(text, now)
        if task is not None:
            self.save(TASKS_KEY)
        return task

    def delete_task(self, task_id: int) -> bool:
        deleted = self.store.delete_task(task_id)
        if deleted:
            self.save(TASKS_KEY)
        return deleted

    def edit_task(self, task_id: int, text: str) -> bool:
        changed = self.store.edit_task(task_id, text)
        if changed:
            self.save(TASKS_KEY)
        return changed

    def clear_completed(self) -> List[int]:
        removed = self.store.clear_completed()
        if removed:
            self.save(TASKS_KEY)
        return removed

    def add_subtask(self, parent_id: int, text: str) -> Optional[Subtask]:
        subtask = self.store.add_subtask(parent_id, text)
        if subtask is not None:
            self.save(TASKS_KEY)
        return subtask

    def delete_subtask(self, parent_id: int, subtask_id: int) -> bool:
        deleted = self.store.delete_subtask(parent_id, subtask_id)
        if deleted:
            self.save(TASKS_KEY)
        return deleted

    def edit_subtask(self, parent_id: int, subtask_id: int, text: str) -> bool:
        changed = self.store.edit_subtask(parent_id, subtask_id, text)
        if changed:
            self.save(TASKS_KEY)
        return changed

    def toggle_task(self, task_id: int, today: Optional[date] = None) -> Optional[Task]:
        """Toggle a task, then update ledger, streak and heatmap in that order"""
        today = today or utils.today()
        change = self.store.toggle_task(task_id, today)
        if change is None:
            return None
        self._after_toggle(change, today)
        return self.store.get_task(task_id)

    def toggle_subtask(self, parent_id: int, subtask_id: int,
                       today: Optional[date] = None) -> Optional[Subtask]:
        today = today or utils.today()
        change = self.store.toggle_subtask(parent_id, subtask_id, today)
        if change is None:
            return None
        self._after_toggle(change, today)
        return self.store.get_task(parent_id).get_subtask(subtask_id)

    def _after_toggle(self, change, today: date):
        self.state.ledger.apply(change)
        self.streaks.recompute(today)
        self.heatmap.invalidate()
        self.save()

    # -------------------- presentation queries --------------------
    def get_filtered_tasks(self, task_filter: str = 'all') -> List[Task]:
        if task_filter == 'active':
            return self.store.get_active_tasks()
        if task_filter == 'completed':
            return self.store.get_completed_tasks()
        return self.store.tasks()

    @staticmethod
    def subtask_progress(task: Task) -> Tuple[int, int]:
        return task.get_completed_subtask_count(), task.get_subtask_count()

    @staticmethod
    def _task_ratio(task: Task) -> float:
        if task.completed:
            return 100.0
        done, total = Tracker.subtask_progress(task)
        if total == 0:
            return 0.0
        return done / total * 100

    def get_task_completion_percentage(self, task: Task) -> int:
        """100 for a completed task, else the share of completed subtasks"""
        return round_half_up(self._task_ratio(task))

    def calculate_overall_completion(self) -> int:
        """Average of every task's completion share; 0 with no tasks"""
        tasks = self.store.tasks()
        if not tasks:
            return 0
        return round_half_up(sum(self._task_ratio(t) for t in tasks) / len(tasks))

    def remaining_count(self) -> int:
        return len(self.store.get_active_tasks())

    def get_activity_level(self, day: date, today: Optional[date] = None) -> int:
        return self.heatmap.level_for(day, today or utils.today())

    def project_heatmap(self, today: Optional[date] = None, max_weeks: Optional[int] = None) -> Grid:
        return self.heatmap.project(today or utils.today(), max_weeks)

    def get_day_details(self, day: date) -> DayDetails:
        """Resolve a day's completions; ids of deleted items are skipped.

        Subtasks whose parent was itself completed that day are left out,
        the parent already stands for them.
        """
        record = self.state.ledger.get(day)
        details = DayDetails()
        for task in self.store.tasks():
            if task.id in record.tasks_completed:
                details.tasks_completed.append(task)
                continue
            for subtask in task.subtasks:
                if subtask.id in record.subtasks_completed:
                    details.subtasks_completed.append((task, subtask))
        return details

    def get_day_summary(self, day: date) -> DaySummary:
        completed = len(self.state.ledger.get(day).tasks_completed)
        total = len(self.store)
        rate = round_half_up(completed / total * 100) if total else 0
        return DaySummary(completed_tasks=completed, total_tasks=total, completion_rate=rate)

    def recent_activity(self, today: Optional[date] = None, days: int = 30) -> List[Tuple[date, bool]]:
        """Last ``days`` days, oldest first, flagged active from the activity log"""
        today = today or utils.today()
        log = self.state.log
        return [(d, d in log) for d in (today - timedelta(days=i) for i in range(days - 1, -1, -1))]
