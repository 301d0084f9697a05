from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, List, Set, Tuple

from taskstreak.utils.utils import parse_date

TASK_KIND = 'tasks'
SUBTASK_KIND = 'subtasks'


def _date_or_none(value) -> Optional[date]:
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"invalid date: {value!r}")
    return parsed


@dataclass
class Subtask:
    """Subtask model, always owned by exactly one task"""
    id: int
    text: str
    completed: bool = False
    completion_date: Optional[date] = None

    def to_dict(self) -> dict:
        """Convert subtask to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'text': self.text,
            'completed': self.completed,
            'completionDate': self.completion_date.isoformat() if self.completion_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create subtask from dictionary"""
        return cls(
            id=int(data['id']),
            text=str(data['text']),
            completed=bool(data.get('completed', False)),
            completion_date=_date_or_none(data.get('completionDate')),
        )

    def mark_done(self, on: date):
        """Mark subtask as completed on the given day"""
        self.completed = True
        self.completion_date = on

    def mark_undone(self):
        self.completed = False
        self.completion_date = None


@dataclass
class Task:
    """Task model with its ordered subtasks"""
    id: int
    text: str
    completed: bool = False
    subtasks: List[Subtask] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completion_date: Optional[date] = None

    def to_dict(self) -> dict:
        """Convert task to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'text': self.text,
            'completed': self.completed,
            'subtasks': [s.to_dict() for s in self.subtasks],
            'timestamp': self.created_at,
            'completionDate': self.completion_date.isoformat() if self.completion_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create task from dictionary (handles old snapshots safely)"""
        # Older snapshots may lack subtasks or the completion date
        subtasks = data.get('subtasks') or []
        return cls(
            id=int(data['id']),
            text=str(data['text']),
            completed=bool(data.get('completed', False)),
            subtasks=[Subtask.from_dict(s) for s in subtasks],
            created_at=data.get('timestamp') or datetime.now().isoformat(),
            completion_date=_date_or_none(data.get('completionDate')),
        )

    def mark_done(self, on: date):
        """Mark task as completed on the given day"""
        self.completed = True
        self.completion_date = on

    def mark_undone(self):
        self.completed = False
        self.completion_date = None

    def get_subtask(self, subtask_id: int) -> Optional[Subtask]:
        """Find a subtask of this task by ID"""
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def remove_subtask(self, subtask_id: int) -> bool:
        """Remove a subtask by ID, return True if removed"""
        for i, subtask in enumerate(self.subtasks):
            if subtask.id == subtask_id:
                del self.subtasks[i]
                return True
        return False

    def get_subtask_count(self) -> int:
        """Get the number of subtasks"""
        return len(self.subtasks)

    def get_completed_subtask_count(self) -> int:
        return sum(1 for s in self.subtasks if s.completed)


@dataclass
class DayRecord:
    """Ids of tasks and subtasks completed on one calendar day"""
    tasks_completed: Set[int] = field(default_factory=set)
    subtasks_completed: Set[int] = field(default_factory=set)

    def ids(self, kind: str) -> Set[int]:
        if kind == TASK_KIND:
            return self.tasks_completed
        if kind == SUBTASK_KIND:
            return self.subtasks_completed
        raise ValueError(f"unknown completion kind: {kind!r}")

    @property
    def total(self) -> int:
        return len(self.tasks_completed) + len(self.subtasks_completed)

    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict:
        return {
            'tasksCompleted': sorted(self.tasks_completed),
            'subtasksCompleted': sorted(self.subtasks_completed),
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            tasks_completed={int(i) for i in data.get('tasksCompleted', [])},
            subtasks_completed={int(i) for i in data.get('subtasksCompleted', [])},
        )


@dataclass
class StreakState:
    """Current and longest run of consecutive active days"""
    count: int = 0
    longest: int = 0
    last_active_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            'count': self.count,
            'lastDate': self.last_active_date.isoformat() if self.last_active_date else None,
            'longest': self.longest,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create streak state from dictionary; a missing longest falls back to count"""
        count = max(int(data.get('count', 0)), 0)
        longest = max(int(data.get('longest') or 0), count)
        return cls(count=count, longest=longest, last_active_date=_date_or_none(data.get('lastDate')))


# Changes reported by TaskStore toggles and consumed by ActivityLedger.apply.
# Completing a task cascades to its subtasks; uncompleting it does not, so the
# two directions are separate types.

@dataclass(frozen=True)
class CompleteCascade:
    task_id: int
    subtask_ids: Tuple[int, ...]
    on: date


@dataclass(frozen=True)
class UncompleteLocal:
    task_id: int
    subtask_ids: Tuple[int, ...]
    on: date


@dataclass(frozen=True)
class SubtaskToggle:
    task_id: int
    subtask_id: int
    completed: bool
    on: date


@dataclass
class DayDetails:
    """Resolved completions for one day, for presentation"""
    tasks_completed: List[Task] = field(default_factory=list)
    subtasks_completed: List[Tuple[Task, Subtask]] = field(default_factory=list)


@dataclass
class DaySummary:
    completed_tasks: int
    total_tasks: int
    completion_rate: int
