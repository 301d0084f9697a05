import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

from taskstreak.models import (
    CompleteCascade,
    Subtask,
    SubtaskToggle,
    Task,
    UncompleteLocal,
)

logger = logging.getLogger(__name__)

TaskChange = Union[CompleteCascade, UncompleteLocal]


class TaskStore:
    """In-memory task/subtask tree with monotonic, never-reused ids"""

    def __init__(self, tasks: Optional[List[Task]] = None,
                 next_task_id: int = 1, next_subtask_id: int = 1):
        self._index: Dict[int, Task] = {t.id: t for t in (tasks or [])}
        # Counters never go below the highest id already present
        self._next_id = max(next_task_id, max(self._index, default=0) + 1)
        self._next_subtask_id = max(next_subtask_id, self._highest_subtask_id() + 1)

    def _highest_subtask_id(self) -> int:
        return max((s.id for t in self._index.values() for s in t.subtasks), default=0)

    def reserve_ids(self, highest_task_id: int, highest_subtask_id: int):
        """Keep the counters above ids known from elsewhere, e.g. the ledger"""
        self._next_id = max(self._next_id, highest_task_id + 1)
        self._next_subtask_id = max(self._next_subtask_id, highest_subtask_id + 1)

    # -------------------- serialization --------------------
    def to_dict(self) -> dict:
        return {
            'next_task_id': self._next_id,
            'next_subtask_id': self._next_subtask_id,
            'tasks': [t.to_dict() for t in self._index.values()],
        }

    @classmethod
    def from_dict(cls, data) -> 'TaskStore':
        """Build a store from a snapshot, upgrading the legacy bare-list format"""
        if data is None:
            return cls()
        if isinstance(data, list):
            tasks = [Task.from_dict(t) for t in data if isinstance(t, dict)]
            return cls(tasks)
        return cls(
            [Task.from_dict(t) for t in data['tasks']],
            next_task_id=int(data.get('next_task_id', 1)),
            next_subtask_id=int(data.get('next_subtask_id', 1)),
        )

    # -------------------- queries --------------------
    def tasks(self) -> List[Task]:
        """All tasks in creation order"""
        return list(self._index.values())

    def get_task(self, task_id: int) -> Optional[Task]:
        return self._index.get(task_id)

    def get_active_tasks(self) -> List[Task]:
        return [t for t in self._index.values() if not t.completed]

    def get_completed_tasks(self) -> List[Task]:
        return [t for t in self._index.values() if t.completed]

    def completed_ids(self) -> Tuple[List[int], List[int]]:
        """Ids of every completed task and every completed subtask"""
        task_ids = [t.id for t in self._index.values() if t.completed]
        subtask_ids = [s.id for t in self._index.values() for s in t.subtasks if s.completed]
        return task_ids, subtask_ids

    def __len__(self) -> int:
        return len(self._index)

    # -------------------- task operations --------------------
    def add_task(self, text: str, now: Optional[datetime] = None) -> Optional[Task]:
        """Add a new task and return it; blank text creates nothing"""
        text = text.strip()
        if not text:
            return None
        task = Task(id=self._next_id, text=text, created_at=(now or datetime.now()).isoformat())
        self._index[task.id] = task
        self._next_id += 1
        logger.debug("added task %d", task.id)
        return task

    def delete_task(self, task_id: int) -> bool:
        """Delete a task by ID, return True if deleted"""
        if task_id in self._index:
            del self._index[task_id]
            logger.debug("deleted task %d", task_id)
            return True
        return False

    def edit_task(self, task_id: int, text: str) -> bool:
        """Rename a task; blank text deletes it instead"""
        if not text.strip():
            return self.delete_task(task_id)
        task = self._index.get(task_id)
        if task is None:
            return False
        task.text = text.strip()
        return True

    def toggle_task(self, task_id: int, today: date) -> Optional[TaskChange]:
        """Flip a task's completion; completing cascades to every subtask"""
        task = self._index.get(task_id)
        if task is None:
            return None
        subtask_ids = tuple(s.id for s in task.subtasks)
        if task.completed:
            task.mark_undone()
            return UncompleteLocal(task.id, subtask_ids, today)
        for subtask in task.subtasks:
            subtask.mark_done(today)
        task.mark_done(today)
        return CompleteCascade(task.id, subtask_ids, today)

    def clear_completed(self) -> List[int]:
        """Delete every completed task, returning the removed ids"""
        removed = [t.id for t in self._index.values() if t.completed]
        for task_id in removed:
            del self._index[task_id]
        return removed

    # -------------------- subtask operations --------------------
    def add_subtask(self, parent_id: int, text: str) -> Optional[Subtask]:
        text = text.strip()
        task = self._index.get(parent_id)
        if not text or task is None:
            return None
        subtask = Subtask(id=self._next_subtask_id, text=text)
        task.subtasks.append(subtask)
        self._next_subtask_id += 1
        logger.debug("added subtask %d to task %d", subtask.id, parent_id)
        return subtask

    def delete_subtask(self, parent_id: int, subtask_id: int) -> bool:
        task = self._index.get(parent_id)
        if task is None:
            return False
        return task.remove_subtask(subtask_id)

    def edit_subtask(self, parent_id: int, subtask_id: int, text: str) -> bool:
        """Rename a subtask; blank text deletes it instead"""
        if not text.strip():
            return self.delete_subtask(parent_id, subtask_id)
        task = self._index.get(parent_id)
        subtask = task.get_subtask(subtask_id) if task else None
        if subtask is None:
            return False
        subtask.text = text.strip()
        return True

    def toggle_subtask(self, parent_id: int, subtask_id: int, today: date) -> Optional[SubtaskToggle]:
        """Flip one subtask; the parent's own flag is never touched"""
        task = self._index.get(parent_id)
        subtask = task.get_subtask(subtask_id) if task else None
        if subtask is None:
            return None
        if subtask.completed:
            subtask.mark_undone()
        else:
            subtask.mark_done(today)
        return SubtaskToggle(parent_id, subtask_id, subtask.completed, today)
