import pytest
from datetime import date, timedelta

from taskstreak.core.tracker import Tracker
from taskstreak.models import SUBTASK_KIND, TASK_KIND
from taskstreak.storage.json_storage import (
    ACTIVITY_LOG_KEY,
    DAILY_ACTIVITY_KEY,
    STREAK_KEY,
    TASKS_KEY,
)
from taskstreak.storage.memory_storage import MemoryStateStorage

D = date(2025, 5, 5)


@pytest.fixture
def storage():
    return MemoryStateStorage()


@pytest.fixture
def tracker(storage):
    """Fresh tracker backed by in-memory storage"""
    return Tracker.load(storage, D)


def test_overall_completion_single_task(tracker):
    """Empty store, add a task: 0%, complete it: 100%"""
    assert tracker.calculate_overall_completion() == 0
    task = tracker.add_task("Buy milk")
    assert tracker.calculate_overall_completion() == 0
    tracker.toggle_task(task.id, D)
    assert tracker.calculate_overall_completion() == 100


def test_task_percentage_from_subtasks(tracker):
    task = tracker.add_task("Project")
    subs = [tracker.add_subtask(task.id, f"step {i}") for i in range(4)]
    tracker.toggle_subtask(task.id, subs[0].id, D)
    assert tracker.get_task_completion_percentage(task) == 25
    tracker.toggle_task(task.id, D)
    assert tracker.get_task_completion_percentage(task) == 100


def test_percentage_rounds_half_up(tracker):
    task = tracker.add_task("Eight steps")
    subs = [tracker.add_subtask(task.id, f"s{i}") for i in range(8)]
    tracker.toggle_subtask(task.id, subs[0].id, D)
    assert tracker.get_task_completion_percentage(task) == 13


def test_overall_completion_averages_unrounded(tracker):
    a = tracker.add_task("A")
    for i in range(3):
        tracker.add_subtask(a.id, f"a{i}")
    tracker.toggle_subtask(a.id, a.subtasks[0].id, D)
    tracker.add_task("B")
    # (33.33 + 0) / 2
    assert tracker.calculate_overall_completion() == 17


def test_filtered_tasks(tracker):
    active = tracker.add_task("Active")
    done = tracker.add_task("Done")
    tracker.toggle_task(done.id, D)
    assert tracker.get_filtered_tasks('all') == [active, done]
    assert tracker.get_filtered_tasks('active') == [active]
    assert tracker.get_filtered_tasks('completed') == [done]
    assert tracker.get_filtered_tasks('bogus') == [active, done]
    assert tracker.remaining_count() == 1


def test_toggle_updates_ledger_streak_and_storage(tracker, storage):
    task = tracker.add_task("Ship it")
    tracker.add_subtask(task.id, "tests")

    tracker.toggle_task(task.id, D)

    assert tracker.streak.count == 1
    assert tracker.get_activity_level(D, D) == 1
    assert storage.read(DAILY_ACTIVITY_KEY) == {
        "2025-05-05": {"tasksCompleted": [1], "subtasksCompleted": [1]}}
    assert storage.read(ACTIVITY_LOG_KEY) == ["2025-05-05"]
    assert storage.read(STREAK_KEY) == {"count": 1, "lastDate": "2025-05-05", "longest": 1}


def test_streak_across_days(storage):
    """Daily completions build a streak; a two-day gap restarts it"""
    tracker = Tracker.load(storage, D)
    for n in range(2):
        task = tracker.add_task(f"day {n}")
        tracker.toggle_task(task.id, D + timedelta(days=n))
    assert (tracker.streak.count, tracker.streak.longest) == (2, 2)

    later = D + timedelta(days=4)
    tracker = Tracker.load(storage, later)
    assert tracker.streak.count == 0
    task = tracker.add_task("back again")
    tracker.toggle_task(task.id, later)
    assert (tracker.streak.count, tracker.streak.longest) == (1, 2)


def test_toggle_invalidates_heatmap(tracker):
    before = tracker.project_heatmap(D)
    task = tracker.add_task("Paint")
    tracker.toggle_task(task.id, D)
    after = tracker.project_heatmap(D)
    assert after is not before
    assert after.weeks[-1].days[D.isoweekday() % 7].level == 1


def test_missing_ids_are_noops(tracker, storage):
    assert tracker.toggle_task(404, D) is None
    assert tracker.toggle_subtask(404, 1, D) is None
    assert tracker.delete_task(404) is False
    assert storage.read(TASKS_KEY) is None


def test_day_details_skip_parent_completed_subtasks(tracker):
    """Subtasks completed along with their parent are not listed twice"""
    whole = tracker.add_task("Whole")
    tracker.add_subtask(whole.id, "part of whole")
    partial = tracker.add_task("Partial")
    lone = tracker.add_subtask(partial.id, "lone step")
    tracker.add_subtask(partial.id, "open step")

    tracker.toggle_task(whole.id, D)
    tracker.toggle_subtask(partial.id, lone.id, D)

    details = tracker.get_day_details(D)
    assert details.tasks_completed == [whole]
    assert details.subtasks_completed == [(partial, lone)]


def test_day_details_skip_deleted_items(tracker):
    """Ledger entries of deleted tasks stay counted but are not resolved"""
    task = tracker.add_task("Gone soon")
    tracker.toggle_task(task.id, D)
    tracker.delete_task(task.id)

    details = tracker.get_day_details(D)
    assert details.tasks_completed == []
    assert details.subtasks_completed == []
    assert tracker.get_activity_level(D, D) == 1


def test_day_summary(tracker):
    a = tracker.add_task("A")
    tracker.add_task("B")
    tracker.add_task("C")
    tracker.toggle_task(a.id, D)
    summary = tracker.get_day_summary(D)
    assert (summary.completed_tasks, summary.total_tasks, summary.completion_rate) == (1, 3, 33)
    assert tracker.get_day_summary(D - timedelta(days=1)).completion_rate == 0


def test_recent_activity(tracker):
    task = tracker.add_task("Today")
    tracker.toggle_task(task.id, D)
    recent = tracker.recent_activity(D)
    assert len(recent) == 30
    assert recent[0][0] == D - timedelta(days=29)
    assert recent[-1] == (D, True)
    assert not any(active for _, active in recent[:-1])


def test_round_trip_through_storage(tracker, storage):
    """Reloading the four persisted values rebuilds identical state"""
    a = tracker.add_task("A")
    tracker.add_subtask(a.id, "a1")
    b = tracker.add_task("B")
    s = tracker.add_subtask(b.id, "b1")
    tracker.toggle_task(a.id, D)
    tracker.toggle_subtask(b.id, s.id, D)

    reloaded = Tracker.load(storage, D)

    assert reloaded.store.to_dict() == tracker.store.to_dict()
    assert reloaded.state.ledger == tracker.state.ledger
    assert reloaded.state.log == tracker.state.log
    assert reloaded.streak == tracker.streak


def test_bootstrap_on_load(storage):
    """Completed tasks without any ledger are attributed to the load day"""
    storage.write(TASKS_KEY, [
        {"id": 1, "text": "old", "completed": True, "completionDate": "2024-12-01",
         "subtasks": [{"id": 3, "text": "s", "completed": True, "completionDate": "2024-12-01"}]},
        {"id": 2, "text": "open", "completed": False, "subtasks": []},
    ])
    tracker = Tracker.load(storage, D)
    record = tracker.state.ledger.get(D)
    assert record.ids(TASK_KIND) == {1}
    assert record.ids(SUBTASK_KIND) == {3}
    assert tracker.streak.count == 1
    assert storage.read(ACTIVITY_LOG_KEY) == ["2025-05-05"]


def test_corrupt_streak_does_not_block_tasks(storage):
    """Each persisted value falls back to empty on its own"""
    storage.write(TASKS_KEY, {"next_task_id": 2, "next_subtask_id": 1,
                              "tasks": [{"id": 1, "text": "survivor"}]})
    storage.write(STREAK_KEY, {"count": "lots", "lastDate": "yesterday-ish"})
    storage.write_raw(DAILY_ACTIVITY_KEY, "{not json")
    storage.write(ACTIVITY_LOG_KEY, ["not-a-date"])

    tracker = Tracker.load(storage, D)

    assert [t.text for t in tracker.store.tasks()] == ["survivor"]
    assert tracker.streak.count == 0
    assert tracker.state.ledger.is_empty()
    assert len(tracker.state.log) == 0


def test_corrupt_tasks_do_not_block_streak(storage):
    storage.write(TASKS_KEY, {"tasks": "nope"})
    storage.write(STREAK_KEY, {"count": 3, "lastDate": "2025-05-05", "longest": 7})
    tracker = Tracker.load(storage, D)
    assert len(tracker.store) == 0
    assert (tracker.streak.count, tracker.streak.longest) == (3, 7)


def test_legacy_snapshot_does_not_reuse_ledger_ids(tracker, storage):
    """Ids found only in the ledger stay taken after a counter-less reload"""
    tracker.add_task("Keep")
    gone = tracker.add_task("Done then deleted")
    tracker.toggle_task(gone.id, D)
    tracker.delete_task(gone.id)
    storage.write(TASKS_KEY, storage.read(TASKS_KEY)['tasks'])

    reloaded = Tracker.load(storage, D)
    fresh = reloaded.add_task("Brand new")

    assert fresh.id > gone.id
    assert reloaded.get_day_details(D).tasks_completed == []
    assert reloaded.get_activity_level(D, D) == 1


def test_legacy_snapshot_does_not_reuse_ledger_subtask_ids(tracker, storage):
    parent = tracker.add_task("Parent")
    tracker.add_subtask(parent.id, "Stays")
    gone = tracker.add_subtask(parent.id, "Done then deleted")
    tracker.toggle_subtask(parent.id, gone.id, D)
    tracker.delete_subtask(parent.id, gone.id)
    storage.write(TASKS_KEY, storage.read(TASKS_KEY)['tasks'])

    reloaded = Tracker.load(storage, D)
    fresh = reloaded.add_subtask(parent.id, "Brand new")

    assert fresh.id > gone.id
    assert reloaded.get_day_details(D).subtasks_completed == []


def test_malformed_tasks_keep_ledger_ids_reserved(tracker, storage):
    done = tracker.add_task("Done")
    tracker.toggle_task(done.id, D)
    storage.write(TASKS_KEY, {"tasks": "nope"})

    reloaded = Tracker.load(storage, D)

    assert len(reloaded.store) == 0
    assert reloaded.add_task("After the loss").id == done.id + 1
