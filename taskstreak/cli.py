import logging
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from taskstreak.config import load_settings
from taskstreak.core.heatmap import DAYS_PER_WEEK
from taskstreak.core.tracker import FILTERS, Tracker
from taskstreak.logging_setup import setup_logging
from taskstreak.storage.json_storage import JsonStateStorage
from taskstreak.utils import utils
from taskstreak.utils.utils import parse_date

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

console = Console()
settings = load_settings()
storage = JsonStateStorage(settings.data_dir)

LEVEL_STYLES = ('grey30', 'green1', 'green3', 'green4', 'dark_green')
WEEKDAY_LABELS = ('Sun', '', 'Tue', '', 'Thu', '', 'Sat')
CELL = '■'


def _tracker(ctx):
    """Load state once per command, pinned to the command's day"""
    today = ctx.obj['today']
    return Tracker.load(storage, today), today


def _date_arg(value: str, name: str):
    day = parse_date(value)
    if day is None:
        raise click.BadParameter(f"'{value}' is not a valid date", param_hint=name)
    return day


@click.group()
@click.version_option(version=__version__)
@click.option('--today', 'today_str', metavar='YYYY-MM-DD',
              help='Act as if the current day were this date')
@click.pass_context
def cli(ctx, today_str):
    """TASKSTREAK - task tracker with completion streaks and an activity heatmap"""
    ctx.ensure_object(dict)
    ctx.obj['today'] = _date_arg(today_str, '--today') if today_str else utils.today()


# -------------------- tasks --------------------
@cli.command()
@click.argument('text')
@click.pass_context
def add(ctx, text):
    """Add a new task"""
    if not text.strip():
        raise click.UsageError('Task text cannot be empty')
    tracker, today = _tracker(ctx)
    task = tracker.add_task(text, datetime.combine(today, datetime.now().time()))
    console.print(f"[green]✔[/green] Added task #{task.id}: {escape(task.text)}")


@cli.command()
@click.argument('task_id', type=int)
@click.pass_context
def done(ctx, task_id):
    """Toggle a task between done and not done"""
    tracker, today = _tracker(ctx)
    task = tracker.toggle_task(task_id, today)
    if task is None:
        console.print(f"[red]✗[/red] Task #{task_id} not found")
        return
    if task.completed:
        console.print(f"[green]✔[/green] Completed #{task.id}: {escape(task.text)}")
    else:
        console.print(f"[yellow]↺[/yellow] Reopened #{task.id}: {escape(task.text)}")
    console.print(f"[dim]Streak: {tracker.streak.count} day(s)[/dim]")


@cli.command()
@click.argument('task_id', type=int)
@click.argument('text')
@click.pass_context
def edit(ctx, task_id, text):
    """Rename a task (empty text deletes it)"""
    tracker, _ = _tracker(ctx)
    if not tracker.edit_task(task_id, text):
        console.print(f"[red]✗[/red] Task #{task_id} not found")
    elif not text.strip():
        console.print(f"[yellow]✔[/yellow] Deleted task #{task_id}")
    else:
        console.print(f"[green]✔[/green] Updated task #{task_id}")


@cli.command()
@click.argument('task_id', type=int)
@click.pass_context
def rm(ctx, task_id):
    """Delete a task"""
    tracker, _ = _tracker(ctx)
    if tracker.delete_task(task_id):
        console.print(f"[green]✔[/green] Deleted task #{task_id}")
    else:
        console.print(f"[red]✗[/red] Task #{task_id} not found")


@cli.command()
@click.pass_context
def clear(ctx):
    """Delete all completed tasks"""
    tracker, _ = _tracker(ctx)
    removed = tracker.clear_completed()
    console.print(f"[green]✔[/green] Cleared {len(removed)} completed task(s)")


@cli.command(name='ls')
@click.option('--filter', '-f', 'task_filter', type=click.Choice(FILTERS), default='all',
              help='Which tasks to show')
@click.pass_context
def ls(ctx, task_filter):
    """List tasks with their subtasks"""
    tracker, _ = _tracker(ctx)
    tasks = tracker.get_filtered_tasks(task_filter)
    if not tasks:
        label = 'tasks' if task_filter == 'all' else f"{task_filter} tasks"
        console.print(f"[dim]No {label} found[/dim]")
        return

    table = Table(title='Tasks')
    table.add_column('ID', style='cyan', width=5)
    table.add_column('✓', width=3)
    table.add_column('Task')
    table.add_column('Progress', justify='right')
    for task in tasks:
        done_count, total = tracker.subtask_progress(task)
        percent = tracker.get_task_completion_percentage(task)
        progress = f"{done_count}/{total} ({percent}%)" if total else f"{percent}%"
        table.add_row(str(task.id), '✔' if task.completed else '', escape(task.text), progress)
        for subtask in task.subtasks:
            table.add_row(f"  {subtask.id}", '✔' if subtask.completed else '',
                          f"  └ {escape(subtask.text)}", '')
    console.print(table)
    remaining = tracker.remaining_count()
    console.print(f"{remaining} {'task' if remaining == 1 else 'tasks'} remaining")


# -------------------- subtasks --------------------
@cli.group()
def sub():
    """Manage subtasks"""


@sub.command(name='add')
@click.argument('parent_id', type=int)
@click.argument('text')
@click.pass_context
def sub_add(ctx, parent_id, text):
    """Add a subtask to a task"""
    if not text.strip():
        raise click.UsageError('Subtask text cannot be empty')
    tracker, _ = _tracker(ctx)
    subtask = tracker.add_subtask(parent_id, text)
    if subtask is None:
        console.print(f"[red]✗[/red] Task #{parent_id} not found")
        return
    console.print(f"[green]✔[/green] Added subtask #{subtask.id} to task #{parent_id}: {escape(subtask.text)}")


@sub.command(name='done')
@click.argument('parent_id', type=int)
@click.argument('subtask_id', type=int)
@click.pass_context
def sub_done(ctx, parent_id, subtask_id):
    """Toggle a subtask"""
    tracker, today = _tracker(ctx)
    subtask = tracker.toggle_subtask(parent_id, subtask_id, today)
    if subtask is None:
        console.print(f"[red]✗[/red] Subtask #{subtask_id} of task #{parent_id} not found")
        return
    state = 'Completed' if subtask.completed else 'Reopened'
    console.print(f"[green]✔[/green] {state} subtask #{subtask.id}: {escape(subtask.text)}")


@sub.command(name='edit')
@click.argument('parent_id', type=int)
@click.argument('subtask_id', type=int)
@click.argument('text')
@click.pass_context
def sub_edit(ctx, parent_id, subtask_id, text):
    """Rename a subtask (empty text deletes it)"""
    tracker, _ = _tracker(ctx)
    if not tracker.edit_subtask(parent_id, subtask_id, text):
        console.print(f"[red]✗[/red] Subtask #{subtask_id} of task #{parent_id} not found")
    elif not text.strip():
        console.print(f"[yellow]✔[/yellow] Deleted subtask #{subtask_id}")
    else:
        console.print(f"[green]✔[/green] Updated subtask #{subtask_id}")


@sub.command(name='rm')
@click.argument('parent_id', type=int)
@click.argument('subtask_id', type=int)
@click.pass_context
def sub_rm(ctx, parent_id, subtask_id):
    """Delete a subtask"""
    tracker, _ = _tracker(ctx)
    if tracker.delete_subtask(parent_id, subtask_id):
        console.print(f"[green]✔[/green] Deleted subtask #{subtask_id}")
    else:
        console.print(f"[red]✗[/red] Subtask #{subtask_id} of task #{parent_id} not found")


# -------------------- activity --------------------
@cli.command()
@click.pass_context
def stats(ctx):
    """Show streak and completion statistics"""
    tracker, _ = _tracker(ctx)
    streak = tracker.streak
    console.print(f"🔥 {streak.count} day streak")
    console.print(f"Current streak: {streak.count}")
    console.print(f"Longest streak: {streak.longest}")
    console.print(f"Overall completion: {tracker.calculate_overall_completion()}%")
    remaining = tracker.remaining_count()
    console.print(f"{remaining} {'task' if remaining == 1 else 'tasks'} remaining")


def _render_heatmap(grid) -> Text:
    width = len(grid.weeks) * 2
    header = [' '] * width
    for col, week in enumerate(grid.weeks):
        pos = col * 2
        # Skip labels that would overwrite the previous one
        if week.label and all(c == ' ' for c in header[max(pos - 1, 0):pos + len(week.label)]):
            header[pos:pos + len(week.label)] = list(week.label)
    out = Text(' ' * 4 + ''.join(header[:width]).rstrip() + '\n')
    for row_index, row in enumerate(grid.rows):
        out.append(f"{WEEKDAY_LABELS[row_index]:<4}")
        for cell in row:
            if cell is None:
                out.append('  ')
            else:
                out.append(CELL, style=LEVEL_STYLES[cell.level])
                out.append(' ')
        if row_index < DAYS_PER_WEEK - 1:
            out.append('\n')
    return out


@cli.command()
@click.option('--weeks', '-w', type=int, default=None,
              help='Maximum number of week columns to draw')
@click.pass_context
def heatmap(ctx, weeks):
    """Draw the one-year activity heatmap"""
    tracker, today = _tracker(ctx)
    grid = tracker.project_heatmap(today, weeks if weeks is not None else settings.heatmap_weeks)
    console.print(_render_heatmap(grid))
    legend = Text('Less ')
    for style in LEVEL_STYLES:
        legend.append(CELL, style=style)
        legend.append(' ')
    legend.append('More')
    console.print(legend)


@cli.command()
@click.option('--days', '-d', type=click.IntRange(1, 366), default=30,
              help='How many days back to show')
@click.pass_context
def recent(ctx, days):
    """Show which of the last days had any activity"""
    tracker, today = _tracker(ctx)
    activity = tracker.recent_activity(today, days)
    strip = Text()
    for on, active in activity:
        strip.append(f"{on.day:>2} ", style='bold green' if active else 'dim')
    console.print(strip)
    active_days = sum(1 for _, active in activity if active)
    console.print(f"{active_days} active day(s) in the last {days}")


@cli.command()
@click.argument('date_str', metavar='DATE')
@click.pass_context
def day(ctx, date_str):
    """Show what was completed on a given day"""
    on = _date_arg(date_str, 'DATE')
    tracker, today = _tracker(ctx)
    details = tracker.get_day_details(on)
    summary = tracker.get_day_summary(on)

    console.print(f"[bold]Activity for {on.isoformat()}[/bold]")
    console.print(f"Tasks completed: {summary.completed_tasks} / {summary.total_tasks} "
                  f"({summary.completion_rate}%)  level {tracker.get_activity_level(on, today)}")
    if not details.tasks_completed and not details.subtasks_completed:
        console.print('[dim]No tasks or subtasks completed on this date[/dim]')
        return
    record = tracker.state.ledger.get(on)
    for task in details.tasks_completed:
        subs = sum(1 for s in task.subtasks if s.id in record.subtasks_completed)
        extra = f" ({subs} subtask(s) completed)" if subs else ''
        console.print(f"[green]✔[/green] {escape(task.text)}{extra}")
    for task, subtask in details.subtasks_completed:
        console.print(f"[green]✔[/green] {escape(subtask.text)} [dim]from: {escape(task.text)}[/dim]")


def main():
    level = settings.log_level if isinstance(logging.getLevelName(settings.log_level), int) else 'WARNING'
    setup_logging(log_dir=settings.log_dir, console_level=level)
    logger.debug("using data directory %s", settings.data_dir)
    cli(obj={})


if __name__ == '__main__':
    sys.exit(main())
