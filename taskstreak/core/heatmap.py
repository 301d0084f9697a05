"""Year-long activity heatmap laid out as week columns (Sun..Sat rows)."""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, List, Optional, Tuple

from taskstreak.core.ledger import ActivityLedger
from taskstreak.utils.utils import one_year_before

logger = logging.getLogger(__name__)

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']
DAYS_PER_WEEK = 7
MAX_AGE_DAYS = 365

# (minimum completions, level), highest first
LEVEL_THRESHOLDS = ((15, 4), (8, 3), (3, 2), (1, 1))


def activity_level(completions: int) -> int:
    """Bucket a day's completion count into a 0-4 level"""
    for minimum, level in LEVEL_THRESHOLDS:
        if completions >= minimum:
            return level
    return 0


def sunday_on_or_before(day: date) -> date:
    # date.weekday() is Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


@dataclass
class HeatmapDay:
    date: date
    level: int
    completions: int


@dataclass
class Week:
    """One grid column; ``days`` always has seven slots, None past today"""
    days: List[Optional[HeatmapDay]] = field(default_factory=list)
    label: str = ''
    title: str = ''


@dataclass
class Grid:
    today: date
    start: date
    weeks: List[Week]
    total_weeks: int

    @property
    def rows(self) -> List[List[Optional[HeatmapDay]]]:
        """Seven rows, Sunday first, each with one cell per week column"""
        return [[week.days[row] for week in self.weeks] for row in range(DAYS_PER_WEEK)]

    def cells(self) -> Iterator[HeatmapDay]:
        """Every cell that stands for a real date, oldest first"""
        for week in self.weeks:
            for day in week.days:
                if day is not None:
                    yield day

    def labels(self) -> List[str]:
        return [week.label for week in self.weeks]


class HeatmapProjector:
    """Projects the ledger onto a week-aligned one-year grid"""

    def __init__(self, ledger: ActivityLedger):
        self.ledger = ledger
        self._cache: Optional[Tuple[Tuple[date, Optional[int]], Grid]] = None

    def invalidate(self):
        self._cache = None

    def level_for(self, day: date, today: date) -> int:
        """Activity level for a day; future days and days over a year old are 0"""
        if day > today or (today - day).days > MAX_AGE_DAYS:
            return 0
        return activity_level(self.ledger.get(day).total)

    def project(self, today: date, max_weeks: Optional[int] = None) -> Grid:
        key = (today, max_weeks)
        if self._cache is not None and self._cache[0] == key:
            return self._cache[1]

        start = sunday_on_or_before(one_year_before(today))
        weeks: List[Week] = []
        labelled = set()
        day = start
        while day <= today:
            week = Week()
            for _ in range(DAYS_PER_WEEK):
                if day > today:
                    week.days.append(None)
                    continue
                completions = self.ledger.get(day).total
                week.days.append(HeatmapDay(day, self.level_for(day, today), completions))
                if day.day == 1 and (day.year, day.month) not in labelled and not week.label:
                    labelled.add((day.year, day.month))
                    week.label = f"{MONTH_NAMES[day.month - 1]}'{day.year % 100:02d}"
                    week.title = f"{MONTH_NAMES[day.month - 1]} {day.year}"
                day += timedelta(days=1)
            weeks.append(week)

        total_weeks = len(weeks)
        if max_weeks is not None and 0 <= max_weeks < total_weeks:
            # Keep the most recent columns
            weeks = weeks[total_weeks - max_weeks:]
        grid = Grid(today=today, start=start, weeks=weeks, total_weeks=total_weeks)
        logger.debug("projected %d of %d weeks ending %s", len(weeks), total_weeks, today)
        self._cache = (key, grid)
        return grid
