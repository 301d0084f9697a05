import logging
from datetime import date
from typing import Optional

from taskstreak.core.ledger import ActivityLedger
from taskstreak.models import StreakState
from taskstreak.utils.utils import yesterday_of

logger = logging.getLogger(__name__)


class StreakTracker:
    """Keeps the current and longest run of consecutive active days.

    The current day is a grace period: a streak whose last active day was
    yesterday stays intact until today ends without activity.
    """

    def __init__(self, ledger: ActivityLedger, state: Optional[StreakState] = None):
        self.ledger = ledger
        self.state = state if state is not None else StreakState()

    def recompute(self, today: date) -> StreakState:
        """Bring the streak up to date for ``today``; safe to call repeatedly"""
        state = self.state
        if state.last_active_date == today:
            return state

        yesterday = yesterday_of(today)
        if self.ledger.has_activity(today):
            self.ledger.log.add(today)
            if state.last_active_date in (yesterday, today):
                state.count += 1
            else:
                state.count = 1
            state.last_active_date = today
            state.longest = max(state.longest, state.count)
            logger.debug("streak now %d (longest %d)", state.count, state.longest)
        elif state.last_active_date != yesterday and state.count:
            logger.debug("streak of %d broken, last active %s", state.count, state.last_active_date)
            state.count = 0
        return state
