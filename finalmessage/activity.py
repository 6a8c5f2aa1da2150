# finalmessage/activity.py
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from finalmessage.crud import Repository
from finalmessage.models import utcnow
from finalmessage.schemas import InactivityEvaluation
from finalmessage.settings import settings

log = logging.getLogger("activity")


class ActivityTracker:
    def __init__(self, repo: Repository, clock: Callable[[], datetime] = utcnow, default_threshold_days: Optional[int] = None):
        self.repo = repo
        self.clock = clock
        self.default_threshold_days = default_threshold_days or settings.INACTIVITY_THRESHOLD_DAYS

    def record_check_in(self, user_id: str, threshold_days: Optional[int] = None):
        """Mark the user as active now. Safe to call any number of times."""
        if threshold_days is not None and threshold_days <= 0:
            raise ValueError("threshold_days must be positive")
        rec = self.repo.save_activity(user_id, self.clock(), threshold_days)
        log.info("Check-in recorded for %s", user_id)
        return rec

    def evaluate(self, user_id: str, threshold_days: Optional[int] = None) -> InactivityEvaluation:
        rec = self.repo.get_activity(user_id)
        now = self.clock()

        if threshold_days is None:
            threshold_days = (rec.inactivity_threshold_days if rec else None) or self.default_threshold_days
        if threshold_days <= 0:
            raise ValueError("threshold_days must be positive")

        # unknown user counts as active right now
        last_activity = rec.last_activity_seen if rec else now
        threshold = timedelta(days=threshold_days)
        triggered = now - last_activity >= threshold

        return InactivityEvaluation(
            user_id=user_id,
            last_activity=last_activity,
            inactivity_threshold_days=threshold_days,
            is_triggered=triggered,
            trigger_date=last_activity + threshold if triggered else None,
        )
