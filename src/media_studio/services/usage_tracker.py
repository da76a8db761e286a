"""
Usage Tracker - per-user image/video generation counters

Counters are only ever changed by single conditional UPDATE statements, so
concurrent requests for the same user cannot push a counter past the user's
credits or below zero.
"""
import logging
from datetime import datetime
from typing import Dict

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models.usage import UsageCounter
from ..db.models.user import User
from ..exceptions import UsageLimitExceeded, InvalidInput

logger = logging.getLogger(__name__)

KINDS = ("image", "video")


class UsageTracker:
    """Consumes and reports a user's generation credits"""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    @staticmethod
    def _check_kind(kind: str) -> str:
        if kind not in KINDS:
            raise InvalidInput(f"Unknown usage kind: {kind}")
        return kind

    def _count_column(self, kind: str):
        return getattr(UsageCounter, f"{kind}_count")

    def _limit_column(self, kind: str):
        return getattr(User, f"{kind}_credits")

    def ensure_counter(self) -> UsageCounter:
        """Get the user's counter row, creating it on first use"""
        counter = self.db.query(UsageCounter).filter(UsageCounter.user_id == self.user.id).first()
        if counter is not None:
            return counter

        counter = UsageCounter(user_id=self.user.id, image_count=0, video_count=0)
        self.db.add(counter)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created it first
            self.db.rollback()
            counter = self.db.query(UsageCounter).filter(UsageCounter.user_id == self.user.id).one()
        return counter

    def increment(self, kind: str) -> bool:
        """
        Consume one unit of `kind` if the user has any left

        Returns:
            True if the unit was consumed, False if the limit is reached
        """
        self._check_kind(kind)
        self.ensure_counter()

        count_col = self._count_column(kind)
        limit = select(self._limit_column(kind)).where(User.id == self.user.id).scalar_subquery()
        result = self.db.execute(
            update(UsageCounter)
            .where(UsageCounter.user_id == self.user.id)
            .where(count_col < limit)
            .values({count_col: count_col + 1, UsageCounter.updated_at: datetime.utcnow()})
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        allowed = result.rowcount == 1
        if not allowed:
            logger.info(f"Usage limit reached for user {self.user.id} ({kind})")
        return allowed

    def release(self, kind: str) -> None:
        """Give back a unit consumed by a generation that did not complete"""
        self._check_kind(kind)
        count_col = self._count_column(kind)
        self.db.execute(
            update(UsageCounter)
            .where(UsageCounter.user_id == self.user.id)
            .where(count_col > 0)
            .values({count_col: count_col - 1, UsageCounter.updated_at: datetime.utcnow()})
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.debug(f"Released one {kind} unit for user {self.user.id}")

    def reserve(self, kind: str) -> None:
        """Consume one unit or raise UsageLimitExceeded"""
        if not self.increment(kind):
            usage = self.get_usage()
            raise UsageLimitExceeded(kind, usage[f"{kind}_count"], usage[f"{kind}_limit"])

    def require_available(self, kind: str, needed: int) -> None:
        """Raise UsageLimitExceeded unless `needed` units of `kind` are left"""
        self._check_kind(kind)
        usage = self.get_usage()
        if usage[f"remaining_{kind}s"] < needed:
            raise UsageLimitExceeded(kind, usage[f"{kind}_count"], usage[f"{kind}_limit"], needed=needed)

    def get_usage(self) -> Dict[str, int]:
        """Counts, limits and remaining units for both kinds"""
        counter = self.ensure_counter()
        self.db.refresh(counter)
        self.db.refresh(self.user)

        usage = {}
        for kind in KINDS:
            count = getattr(counter, f"{kind}_count")
            limit = getattr(self.user, f"{kind}_credits")
            usage[f"{kind}_count"] = count
            usage[f"{kind}_limit"] = limit
            usage[f"remaining_{kind}s"] = max(0, limit - count)
        return usage

    def get_remaining(self) -> Dict[str, int]:
        usage = self.get_usage()
        return {
            "remaining_images": usage["remaining_images"],
            "remaining_videos": usage["remaining_videos"],
        }

    def reset(self) -> None:
        """Zero both counters (admin action)"""
        self.ensure_counter()
        self.db.execute(
            update(UsageCounter)
            .where(UsageCounter.user_id == self.user.id)
            .values(image_count=0, video_count=0, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Usage counters reset for user {self.user.id}")
