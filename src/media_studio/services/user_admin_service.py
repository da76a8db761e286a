"""
User Admin Service - account management for administrators
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_password_hash
from ..config import config
from ..db.models.usage import UsageCounter
from ..db.models.user import User
from ..exceptions import InvalidInput, NotFoundError
from .history_service import HistoryService
from .usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserAdminService:
    """Create, edit and delete user accounts; adjust credits"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _check_password(self, password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    @staticmethod
    def _check_credits(value: Optional[int], field: str) -> None:
        if value is not None and value < 0:
            raise InvalidInput(f"{field} cannot be negative")

    def create_user(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        is_admin: bool = False,
        image_credits: Optional[int] = None,
        video_credits: Optional[int] = None,
    ) -> User:
        """
        Create an account with a usage counter

        Raises:
            InvalidInput: Email already registered (case-insensitive) or bad values
        """
        email = normalize_email(email)
        if not email:
            raise InvalidInput("Email is required")
        if self.find_by_email(email) is not None:
            raise InvalidInput("Email already registered")
        self._check_password(password)
        self._check_credits(image_credits, "image_credits")
        self._check_credits(video_credits, "video_credits")

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name,
            is_admin=is_admin,
            image_credits=config.DEFAULT_IMAGE_CREDITS if image_credits is None else image_credits,
            video_credits=config.DEFAULT_VIDEO_CREDITS if video_credits is None else video_credits,
        )
        self.db.add(user)
        self.db.flush()
        self.db.add(UsageCounter(user_id=user.id, image_count=0, video_count=0))
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.id} ({user.email}, admin={user.is_admin})")
        return user

    def update_user(self, user_id: int, changes: Dict[str, Any]) -> User:
        """Apply the provided fields (full_name, email, password, is_admin, is_active, credits)"""
        user = self.get_user(user_id)

        if changes.get("email") is not None:
            email = normalize_email(changes["email"])
            other = self.find_by_email(email)
            if other is not None and other.id != user.id:
                raise InvalidInput("Email already registered")
            user.email = email
        if changes.get("password"):
            self._check_password(changes["password"])
            user.hashed_password = get_password_hash(changes["password"])
        for field in ("image_credits", "video_credits"):
            if changes.get(field) is not None:
                self._check_credits(changes[field], field)
                setattr(user, field, changes[field])
        for field in ("full_name", "is_admin", "is_active"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])

        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Updated user {user.id}: {sorted(k for k, v in changes.items() if v is not None and k != 'password')}")
        return user

    def set_limits(self, user_id: int, image_credits: int, video_credits: int) -> User:
        return self.update_user(user_id, {"image_credits": image_credits, "video_credits": video_credits})

    def reset_usage(self, user_id: int) -> User:
        user = self.get_user(user_id)
        UsageTracker(self.db, user).reset()
        return user

    def delete_user(self, user_id: int, acting_admin: User) -> None:
        user = self.get_user(user_id)
        if user.id == acting_admin.id:
            raise InvalidInput("Admins cannot delete their own account")
        self.db.delete(user)
        self.db.commit()
        logger.info(f"User {user_id} deleted by admin {acting_admin.id}")

    def describe(self, user: User, stats: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        """User fields plus usage counts, remaining credits and history totals"""
        usage = UsageTracker(self.db, user).get_usage()
        if stats is None:
            stats = HistoryService(self.db).get_stats([user.id])[user.id]
        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "is_admin": user.is_admin,
            "is_active": user.is_active,
            "created_at": user.created_at,
            "usage": usage,
            **stats,
        }

    def list_users(self) -> List[Dict[str, Any]]:
        users = self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
        stats = HistoryService(self.db).get_stats([u.id for u in users])
        return [self.describe(u, stats[u.id]) for u in users]
