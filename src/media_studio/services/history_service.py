"""
History Service - generated content history and public gallery
"""
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db.models.content import ContentHistoryItem, ContentType
from ..db.models.user import User
from ..exceptions import InvalidInput, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


def serialize_item(item: ContentHistoryItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "content_type": item.content_type,
        "content_url": item.content_url,
        "prompt": item.prompt,
        "is_public": item.is_public,
        "metadata": item.extra_metadata or {},
        "created_at": item.created_at,
    }


class HistoryService:
    """Records and lists completed generations"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        user: User,
        content_type: str,
        content_url: str,
        prompt: Optional[str] = None,
        is_public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ContentHistoryItem:
        """Persist one delivered artifact"""
        if not content_url:
            raise InvalidInput("History items need a content URL")
        item = ContentHistoryItem(
            user_id=user.id,
            content_type=ContentType(content_type).value,
            content_url=content_url,
            prompt=prompt,
            is_public=is_public,
            extra_metadata=metadata or {},
        )
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Recorded {item.content_type} history item {item.id} for user {user.id}")
        return item

    @staticmethod
    def _page_args(page: int, page_size: int):
        if page < 1:
            raise InvalidInput("page must be >= 1")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise InvalidInput(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        return (page - 1) * page_size, page_size

    def _paginate(self, query, page: int, page_size: int) -> Dict[str, Any]:
        offset, limit = self._page_args(page, page_size)
        total = query.count()
        items = (
            query.order_by(ContentHistoryItem.created_at.desc(), ContentHistoryItem.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "items": [serialize_item(i) for i in items],
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }

    def list_history(
        self,
        user: User,
        content_type: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """The user's own items, newest first"""
        query = self.db.query(ContentHistoryItem).filter(ContentHistoryItem.user_id == user.id)
        if content_type:
            query = query.filter(ContentHistoryItem.content_type == ContentType(content_type).value)
        return self._paginate(query, page, page_size)

    def list_public_gallery(
        self,
        content_type: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        query = self.db.query(ContentHistoryItem).filter(ContentHistoryItem.is_public.is_(True))
        if content_type:
            query = query.filter(ContentHistoryItem.content_type == ContentType(content_type).value)
        return self._paginate(query, page, page_size)

    def get_item(self, user: User, item_id: int) -> ContentHistoryItem:
        """One of the user's items; other users' items are reported as missing"""
        item = (
            self.db.query(ContentHistoryItem)
            .filter(ContentHistoryItem.id == item_id, ContentHistoryItem.user_id == user.id)
            .first()
        )
        if item is None:
            raise NotFoundError(f"History item {item_id} not found")
        return item

    def get_stats(self, user_ids: List[int]) -> Dict[int, Dict[str, int]]:
        """Image/video totals per user, for the admin user list"""
        stats = {uid: {"total_images": 0, "total_videos": 0} for uid in user_ids}
        if not user_ids:
            return stats

        rows = (
            self.db.query(
                ContentHistoryItem.user_id,
                ContentHistoryItem.content_type,
                func.count(ContentHistoryItem.id),
            )
            .filter(ContentHistoryItem.user_id.in_(user_ids))
            .group_by(ContentHistoryItem.user_id, ContentHistoryItem.content_type)
            .all()
        )
        for user_id, content_type, count in rows:
            if content_type == ContentType.IMAGE.value:
                stats[user_id]["total_images"] = count
            elif content_type == ContentType.VIDEO.value:
                stats[user_id]["total_videos"] = count
        return stats
