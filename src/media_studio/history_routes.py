"""
History and public gallery routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import get_current_user
from .db.engine import get_db
from .db.models.content import ContentType
from .db.models.user import User
from .services.history_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, HistoryService, serialize_item

router = APIRouter(prefix="/api", tags=["history"])


@router.get("/history")
async def list_history(
    content_type: Optional[ContentType] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The current user's generations, newest first"""
    return HistoryService(db).list_history(
        current_user,
        content_type=content_type.value if content_type else None,
        page=page,
        page_size=page_size,
    )


@router.get("/history/{item_id}")
async def get_history_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return serialize_item(HistoryService(db).get_item(current_user, item_id))


@router.get("/gallery")
async def public_gallery(
    content_type: Optional[ContentType] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """Items their owners marked public; no login required"""
    return HistoryService(db).list_public_gallery(
        content_type=content_type.value if content_type else None,
        page=page,
        page_size=page_size,
    )
