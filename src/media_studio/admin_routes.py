"""
Admin routes for user management and payment review
Every endpoint requires an admin account
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from .auth import require_admin
from .db.engine import get_db
from .db.models.payment import PaymentStatus
from .db.models.user import User
from .services.payment_service import PaymentService, serialize_request
from .services.user_admin_service import UserAdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["Admin"])


# ============================================================================
# Request Models
# ============================================================================

class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    is_admin: bool = False
    image_credits: Optional[int] = Field(None, ge=0)
    video_credits: Optional[int] = Field(None, ge=0)


class UpdateUserRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None
    image_credits: Optional[int] = Field(None, ge=0)
    video_credits: Optional[int] = Field(None, ge=0)


class SetLimitsRequest(BaseModel):
    image_credits: int = Field(..., ge=0)
    video_credits: int = Field(..., ge=0)


# ============================================================================
# Users
# ============================================================================

@router.get("/users")
async def list_users(
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """All users with usage counts and history totals"""
    users = UserAdminService(db).list_users()
    return {"users": users, "count": len(users)}


@router.post("/users")
async def create_user(
    request: CreateUserRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = UserAdminService(db)
    user = service.create_user(
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        is_admin=request.is_admin,
        image_credits=request.image_credits,
        video_credits=request.video_credits,
    )
    logger.info(f"Admin {admin_user.id} created user {user.id}")
    return service.describe(user)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = UserAdminService(db)
    return service.describe(service.get_user(user_id))


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int,
    request: UpdateUserRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = UserAdminService(db)
    user = service.update_user(user_id, request.dict(exclude_unset=True))
    logger.info(f"Admin {admin_user.id} updated user {user_id}")
    return service.describe(user)


@router.put("/users/{user_id}/limits")
async def set_user_limits(
    user_id: int,
    request: SetLimitsRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = UserAdminService(db)
    user = service.set_limits(user_id, request.image_credits, request.video_credits)
    return service.describe(user)


@router.post("/users/{user_id}/reset-usage")
async def reset_user_usage(
    user_id: int,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = UserAdminService(db)
    user = service.reset_usage(user_id)
    logger.info(f"Admin {admin_user.id} reset usage for user {user_id}")
    return service.describe(user)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    UserAdminService(db).delete_user(user_id, admin_user)
    return {"message": f"User {user_id} deleted", "user_id": user_id}


# ============================================================================
# Payment review
# ============================================================================

@router.get("/payments")
async def list_payment_requests(
    status: Optional[PaymentStatus] = None,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    requests = PaymentService(db).list_requests(status.value if status else None)
    return {"payments": [serialize_request(r) for r in requests], "count": len(requests)}


@router.post("/payments/{request_id}/approve")
async def approve_payment(
    request_id: int,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Approve a pending request and add its credits to the user; 409 if already resolved"""
    request = PaymentService(db).approve(request_id, admin_user)
    return serialize_request(request)


@router.post("/payments/{request_id}/reject")
async def reject_payment(
    request_id: int,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    request = PaymentService(db).reject(request_id, admin_user)
    return serialize_request(request)
