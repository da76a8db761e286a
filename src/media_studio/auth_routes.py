"""
Authentication API routes
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from .auth import (
    verify_password,
    create_access_token,
    get_current_user,
    ACCESS_TOKEN_EXPIRE_MINUTES
)
from .db.engine import get_db
from .db.models.user import User
from .exceptions import InvalidInput
from .services.usage_tracker import UsageTracker
from .services.user_admin_service import UserAdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])
usage_router = APIRouter(prefix="/api", tags=["usage"])


class UserSignup(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str
    user: dict


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    is_active: bool
    is_admin: bool
    image_credits: int
    video_credits: int


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "is_active": user.is_active,
        "is_admin": user.is_admin,
        "image_credits": user.image_credits,
        "video_credits": user.video_credits,
    }


def _token_response(user: User, response: Response) -> dict:
    # JWT requires 'sub' claim to be a string
    access_token = create_access_token(
        data={"sub": str(user.id)},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    response.set_cookie(
        "auth_token",
        access_token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    return {"access_token": access_token, "token_type": "bearer", "user": _user_payload(user)}


@router.post("/signup", response_model=Token)
async def signup(user_data: UserSignup, response: Response, db: Session = Depends(get_db)):
    """Register a new user with email and password"""
    logger.info(f"Signup attempt for email: {user_data.email}")
    try:
        user = UserAdminService(db).create_user(
            email=user_data.email,
            password=user_data.password,
            full_name=user_data.full_name or None,
        )
    except InvalidInput as e:
        logger.warning(f"Signup failed for {user_data.email}: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(f"User created successfully with ID: {user.id}")
    return _token_response(user, response)


@router.post("/login", response_model=Token)
async def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Login with email and password (email goes in the username field)"""
    user = UserAdminService(db).find_by_email(form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return _token_response(user, response)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information"""
    return _user_payload(current_user)


@router.post("/logout")
async def logout(response: Response, current_user: User = Depends(get_current_user)):
    """Logout user (clears the cookie; bearer clients discard their token)"""
    response.delete_cookie("auth_token")
    return {"message": "Logged out successfully"}


@usage_router.get("/usage")
async def get_usage(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Counts, limits and remaining generations for the current user"""
    return UsageTracker(db, current_user).get_usage()
