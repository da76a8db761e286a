"""
Saved vendor API key routes
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .auth import get_current_user
from .db.engine import get_db
from .db.models.user import User
from .services.api_key_service import ApiKeyService, mask_key

router = APIRouter(prefix="/api/keys", tags=["api-keys"])


class SaveKeyRequest(BaseModel):
    key_value: str


@router.get("")
async def list_keys(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Saved keys with masked values"""
    return {"keys": ApiKeyService(db).list_keys(current_user)}


@router.put("/{key_name}")
async def save_key(
    key_name: str,
    request: SaveKeyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    api_key = ApiKeyService(db).save_key(current_user, key_name, request.key_value)
    return {"key_name": api_key.key_name, "masked_value": mask_key(api_key.key_value)}


@router.get("/{key_name}")
async def get_key(
    key_name: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The full saved value, so the owner can verify or copy it"""
    value = ApiKeyService(db).get_key(current_user, key_name)
    return {"key_name": key_name, "key_value": value, "configured": value is not None}


@router.delete("/{key_name}")
async def delete_key(
    key_name: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ApiKeyService(db).delete_key(current_user, key_name)
    return {"message": f"{key_name} API key deleted"}
