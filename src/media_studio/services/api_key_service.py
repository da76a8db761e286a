"""
API Key Service - per-user vendor API keys
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import config
from ..db.models.api_key import ApiKey
from ..db.models.user import User
from ..exceptions import ApiKeyMissing, InvalidInput, NotFoundError
from .vendors import AIVIDEOAPI, AZURE_SPEECH, FAL, VENDOR_NAMES

logger = logging.getLogger(__name__)


def mask_key(value: str) -> str:
    """Show only the last four characters"""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * min(len(value) - 4, 12) + value[-4:]


class ApiKeyService:
    """Save, read and resolve vendor API keys for a user"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _check_name(key_name: str) -> str:
        key_name = (key_name or "").strip().lower()
        if key_name not in VENDOR_NAMES:
            raise InvalidInput(
                f"Unknown API key name: {key_name}",
                details={"allowed": VENDOR_NAMES},
            )
        return key_name

    def save_key(self, user: User, key_name: str, key_value: str) -> ApiKey:
        """Create or replace the user's key for a vendor"""
        key_name = self._check_name(key_name)
        key_value = (key_value or "").strip()
        if not key_value:
            raise InvalidInput("API key value cannot be empty")

        api_key = self._find(user, key_name)
        if api_key is None:
            api_key = ApiKey(user_id=user.id, key_name=key_name, key_value=key_value)
            self.db.add(api_key)
        else:
            api_key.key_value = key_value
            api_key.updated_at = datetime.utcnow()

        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent insert of the same (user, name); overwrite it
            self.db.rollback()
            api_key = self._find(user, key_name)
            api_key.key_value = key_value
            self.db.commit()

        self.db.refresh(api_key)
        logger.info(f"Saved {key_name} API key for user {user.id}")
        return api_key

    def _find(self, user: User, key_name: str) -> Optional[ApiKey]:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.user_id == user.id, ApiKey.key_name == key_name)
            .first()
        )

    def get_key(self, user: User, key_name: str) -> Optional[str]:
        api_key = self._find(user, self._check_name(key_name))
        return api_key.key_value if api_key else None

    def list_keys(self, user: User) -> List[Dict]:
        keys = self.db.query(ApiKey).filter(ApiKey.user_id == user.id).order_by(ApiKey.key_name).all()
        return [
            {
                "key_name": k.key_name,
                "masked_value": mask_key(k.key_value),
                "created_at": k.created_at,
                "updated_at": k.updated_at,
            }
            for k in keys
        ]

    def delete_key(self, user: User, key_name: str) -> None:
        api_key = self._find(user, self._check_name(key_name))
        if api_key is None:
            raise NotFoundError(f"No {key_name} API key saved")
        self.db.delete(api_key)
        self.db.commit()
        logger.info(f"Deleted {key_name} API key for user {user.id}")

    def resolve(self, user: User, key_name: str) -> str:
        """
        Key to use for a vendor call: the user's saved key, else the server's

        Raises:
            ApiKeyMissing: Neither is configured
        """
        saved = self.get_key(user, key_name)
        if saved:
            return saved

        server_keys = {
            FAL: config.FAL_API_KEY,
            AIVIDEOAPI: config.AIVIDEO_API_KEY,
            AZURE_SPEECH: config.AZURE_SPEECH_KEY,
        }
        server_key = server_keys.get(key_name)
        if server_key:
            return server_key
        raise ApiKeyMissing(key_name)
