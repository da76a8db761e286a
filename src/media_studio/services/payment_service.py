"""
Payment Service - credit packages and the offline payment review workflow

Users pay by bank transfer or mobile payment, upload a screenshot and wait
for an admin to approve the request. Approval grants the package's credits.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ..config import config
from ..db.models.payment import CreditPackage, PaymentRequest, PaymentStatus
from ..db.models.user import User
from ..exceptions import InvalidInput, NotFoundError, PaymentAlreadyResolved
from .currency_service import CurrencyService
from .storage_provider import StorageProvider

logger = logging.getLogger(__name__)

SCREENSHOT_PREFIX = "payments/screenshots"
PAYMENT_METHODS = ["bank_transfer", "mobile_payment"]
ALLOWED_SCREENSHOT_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}

DEFAULT_PACKAGES = [
    {
        "id": "images",
        "name": "100 Image Credits",
        "description": "100 text-to-image generations",
        "price": Decimal("20000"),
        "currency": "KS",
        "image_credits": 100,
        "video_credits": 0,
    },
    {
        "id": "videos",
        "name": "100 Video Credits",
        "description": "100 video generations",
        "price": Decimal("20000"),
        "currency": "KS",
        "image_credits": 0,
        "video_credits": 100,
    },
    {
        "id": "combo",
        "name": "Combo Pack",
        "description": "100 image and 100 video generations",
        "price": Decimal("35000"),
        "currency": "KS",
        "image_credits": 100,
        "video_credits": 100,
    },
]


def seed_default_packages(db: Session) -> int:
    """Insert the default packages that are missing; returns how many were created"""
    existing = {pid for (pid,) in db.query(CreditPackage.id).all()}
    created = 0
    for package in DEFAULT_PACKAGES:
        if package["id"] in existing:
            continue
        db.add(CreditPackage(**package))
        created += 1
    if created:
        db.commit()
    return created


def generate_reference_id() -> str:
    """8-character upper-case reference users quote in their transfer"""
    return uuid.uuid4().hex[:8].upper()


def serialize_package(package: CreditPackage, currency_service: CurrencyService) -> Dict[str, Any]:
    return {
        "id": package.id,
        "name": package.name,
        "description": package.description,
        "price": package.price,
        "currency": package.currency,
        "display_price": currency_service.format_currency(package.price, package.currency),
        "price_thb": currency_service.convert(package.price, package.currency, "THB"),
        "image_credits": package.image_credits,
        "video_credits": package.video_credits,
    }


def screenshot_path(request_id: int) -> str:
    """Authorised route that serves a request's screenshot"""
    return f"/api/payments/{request_id}/screenshot"


def serialize_request(request: PaymentRequest) -> Dict[str, Any]:
    data = {
        "id": request.id,
        "reference_id": request.reference_id,
        "package_id": request.package_id,
        "amount": request.amount,
        "currency": request.currency,
        "payment_method": request.payment_method,
        "contact_email": request.contact_email,
        "screenshot_url": request.screenshot_url,
        "image_credits": request.image_credits,
        "video_credits": request.video_credits,
        "payment_details": request.payment_details or {},
        "status": request.status,
        "resolved_at": request.resolved_at,
        "created_at": request.created_at,
    }
    if request.user is not None:
        data["user"] = {
            "id": request.user.id,
            "email": request.user.email,
            "full_name": request.user.full_name,
        }
    return data


class PaymentService:
    """Credit packages, payment submission and admin review"""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.storage = storage
        self.currency = CurrencyService()

    def list_packages(self) -> List[CreditPackage]:
        return (
            self.db.query(CreditPackage)
            .filter(CreditPackage.is_active.is_(True))
            .order_by(CreditPackage.price, CreditPackage.id)
            .all()
        )

    def get_bank_accounts(self) -> List[Dict[str, str]]:
        return list(config.BANK_ACCOUNTS)

    def submit_payment_request(
        self,
        user: User,
        package_id: str,
        contact_email: str,
        screenshot: bytes,
        screenshot_content_type: str,
        payment_method: str = "bank_transfer",
        payment_details: Optional[Dict[str, Any]] = None,
    ) -> PaymentRequest:
        """
        Store the screenshot and create a pending payment request

        Raises:
            NotFoundError: Unknown or inactive package
            InvalidInput: Missing email/screenshot or unsupported file type
        """
        package = (
            self.db.query(CreditPackage)
            .filter(CreditPackage.id == package_id, CreditPackage.is_active.is_(True))
            .first()
        )
        if package is None:
            raise NotFoundError(f"Credit package {package_id} not found")
        if not contact_email or not contact_email.strip():
            raise InvalidInput("A contact email is required for the receipt")
        if payment_method not in PAYMENT_METHODS:
            raise InvalidInput(f"Unsupported payment method: {payment_method}", details={"allowed": PAYMENT_METHODS})
        if not screenshot:
            raise InvalidInput("A payment screenshot is required")
        extension = ALLOWED_SCREENSHOT_TYPES.get(screenshot_content_type)
        if extension is None:
            raise InvalidInput(
                f"Unsupported screenshot type: {screenshot_content_type}",
                details={"allowed": sorted(ALLOWED_SCREENSHOT_TYPES)},
            )

        key = self.storage.put_private(
            self.storage.generate_key(f"{SCREENSHOT_PREFIX}/{user.id}", extension),
            screenshot,
            screenshot_content_type,
        )

        request = PaymentRequest(
            user_id=user.id,
            package_id=package.id,
            reference_id=generate_reference_id(),
            amount=package.price,
            currency=package.currency,
            payment_method=payment_method,
            contact_email=contact_email.strip(),
            image_credits=package.image_credits,
            video_credits=package.video_credits,
            payment_details={
                **(payment_details or {}),
                "package_name": package.name,
                "screenshot_key": key,
            },
            status=PaymentStatus.PENDING.value,
        )
        self.db.add(request)
        self.db.flush()
        request.screenshot_url = screenshot_path(request.id)
        self.db.commit()
        self.db.refresh(request)
        logger.info(
            f"Payment request {request.id} ({request.reference_id}) submitted by user {user.id} "
            f"for package {package.id}"
        )
        return request

    def list_requests(self, status: Optional[str] = None) -> List[PaymentRequest]:
        """All requests (admin), newest first, with the requesting user loaded"""
        query = self.db.query(PaymentRequest).options(joinedload(PaymentRequest.user))
        if status:
            query = query.filter(PaymentRequest.status == PaymentStatus(status).value)
        return query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc()).all()

    def list_user_requests(self, user: User) -> List[PaymentRequest]:
        return (
            self.db.query(PaymentRequest)
            .filter(PaymentRequest.user_id == user.id)
            .order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
            .all()
        )

    def get_screenshot(self, request_id: int, user: User) -> Tuple[bytes, str]:
        """
        Screenshot bytes and content type for the request's owner or an admin

        Raises:
            NotFoundError: Unknown request, someone else's request, or missing file
        """
        request = self.db.query(PaymentRequest).filter(PaymentRequest.id == request_id).first()
        if request is None or (request.user_id != user.id and not user.is_admin):
            raise NotFoundError(f"Payment request {request_id} not found")

        key = (request.payment_details or {}).get("screenshot_key")
        data = self.storage.get_private(key) if key else None
        if data is None:
            logger.warning(f"Screenshot for payment request {request_id} is missing from storage")
            raise NotFoundError(f"No screenshot stored for payment request {request_id}")

        content_type = next(
            (ct for ct, ext in ALLOWED_SCREENSHOT_TYPES.items() if key.endswith(ext)),
            "application/octet-stream",
        )
        return data, content_type

    def _get(self, request_id: int) -> PaymentRequest:
        request = self.db.query(PaymentRequest).filter(PaymentRequest.id == request_id).first()
        if request is None:
            raise NotFoundError(f"Payment request {request_id} not found")
        return request

    def _resolve(self, request_id: int, admin: User, new_status: PaymentStatus) -> bool:
        """Move a pending request to `new_status`; False if it was not pending"""
        now = datetime.utcnow()
        result = self.db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request_id)
            .where(PaymentRequest.status == PaymentStatus.PENDING.value)
            .values(status=new_status.value, resolved_by=admin.id, resolved_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def approve(self, request_id: int, admin: User) -> PaymentRequest:
        """
        Approve a pending request and grant its credits

        The status change and the credit grant commit together, and only the
        caller that wins the pending -> approved transition grants credits.

        Raises:
            NotFoundError: Unknown request
            PaymentAlreadyResolved: Request was already approved or rejected
        """
        request = self._get(request_id)
        if not self._resolve(request_id, admin, PaymentStatus.APPROVED):
            self.db.rollback()
            self.db.refresh(request)
            raise PaymentAlreadyResolved(request_id, request.status)

        self.db.execute(
            update(User)
            .where(User.id == request.user_id)
            .values(
                image_credits=User.image_credits + request.image_credits,
                video_credits=User.video_credits + request.video_credits,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(
            f"Payment request {request_id} approved by admin {admin.id}: "
            f"+{request.image_credits} image, +{request.video_credits} video credits for user {request.user_id}"
        )
        return request

    def reject(self, request_id: int, admin: User) -> PaymentRequest:
        request = self._get(request_id)
        if not self._resolve(request_id, admin, PaymentStatus.REJECTED):
            self.db.rollback()
            self.db.refresh(request)
            raise PaymentAlreadyResolved(request_id, request.status)

        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Payment request {request_id} rejected by admin {admin.id}")
        return request
