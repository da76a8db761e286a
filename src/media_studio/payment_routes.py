"""
Credit package and offline payment routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.orm import Session

from .auth import get_current_user
from .db.engine import get_db
from .db.models.user import User
from .i18n import get_display_language, translate_message
from .services.payment_service import PaymentService, serialize_package, serialize_request
from .services.storage_provider import StorageProvider, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


@router.get("/credits/packages")
async def list_packages(db: Session = Depends(get_db)):
    """Active credit packages with KS and THB prices"""
    service = PaymentService(db)
    return {"packages": [serialize_package(p, service.currency) for p in service.list_packages()]}


@router.get("/credits/bank-accounts")
async def list_bank_accounts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"accounts": PaymentService(db).get_bank_accounts()}


@router.post("/payments")
async def submit_payment(
    package_id: str = Form(...),
    contact_email: str = Form(...),
    payment_method: str = Form("bank_transfer"),
    note: Optional[str] = Form(None),
    screenshot: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    lang: str = Depends(get_display_language),
):
    """Submit proof of an offline payment for admin review"""
    data = await screenshot.read()
    request = PaymentService(db, storage).submit_payment_request(
        current_user,
        package_id=package_id,
        contact_email=contact_email,
        screenshot=data,
        screenshot_content_type=screenshot.content_type,
        payment_method=payment_method,
        payment_details={"note": note} if note else None,
    )
    return {**serialize_request(request), "message": translate_message("payment_submitted", lang)}


@router.get("/payments")
async def list_my_payments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    requests = PaymentService(db).list_user_requests(current_user)
    return {"payments": [serialize_request(r) for r in requests]}


@router.get("/payments/{request_id}/screenshot")
async def get_payment_screenshot(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """Serve a payment screenshot to the user who submitted it or to an admin"""
    data, content_type = PaymentService(db, storage).get_screenshot(request_id, current_user)
    return Response(content=data, media_type=content_type, headers={"Cache-Control": "private, no-store"})
