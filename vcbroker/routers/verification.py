"""
Verification Router (/api/verification/*)

Single mode: one QR, one presentation, polled by transaction id.
Batch mode: one long-lived QR; every scan is redirected to a fresh
one-shot presentation request and the whole session is polled at once.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies.services import get_batch_verification_service, get_verification_service
from ..services.batch_verification_service import BatchVerificationService
from ..services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verification", tags=["verification"])

VERIFICATION_MODES = ("single", "batch")


# ─── Request/Response Models ────────────────────────────────────────

class VerificationRequest(BaseModel):
    verificationMode: Optional[str] = None
    role: Optional[str] = None
    verifier: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class SessionInfo(BaseModel):
    verifierInfo: Optional[str] = None
    verifierBranch: Optional[str] = None
    verificationReason: Optional[str] = None
    notes: Optional[str] = None
    status: str
    expiresAt: str


class BatchResult(BaseModel):
    logId: int
    status: str
    message: Optional[str] = None
    timestamp: Optional[str] = None
    verificationData: Optional[Dict[str, Any]] = None


class BatchStatusResponse(BaseModel):
    sessionInfo: SessionInfo
    results: List[BatchResult]


# ─── Endpoints ──────────────────────────────────────────────────────

@router.post("/request-verification")
async def request_verification(
    req: VerificationRequest,
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
    batch: BatchVerificationService = Depends(get_batch_verification_service),
):
    """
    Start a verification.

    single -> {type, transactionId, qrCode, deepLink, expiresAt}
    batch  -> {type, batchSessionUuid, qrCode, expiresAt}
    """
    if not req.role or not req.verifier or not req.reason:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="role, verifier and reason are required",
        )
    if req.verificationMode not in VERIFICATION_MODES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='verificationMode must be "single" or "batch"',
        )

    if req.verificationMode == "single":
        return await verification.start_single(db, req.role, req.verifier, req.reason, req.notes)
    return batch.start(db, req.role, req.verifier, req.reason, req.notes)


@router.get("/batch/{session_uuid}")
async def batch_redirect(
    session_uuid: str,
    db: Session = Depends(get_db),
    batch: BatchVerificationService = Depends(get_batch_verification_service),
):
    """Target of the batch QR. Each scan is sent on to its own presentation request."""
    auth_uri = await batch.redirect(db, session_uuid)
    return RedirectResponse(url=auth_uri, status_code=status.HTTP_302_FOUND)


@router.get("/check-status/{transaction_id}")
async def check_status(
    transaction_id: str,
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
):
    """Poll a single-mode verification."""
    report = await verification.poll(db, transaction_id)
    return JSONResponse(status_code=report.http_status, content=report.body)


@router.get("/check-batch-status/{session_uuid}", response_model=BatchStatusResponse)
async def check_batch_status(
    session_uuid: str,
    db: Session = Depends(get_db),
    batch: BatchVerificationService = Depends(get_batch_verification_service),
):
    """Poll every pending scan of a batch session and list all of them."""
    return await batch.poll_batch(db, session_uuid)
