"""
Admin Router (/api/v1/admin/*)

Eligibility revocation and the audit log views.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies.services import get_audit_service, get_revocation_service
from ..services.audit_service import DEFAULT_LIMIT, MAX_LIMIT, AuditService
from ..services.revocation_service import RevocationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


# ─── Request/Response Models ────────────────────────────────────────

class RevokeEligibilityRequest(BaseModel):
    personId: Optional[int] = None
    templateId: Optional[int] = None


class RevokeEligibilityResponse(BaseModel):
    success: bool
    revokedCount: int
    remoteRevoked: List[str]


class LogListResponse(BaseModel):
    data: List[Dict[str, Any]]


# ─── Endpoints ──────────────────────────────────────────────────────

@router.post("/eligibility/revoke", response_model=RevokeEligibilityResponse)
async def revoke_eligibility(
    req: RevokeEligibilityRequest,
    db: Session = Depends(get_db),
    service: RevocationService = Depends(get_revocation_service),
):
    """
    Revoke a person's eligibility for one template and every credential
    issued under it. Wallet first, local state only if the wallet agreed.
    """
    if req.personId is None or req.templateId is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="personId and templateId are required",
        )

    logger.info(f"[Revocation] Requested person={req.personId} template={req.templateId}")
    return await service.revoke(db, req.personId, req.templateId)


@router.get("/logs/issuance", response_model=LogListResponse)
def issuance_logs(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    service: AuditService = Depends(get_audit_service),
):
    return {"data": service.issuance_logs(db, limit=limit)}


@router.get("/logs/verification", response_model=LogListResponse)
def verification_logs(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    service: AuditService = Depends(get_audit_service),
):
    return {"data": service.verification_logs(db, limit=limit)}
