"""
Issuance Router (/api/issuance/*)

Simulated holder flow: pick a person, request a credential offer, poll
until the wallet reports the claim.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.security import Actor
from ..db import get_db
from ..dependencies.actor import get_current_actor
from ..dependencies.services import get_issuance_service
from ..services.issuance_service import IssuanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/issuance", tags=["issuance"])


# ─── Request/Response Models ────────────────────────────────────────

class SimulatedPerson(BaseModel):
    id: int
    name: str
    personalId: str


class AvailableTemplate(BaseModel):
    id: int
    templateName: str
    vcUid: Optional[str] = None
    description: Optional[str] = None
    cardImageUrl: Optional[str] = None
    createdAt: Optional[str] = None


class StartSimulationResponse(BaseModel):
    actorToken: str
    person: SimulatedPerson
    availableTemplates: List[AvailableTemplate]


class RequestCredentialRequest(BaseModel):
    templateId: int


class RequestCredentialResponse(BaseModel):
    transactionId: str
    qrCode: str
    deepLink: str
    expiresAt: str
    issuedVcId: int


class IssuanceStatusResponse(BaseModel):
    status: str  # 'initiated', 'issued', 'expired'
    message: str
    cid: Optional[str] = None


# ─── Endpoints ──────────────────────────────────────────────────────

@router.post("/start-simulation", response_model=StartSimulationResponse)
def start_simulation(
    db: Session = Depends(get_db),
    service: IssuanceService = Depends(get_issuance_service),
):
    """Pick a simulated person and list the credentials they may claim."""
    return service.start_simulation(db)


@router.post("/request-credential", response_model=RequestCredentialResponse)
async def request_credential(
    req: RequestCredentialRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    service: IssuanceService = Depends(get_issuance_service),
):
    """Create a credential offer; the frontend shows the QR / deeplink."""
    return await service.request_credential(db, actor.person_id, req.templateId)


@router.get("/status/{transaction_id}", response_model=IssuanceStatusResponse, response_model_exclude_none=True)
async def issuance_status(
    transaction_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    service: IssuanceService = Depends(get_issuance_service),
):
    """
    Poll an offer. Frontend calls this while the QR is displayed.
    """
    return await service.poll_status(db, actor.person_id, transaction_id)
