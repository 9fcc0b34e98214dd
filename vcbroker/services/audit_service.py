"""
Read-only audit views over issuance and verification logs.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session, joinedload, selectinload

from ..models import IssuanceLog, IssuedVC, IssuedVCStatus, Person, VerificationLog, VerificationStatus
from .issuance_service import derive_display_status

DEFAULT_LIMIT = 20
MAX_LIMIT = 200


def _iso(value: datetime) -> Any:
    return value.isoformat() if value else None


class AuditService:

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self.clock = clock

    def issuance_logs(self, db: Session, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """Most recent issuance logs with their derived display status."""
        now = self.clock()
        logs = (
            db.query(IssuanceLog)
            .options(
                joinedload(IssuanceLog.issued_vc).joinedload(IssuedVC.person),
                joinedload(IssuanceLog.issued_vc).joinedload(IssuedVC.template),
            )
            .order_by(IssuanceLog.created_at.desc(), IssuanceLog.id.desc())
            .limit(min(limit, MAX_LIMIT))
            .all()
        )

        rows = []
        for log in logs:
            vc = log.issued_vc
            log_status, vc_status = derive_display_status(log, vc, now)
            rows.append({
                "id": log.id,
                "transactionId": log.transaction_id,
                "status": log_status,
                "createdAt": _iso(log.created_at),
                "expiresAt": _iso(log.expires_at),
                "issuedVC": {
                    "id": vc.id,
                    "status": vc_status,
                    "systemUuid": vc.system_uuid,
                    "issuedAt": _iso(vc.issued_at),
                    "benefitLevel": vc.benefit_level,
                    "personName": vc.person.name if vc.person else None,
                    "personArea": _area(vc.person),
                    "templateName": vc.template.template_name if vc.template else None,
                    "cardImageUrl": vc.template.card_image_url if vc.template else None,
                },
            })
        return rows

    def verification_logs(self, db: Session, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """Most recent completed verifications, newest first."""
        completed = [s for s in VerificationStatus if s != VerificationStatus.INITIATED]
        logs = (
            db.query(VerificationLog)
            .options(
                selectinload(VerificationLog.verified_person)
                .selectinload(Person.issued_vcs)
                .joinedload(IssuedVC.template)
            )
            .filter(VerificationLog.status.in_(completed))
            .order_by(VerificationLog.created_at.desc(), VerificationLog.id.desc())
            .limit(min(limit, MAX_LIMIT))
            .all()
        )

        rows = []
        for log in logs:
            person = log.verified_person
            identities = []
            if person is not None:
                identities = [
                    vc.template.template_name
                    for vc in person.issued_vcs
                    if vc.status == IssuedVCStatus.ISSUED and vc.template is not None
                ]
            rows.append({
                "id": log.id,
                "verifiedAt": _iso(log.created_at),
                "agencyName": log.verifier_branch,
                "agencyType": log.verifier_info,
                "purpose": log.verification_reason,
                "notes": log.notes,
                "status": log.status.value,
                "personName": person.name if person else None,
                "personArea": _area(person),
                "result": log.verify_result,
                "verifiedIdentities": identities,
            })
        return rows


def _area(person) -> Any:
    if person is None:
        return None
    return f"{person.county or ''}{person.district or ''}"
