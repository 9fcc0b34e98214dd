"""
Verification Service: single-shot presentation requests against the verifier.

VerificationLog: initiated -> success | failed | expired | error_missing_uuid

Every transition out of ``initiated`` is a conditional update, so a log
reaches a terminal state exactly once even when two pollers race; the
loser simply re-reads what the winner stored.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session, joinedload

from ..config import Settings
from ..integrations.sandbox import UpstreamContractError, VerificationPending
from ..integrations.verifier_client import VerifierClient
from ..models import IssuedVC, IssuedVCStatus, Person, VerificationLog, VerificationStatus
from .errors import NotFoundError

logger = logging.getLogger(__name__)

PERSONAL_ID_CLAIM = "personalId"

MSG_PENDING = "Waiting for the holder to present"
MSG_EXPIRED = "Verification window expired"
MSG_FAILED = "Verification failed"
MSG_SUCCESS = "Verification succeeded"
MSG_FINISHED = "Verification finished"
MSG_MISSING_CLAIM = "Verification succeeded but the presentation has no personalId"
MSG_UNKNOWN_PERSON = "Verification succeeded but no local person matches the personalId"
MSG_ORPHANED = "Verification succeeded but the linked person no longer exists"


@dataclass
class StatusReport:
    """Response body plus the HTTP status it should travel with."""
    body: Dict[str, Any]
    http_status: int = 200


def extract_personal_id(data: Any) -> Optional[str]:
    """``personalId`` claim value from the first credential of a presentation."""
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    claims = first.get("claims") if isinstance(first, dict) else None
    if not isinstance(claims, list):
        return None
    for claim in claims:
        if isinstance(claim, dict) and claim.get("ename") == PERSONAL_ID_CLAIM and claim.get("value"):
            return str(claim["value"])
    return None


def build_success_payload(db: Session, person_id: Optional[int], raw_sandbox_data: Any) -> Optional[Dict[str, Any]]:
    """
    What a verifier sees after a successful presentation.

    Returns None when the person has been deleted since (orphaned success).
    Only credentials currently ``issued`` are listed.
    """
    if person_id is None:
        return None
    person = db.query(Person).filter(Person.id == person_id).first()
    if person is None:
        return None

    issued_vcs = (
        db.query(IssuedVC)
        .options(joinedload(IssuedVC.template))
        .filter(IssuedVC.person_id == person_id, IssuedVC.status == IssuedVCStatus.ISSUED)
        .order_by(IssuedVC.id)
        .all()
    )

    return {
        "person": {
            "name": person.name,
            "nationalId": person.national_id,
        },
        "contact": {
            "emergencyContactName": person.emergency_contact_name,
            "emergencyContactRelationship": person.emergency_contact_relationship,
            "emergencyContactPhone": person.emergency_contact_phone,
        },
        "reviewer": {
            "reviewingAuthority": person.reviewing_authority,
            "reviewerName": person.reviewer_name,
            "reviewerPhone": person.reviewer_phone,
        },
        "verifiedCredentials": [
            {
                "templateName": vc.template.template_name if vc.template else None,
                "benefitLevel": vc.benefit_level,
                "cardImageUrl": vc.template.card_image_url if vc.template else None,
            }
            for vc in issued_vcs
        ],
        "rawSandboxData": raw_sandbox_data,
    }


class VerificationService:
    """Single-mode verification plus the per-log transition rules batch mode reuses."""

    def __init__(
        self,
        verifier: VerifierClient,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.verifier = verifier
        self.settings = settings
        self.clock = clock

    # ─── Start ──────────────────────────────────────────────────────

    async def start_single(
        self,
        db: Session,
        role: str,
        verifier: str,
        reason: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        transaction_id = str(uuid.uuid4())
        qr = await self.verifier.create_qr_code(transaction_id)
        if not qr.get("qrcodeImage"):
            raise UpstreamContractError("verifier QR response has no qrcodeImage", body=qr)

        now = self.clock()
        log = self.open_log(
            db,
            transaction_id,
            now,
            verifier_info=role,
            verifier_branch=verifier,
            verification_reason=reason,
            notes=notes,
        )
        logger.info(f"[Verification] Single request tx={transaction_id} verifier={verifier}")
        return {
            "type": "single",
            "transactionId": transaction_id,
            "qrCode": qr["qrcodeImage"],
            "deepLink": qr["authUri"],
            "expiresAt": log.expires_at.isoformat(),
        }

    def open_log(self, db: Session, transaction_id: str, now: datetime, **fields) -> VerificationLog:
        """Persist a fresh ``initiated`` log with the standard window."""
        log = VerificationLog(
            transaction_id=transaction_id,
            status=VerificationStatus.INITIATED,
            expires_at=now + timedelta(minutes=self.settings.verification_window_minutes),
            created_at=now,
            updated_at=now,
            **fields,
        )
        try:
            db.add(log)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(log)
        return log

    # ─── Poll ───────────────────────────────────────────────────────

    async def poll(self, db: Session, transaction_id: str) -> StatusReport:
        """
        Advance one verification and report it.

        Raises:
            NotFoundError: unknown transaction
            SandboxError: verifier failure other than "pending" (state untouched)
        """
        log = db.query(VerificationLog).filter(VerificationLog.transaction_id == transaction_id).first()
        if not log:
            raise NotFoundError("Verification transaction not found")

        if log.status == VerificationStatus.INITIATED:
            if self.is_expired(log):
                self.mark_expired(db, log)
            else:
                try:
                    result = await self.verifier.fetch_result(transaction_id)
                except VerificationPending:
                    return StatusReport({"status": VerificationStatus.INITIATED.value, "message": MSG_PENDING})
                self.apply_result(db, log, result)

        return self.describe(db, log)

    def is_expired(self, log: VerificationLog) -> bool:
        return log.expires_at is not None and self.clock() > log.expires_at

    def mark_expired(self, db: Session, log: VerificationLog) -> bool:
        return self._finish(db, log, {VerificationLog.status: VerificationStatus.EXPIRED})

    def mark_failed(
        self,
        db: Session,
        log: VerificationLog,
        description: str,
        returned_data: Any = None,
        verify_result: Optional[bool] = False,
    ) -> bool:
        """``verify_result=None`` records a failure to poll rather than a rejected presentation."""
        values = {
            VerificationLog.status: VerificationStatus.FAILED,
            VerificationLog.result_description: description,
        }
        if verify_result is not None:
            values[VerificationLog.verify_result] = verify_result
        if returned_data is not None:
            values[VerificationLog.returned_data] = returned_data
        return self._finish(db, log, values)

    def apply_result(self, db: Session, log: VerificationLog, result: Dict[str, Any]) -> None:
        """
        Move an ``initiated`` log to its terminal state from a verifier result.

        Raises:
            UpstreamContractError: result has no boolean ``verifyResult``
        """
        verify_result = result.get("verifyResult")
        description = result.get("resultDescription")

        if verify_result is False:
            self.mark_failed(db, log, description or MSG_FAILED, returned_data=result)
            logger.info(f"[Verification] Failed tx={log.transaction_id}: {description}")
            return
        if verify_result is not True:
            raise UpstreamContractError("verifier result has no verifyResult", body=result)

        personal_id = extract_personal_id(result.get("data"))
        if not personal_id:
            self._finish(db, log, {
                VerificationLog.status: VerificationStatus.ERROR_MISSING_UUID,
                VerificationLog.verify_result: True,
                VerificationLog.result_description: MSG_MISSING_CLAIM,
                VerificationLog.returned_data: result,
            })
            logger.warning(f"[Verification] tx={log.transaction_id} verified without personalId claim")
            return

        # Person lookup and log update commit together
        try:
            person = (
                db.query(Person)
                .filter(Person.personal_id == personal_id)
                .with_for_update()
                .first()
            )
            if person is None:
                values = {
                    VerificationLog.status: VerificationStatus.ERROR_MISSING_UUID,
                    VerificationLog.verify_result: True,
                    VerificationLog.result_description: MSG_UNKNOWN_PERSON,
                    VerificationLog.returned_data: result,
                    VerificationLog.verified_person_id: None,
                }
            else:
                values = {
                    VerificationLog.status: VerificationStatus.SUCCESS,
                    VerificationLog.verify_result: True,
                    VerificationLog.result_description: description or MSG_SUCCESS,
                    VerificationLog.returned_data: result,
                    VerificationLog.verified_person_id: person.id,
                }
            updated = self._conditional_update(db, log, values)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(log)

        if updated:
            logger.info(
                f"[Verification] tx={log.transaction_id} -> {log.status.value} "
                f"person={log.verified_person_id}"
            )

    def _conditional_update(self, db: Session, log: VerificationLog, values: Dict[Any, Any]) -> int:
        values = dict(values)
        values[VerificationLog.updated_at] = self.clock()
        return (
            db.query(VerificationLog)
            .filter(VerificationLog.id == log.id, VerificationLog.status == VerificationStatus.INITIATED)
            .update(values, synchronize_session=False)
        )

    def _finish(self, db: Session, log: VerificationLog, values: Dict[Any, Any]) -> bool:
        try:
            updated = self._conditional_update(db, log, values)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(log)
        return bool(updated)

    # ─── Responses ──────────────────────────────────────────────────

    def describe(self, db: Session, log: VerificationLog) -> StatusReport:
        """Response for the single-mode check-status endpoint."""
        status = log.status

        if status == VerificationStatus.INITIATED:
            return StatusReport({"status": status.value, "message": MSG_PENDING})

        if status == VerificationStatus.SUCCESS:
            payload = build_success_payload(db, log.verified_person_id, log.returned_data)
            if payload is None:
                return StatusReport(
                    {"status": VerificationStatus.ERROR_MISSING_UUID.value, "message": MSG_ORPHANED},
                    http_status=404,
                )
            return StatusReport({
                "status": status.value,
                "message": log.result_description or MSG_SUCCESS,
                "verificationData": payload,
            })

        if status == VerificationStatus.EXPIRED:
            return StatusReport({"status": status.value, "message": MSG_EXPIRED})

        return StatusReport({
            "status": status.value,
            "message": log.result_description or MSG_FINISHED,
            "data": log.returned_data,
        })

    def describe_batch_member(self, db: Session, log: VerificationLog) -> Dict[str, Any]:
        """One entry of a batch poll's ``results``."""
        item: Dict[str, Any] = {
            "logId": log.id,
            "timestamp": log.created_at.isoformat() if log.created_at else None,
        }
        if log.status == VerificationStatus.SUCCESS:
            payload = build_success_payload(db, log.verified_person_id, log.returned_data)
            if payload is None:
                item.update(status=VerificationStatus.ERROR_MISSING_UUID.value, message=MSG_ORPHANED)
            else:
                item.update(
                    status=VerificationStatus.SUCCESS.value,
                    message=log.result_description or MSG_SUCCESS,
                    verificationData=payload,
                )
        elif log.status == VerificationStatus.INITIATED:
            item.update(status=log.status.value, message="Scanned, not yet complete")
        elif log.status == VerificationStatus.EXPIRED:
            item.update(status=log.status.value, message=log.result_description or MSG_EXPIRED)
        else:
            item.update(status=log.status.value, message=log.result_description or MSG_FINISHED)
        return item

