"""
Issuance Service: drives a person's credential from offer to claim.

IssuedVC:     issuing -> issued | expired   (revoked is set by revocation)
IssuanceLog:  initiated -> user_claimed | expired

Expiry is lazy. A log past its claim window is only written as expired
when someone polls it, but read-side views use
:func:`derive_display_status` so they always report it correctly.
"""
import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import Settings
from ..core.security import create_actor_token
from ..integrations.sandbox import CredentialNotReady, UpstreamContractError
from ..integrations.wallet_client import WalletClient
from ..models import (
    IssuanceLog,
    IssuanceLogStatus,
    IssuedVC,
    IssuedVCStatus,
    Person,
    PersonEligibility,
    VCTemplate,
)
from .benefit_levels import BenefitLevelPicker, RandomBenefitLevelPicker
from .credential_token import extract_cid
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

# Order matters: the wallet renders fields in the order they are sent
ISSUED_DATA_FIELDS = (
    "name",
    "personalId",
    "system_uuid",
    "benefitLevel",
    "emergencyContactName",
    "emergencyContactRelationship",
    "emergencyContactPhone",
    "reviewingAuthority",
    "reviewerName",
    "reviewerPhone",
)


def new_system_uuid() -> str:
    """Correlation id for an issuance attempt (underscores, the wallet rejects '-')."""
    return str(uuid.uuid4()).replace("-", "_")


def build_issued_data(person: Person, system_uuid: str, benefit_level: str) -> Dict[str, str]:
    """Field values sent to the wallet for one credential. Missing values become ''."""
    return {
        "name": person.name or "",
        "personalId": person.personal_id or "",
        "system_uuid": system_uuid,
        "benefitLevel": benefit_level,
        "emergencyContactName": person.emergency_contact_name or "",
        "emergencyContactRelationship": person.emergency_contact_relationship or "",
        "emergencyContactPhone": person.emergency_contact_phone or "",
        "reviewingAuthority": person.reviewing_authority or "",
        "reviewerName": person.reviewer_name or "",
        "reviewerPhone": (person.reviewer_phone or "").replace("-", ""),
    }


def to_wallet_fields(issued_data: Dict[str, Any]) -> List[Dict[str, str]]:
    return [{"ename": key, "content": str(issued_data.get(key) or "")} for key in ISSUED_DATA_FIELDS]


def derive_display_status(log: IssuanceLog, issued_vc: IssuedVC, now: datetime) -> Tuple[str, str]:
    """
    Status pair (log, credential) as audit views should show it.

    A claimed credential wins, including a claim that landed after a local
    revocation (issued_at unset, remote credential exists). Otherwise a log
    past its window reads as expired on both sides even when storage still
    says initiated/issuing.
    """
    if issued_vc.issued_at is not None or log.status == IssuanceLogStatus.USER_CLAIMED:
        return IssuanceLogStatus.USER_CLAIMED.value, issued_vc.status.value
    if log.expires_at is not None and now > log.expires_at:
        return IssuanceLogStatus.EXPIRED.value, IssuedVCStatus.EXPIRED.value
    return log.status.value, issued_vc.status.value


class IssuanceService:
    """Service for simulated credential issuance."""

    def __init__(
        self,
        wallet: WalletClient,
        settings: Settings,
        benefit_level_picker: Optional[BenefitLevelPicker] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.wallet = wallet
        self.settings = settings
        self.rng = rng or random.Random()
        self.pick_benefit_level = benefit_level_picker or RandomBenefitLevelPicker(self.rng)
        self.clock = clock

    # ─── Simulation bootstrap ───────────────────────────────────────

    def start_simulation(self, db: Session) -> Dict[str, Any]:
        """
        Pick a random person who holds no issued credential yet.

        Returns the person, the templates they may still claim and an
        actor token that identifies them on the following calls.
        """
        issued_person_ids = select(IssuedVC.person_id).where(IssuedVC.status == IssuedVCStatus.ISSUED)
        candidates = (
            db.query(Person.id)
            .filter(~Person.id.in_(issued_person_ids))
            .order_by(Person.id)
            .all()
        )
        if not candidates:
            raise NotFoundError("No simulated person without an issued credential is left")

        person_id = self.rng.choice(candidates)[0]
        person = db.query(Person).filter(Person.id == person_id).first()

        templates = self.available_templates(db, person_id)
        logger.info(f"[Issuance] Simulation started person={person_id} available_templates={len(templates)}")

        return {
            "actorToken": create_actor_token(person_id, self.settings, now=self.clock()),
            "person": {
                "id": person.id,
                "name": person.name,
                "personalId": person.personal_id,
            },
            "availableTemplates": [
                {
                    "id": t.id,
                    "templateName": t.template_name,
                    "vcUid": t.vc_uid,
                    "description": t.description,
                    "cardImageUrl": t.card_image_url,
                    "createdAt": t.created_at.isoformat() if t.created_at else None,
                }
                for t in templates
            ],
        }

    def available_templates(self, db: Session, person_id: int) -> List[VCTemplate]:
        """Templates the person is eligible for and does not currently hold."""
        issued_template_ids = select(IssuedVC.template_id).where(
            IssuedVC.person_id == person_id, IssuedVC.status == IssuedVCStatus.ISSUED
        )
        return (
            db.query(VCTemplate)
            .join(PersonEligibility, PersonEligibility.template_id == VCTemplate.id)
            .filter(
                PersonEligibility.person_id == person_id,
                ~VCTemplate.id.in_(issued_template_ids),
            )
            .order_by(VCTemplate.id)
            .all()
        )

    # ─── Offer ──────────────────────────────────────────────────────

    async def request_credential(self, db: Session, person_id: int, template_id: int) -> Dict[str, Any]:
        """
        Create an IssuedVC in ``issuing`` and ask the wallet for a claim QR.

        The IssuedVC insert, the wallet call and the IssuanceLog insert are
        one unit: if the wallet fails or answers incompletely the IssuedVC
        is rolled back too, so no orphan ``issuing`` row is left behind.

        Raises:
            NotFoundError: unknown person or template
            InvalidRequestError: template has no vcUid, or person not eligible
            SandboxError: wallet failure (nothing persisted)
        """
        person = db.query(Person).filter(Person.id == person_id).first()
        if not person:
            raise NotFoundError("Person not found")

        template = db.query(VCTemplate).filter(VCTemplate.id == template_id).first()
        if not template:
            raise NotFoundError("Template not found")
        if not template.vc_uid:
            raise InvalidRequestError("Template vcUid is missing")

        eligible = (
            db.query(PersonEligibility.id)
            .filter(PersonEligibility.person_id == person_id, PersonEligibility.template_id == template_id)
            .first()
        )
        if not eligible:
            raise InvalidRequestError("Person is not eligible for this template")

        now = self.clock()
        system_uuid = new_system_uuid()
        benefit_level = self.pick_benefit_level(template_id)
        issued_data = build_issued_data(person, system_uuid, benefit_level)

        issued_vc = IssuedVC(
            person_id=person_id,
            template_id=template_id,
            system_uuid=system_uuid,
            status=IssuedVCStatus.ISSUING,
            issued_data=issued_data,
            benefit_level=benefit_level,
            created_at=now,
        )
        try:
            db.add(issued_vc)
            db.flush()

            offer = await self.wallet.issue_credential(
                vc_uid=template.vc_uid,
                issuance_date=now.strftime("%Y%m%d"),
                expired_date=self.settings.credential_expired_date,
                fields=to_wallet_fields(issued_data),
            )

            log = IssuanceLog(
                issued_vc_id=issued_vc.id,
                transaction_id=offer["transactionId"],
                status=IssuanceLogStatus.INITIATED,
                expires_at=now + timedelta(minutes=self.settings.issuance_claim_window_minutes),
                created_at=now,
            )
            db.add(log)
            db.commit()
        except Exception:
            db.rollback()
            logger.warning(
                f"[Issuance] Offer aborted person={person_id} template={template_id} system_uuid={system_uuid}",
                exc_info=True,
            )
            raise

        logger.info(
            f"[Issuance] Offer created person={person_id} template={template_id} "
            f"tx={log.transaction_id} issued_vc={issued_vc.id} benefit_level={benefit_level}"
        )
        return {
            "transactionId": log.transaction_id,
            "qrCode": offer["qrCode"],
            "deepLink": offer["deepLink"],
            "expiresAt": log.expires_at.isoformat(),
            "issuedVcId": issued_vc.id,
        }

    # ─── Poll ───────────────────────────────────────────────────────

    async def poll_status(self, db: Session, person_id: int, transaction_id: str) -> Dict[str, Any]:
        """
        Advance one issuance transaction and report where it stands.

        Terminal logs answer from storage without calling the wallet.

        Returns:
            {"status": "initiated" | "issued" | "expired", "message": str, "cid"?: str}

        Raises:
            NotFoundError: no such transaction for this person
            SandboxError: wallet failure other than "not claimed yet"
            UpstreamContractError: claimed credential without a usable CID
        """
        log = (
            db.query(IssuanceLog)
            .join(IssuedVC, IssuedVC.id == IssuanceLog.issued_vc_id)
            .filter(IssuanceLog.transaction_id == transaction_id, IssuedVC.person_id == person_id)
            .first()
        )
        if not log:
            raise NotFoundError("Issuance transaction not found")

        if log.status != IssuanceLogStatus.INITIATED:
            return self._describe(log)

        now = self.clock()
        if now > log.expires_at:
            self._expire(db, log, now)
            return self._describe(log)

        try:
            credential = await self.wallet.fetch_credential(transaction_id)
        except CredentialNotReady:
            return {"status": "initiated", "message": "Credential not claimed yet"}

        cid = extract_cid(credential)
        if not cid:
            raise UpstreamContractError("Claimed credential carries no credential id in jti")

        self._claim(db, log, cid, now)
        return self._describe(log)

    def _expire(self, db: Session, log: IssuanceLog, now: datetime) -> None:
        try:
            updated = (
                db.query(IssuanceLog)
                .filter(IssuanceLog.id == log.id, IssuanceLog.status == IssuanceLogStatus.INITIATED)
                .update({IssuanceLog.status: IssuanceLogStatus.EXPIRED}, synchronize_session=False)
            )
            if updated:
                db.query(IssuedVC).filter(
                    IssuedVC.id == log.issued_vc_id,
                    IssuedVC.status == IssuedVCStatus.ISSUING,
                ).update(
                    {IssuedVC.status: IssuedVCStatus.EXPIRED, IssuedVC.expired_at: now},
                    synchronize_session=False,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(log)
        db.refresh(log.issued_vc)
        if updated:
            logger.info(f"[Issuance] Expired tx={log.transaction_id} issued_vc={log.issued_vc_id}")

    def _claim(self, db: Session, log: IssuanceLog, cid: str, now: datetime) -> None:
        try:
            updated = (
                db.query(IssuanceLog)
                .filter(IssuanceLog.id == log.id, IssuanceLog.status == IssuanceLogStatus.INITIATED)
                .update({IssuanceLog.status: IssuanceLogStatus.USER_CLAIMED}, synchronize_session=False)
            )
            vc_updated = 0
            if updated:
                vc_updated = (
                    db.query(IssuedVC)
                    .filter(IssuedVC.id == log.issued_vc_id, IssuedVC.status == IssuedVCStatus.ISSUING)
                    .update(
                        {IssuedVC.status: IssuedVCStatus.ISSUED, IssuedVC.cid: cid, IssuedVC.issued_at: now},
                        synchronize_session=False,
                    )
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(log)
        db.refresh(log.issued_vc)

        if updated and not vc_updated:
            # Revoked locally while the offer was still open
            logger.error(
                f"[Issuance] tx={log.transaction_id} claimed after local revocation; "
                f"remote credential cid={cid} is still active and needs manual revocation"
            )
        elif updated:
            logger.info(f"[Issuance] Claimed tx={log.transaction_id} cid={cid}")

    @staticmethod
    def _describe(log: IssuanceLog) -> Dict[str, Any]:
        if log.status == IssuanceLogStatus.USER_CLAIMED:
            result = {"status": "issued", "message": "Credential claimed"}
            if log.issued_vc is not None and log.issued_vc.cid:
                result["cid"] = log.issued_vc.cid
            return result
        if log.status == IssuanceLogStatus.EXPIRED:
            return {"status": "expired", "message": "Claim window expired"}
        return {"status": "initiated", "message": "Credential not claimed yet"}
