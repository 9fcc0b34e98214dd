"""
Batch Verification Service.

A batch session is a long-lived QR pointing back at this service. Every
scan mints its own one-shot VerificationLog, so one QR on a counter can
serve a queue of people. Polling a session fans out one verifier call per
pending log concurrently; a failing call only fails its own log.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..config import Settings
from ..integrations.sandbox import SandboxError, VerificationPending
from ..models import BatchSessionStatus, BatchVerificationSession, VerificationLog, VerificationStatus
from .errors import NotFoundError, SessionGoneError
from .qr import generate_qr_data_url
from .verification_service import VerificationService

logger = logging.getLogger(__name__)

SANDBOX_POLLING_ERROR = "Sandbox polling error"
INTERNAL_POLLING_ERROR = "Internal polling error"

_EXPIRED = object()


class BatchVerificationService:
    """Service for batch (waiting room) verification sessions."""

    def __init__(
        self,
        verification: VerificationService,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.verification = verification
        self.settings = settings
        self.clock = clock or verification.clock

    @property
    def verifier_client(self):
        return self.verification.verifier

    def session_url(self, session_uuid: str) -> str:
        return f"{self.settings.app_base_url.rstrip('/')}/api/verification/batch/{session_uuid}"

    def start(
        self,
        db: Session,
        role: str,
        verifier: str,
        reason: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Open an ``active`` session and return a QR pointing at its redirect URL."""
        now = self.clock()
        batch_session = BatchVerificationSession(
            uuid=str(uuid.uuid4()),
            verifier_info=role,
            verifier_branch=verifier,
            verification_reason=reason,
            notes=notes,
            status=BatchSessionStatus.ACTIVE,
            expires_at=now + timedelta(hours=self.settings.batch_session_hours),
            created_at=now,
        )
        try:
            db.add(batch_session)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(batch_session)

        logger.info(f"[Batch] Session opened uuid={batch_session.uuid} verifier={verifier}")
        return {
            "type": "batch",
            "batchSessionUuid": batch_session.uuid,
            "qrCode": generate_qr_data_url(self.session_url(batch_session.uuid)),
            "expiresAt": batch_session.expires_at.isoformat(),
        }

    def _get_session(self, db: Session, session_uuid: str) -> BatchVerificationSession:
        batch_session = (
            db.query(BatchVerificationSession)
            .filter(BatchVerificationSession.uuid == session_uuid)
            .first()
        )
        if not batch_session:
            raise NotFoundError("Batch verification session not found")
        return batch_session

    def _expire_if_due(self, db: Session, batch_session: BatchVerificationSession) -> bool:
        """Flip an active session past its deadline to expired. True if it is (now) expired."""
        if batch_session.status != BatchSessionStatus.ACTIVE or self.clock() <= batch_session.expires_at:
            return batch_session.status == BatchSessionStatus.EXPIRED
        try:
            db.query(BatchVerificationSession).filter(
                BatchVerificationSession.id == batch_session.id,
                BatchVerificationSession.status == BatchSessionStatus.ACTIVE,
            ).update({BatchVerificationSession.status: BatchSessionStatus.EXPIRED}, synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(batch_session)
        logger.info(f"[Batch] Session expired uuid={batch_session.uuid}")
        return True

    async def redirect(self, db: Session, session_uuid: str) -> str:
        """
        Handle one physical scan: mint a one-shot verification and return
        the verifier deeplink the scanner should be redirected to.

        Raises:
            NotFoundError: unknown session
            SessionGoneError: session closed or expired
            SandboxError: verifier failure (no log is created)
        """
        batch_session = self._get_session(db, session_uuid)

        if batch_session.status != BatchSessionStatus.ACTIVE:
            raise SessionGoneError("Batch verification session has ended")
        if self._expire_if_due(db, batch_session):
            raise SessionGoneError("Batch verification session has expired")

        transaction_id = str(uuid.uuid4())
        qr = await self.verifier_client.create_qr_code(transaction_id)

        self.verification.open_log(
            db,
            transaction_id,
            self.clock(),
            verifier_info=batch_session.verifier_info,
            verifier_branch=batch_session.verifier_branch,
            verification_reason=batch_session.verification_reason,
            notes=batch_session.notes,
            batch_verification_session_id=batch_session.id,
        )
        logger.info(f"[Batch] Scan on uuid={session_uuid} -> tx={transaction_id}")
        return qr["authUri"]

    # ─── Poll ───────────────────────────────────────────────────────

    async def _fetch(self, log: VerificationLog) -> Any:
        if self.verification.is_expired(log):
            return _EXPIRED
        return await self.verifier_client.fetch_result(log.transaction_id)

    async def poll_batch(self, db: Session, session_uuid: str) -> Dict[str, Any]:
        """
        Poll every pending log of a session and summarise all of them.

        Verifier calls run concurrently with all-settled semantics; the
        resulting transitions are then applied one by one on this session.
        """
        batch_session = self._get_session(db, session_uuid)
        self._expire_if_due(db, batch_session)

        pending = (
            db.query(VerificationLog)
            .filter(
                VerificationLog.batch_verification_session_id == batch_session.id,
                VerificationLog.status == VerificationStatus.INITIATED,
            )
            .all()
        )

        outcomes = await asyncio.gather(*(self._fetch(log) for log in pending), return_exceptions=True)
        for log, outcome in zip(pending, outcomes):
            self._settle(db, log, outcome)

        logs = (
            db.query(VerificationLog)
            .filter(VerificationLog.batch_verification_session_id == batch_session.id)
            .order_by(VerificationLog.created_at.desc(), VerificationLog.id.desc())
            .all()
        )

        return {
            "sessionInfo": {
                "verifierInfo": batch_session.verifier_info,
                "verifierBranch": batch_session.verifier_branch,
                "verificationReason": batch_session.verification_reason,
                "notes": batch_session.notes,
                "status": batch_session.status.value,
                "expiresAt": batch_session.expires_at.isoformat(),
            },
            "results": [self.verification.describe_batch_member(db, log) for log in logs],
        }

    def _settle(self, db: Session, log: VerificationLog, outcome: Any) -> None:
        """Apply one poll outcome. Errors stay with this log."""
        if isinstance(outcome, VerificationPending):
            return

        try:
            if outcome is _EXPIRED:
                self.verification.mark_expired(db, log)
            elif isinstance(outcome, SandboxError):
                logger.warning(f"[Batch] Poll failed tx={log.transaction_id}: {outcome.message}")
                self.verification.mark_failed(db, log, SANDBOX_POLLING_ERROR, verify_result=None)
            elif isinstance(outcome, BaseException):
                logger.error(f"[Batch] Poll crashed tx={log.transaction_id}", exc_info=outcome)
                self.verification.mark_failed(db, log, INTERNAL_POLLING_ERROR, verify_result=None)
            else:
                self.verification.apply_result(db, log, outcome)
        except SandboxError as e:
            # e.g. a result without verifyResult
            logger.warning(f"[Batch] Unusable result tx={log.transaction_id}: {e.message}")
            self._record_failure(db, log, SANDBOX_POLLING_ERROR)
        except Exception:
            logger.exception(f"[Batch] Could not record outcome for tx={log.transaction_id}")
            self._record_failure(db, log, INTERNAL_POLLING_ERROR)

    def _record_failure(self, db: Session, log: VerificationLog, description: str) -> None:
        """Last-resort write; if it fails too the log stays initiated for the next poll."""
        try:
            self.verification.mark_failed(db, log, description, verify_result=None)
        except Exception:
            logger.exception(f"[Batch] Could not mark tx={log.transaction_id} failed; left initiated")
