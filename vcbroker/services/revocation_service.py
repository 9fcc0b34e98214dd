"""
Revocation Service: withdraw a person's eligibility for one template.

Steps, inside one database transaction:
1. lock the (person, template) credentials that are issued and claimed
2. revoke each of them at the wallet, concurrently
3. only if every wallet call succeeded: mark every IssuedVC of the pair
   revoked (whatever its previous status) and delete the eligibility row

The wallet calls cannot be undone. If one fails after others succeeded
those remote revocations stay in place while local state is left as it
was; revoking again is safe because the wallet treats a repeat
revocation as a no-op. If the local commit fails after all remote calls
succeeded, RevocationPartialFailure carries the cids for manual
reconciliation.
"""
import asyncio
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..integrations.sandbox import SandboxError
from ..integrations.wallet_client import WalletClient
from ..models import IssuedVC, IssuedVCStatus, PersonEligibility
from .errors import NotFoundError, RevocationPartialFailure, RevocationUpstreamError

logger = logging.getLogger(__name__)


class RevocationService:
    """Service for admin eligibility revocation."""

    def __init__(self, wallet: WalletClient):
        self.wallet = wallet

    async def revoke(self, db: Session, person_id: int, template_id: int) -> Dict[str, Any]:
        """
        Revoke eligibility and every credential of (person, template).

        Returns:
            {"success": True, "revokedCount": int, "remoteRevoked": [cid, ...]}

        Raises:
            NotFoundError: no eligibility and no credentials for the pair
            RevocationUpstreamError: a wallet call failed, local state untouched
            RevocationPartialFailure: wallet succeeded, local commit failed
        """
        eligibility = (
            db.query(PersonEligibility)
            .filter(PersonEligibility.person_id == person_id, PersonEligibility.template_id == template_id)
            .first()
        )
        if not eligibility:
            has_credentials = (
                db.query(IssuedVC.id)
                .filter(IssuedVC.person_id == person_id, IssuedVC.template_id == template_id)
                .first()
            )
            if not has_credentials:
                raise NotFoundError("Eligibility not found")
            logger.warning(
                f"[Revocation] No eligibility row for person={person_id} template={template_id}; "
                f"revoking remaining credentials anyway"
            )

        live = (
            db.query(IssuedVC)
            .filter(
                IssuedVC.person_id == person_id,
                IssuedVC.template_id == template_id,
                IssuedVC.status == IssuedVCStatus.ISSUED,
                IssuedVC.cid.isnot(None),
            )
            .with_for_update()
            .all()
        )
        cids = [vc.cid for vc in live]

        results = await asyncio.gather(
            *(self.wallet.revoke_credential(cid) for cid in cids),
            return_exceptions=True,
        )
        revoked_cids: List[str] = []
        failed_cids: List[str] = []
        unexpected = None
        for cid, result in zip(cids, results):
            if isinstance(result, SandboxError):
                failed_cids.append(cid)
            elif isinstance(result, BaseException):
                failed_cids.append(cid)
                unexpected = unexpected or result
            else:
                revoked_cids.append(cid)

        if failed_cids:
            db.rollback()
            logger.error(
                f"[Revocation] Wallet revocation failed person={person_id} template={template_id} "
                f"failed={failed_cids} already_revoked_remotely={revoked_cids}; local state unchanged"
            )
            if unexpected is not None:
                raise unexpected
            raise RevocationUpstreamError("Sandbox revocation failed, local DB unchanged", failed_cids=failed_cids)

        try:
            revoked_count = (
                db.query(IssuedVC)
                .filter(IssuedVC.person_id == person_id, IssuedVC.template_id == template_id)
                .update({IssuedVC.status: IssuedVCStatus.REVOKED}, synchronize_session=False)
            )
            db.query(PersonEligibility).filter(
                PersonEligibility.person_id == person_id,
                PersonEligibility.template_id == template_id,
            ).delete(synchronize_session=False)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                f"[Revocation] PARTIAL FAILURE person={person_id} template={template_id}: "
                f"wallet revoked {revoked_cids} but the local commit failed; reconcile manually",
                exc_info=True,
            )
            raise RevocationPartialFailure(
                "Sandbox revocation succeeded but the local update failed; state needs manual reconciliation",
                person_id=person_id,
                template_id=template_id,
                revoked_cids=revoked_cids,
            ) from e

        db.expire_all()
        logger.info(
            f"[Revocation] person={person_id} template={template_id} "
            f"rows_revoked={revoked_count} remote={revoked_cids}"
        )
        return {"success": True, "revokedCount": revoked_count, "remoteRevoked": revoked_cids}
