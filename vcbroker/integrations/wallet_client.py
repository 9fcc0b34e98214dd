"""
Wallet sandbox client (issuance side).

Endpoints:
- POST /api/qrcode/data                 issue a credential offer (QR + deeplink)
- GET  /api/credential/nonce/{tx}       fetch the credential once the holder claimed it
- PUT  /api/credential/{cid}/revocation revoke a claimed credential
"""
import logging
from typing import Any, Dict, List
from urllib.parse import quote

from .sandbox import CredentialNotReady, SandboxClient, UpstreamContractError, decode_body

logger = logging.getLogger(__name__)

# Wallet error code for "offer exists but the holder has not claimed it yet"
CREDENTIAL_NOT_READY_CODE = "61010"


class WalletClient(SandboxClient):
    name = "wallet"

    async def issue_credential(
        self,
        vc_uid: str,
        issuance_date: str,
        expired_date: str,
        fields: List[Dict[str, str]],
    ) -> Dict[str, Any]:
        """
        Ask the wallet for a one-time claim QR.

        Not retried: a duplicate POST would mint a second offer.

        Returns:
            dict with ``transactionId``, ``qrCode`` and ``deepLink``

        Raises:
            SandboxError: wallet rejected the request or is unreachable
            UpstreamContractError: response lacks one of the three fields
        """
        payload = {
            "vcUid": vc_uid,
            "issuanceDate": issuance_date,
            "expiredDate": expired_date,
            "fields": fields,
        }
        response = await self.request("POST", "/api/qrcode/data", json=payload)
        body = self.ensure_success(response)

        if not isinstance(body, dict) or not all(body.get(k) for k in ("transactionId", "qrCode", "deepLink")):
            raise UpstreamContractError("wallet issuance response incomplete", status_code=response.status_code, body=body)

        logger.info(f"[Wallet] Offer created vcUid={vc_uid} tx={body['transactionId']}")
        return body

    async def fetch_credential(self, transaction_id: str) -> str:
        """
        Return the claimed credential token for a transaction.

        Raises:
            CredentialNotReady: holder has not claimed yet
            SandboxError: any other wallet failure
            UpstreamContractError: 2xx without a ``credential``
        """
        response = await self.request(
            "GET", f"/api/credential/nonce/{quote(transaction_id, safe='')}", retry=True
        )
        body = decode_body(response)

        if isinstance(body, dict) and str(body.get("code")) == CREDENTIAL_NOT_READY_CODE:
            raise CredentialNotReady("credential not claimed yet", status_code=response.status_code, body=body)

        body = self.ensure_success(response)
        credential = body.get("credential") if isinstance(body, dict) else None
        if not credential:
            raise UpstreamContractError("wallet returned no credential", status_code=response.status_code, body=body)
        return credential

    async def revoke_credential(self, cid: str) -> Dict[str, Any]:
        """Revoke a claimed credential. Safe to retry: revoking twice is a no-op."""
        response = await self.request(
            "PUT", f"/api/credential/{quote(cid, safe='')}/revocation", retry=True
        )
        body = self.ensure_success(response)
        logger.info(f"[Wallet] Revoked cid={cid} status={body.get('credentialStatus') if isinstance(body, dict) else body}")
        return body if isinstance(body, dict) else {"credentialStatus": body}
