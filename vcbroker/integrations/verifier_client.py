"""
Verifier sandbox client (OIDVP presentation requests).

Endpoints:
- GET  /api/oidvp/qrcode?ref&transactionId  create a presentation request QR
- POST /api/oidvp/result                    fetch the presentation result
"""
import json
import logging
from typing import Any, Dict, Optional

from .sandbox import SandboxClient, UpstreamContractError, VerificationPending, decode_body

logger = logging.getLogger(__name__)

# Embedded in ``params`` of a 400 answer while the holder has not presented yet
VERIFICATION_PENDING_CODE = 4002


def is_pending_body(status_code: int, body: Any) -> bool:
    """True for the verifier's "no presentation yet" answer."""
    if status_code != 400 or not isinstance(body, dict):
        return False
    params = body.get("params")
    if not params:
        return False
    if isinstance(params, str):
        try:
            params = json.loads(params)
        except ValueError:
            return False
    return isinstance(params, dict) and params.get("code") == VERIFICATION_PENDING_CODE


class VerifierClient(SandboxClient):
    name = "verifier"

    def __init__(self, *args, ref: str = "00000000_template001", **kwargs):
        super().__init__(*args, **kwargs)
        self.ref = ref

    async def create_qr_code(self, transaction_id: str, ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a presentation request bound to ``transaction_id``.

        Returns:
            dict with ``qrcodeImage`` and ``authUri``
        """
        response = await self.request(
            "GET",
            "/api/oidvp/qrcode",
            params={"ref": ref or self.ref, "transactionId": transaction_id},
        )
        body = self.ensure_success(response)
        if not isinstance(body, dict) or not body.get("authUri"):
            raise UpstreamContractError("verifier QR response has no authUri", status_code=response.status_code, body=body)
        logger.info(f"[Verifier] Presentation request created tx={transaction_id}")
        return body

    async def fetch_result(self, transaction_id: str) -> Dict[str, Any]:
        """
        Fetch the presentation result.

        Raises:
            VerificationPending: holder has not presented yet
            SandboxError: any other verifier failure
        """
        response = await self.request(
            "POST", "/api/oidvp/result", json={"transactionId": transaction_id}, retry=True
        )
        body = decode_body(response)
        if is_pending_body(response.status_code, body):
            raise VerificationPending("presentation not received yet", status_code=400, body=body)

        body = self.ensure_success(response)
        if not isinstance(body, dict):
            raise UpstreamContractError("verifier result is not an object", status_code=response.status_code, body=body)
        return body
