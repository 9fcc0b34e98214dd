"""
Wallet and verifier clients against an in-process httpx.MockTransport.
"""
import json

import httpx
import pytest

from vcbroker.integrations.sandbox import (
    CredentialNotReady,
    SandboxError,
    UpstreamContractError,
    VerificationPending,
    build_auth_headers,
)
from vcbroker.integrations.verifier_client import VerifierClient, is_pending_body
from vcbroker.integrations.wallet_client import WalletClient


class Recorder:
    """MockTransport handler that replays canned responses and keeps the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _wallet(recorder, **kwargs):
    kwargs.setdefault("retry_initial_delay", 0)
    return WalletClient(
        "https://wallet.test",
        "wallet-key",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


def _verifier(recorder, **kwargs):
    kwargs.setdefault("retry_initial_delay", 0)
    return VerifierClient(
        "https://verifier.test",
        "verifier-key",
        transport=httpx.MockTransport(recorder),
        ref="00000000_ref",
        **kwargs,
    )


class TestAuthHeaders:

    def test_plain_key_in_configured_header(self):
        headers = build_auth_headers("k1", "Access-Token")
        assert headers["Access-Token"] == "k1"

    def test_scheme_is_prefixed(self):
        headers = build_auth_headers("k1", "Authorization", "Bearer")
        assert headers["Authorization"] == "Bearer k1"

    @pytest.mark.asyncio
    async def test_header_is_sent_on_every_call(self):
        recorder = Recorder(httpx.Response(200, json={"credentialStatus": "revoked"}))
        client = _wallet(recorder, auth_header="X-Api-Key", auth_scheme="Token")
        await client.revoke_credential("abc")
        await client.aclose()
        assert recorder.requests[0].headers["X-Api-Key"] == "Token wallet-key"


class TestWalletClient:

    @pytest.mark.asyncio
    async def test_issue_credential_posts_payload(self):
        recorder = Recorder(httpx.Response(
            200, json={"transactionId": "tx-1", "qrCode": "data:image/png;base64,AAA", "deepLink": "wallet://x"}
        ))
        client = _wallet(recorder)
        fields = [{"ename": "name", "content": "Wang"}]
        body = await client.issue_credential("vc-uid", "20250301", "20301231", fields)
        await client.aclose()

        assert body["transactionId"] == "tx-1"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/qrcode/data"
        assert json.loads(request.content) == {
            "vcUid": "vc-uid",
            "issuanceDate": "20250301",
            "expiredDate": "20301231",
            "fields": fields,
        }

    @pytest.mark.asyncio
    async def test_incomplete_issue_response_is_contract_error(self):
        recorder = Recorder(httpx.Response(200, json={"transactionId": "tx-1", "qrCode": "q"}))
        client = _wallet(recorder)
        with pytest.raises(UpstreamContractError):
            await client.issue_credential("vc-uid", "20250301", "20301231", [])
        await client.aclose()

    @pytest.mark.asyncio
    async def test_issue_is_not_retried(self):
        recorder = Recorder(httpx.Response(503, text="down"))
        client = _wallet(recorder)
        with pytest.raises(SandboxError) as exc_info:
            await client.issue_credential("vc-uid", "20250301", "20301231", [])
        await client.aclose()
        assert exc_info.value.status_code == 503
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_not_claimed_code_raises_credential_not_ready(self):
        recorder = Recorder(httpx.Response(400, json={"code": "61010", "message": "not ready"}))
        client = _wallet(recorder)
        with pytest.raises(CredentialNotReady):
            await client.fetch_credential("tx-1")
        await client.aclose()
        assert recorder.requests[0].url.path == "/api/credential/nonce/tx-1"

    @pytest.mark.asyncio
    async def test_numeric_not_claimed_code_also_matches(self):
        recorder = Recorder(httpx.Response(400, json={"code": 61010}))
        client = _wallet(recorder)
        with pytest.raises(CredentialNotReady):
            await client.fetch_credential("tx-1")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_other_4xx_is_sandbox_error_not_pending(self):
        recorder = Recorder(httpx.Response(404, json={"code": "60001", "message": "unknown tx"}))
        client = _wallet(recorder)
        with pytest.raises(SandboxError) as exc_info:
            await client.fetch_credential("tx-1")
        await client.aclose()
        assert not isinstance(exc_info.value, CredentialNotReady)
        assert exc_info.value.status_code == 404
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_fetch_retries_5xx_then_succeeds(self):
        recorder = Recorder(
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json={"credential": "jwt-token"}),
        )
        client = _wallet(recorder)
        assert await client.fetch_credential("tx-1") == "jwt-token"
        await client.aclose()
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_fetch_without_credential_is_contract_error(self):
        recorder = Recorder(httpx.Response(200, json={"status": "ok"}))
        client = _wallet(recorder)
        with pytest.raises(UpstreamContractError):
            await client.fetch_credential("tx-1")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_network_failure_becomes_sandbox_error(self):
        recorder = Recorder(httpx.ConnectError("refused"))
        client = _wallet(recorder, max_attempts=2)
        with pytest.raises(SandboxError, match="unreachable"):
            await client.fetch_credential("tx-1")
        await client.aclose()
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_revoke_uses_put(self):
        recorder = Recorder(httpx.Response(200, json={"credentialStatus": "revoked"}))
        client = _wallet(recorder)
        body = await client.revoke_credential("abc123")
        await client.aclose()
        assert body == {"credentialStatus": "revoked"}
        assert recorder.requests[0].method == "PUT"
        assert recorder.requests[0].url.path == "/api/credential/abc123/revocation"


class TestVerifierClient:

    def test_pending_body_with_string_params(self):
        assert is_pending_body(400, {"params": json.dumps({"code": 4002})})

    def test_pending_body_with_object_params(self):
        assert is_pending_body(400, {"params": {"code": 4002}})

    def test_other_bodies_are_not_pending(self):
        assert not is_pending_body(400, {"params": {"code": 4001}})
        assert not is_pending_body(500, {"params": {"code": 4002}})
        assert not is_pending_body(400, {"params": "not json"})
        assert not is_pending_body(400, "plain text")

    @pytest.mark.asyncio
    async def test_create_qr_code_sends_ref_and_transaction(self):
        recorder = Recorder(httpx.Response(200, json={"qrcodeImage": "data:x", "authUri": "openid4vp://x"}))
        client = _verifier(recorder)
        body = await client.create_qr_code("tx-9")
        await client.aclose()
        assert body["authUri"] == "openid4vp://x"
        params = recorder.requests[0].url.params
        assert params["ref"] == "00000000_ref"
        assert params["transactionId"] == "tx-9"

    @pytest.mark.asyncio
    async def test_create_qr_code_without_auth_uri_is_contract_error(self):
        recorder = Recorder(httpx.Response(200, json={"qrcodeImage": "data:x"}))
        client = _verifier(recorder)
        with pytest.raises(UpstreamContractError):
            await client.create_qr_code("tx-9")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_pending_result_raises_verification_pending(self):
        recorder = Recorder(httpx.Response(400, json={"code": "4002", "params": "{\"code\": 4002}"}))
        client = _verifier(recorder)
        with pytest.raises(VerificationPending):
            await client.fetch_result("tx-9")
        await client.aclose()
        assert json.loads(recorder.requests[0].content) == {"transactionId": "tx-9"}

    @pytest.mark.asyncio
    async def test_result_is_returned(self):
        recorder = Recorder(httpx.Response(200, json={"verifyResult": True, "data": []}))
        client = _verifier(recorder)
        assert (await client.fetch_result("tx-9"))["verifyResult"] is True
        await client.aclose()

    @pytest.mark.asyncio
    async def test_persistent_5xx_is_sandbox_error(self):
        recorder = Recorder(httpx.Response(500, text="oops"))
        client = _verifier(recorder, max_attempts=3)
        with pytest.raises(SandboxError) as exc_info:
            await client.fetch_result("tx-9")
        await client.aclose()
        assert exc_info.value.status_code == 500
        assert len(recorder.requests) == 3
