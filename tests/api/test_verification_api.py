from datetime import datetime, timedelta

from vcbroker.integrations.sandbox import SandboxError, VerificationPending
from vcbroker.models import BatchSessionStatus, BatchVerificationSession, VerificationLog, VerificationStatus

QR = {"qrcodeImage": "data:image/png;base64,VQR", "authUri": "openid4vp://authorize?x=1"}

REQUEST = {"verificationMode": "single", "role": "hospital", "verifier": "Taipei General", "reason": "admission"}


class TestRequestVerification:

    def test_single_mode(self, client, verifier):
        verifier.create_qr_code.return_value = QR
        response = client.post("/api/verification/request-verification", json=REQUEST)

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "single"
        assert body["qrCode"] == QR["qrcodeImage"]
        assert body["deepLink"] == QR["authUri"]

    def test_batch_mode(self, client, db, verifier):
        response = client.post("/api/verification/request-verification", json=dict(REQUEST, verificationMode="batch"))

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "batch"
        assert body["qrCode"].startswith("data:image/png;base64,")
        verifier.create_qr_code.assert_not_awaited()
        assert db.query(BatchVerificationSession).filter(
            BatchVerificationSession.uuid == body["batchSessionUuid"]
        ).count() == 1

    def test_missing_fields_are_400(self, client):
        response = client.post("/api/verification/request-verification", json={"verificationMode": "single"})
        assert response.status_code == 400

    def test_unknown_mode_is_400(self, client):
        response = client.post("/api/verification/request-verification", json=dict(REQUEST, verificationMode="bulk"))
        assert response.status_code == 400

    def test_verifier_failure_is_502(self, client, verifier):
        verifier.create_qr_code.side_effect = SandboxError("down", status_code=500)
        response = client.post("/api/verification/request-verification", json=REQUEST)
        assert response.status_code == 502


class TestCheckStatus:

    def test_pending_then_success(self, client, verifier, make_person, make_presentation):
        person = make_person()
        verifier.create_qr_code.return_value = QR
        tx = client.post("/api/verification/request-verification", json=REQUEST).json()["transactionId"]

        verifier.fetch_result.side_effect = VerificationPending("pending", status_code=400)
        response = client.get(f"/api/verification/check-status/{tx}")
        assert response.status_code == 200
        assert response.json()["status"] == "initiated"

        verifier.fetch_result.side_effect = None
        verifier.fetch_result.return_value = make_presentation(person.personal_id)
        response = client.get(f"/api/verification/check-status/{tx}")
        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert response.json()["verificationData"]["person"]["name"] == person.name

    def test_orphaned_success_is_404_with_status(self, client, db):
        now = datetime.utcnow()
        db.add(VerificationLog(
            transaction_id="tx-orphan",
            status=VerificationStatus.SUCCESS,
            verify_result=True,
            expires_at=now + timedelta(minutes=5),
            created_at=now,
            updated_at=now,
        ))
        db.commit()

        response = client.get("/api/verification/check-status/tx-orphan")

        assert response.status_code == 404
        assert response.json()["status"] == "error_missing_uuid"

    def test_unknown_transaction_is_404(self, client):
        assert client.get("/api/verification/check-status/nope").status_code == 404

    def test_upstream_failure_is_502_not_pending(self, client, verifier):
        verifier.create_qr_code.return_value = QR
        tx = client.post("/api/verification/request-verification", json=REQUEST).json()["transactionId"]
        verifier.fetch_result.side_effect = SandboxError("boom", status_code=500)

        response = client.get(f"/api/verification/check-status/{tx}")
        assert response.status_code == 502


class TestBatch:

    def _open(self, client):
        response = client.post("/api/verification/request-verification", json=dict(REQUEST, verificationMode="batch"))
        return response.json()["batchSessionUuid"]

    def test_scan_redirects_to_verifier(self, client, db, verifier):
        session_uuid = self._open(client)
        verifier.create_qr_code.return_value = QR

        response = client.get(f"/api/verification/batch/{session_uuid}", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == QR["authUri"]
        assert db.query(VerificationLog).count() == 1

    def test_unknown_session_is_404(self, client):
        response = client.get("/api/verification/batch/does-not-exist", follow_redirects=False)
        assert response.status_code == 404

    def test_expired_session_is_410(self, client, db):
        session_uuid = self._open(client)
        session = db.query(BatchVerificationSession).filter(BatchVerificationSession.uuid == session_uuid).one()
        session.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        response = client.get(f"/api/verification/batch/{session_uuid}", follow_redirects=False)

        assert response.status_code == 410
        db.refresh(session)
        assert session.status == BatchSessionStatus.EXPIRED

    def test_check_batch_status(self, client, verifier, make_person, make_presentation):
        person = make_person()
        session_uuid = self._open(client)
        verifier.create_qr_code.return_value = QR
        client.get(f"/api/verification/batch/{session_uuid}", follow_redirects=False)
        client.get(f"/api/verification/batch/{session_uuid}", follow_redirects=False)

        calls = {"n": 0}

        async def fetch_result(transaction_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return make_presentation(person.personal_id)
            raise SandboxError("boom", status_code=500)

        verifier.fetch_result.side_effect = fetch_result
        response = client.get(f"/api/verification/check-batch-status/{session_uuid}")

        assert response.status_code == 200
        body = response.json()
        assert body["sessionInfo"]["verifierBranch"] == "Taipei General"
        assert sorted(r["status"] for r in body["results"]) == ["failed", "success"]
