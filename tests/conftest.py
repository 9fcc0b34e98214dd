"""
Pytest configuration and fixtures for the VC lifecycle broker tests.

Provides test database isolation, mocked sandbox clients and small
factories for the reference data (persons, templates, eligibility).
"""
import os
import pathlib
import sys
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before vcbroker.config builds its cached settings
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ACTOR_TOKEN_SECRET", "test-actor-secret")

from vcbroker.integrations.verifier_client import VerifierClient  # noqa: E402
from vcbroker.integrations.wallet_client import WalletClient  # noqa: E402

# In-memory SQLite, one shared connection
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
    echo=False,  # Set to True for SQL debugging
)


# pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT handling
@event.listens_for(test_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create the schema once per test session and drop it at the end."""
    from vcbroker.db import Base
    from vcbroker import models  # noqa: F401

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """
    Provide a clean database session for each test.

    The session joins an outer transaction through savepoints, so the
    commits and rollbacks services perform stay inside the test and the
    whole thing is rolled back afterwards.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def override_get_db(db_session):
    """Dependency override for get_db that hands out the test session."""
    def _override():
        yield db_session
    return _override


class MutableClock:
    """Callable clock tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return MutableClock(datetime(2025, 3, 1, 9, 0, 0))


@pytest.fixture
def settings():
    from vcbroker.config import Settings
    return Settings(
        database_url=TEST_DATABASE_URL,
        auto_create_tables=False,
        app_base_url="http://broker.test",
        actor_token_secret="test-actor-secret",
        credential_expired_date="20301231",
    )


@pytest.fixture
def wallet():
    """Wallet sandbox client with every call mocked."""
    return AsyncMock(spec=WalletClient)


@pytest.fixture
def verifier():
    """Verifier sandbox client with every call mocked."""
    return AsyncMock(spec=VerifierClient)


@pytest.fixture(scope="function")
def client(setup_test_db, db, wallet, verifier):
    """
    FastAPI TestClient wired to the test session and the mocked sandboxes.

    Usage:
        def test_something(client, wallet):
            wallet.issue_credential.return_value = {...}
            response = client.post(...)
    """
    from fastapi.testclient import TestClient
    from vcbroker.db import get_db
    from vcbroker.dependencies.services import get_verifier_client, get_wallet_client
    from vcbroker.main import app

    app.dependency_overrides[get_db] = override_get_db(db)
    app.dependency_overrides[get_wallet_client] = lambda: wallet
    app.dependency_overrides[get_verifier_client] = lambda: verifier
    app.state.wallet_client = wallet
    app.state.verifier_client = verifier

    try:
        # Set raise_server_exceptions=False so unhandled errors become 500 responses
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


# ─── Reference data factories ──────────────────────────────────────


@pytest.fixture
def make_person(db):
    from vcbroker.models import Person

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            personal_id=f"P{n:09d}",
            national_id=f"A1{n:08d}",
            name=f"Person {n}",
            county="Taipei City",
            district="Da'an",
            emergency_contact_name="Lin Mei",
            emergency_contact_relationship="sister",
            emergency_contact_phone="0912345678",
            reviewing_authority="Social Affairs Bureau",
            reviewer_name="Chen Wei",
            reviewer_phone="02-2720-8889",
        )
        fields.update(overrides)
        person = Person(**fields)
        db.add(person)
        db.commit()
        db.refresh(person)
        return person

    return _make


@pytest.fixture
def make_template(db):
    from vcbroker.models import VCTemplate

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            template_name=f"Template {n}",
            vc_uid=f"00000000_vc{n:03d}",
            description="Low-income household card",
            card_image_url=f"https://cards.test/{n}.png",
        )
        fields.update(overrides)
        template = VCTemplate(**fields)
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    return _make


@pytest.fixture
def make_eligibility(db):
    from vcbroker.models import PersonEligibility

    def _make(person, template):
        eligibility = PersonEligibility(person_id=person.id, template_id=template.id)
        db.add(eligibility)
        db.commit()
        db.refresh(eligibility)
        return eligibility

    return _make


@pytest.fixture
def make_issued_vc(db):
    """Insert an IssuedVC directly, optionally with its IssuanceLog."""
    from vcbroker.models import IssuanceLog, IssuanceLogStatus, IssuedVC, IssuedVCStatus

    counter = {"n": 0}

    def _make(person, template, status=IssuedVCStatus.ISSUED, cid=None, benefit_level="NA",
              transaction_id=None, log_status=None, expires_at=None, created_at=None):
        counter["n"] += 1
        n = counter["n"]
        created_at = created_at or datetime.utcnow()
        vc = IssuedVC(
            person_id=person.id,
            template_id=template.id,
            system_uuid=f"sys_{n}_{person.id}_{template.id}",
            cid=cid,
            status=status,
            benefit_level=benefit_level,
            issued_at=created_at if status == IssuedVCStatus.ISSUED else None,
            created_at=created_at,
        )
        db.add(vc)
        db.flush()
        if transaction_id is not None:
            db.add(IssuanceLog(
                issued_vc_id=vc.id,
                transaction_id=transaction_id,
                status=log_status or IssuanceLogStatus.INITIATED,
                expires_at=expires_at or created_at + timedelta(minutes=10),
                created_at=created_at,
            ))
        db.commit()
        db.refresh(vc)
        return vc

    return _make


@pytest.fixture
def credential_jwt():
    """Build a wallet-style credential token whose jti ends in /credential/<cid>."""
    def _make(cid: str) -> str:
        claims = {
            "jti": f"https://wallet.test/api/credential/{cid}",
            "sub": "did:example:holder",
            "iss": "did:example:issuer",
        }
        return jwt.encode(claims, "wallet-signing-key", algorithm="HS256")
    return _make


def presentation_result(personal_id=None, verify_result=True, description="Verified"):
    """Verifier /api/oidvp/result body for one presented credential."""
    claims = [{"ename": "name", "cname": "Name", "value": "Person"}]
    if personal_id is not None:
        claims.append({"ename": "personalId", "cname": "Personal ID", "value": personal_id})
    return {
        "verifyResult": verify_result,
        "resultDescription": description,
        "transactionId": "ignored",
        "data": [{"credentialType": "00000000_vc001", "claims": claims}],
    }


@pytest.fixture
def make_presentation():
    return presentation_result
