"""
Verification log and batch verification session models.
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..db import Base
from .issuance import _enum_values


def _new_uuid():
    return str(uuid.uuid4())


class VerificationStatus(str, enum.Enum):
    INITIATED = "initiated"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"
    ERROR_MISSING_UUID = "error_missing_uuid"


class BatchSessionStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"


class BatchVerificationSession(Base):
    """Long-lived QR that spawns a one-shot VerificationLog per scan."""
    __tablename__ = "batch_verification_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, index=True, default=_new_uuid)

    verifier_info = Column(String(100), nullable=True)
    verifier_branch = Column(String(100), nullable=True)
    verification_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(
        SQLEnum(BatchSessionStatus, values_callable=_enum_values, name="batch_session_status"),
        nullable=False,
        default=BatchSessionStatus.ACTIVE,
    )
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    verification_logs = relationship("VerificationLog", back_populates="batch_session")


class VerificationLog(Base):
    """
    One verification attempt against the verifier sandbox.

    ``verified_person_id`` is set only together with ``status=success``.
    """
    __tablename__ = "verification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), unique=True, nullable=False, index=True)

    status = Column(
        SQLEnum(VerificationStatus, values_callable=_enum_values, name="verification_status"),
        nullable=False,
        default=VerificationStatus.INITIATED,
        index=True,
    )
    verify_result = Column(Boolean, nullable=True)
    result_description = Column(Text, nullable=True)
    returned_data = Column(JSON, nullable=True)  # raw verifier payload, kept for audit

    # Who asked and why
    verifier_info = Column(String(100), nullable=True)
    verifier_branch = Column(String(100), nullable=True)
    verification_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    verified_person_id = Column(Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_verification_session_id = Column(
        Integer, ForeignKey("batch_verification_sessions.id", ondelete="CASCADE"), nullable=True, index=True
    )

    verified_person = relationship("Person")
    batch_session = relationship("BatchVerificationSession", back_populates="verification_logs")
