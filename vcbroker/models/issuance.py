"""
Issued credential and issuance log models.

One IssuedVC per issuance attempt, one IssuanceLog per IssuedVC.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..db import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class IssuedVCStatus(str, enum.Enum):
    ISSUING = "issuing"
    ISSUED = "issued"
    EXPIRED = "expired"
    REVOKED = "revoked"


class IssuanceLogStatus(str, enum.Enum):
    INITIATED = "initiated"
    USER_CLAIMED = "user_claimed"
    EXPIRED = "expired"


class IssuedVC(Base):
    """
    A credential issuance attempt for a (person, template) pair.

    ``cid`` is only ever set when the wallet confirms the claim, so it is
    non-null only for ``issued`` rows and for ``revoked`` rows that were
    claimed before revocation.
    """
    __tablename__ = "issued_vcs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("vc_templates.id", ondelete="CASCADE"), nullable=False, index=True)

    system_uuid = Column(String(64), unique=True, nullable=False)
    cid = Column(String(128), nullable=True, index=True)
    issued_data = Column(JSON, nullable=True)  # field list sent to the wallet
    benefit_level = Column(String(50), nullable=True)

    status = Column(
        SQLEnum(IssuedVCStatus, values_callable=_enum_values, name="issued_vc_status"),
        nullable=False,
        default=IssuedVCStatus.ISSUING,
        index=True,
    )

    issued_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    person = relationship("Person", back_populates="issued_vcs")
    template = relationship("VCTemplate")
    issuance_log = relationship("IssuanceLog", back_populates="issued_vc", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_issued_vc_person_template", "person_id", "template_id"),
    )


class IssuanceLog(Base):
    """Audit row for one issuance transaction with the wallet sandbox."""
    __tablename__ = "issuance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issued_vc_id = Column(Integer, ForeignKey("issued_vcs.id", ondelete="CASCADE"), unique=True, nullable=False)
    transaction_id = Column(String(128), unique=True, nullable=False, index=True)

    status = Column(
        SQLEnum(IssuanceLogStatus, values_callable=_enum_values, name="issuance_log_status"),
        nullable=False,
        default=IssuanceLogStatus.INITIATED,
    )

    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    issued_vc = relationship("IssuedVC", back_populates="issuance_log")
