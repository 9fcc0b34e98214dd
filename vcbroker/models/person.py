"""
Person, credential template and eligibility models.

Persons and templates are reference data maintained by an import process;
the broker reads them and only ever deletes eligibility rows (revocation).
"""
from datetime import datetime
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from ..db import Base


class Person(Base):
    """A means-tested benefit recipient."""
    __tablename__ = "persons"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    personal_id = Column(String(64), unique=True, nullable=False, index=True)  # claim key in presented credentials
    national_id = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    phone_number = Column(String(30), nullable=True)

    # Residence
    county = Column(String(50), nullable=True)
    district = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)

    # Emergency contact
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_relationship = Column(String(50), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)

    # Reviewer
    reviewing_authority = Column(String(100), nullable=True)
    reviewer_name = Column(String(100), nullable=True)
    reviewer_phone = Column(String(30), nullable=True)

    # Eligibility window
    eligibility_start_date = Column(Date, nullable=True)
    eligibility_end_date = Column(Date, nullable=True)

    # Means test
    personal_annual_income = Column(BigInteger, nullable=True)
    personal_movable_assets = Column(BigInteger, nullable=True)
    personal_real_estate_assets = Column(BigInteger, nullable=True)
    family_annual_income = Column(BigInteger, nullable=True)
    family_movable_assets = Column(BigInteger, nullable=True)
    family_real_estate_assets = Column(BigInteger, nullable=True)

    benefit_level = Column(String(50), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    eligibilities = relationship("PersonEligibility", back_populates="person", cascade="all, delete-orphan")
    issued_vcs = relationship("IssuedVC", back_populates="person", cascade="all, delete-orphan")


class VCTemplate(Base):
    """A credential type known to the wallet sandbox by its vcUid."""
    __tablename__ = "vc_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_name = Column(String(100), nullable=False)
    vc_uid = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    card_image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class PersonEligibility(Base):
    """Right of a person to claim a credential of one template."""
    __tablename__ = "person_eligibilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("vc_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    person = relationship("Person", back_populates="eligibilities")
    template = relationship("VCTemplate")

    __table_args__ = (
        UniqueConstraint("person_id", "template_id", name="uq_person_eligibility"),
    )
