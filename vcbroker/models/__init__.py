"""
Models package - organized by lifecycle stage
"""
from .person import Person, VCTemplate, PersonEligibility
from .issuance import IssuedVC, IssuedVCStatus, IssuanceLog, IssuanceLogStatus
from .verification import (
    BatchSessionStatus,
    BatchVerificationSession,
    VerificationLog,
    VerificationStatus,
)

__all__ = [
    "Person",
    "VCTemplate",
    "PersonEligibility",
    "IssuedVC",
    "IssuedVCStatus",
    "IssuanceLog",
    "IssuanceLogStatus",
    "BatchSessionStatus",
    "BatchVerificationSession",
    "VerificationLog",
    "VerificationStatus",
]
