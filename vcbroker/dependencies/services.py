"""
Service wiring for route handlers.

Sandbox clients live on app.state (built in lifespan); services are cheap
and built per request around them. Tests override the client getters.
"""
from fastapi import Depends, Request

from ..config import Settings, get_settings
from ..integrations.verifier_client import VerifierClient
from ..integrations.wallet_client import WalletClient
from ..services.audit_service import AuditService
from ..services.batch_verification_service import BatchVerificationService
from ..services.issuance_service import IssuanceService
from ..services.revocation_service import RevocationService
from ..services.verification_service import VerificationService


def get_wallet_client(request: Request) -> WalletClient:
    return request.app.state.wallet_client


def get_verifier_client(request: Request) -> VerifierClient:
    return request.app.state.verifier_client


def get_issuance_service(
    wallet: WalletClient = Depends(get_wallet_client),
    settings: Settings = Depends(get_settings),
) -> IssuanceService:
    return IssuanceService(wallet, settings)


def get_verification_service(
    verifier: VerifierClient = Depends(get_verifier_client),
    settings: Settings = Depends(get_settings),
) -> VerificationService:
    return VerificationService(verifier, settings)


def get_batch_verification_service(
    verification: VerificationService = Depends(get_verification_service),
    settings: Settings = Depends(get_settings),
) -> BatchVerificationService:
    return BatchVerificationService(verification, settings)


def get_revocation_service(wallet: WalletClient = Depends(get_wallet_client)) -> RevocationService:
    return RevocationService(wallet)


def get_audit_service() -> AuditService:
    return AuditService()
