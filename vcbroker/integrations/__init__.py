from .sandbox import (
    CredentialNotReady,
    SandboxClient,
    SandboxError,
    UpstreamContractError,
    VerificationPending,
)
from .wallet_client import WalletClient
from .verifier_client import VerifierClient
from ..config import Settings


def build_wallet_client(settings: Settings, transport=None) -> WalletClient:
    return WalletClient(
        settings.wallet_api_base,
        settings.wallet_api_key,
        auth_header=settings.wallet_auth_header,
        auth_scheme=settings.wallet_auth_scheme,
        timeout_s=settings.sandbox_timeout_s,
        max_attempts=settings.sandbox_max_attempts,
        retry_initial_delay=settings.sandbox_retry_initial_delay_s,
        transport=transport,
    )


def build_verifier_client(settings: Settings, transport=None) -> VerifierClient:
    return VerifierClient(
        settings.verifier_api_base,
        settings.verifier_api_key,
        auth_header=settings.verifier_auth_header,
        auth_scheme=settings.verifier_auth_scheme,
        timeout_s=settings.sandbox_timeout_s,
        max_attempts=settings.sandbox_max_attempts,
        retry_initial_delay=settings.sandbox_retry_initial_delay_s,
        transport=transport,
        ref=settings.verifier_ref,
    )
