"""
Service-level errors. Routers never build these; exception handlers map
them to HTTP responses.
"""
from typing import List, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class SessionGoneError(ServiceError):
    """Batch session closed or past its deadline."""
    status_code = 410


class RevocationUpstreamError(ServiceError):
    """A wallet revoke call failed; nothing local was changed."""
    status_code = 502

    def __init__(self, message: str, failed_cids: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_cids = failed_cids or []


class RevocationPartialFailure(ServiceError):
    """
    Wallet revocations succeeded but the local commit did not.

    Remote and local state now disagree; ``revoked_cids`` is what an
    operator needs to reconcile by hand.
    """
    status_code = 500

    def __init__(self, message: str, person_id: int, template_id: int, revoked_cids: List[str]):
        super().__init__(message)
        self.person_id = person_id
        self.template_id = template_id
        self.revoked_cids = revoked_cids
