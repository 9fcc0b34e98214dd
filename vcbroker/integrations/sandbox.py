"""
Shared plumbing for the wallet and verifier sandbox clients.

Both sandboxes authenticate with one configurable header on every call
and speak JSON. A sandbox answering 4xx is returned to the concrete client
to interpret (several "errors" are really "not yet" signals). 5xx, timeouts
and network failures raise :class:`SandboxError`, after retries when the
call is idempotent.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from ..core.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class SandboxError(Exception):
    """A sandbox call failed or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class CredentialNotReady(SandboxError):
    """Wallet has not seen the holder claim the credential yet."""


class VerificationPending(SandboxError):
    """Verifier has no presentation for the transaction yet."""


class UpstreamContractError(SandboxError):
    """Sandbox answered 2xx but without the fields we rely on."""


def build_auth_headers(api_key: str, header_name: str, scheme: Optional[str] = None) -> Dict[str, str]:
    """Headers sent on every sandbox call."""
    scheme = (scheme or "").strip()
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        header_name: f"{scheme} {api_key}" if scheme else api_key,
    }


def decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class SandboxClient:
    """Base async client bound to one sandbox."""

    name = "sandbox"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        auth_header: str = "Access-Token",
        auth_scheme: Optional[str] = None,
        timeout_s: float = 20.0,
        max_attempts: int = 3,
        retry_initial_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            logger.warning(f"[{self.name.title()}] API base URL is empty")
        if not api_key:
            logger.warning(f"[{self.name.title()}] API key is empty, calls will be rejected")

        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.retry_initial_delay = retry_initial_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=build_auth_headers(api_key, auth_header, auth_scheme),
            timeout=timeout_s,
            transport=transport,
        )
        logger.info(
            f"[{self.name.title()}] client configured base={self.base_url} "
            f"header={auth_header} scheme={auth_scheme or '-'} key_len={len(api_key)}"
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def request(self, method: str, path: str, *, retry: bool = False, **kwargs) -> httpx.Response:
        """
        Send one request, retrying transport failures when ``retry`` is set.

        Returns the response for any status below 500.
        """
        try:
            if retry:
                return await retry_with_backoff(
                    self._send,
                    method,
                    path,
                    max_attempts=self.max_attempts,
                    initial_delay=self.retry_initial_delay,
                    **kwargs,
                )
            return await self._send(method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"[{self.name.title()}] {method} {path} failed: HTTP {status_code}")
            raise SandboxError(
                f"{self.name} sandbox returned HTTP {status_code}",
                status_code=status_code,
                body=decode_body(e.response),
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[{self.name.title()}] {method} {path} failed: {e!r}")
            raise SandboxError(f"{self.name} sandbox unreachable: {e.__class__.__name__}") from e

    def ensure_success(self, response: httpx.Response) -> Any:
        """Decode a 2xx body, or raise SandboxError carrying the error body."""
        body = decode_body(response)
        if response.is_success:
            return body
        logger.warning(f"[{self.name.title()}] {response.request.method} {response.request.url.path} HTTP {response.status_code}: {body}")
        raise SandboxError(
            f"{self.name} sandbox returned HTTP {response.status_code}",
            status_code=response.status_code,
            body=body,
        )
