"""Base HTTP client for the lending backend."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import AuthError, TransientIOError
from ..session import Session
from ..utils.retry import retry_call

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        if detail:
            return str(detail)
    return f"{response.request.method} {response.request.url.path} failed with status {response.status_code}"


class BaseApiClient:
    """Base class for backend HTTP clients.

    Every request carries the session's headers. Failures are translated into
    the workflow's error taxonomy: rejected credentials become ``AuthError``,
    everything else that went wrong on the wire becomes ``TransientIOError``.

    Usage:
        class CustomerClient(BaseApiClient):
            async def get_customer(self, customer_id: str) -> dict:
                response = await self._request(
                    "GET", f"/customers/{customer_id}", idempotent=True
                )
                return self._json(response)
    """

    def __init__(
        self,
        base_url: str,
        session: Session,
        timeout: float = 30.0,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Backend base URL (e.g., http://localhost:5000/api)
            session: Authenticated session supplying request headers
            timeout: Request timeout in seconds (default: 30.0)
            max_retries: Retries for idempotent calls (default: 0)
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

        logger.info(f"Initialized {self.__class__.__name__} with base_url={base_url}")

    def _headers(self) -> dict:
        return {"Accept": "application/json", **self.session.headers()}

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client instance with configured timeout and headers.

        Returns:
            Configured AsyncClient ready for use with async context manager
        """
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _send(
        self, method: str, path: str, allow_not_found: bool, **kwargs: Any
    ) -> Optional[httpx.Response]:
        if not self.session.is_authenticated:
            raise AuthError("User not authenticated.")

        async with self._get_client() as client:
            try:
                response = await client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                raise TransientIOError(f"{method} {path} timed out") from e
            except httpx.HTTPError as e:
                raise TransientIOError(f"{method} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(_error_message(response))
        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            raise TransientIOError(
                _error_message(response), status_code=response.status_code
            )
        return response

    async def _request(
        self,
        method: str,
        path: str,
        *,
        idempotent: bool = False,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Optional[httpx.Response]:
        """Send a request, retrying idempotent calls on transient failures.

        Returns ``None`` only when ``allow_not_found`` is set and the server
        answered 404.
        """

        async def attempt() -> Optional[httpx.Response]:
            return await self._send(method, path, allow_not_found, **kwargs)

        if not idempotent or self.max_retries <= 0:
            return await attempt()
        return await retry_call(
            attempt,
            max_retries=self.max_retries,
            retry_on=(TransientIOError,),
            name=f"{method} {path}",
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransientIOError(
                f"Invalid JSON from {response.request.url.path}",
                status_code=response.status_code,
            ) from e

    def _json_object(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a JSON object body; an empty body decodes to ``{}``."""
        data = self._json(response)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise TransientIOError(
                f"Invalid payload from {response.request.url.path}: "
                f"expected an object, got {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    @staticmethod
    def _decode(response: httpx.Response, build: Callable[[], T]) -> T:
        """Run ``build`` and report validation failures as transient errors."""
        try:
            return build()
        except PydanticValidationError as e:
            raise TransientIOError(
                f"Invalid payload from {response.request.url.path}: "
                f"{e.error_count()} field error(s)",
                status_code=response.status_code,
            ) from e
