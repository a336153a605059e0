"""Identity provider HTTP client (GoTrue-style auth REST API)"""

from typing import Any, Dict, Optional

import httpx

from organitto_ops.config import settings
from organitto_ops.domain.exceptions import BackendUnavailable, IdentityError
from organitto_ops.domain.models import AuthSession, Identity
from organitto_ops.infrastructure.observability.metrics import backend_failure_counter


class IdentityClient:
    """Client for the hosted identity provider"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.identity_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.service_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> httpx.Response:
        """
        Send one request; no retries.

        Raises:
            IdentityError: provider answered 400/401/403/422 (bad credentials or token)
            BackendUnavailable: timeout, network failure or any other error status
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(token), **kwargs
                )
                response.raise_for_status()
                return response
            except httpx.TimeoutException as e:
                backend_failure_counter.labels(service="identity").inc()
                raise BackendUnavailable(f"Identity provider timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                if e.response.status_code in (400, 401, 403, 422):
                    raise IdentityError(_error_message(e.response)) from e
                backend_failure_counter.labels(service="identity").inc()
                raise BackendUnavailable(f"Identity provider error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                backend_failure_counter.labels(service="identity").inc()
                raise BackendUnavailable(f"Identity provider unreachable: {e}") from e

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for a session"""
        if not email or not password:
            raise IdentityError("Please enter email and password")
        response = await self._request(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        try:
            data = response.json()
            return AuthSession(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_in=data.get("expires_in"),
                identity=_identity(data["user"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BackendUnavailable(f"Invalid session payload from identity provider: {e}") from e

    async def sign_up(self, email: str, password: str) -> Identity:
        """Create an identity; the application profile is created separately"""
        response = await self._request("POST", "/signup", json={"email": email, "password": password})
        try:
            data = response.json()
            # Depending on confirmation settings the user is top-level or nested
            return _identity(data.get("user") or data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BackendUnavailable(f"Invalid signup payload from identity provider: {e}") from e

    async def sign_out(self, token: str) -> None:
        await self._request("POST", "/logout", token=token)

    async def get_user(self, token: str) -> Identity:
        """Resolve the identity behind an access token (the current session)"""
        response = await self._request("GET", "/user", token=token)
        try:
            return _identity(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise BackendUnavailable(f"Invalid user payload from identity provider: {e}") from e


def _identity(payload: Dict[str, Any]) -> Identity:
    return Identity(user_id=str(payload["id"]), email=payload.get("email"))


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Invalid login credentials"
    for key in ("error_description", "msg", "message"):
        if isinstance(data, dict) and data.get(key):
            return str(data[key])
    return "Invalid login credentials"
