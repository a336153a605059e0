"""Blob store HTTP client for receipts and payment proofs"""

import uuid
from pathlib import PurePosixPath

import httpx

from organitto_ops.config import settings
from organitto_ops.domain.exceptions import BackendUnavailable, ValidationError
from organitto_ops.infrastructure.observability.metrics import backend_failure_counter


def proof_path(filename: str, folder: str = "proofs") -> str:
    """Collision-free object path that keeps the uploaded file's extension"""
    suffix = PurePosixPath(filename or "").suffix.lower()
    return f"{folder}/{uuid.uuid4().hex}{suffix}"


class BlobStoreClient:
    """Client for the hosted object storage API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_bytes: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.storage_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.service_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_bytes = max_bytes or settings.max_proof_bytes
        self.transport = transport

    async def upload(self, bucket: str, path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store a file and return its public URL.

        Raises:
            ValidationError: empty file or larger than max_bytes
            BackendUnavailable: timeout, network failure or error status
        """
        if not content:
            raise ValidationError("File is empty")
        if len(content) > self.max_bytes:
            raise ValidationError(f"File size must be less than {self.max_bytes // (1024 * 1024)}MB")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/object/{bucket}/{path}",
                    content=content,
                    headers={
                        "apikey": self.api_key,
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": content_type,
                    },
                )
                response.raise_for_status()
            except httpx.TimeoutException as e:
                backend_failure_counter.labels(service="storage").inc()
                raise BackendUnavailable(f"Blob store timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                backend_failure_counter.labels(service="storage").inc()
                raise BackendUnavailable(f"Blob store error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                backend_failure_counter.labels(service="storage").inc()
                raise BackendUnavailable(f"Blob store unreachable: {e}") from e

        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/object/public/{bucket}/{path}"
