"""httpx-backed transport used by scenario runners to reach the target."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

# Marks "send no body at all", as opposed to a JSON ``null`` body.
NO_BODY: Any = object()


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    OTHER = "other"


class TransportError(RuntimeError):
    """A request that never produced an HTTP response."""

    def __init__(self, kind: FailureKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)

    @property
    def is_timeout(self) -> bool:
        return self.kind is FailureKind.TIMEOUT


@dataclass
class HttpResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransport:
    """Performs one HTTP request per ``send`` call.

    A single underlying ``httpx.Client`` is shared, so the transport is safe
    to use from several threads at once.
    """

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True)

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        body: Any = NO_BODY,
        timeout: float = 10.0,
    ) -> HttpResponse:
        request_headers = dict(headers or {})
        content: Optional[bytes] = None
        if body is not NO_BODY:
            content = json.dumps(body).encode("utf-8")
            if not any(key.lower() == "content-type" for key in request_headers):
                request_headers["Content-Type"] = "application/json"

        try:
            response = self._client.request(
                method,
                url,
                headers=request_headers,
                content=content,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(FailureKind.TIMEOUT, f"timeout of {timeout}s exceeded") from exc
        except httpx.TransportError as exc:
            raise TransportError(FailureKind.NETWORK, str(exc) or exc.__class__.__name__) from exc
        except httpx.HTTPError as exc:
            raise TransportError(FailureKind.OTHER, str(exc) or exc.__class__.__name__) from exc

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.text,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
