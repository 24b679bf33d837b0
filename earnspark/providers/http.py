"""Thin async HTTP wrapper shared by the provider adapters."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from earnspark.engine.retry import GatewayTransportError, RateLimitError

logger = logging.getLogger("earnspark.providers.http")

REDACTED_HEADERS = {"authorization", "x-api-key"}


@dataclass
class HttpResponse:
    status_code: int
    payload: Optional[dict[str, Any]]
    text: str

    @property
    def parsed(self) -> bool:
        return self.payload is not None


class ProviderHttp:
    def __init__(self, timeout_s: float, client: Optional[httpx.AsyncClient] = None):
        self._client = client or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)
        self._timeout_s = timeout_s

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[dict[str, Any]] = None,
        auth: Optional[tuple[str, str]] = None,
    ) -> HttpResponse:
        logger.debug("%s %s headers=%s", method, url, _safe_headers(headers))
        try:
            r = await self._client.request(
                method,
                url,
                headers=headers,
                json=json_body,
                auth=auth,
                timeout=self._timeout_s,
            )
        except httpx.HTTPError as e:
            raise GatewayTransportError(f"{method} {url} failed: {e!r}") from e

        if r.status_code == 429:
            retry_after = r.headers.get("retry-after")
            raise RateLimitError(
                message=f"Provider rate limited {method} {url}",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        return _wrap(r)

    async def aclose(self) -> None:
        await self._client.aclose()


def _wrap(r: httpx.Response) -> HttpResponse:
    text = r.text
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        payload = None
    return HttpResponse(status_code=r.status_code, payload=payload, text=text)


def _safe_headers(headers: Optional[dict[str, str]]) -> dict[str, str]:
    return {k: ("REDACTED" if k.lower() in REDACTED_HEADERS else v) for k, v in (headers or {}).items()}
