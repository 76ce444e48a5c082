from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    status_code: int | None
    detail: dict[str, Any]

    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False

    elapsed_ms: int | None = None


def _is_json_response(resp: httpx.Response) -> bool:
    ct = (resp.headers.get("content-type") or "").lower()
    return "application/json" in ct or ct.endswith("+json")


def _cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class JsonHttpClient:
    """
    Thin JSON-over-HTTP wrapper used for outbound service calls.

    - One AsyncClient instance (connection pooling).
    - Never raises on transport problems; callers get an HttpResult.
    - No retries here: the reconciliation job owns retrying.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        max_response_body_chars: int = 4_000,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_body = max_response_body_chars
        self._default_headers = dict(default_headers or {})
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_json(
        self,
        *,
        url: str,
        headers: Mapping[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> HttpResult:
        # Merge headers (caller wins)
        h = dict(self._default_headers)
        if headers:
            h.update(dict(headers))

        started = time.perf_counter()
        try:
            resp = await self._client.post(url, headers=h, json=json_body)
        except httpx.TimeoutException as e:
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "timeout"},
                error_code="TIMEOUT",
                error_message=str(e) or "timeout",
                retryable=True,
            )
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "request_error"},
                error_code="REQUEST_ERROR",
                error_message=str(e) or type(e).__name__,
                retryable=True,
            )

        detail: dict[str, Any]
        if _is_json_response(resp):
            try:
                parsed = resp.json()
                detail = parsed if isinstance(parsed, dict) else {"data": parsed}
            except ValueError:
                detail = {"raw": _cap_text(resp.text, max_chars=self._max_body)}
        else:
            detail = {
                "raw": _cap_text(resp.text, max_chars=self._max_body),
                "content_type": resp.headers.get("content-type"),
            }

        # resp.elapsed is only set once the stream is closed, which mock transports never do
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        if 200 <= resp.status_code < 300:
            return HttpResult(ok=True, status_code=resp.status_code, detail=detail, elapsed_ms=elapsed_ms)

        retryable = resp.status_code in (408, 429, 500, 502, 503, 504)

        return HttpResult(
            ok=False,
            status_code=resp.status_code,
            detail=detail,
            error_code=f"HTTP_{resp.status_code}",
            error_message=str(detail.get("error") or f"HTTP {resp.status_code}"),
            retryable=retryable,
            elapsed_ms=elapsed_ms,
        )
