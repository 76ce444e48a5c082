from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

from crabclaim.core.config import settings
from crabclaim.services.http_client import HttpResult, JsonHttpClient


log = logging.getLogger(__name__)

ExecutorOutcome = Literal["final", "pending", "failed"]

PENDING_HANDLE_PREFIX = "pending_"


@dataclass(frozen=True)
class ExecutorResult:
    outcome: ExecutorOutcome
    tx_handle: str | None = None
    error: str | None = None
    retryable: bool = False
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.outcome != "failed"


@runtime_checkable
class DisbursementExecutor(Protocol):
    """
    Out-of-process service that performs the token transfer.
    A final handle means the transfer was broadcast; pending means queued.
    """

    @property
    def configured(self) -> bool:
        ...

    async def disburse(self, *, wallet: str, username: str, amount: int, mint: str) -> ExecutorResult:
        ...


def _handle_from(detail: dict[str, Any]) -> str | None:
    for key in ("transactionHandle", "txHash", "tx_hash"):
        value = detail.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def classify_response(result: HttpResult) -> ExecutorResult:
    """Map a raw executor HTTP result onto final / pending / failed."""
    detail = result.detail or {}

    if not result.ok:
        # 401/403 = shared secret rejected; still retryable by reconciliation once fixed
        return ExecutorResult(
            outcome="failed",
            error=result.error_message or result.error_code or "executor_error",
            retryable=result.retryable,
            detail=detail,
        )

    if detail.get("accepted") is False or detail.get("success") is False:
        return ExecutorResult(
            outcome="failed",
            error=str(detail.get("error") or "executor rejected disbursement"),
            retryable=True,
            detail=detail,
        )

    handle = _handle_from(detail)
    is_pending = (
        detail.get("pending") is True
        or str(detail.get("status") or "").lower() in ("queued", "pending")
        or (handle is not None and handle.startswith(PENDING_HANDLE_PREFIX))
    )
    if is_pending:
        return ExecutorResult(outcome="pending", tx_handle=handle, detail=detail)

    if handle is None:
        return ExecutorResult(
            outcome="failed",
            error="executor response missing transaction handle",
            retryable=True,
            detail=detail,
        )

    return ExecutorResult(outcome="final", tx_handle=handle, detail=detail)


class DisbursementExecutorClient:
    def __init__(
        self,
        *,
        url: str,
        secret: str,
        timeout_seconds: float,
        http: JsonHttpClient | None = None,
    ):
        self._url = url
        self._secret = secret
        self._timeout_seconds = timeout_seconds
        self._http = http or JsonHttpClient(timeout_seconds=timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self._secret and self._url)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def disburse(self, *, wallet: str, username: str, amount: int, mint: str) -> ExecutorResult:
        if not self.configured:
            return ExecutorResult(outcome="failed", error="Airdrop not configured", retryable=False)

        body = {"wallet": wallet, "username": username, "amount": amount, "mint": mint}
        headers = {"Authorization": f"Bearer {self._secret}"}

        try:
            # httpx timeouts are per phase; this bounds the whole call
            raw = await asyncio.wait_for(
                self._http.post_json(url=self._url, headers=headers, json_body=body),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning("airdrop executor timed out for @%s after %.1fs", username, self._timeout_seconds)
            return ExecutorResult(outcome="failed", error="timeout", retryable=True, detail={"error": "timeout"})

        result = classify_response(raw)
        if result.outcome == "failed":
            log.error("airdrop executor failed for @%s: %s", username, result.error)
        else:
            log.info("airdrop executor %s for @%s: %s", result.outcome, username, result.tx_handle)
        return result


def build_executor_client() -> DisbursementExecutorClient:
    return DisbursementExecutorClient(
        url=settings.airdrop_executor_url,
        secret=settings.airdrop_executor_secret.get_secret_value(),
        timeout_seconds=settings.airdrop_executor_timeout_seconds,
    )
