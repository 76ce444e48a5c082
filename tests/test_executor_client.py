import asyncio
import json

import httpx
import pytest

from crabclaim.services.executor_client import DisbursementExecutorClient
from crabclaim.services.http_client import JsonHttpClient

EXECUTOR_URL = "https://executor.test/api/internal/airdrop"


def _client(handler, *, secret="s3cret", timeout_seconds=2.0) -> DisbursementExecutorClient:
    http = JsonHttpClient(timeout_seconds=timeout_seconds, transport=httpx.MockTransport(handler))
    return DisbursementExecutorClient(url=EXECUTOR_URL, secret=secret, timeout_seconds=timeout_seconds, http=http)


async def _disburse(client: DisbursementExecutorClient):
    try:
        return await client.disburse(wallet="W1", username="alice", amount=420, mint="MINT")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_final_handle_and_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "txHash": "5xYzFinal"})

    result = await _disburse(_client(handler))

    assert result.outcome == "final"
    assert result.accepted is True
    assert result.tx_handle == "5xYzFinal"
    assert seen["auth"] == "Bearer s3cret"
    assert seen["body"] == {"wallet": "W1", "username": "alice", "amount": 420, "mint": "MINT"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"success": True, "txHash": "pending_1700000000_alice", "status": "queued"},
        {"accepted": True, "pending": True},
        {"success": True, "txHash": "pending_1700000000_alice"},
    ],
)
async def test_queued_responses_are_pending(payload):
    result = await _disburse(_client(lambda request: httpx.Response(200, json=payload)))
    assert result.outcome == "pending"
    assert result.accepted is True


@pytest.mark.asyncio
async def test_auth_rejection_is_failure():
    result = await _disburse(_client(lambda request: httpx.Response(401, json={"error": "Unauthorized"})))
    assert result.outcome == "failed"
    assert result.error == "Unauthorized"
    assert result.retryable is False


@pytest.mark.asyncio
async def test_server_error_is_retryable_failure():
    result = await _disburse(_client(lambda request: httpx.Response(503, text="upstream down")))
    assert result.outcome == "failed"
    assert result.retryable is True


@pytest.mark.asyncio
async def test_explicit_rejection_is_failure():
    result = await _disburse(_client(lambda request: httpx.Response(200, json={"accepted": False, "error": "mint paused"})))
    assert result.outcome == "failed"
    assert result.error == "mint paused"


@pytest.mark.asyncio
async def test_missing_handle_is_failure():
    result = await _disburse(_client(lambda request: httpx.Response(200, json={"success": True})))
    assert result.outcome == "failed"


@pytest.mark.asyncio
async def test_connection_error_is_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _disburse(_client(handler))
    assert result.outcome == "failed"
    assert result.retryable is True


@pytest.mark.asyncio
async def test_slow_executor_times_out():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"txHash": "late"})

    result = await _disburse(_client(handler, timeout_seconds=0.05))
    assert result.outcome == "failed"
    assert result.error == "timeout"
    assert result.retryable is True


@pytest.mark.asyncio
async def test_unconfigured_client_does_not_call_out():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"txHash": "x"})

    client = _client(handler, secret="")
    assert client.configured is False
    result = await _disburse(client)
    assert result.outcome == "failed"
    assert calls == []


@pytest.mark.asyncio
async def test_post_json_returns_result_for_mocked_response():
    http = JsonHttpClient(transport=httpx.MockTransport(lambda request: httpx.Response(201, json={"txHash": "5ig"})))
    try:
        result = await http.post_json(url=EXECUTOR_URL, json_body={"wallet": "W1"})
    finally:
        await http.aclose()

    assert result.ok is True
    assert result.status_code == 201
    assert result.detail == {"txHash": "5ig"}
    assert isinstance(result.elapsed_ms, int)
