from crabclaim.services.executor_client import DisbursementExecutor, DisbursementExecutorClient, build_executor_client

_client: DisbursementExecutorClient | None = None


def get_executor() -> DisbursementExecutor:
    # One pooled client per process
    global _client
    if _client is None:
        _client = build_executor_client()
    return _client


async def close_executor() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
