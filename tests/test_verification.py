import httpx
import pytest
from sqlalchemy import select

from crabclaim.models.crab import Crab
from crabclaim.services.executor_client import DisbursementExecutorClient
from crabclaim.services.http_client import JsonHttpClient
from crabclaim.services.proof_parser import InvalidProofFormat
from crabclaim.services.verification import (
    AlreadyVerified,
    CodeNotFound,
    lookup_claim,
    verify_claim,
    verify_crab,
)

from fixtures_seed import FakeExecutor, create_crab, load_crab, load_reservations

PROOF = "https://x.com/alice_real/status/1888000000000000001"


@pytest.mark.asyncio
async def test_verify_marks_verified_and_clears_code(db_session, executor):
    seeded = await create_crab(db_session, username="alice")

    result = await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)

    assert result.username == "alice"
    assert result.twitter_handle == "alice_real"
    assert result.airdrop.status == "not_applicable"
    assert result.airdrop.reason == "no_wallet"

    crab = await load_crab(db_session, seeded["crab_id"])
    assert crab.verified is True
    assert crab.verification_code is None
    assert crab.twitter_handle == "alice_real"
    assert crab.verified_at is not None
    assert executor.calls == []


@pytest.mark.asyncio
async def test_unknown_code(db_session, executor):
    with pytest.raises(CodeNotFound):
        await verify_claim(db_session, code="reef-NOPE00", proof_url=PROOF, executor=executor)


@pytest.mark.asyncio
async def test_second_verify_with_same_code_fails_without_second_disbursement(db_session, executor):
    seeded = await create_crab(db_session, username="alice", wallet="W1")

    first = await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)
    assert first.airdrop.status == "sent"

    # Consumed codes look exactly like codes that never existed
    with pytest.raises(CodeNotFound):
        await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)
    with pytest.raises(CodeNotFound):
        await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)

    assert len(executor.calls) == 1
    assert len(await load_reservations(db_session, "W1")) == 1


@pytest.mark.asyncio
async def test_invalid_proof_leaves_state_untouched(db_session, executor):
    seeded = await create_crab(db_session, username="alice", wallet="W1")

    with pytest.raises(InvalidProofFormat):
        await verify_claim(
            db_session,
            code=seeded["code"],
            proof_url="https://example.com/alice/status/123",
            executor=executor,
        )

    crab = await load_crab(db_session, seeded["crab_id"])
    assert crab.verified is False
    assert crab.verification_code == seeded["code"]
    assert crab.twitter_handle is None
    assert executor.calls == []
    assert await load_reservations(db_session) == []


@pytest.mark.asyncio
async def test_stale_reader_loses_the_claim_code_race(session_factory, executor):
    async with session_factory() as seed_db:
        seeded = await create_crab(seed_db, username="alice", wallet="W1")

    # Both callers have looked the code up before either writes
    async with session_factory() as db_a, session_factory() as db_b:
        await lookup_claim(db_a, seeded["code"])
        crab_b = await lookup_claim(db_b, seeded["code"])

        first = await verify_claim(db_a, code=seeded["code"], proof_url=PROOF, executor=executor)
        assert first.airdrop.status == "sent"

        with pytest.raises(AlreadyVerified):
            await verify_crab(
                db_b,
                crab=crab_b,
                proof_url="https://x.com/mallory/status/42",
                executor=executor,
            )

    async with session_factory() as check:
        crab = await load_crab(check, seeded["crab_id"])
        assert crab.twitter_handle == "alice_real"
    assert len(executor.calls) == 1


@pytest.mark.asyncio
async def test_already_verified_crab_rejected_by_lookup(db_session):
    seeded = await create_crab(db_session, username="bob")
    crab = await load_crab(db_session, seeded["crab_id"])
    crab.verified = True
    await db_session.commit()

    with pytest.raises(AlreadyVerified):
        await lookup_claim(db_session, seeded["code"])


@pytest.mark.asyncio
async def test_verify_crab_for_verified_profile(db_session, executor):
    seeded = await create_crab(db_session, username="carol", verified=True)
    crab = await load_crab(db_session, seeded["crab_id"])

    with pytest.raises(AlreadyVerified):
        await verify_crab(db_session, crab=crab, proof_url=PROOF, executor=executor)


@pytest.mark.asyncio
async def test_airdrop_store_failure_does_not_undo_verification(db_session, monkeypatch):
    from sqlalchemy.exc import OperationalError

    import crabclaim.services.verification as verification

    async def broken_disburse(db, crab, executor):
        raise OperationalError("INSERT", {}, Exception("connection reset"))

    monkeypatch.setattr(verification, "try_disburse", broken_disburse)
    seeded = await create_crab(db_session, username="dave", wallet="W9")

    result = await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=FakeExecutor())

    assert result.airdrop.status == "pending"
    assert result.airdrop.reason == "store_error"
    verified = (await db_session.execute(select(Crab.verified).where(Crab.id == seeded["crab_id"]))).scalar_one()
    assert verified is True


class ExplodingExecutor(FakeExecutor):
    async def disburse(self, *, wallet: str, username: str, amount: int, mint: str):
        await super().disburse(wallet=wallet, username=username, amount=amount, mint=mint)
        raise RuntimeError("executor bug")


@pytest.mark.asyncio
async def test_executor_crash_does_not_undo_verification(db_session):
    executor = ExplodingExecutor()
    seeded = await create_crab(db_session, username="erin", wallet="W3")

    result = await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)

    assert result.airdrop.status == "pending"
    assert result.airdrop.reason == "airdrop_error"
    assert len(executor.calls) == 1

    crab = await load_crab(db_session, seeded["crab_id"])
    assert crab.verified is True
    assert crab.verification_code is None
    assert crab.airdrop_tx is None

    # The reservation was committed before the call, so the wallet stays locked
    [reservation] = await load_reservations(db_session, "W3")
    assert reservation.status == "reserved"


@pytest.mark.asyncio
async def test_verify_through_real_executor_client(db_session):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "txHash": "5igReal"})

    http = JsonHttpClient(transport=httpx.MockTransport(handler))
    executor = DisbursementExecutorClient(url="https://executor.test/airdrop", secret="s3cret", timeout_seconds=5.0, http=http)
    seeded = await create_crab(db_session, username="frank", wallet="W4")

    try:
        result = await verify_claim(db_session, code=seeded["code"], proof_url=PROOF, executor=executor)
    finally:
        await executor.aclose()

    assert result.airdrop.status == "sent"
    assert result.airdrop.tx_handle == "5igReal"
    assert (await load_crab(db_session, seeded["crab_id"])).airdrop_tx == "5igReal"
