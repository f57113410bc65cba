import asyncio
import logging

import pytest

from conftest import make_items
from xclocalizer.errors import (
    BatchTimeoutError,
    InvalidArgument,
    RunCancelledError,
    TranslationProviderError,
)
from xclocalizer.grouping import group_items
from xclocalizer.policy import RetryPolicy
from xclocalizer.scheduler import BatchScheduler, CancellationToken


def _batches(count, batch_size=1, languages=("fr",)):
    return group_items(make_items(count), list(languages), batch_size)


async def _no_sleep(_delay):
    return None


@pytest.mark.parametrize("concurrency", [1, 2, 3, 10])
def test_never_exceeds_concurrency(concurrency):
    state = {"in_flight": 0, "peak": 0}

    async def execute(batch):
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0.005)
        state["in_flight"] -= 1
        return batch.texts

    outcomes = asyncio.run(BatchScheduler(concurrency).run(_batches(25), execute))

    assert len(outcomes) == 25
    assert state["peak"] <= concurrency
    assert state["peak"] == min(concurrency, 25)


def test_batches_start_in_list_order():
    started = []

    async def execute(batch):
        started.append(batch.batch_id)
        await asyncio.sleep(0)
        return batch.texts

    asyncio.run(BatchScheduler(1).run(_batches(6), execute))

    assert started == [1, 2, 3, 4, 5, 6]


def test_failed_batch_does_not_affect_others():
    async def execute(batch):
        await asyncio.sleep(0.001 * batch.batch_id)
        if batch.batch_id == 2:
            raise TranslationProviderError("rate limited")
        return batch.texts

    seen = []
    outcomes = asyncio.run(BatchScheduler(3).run(_batches(5), execute, seen.append))

    assert len(outcomes) == 5
    assert seen == outcomes
    failed = [outcome for outcome in outcomes if not outcome.succeeded]
    assert [outcome.batch.batch_id for outcome in failed] == [2]
    assert str(failed[0].error) == "rate limited"


def test_unexpected_exceptions_are_contained():
    async def execute(batch):
        raise KeyError("boom")

    outcomes = asyncio.run(BatchScheduler(2).run(_batches(3), execute))

    assert len(outcomes) == 3
    assert all(isinstance(outcome.error, KeyError) for outcome in outcomes)


def test_call_timeout_fails_only_the_hung_batch():
    async def execute(batch):
        if batch.batch_id == 1:
            await asyncio.sleep(10)
        return batch.texts

    scheduler = BatchScheduler(2, call_timeout=0.05)
    outcomes = asyncio.run(scheduler.run(_batches(4), execute))

    by_id = {outcome.batch.batch_id: outcome for outcome in outcomes}
    assert isinstance(by_id[1].error, BatchTimeoutError)
    assert all(by_id[batch_id].succeeded for batch_id in (2, 3, 4))


def test_cancellation_marks_queued_batches_as_cancelled():
    token = CancellationToken()

    async def execute(batch):
        return batch.texts

    def on_outcome(outcome):
        token.cancel()

    scheduler = BatchScheduler(1, cancel_token=token)
    outcomes = asyncio.run(scheduler.run(_batches(4), execute, on_outcome))

    assert len(outcomes) == 4
    assert outcomes[0].succeeded
    assert all(isinstance(outcome.error, RunCancelledError) for outcome in outcomes[1:])


def test_retry_policy_recovers_transient_failures():
    attempts = {}

    async def execute(batch):
        attempts[batch.batch_id] = attempts.get(batch.batch_id, 0) + 1
        if attempts[batch.batch_id] < 3:
            raise TranslationProviderError("temporarily unavailable")
        return batch.texts

    policy = RetryPolicy(max_retries=2, backoff=(0,), sleep=_no_sleep)
    outcomes = asyncio.run(BatchScheduler(2, retry_policy=policy).run(_batches(2), execute))

    assert all(outcome.succeeded for outcome in outcomes)
    assert attempts == {1: 3, 2: 3}


def test_retry_policy_gives_up_after_max_retries():
    calls = []

    async def execute(batch):
        calls.append(batch.batch_id)
        raise TranslationProviderError("still down")

    policy = RetryPolicy(max_retries=1, sleep=_no_sleep)
    outcomes = asyncio.run(BatchScheduler(1, retry_policy=policy).run(_batches(1), execute))

    assert calls == [1, 1]
    assert not outcomes[0].succeeded


def test_non_provider_errors_are_not_retried():
    calls = []

    async def execute(batch):
        calls.append(batch.batch_id)
        raise ValueError("bad payload")

    policy = RetryPolicy(max_retries=3, sleep=_no_sleep)
    asyncio.run(BatchScheduler(1, retry_policy=policy).run(_batches(1), execute))

    assert calls == [1]


def test_retry_backoff_uses_table_and_repeats_last_delay():
    policy = RetryPolicy(max_retries=5, backoff=(1, 4, 9))

    assert [policy.delay_for(attempt) for attempt in range(1, 6)] == [1, 4, 9, 9, 9]


def test_empty_batch_list_completes_immediately():
    async def execute(batch):  # pragma: no cover - never called
        raise AssertionError("should not run")

    assert asyncio.run(BatchScheduler(3).run([], execute)) == []


@pytest.mark.parametrize("concurrency", [0, -2, True])
def test_rejects_invalid_concurrency(concurrency):
    with pytest.raises(InvalidArgument):
        BatchScheduler(concurrency)


def test_retry_log_counts_retries_against_the_limit(caplog):
    async def execute(batch):
        raise TranslationProviderError("still down")

    policy = RetryPolicy(max_retries=1, sleep=_no_sleep)
    with caplog.at_level(logging.WARNING, logger="xclocalizer.policy"):
        asyncio.run(BatchScheduler(1, retry_policy=policy).run(_batches(1), execute))

    retries = [record.getMessage() for record in caplog.records if record.name == "xclocalizer.policy"]
    assert len(retries) == 1
    assert "Retry 1 of 1" in retries[0]
