import pytest

from ledgerkit.utils.common import chunk, zip_map
from ledgerkit.utils.lazy import LazyPipe
from ledgerkit.utils.retry import RetryError, aretry_call, backoff_delay

pytestmark = pytest.mark.anyio


def test_chunk_concatenates_back_to_input():
    items = list(range(7))
    parts = chunk(items, 3)
    assert parts == [[0, 1, 2], [3, 4, 5], [6]]
    assert [x for p in parts for x in p] == items
    assert chunk([], 3) == []
    with pytest.raises(ValueError):
        chunk(items, 0)


def test_zip_map():
    assert zip_map([1, 2], [10, 20], lambda a, b: a + b) == [11, 22]
    with pytest.raises(ValueError):
        zip_map([1], [], lambda a, b: a)


def test_backoff_delay_is_capped():
    for attempt in range(1, 10):
        assert 0.0 <= backoff_delay(attempt, base=0.1, max_delay=0.5) <= 0.5
        assert 0.25 <= backoff_delay(attempt, base=1.0, max_delay=0.5, jitter="equal") <= 0.5
    with pytest.raises(ValueError):
        backoff_delay(1, base=0.1, max_delay=1.0, jitter="none")


async def test_lazy_pipe_reruns_source_and_awaits_async_steps():
    runs = []

    async def source():
        runs.append(1)
        return [1, 2, 3]

    async def total(items):
        return sum(items)

    base = LazyPipe.make(source)
    doubled = base.map(lambda x: x * 2)
    summed = doubled.pipe(total)

    assert runs == []
    assert await doubled.run() == [2, 4, 6]
    assert await summed == 12
    assert await base == [1, 2, 3]
    assert len(runs) == 3


async def test_aretry_call_retries_then_succeeds():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("down")
        return "up"

    seen = []
    result = await aretry_call(flaky, retries=3, base=0.0, on_retry=lambda n, e, d: seen.append(n))
    assert result == "up"
    assert seen == [1, 2]


async def test_aretry_call_does_not_retry_filtered_errors():
    attempts = []

    async def bad():
        attempts.append(1)
        raise ValueError("permanent")

    with pytest.raises(ValueError):
        await aretry_call(bad, retries=3, base=0.0, retry_if=lambda e: not isinstance(e, ValueError))
    assert len(attempts) == 1


async def test_aretry_call_exhaustion_chains_last_error():
    async def down():
        raise ConnectionError("still down")

    with pytest.raises(RetryError) as exc:
        await aretry_call(down, retries=2, base=0.0)
    assert exc.value.attempts == 3
    assert isinstance(exc.value.__cause__, ConnectionError)
