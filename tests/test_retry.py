import pytest

from bio_verifier import RetryPolicy


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.mark.asyncio
async def test_stops_as_soon_as_condition_holds():
    sleeper = SleepRecorder()
    calls = []

    async def attempt(number):
        calls.append(number)
        return number

    outcome = await RetryPolicy(5, 2.0).run(
        attempt, stop=lambda n: n == 2, sleep=sleeper
    )

    assert outcome.result == 2
    assert outcome.attempts == 2
    assert outcome.stopped
    assert calls == [1, 2]
    assert sleeper.delays == [2.0]


@pytest.mark.asyncio
async def test_exhausts_attempts_without_trailing_sleep():
    sleeper = SleepRecorder()

    async def attempt(number):
        return number

    outcome = await RetryPolicy(3, 1.5).run(attempt, sleep=sleeper)

    assert outcome.result == 3
    assert outcome.attempts == 3
    assert not outcome.stopped
    assert sleeper.delays == [1.5, 1.5]


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps():
    sleeper = SleepRecorder()

    async def attempt(number):
        return None

    await RetryPolicy(4).run(attempt, sleep=sleeper)

    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_rejects_policy_without_attempts():
    async def attempt(number):
        return number

    with pytest.raises(ValueError):
        await RetryPolicy(0).run(attempt)


@pytest.mark.asyncio
async def test_attempt_errors_propagate():
    async def attempt(number):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await RetryPolicy(3).run(attempt)
