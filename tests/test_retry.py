import pytest

from jenkins_relay.exceptions import UpstreamError
from jenkins_relay.retry import RetryPolicy


def test_delays_double():
    assert RetryPolicy().delays() == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert RetryPolicy(max_retries=0).delays() == []


@pytest.mark.asyncio
async def test_retries_until_success():
    calls = []
    sleeps = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise UpstreamError("not yet", status_code=404)
        return "loaded"

    async def sleep(delay):
        sleeps.append(delay)

    result = await RetryPolicy().run(operation, lambda e: True, sleep=sleep)

    assert result == "loaded"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    calls = []
    sleeps = []

    async def operation():
        calls.append(1)
        raise UpstreamError("missing", status_code=404)

    async def sleep(delay):
        sleeps.append(delay)

    with pytest.raises(UpstreamError):
        await RetryPolicy().run(operation, lambda e: True, sleep=sleep)

    assert len(calls) == 6
    assert sum(sleeps) == 31.0


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately():
    calls = []

    async def operation():
        calls.append(1)
        raise UpstreamError("denied", status_code=403)

    async def sleep(delay):
        pytest.fail("should not sleep")

    with pytest.raises(UpstreamError):
        await RetryPolicy().run(
            operation, lambda e: e.status_code == 404, sleep=sleep
        )

    assert len(calls) == 1
