from unittest.mock import AsyncMock, patch

import pytest

from appserver_https._exceptions import (
    AlreadyConnected,
    CommandFailure,
    ManagementConnectionError,
    NotConnected,
    UnsafeImplementationSwap,
    ValidationError,
    XmlStructureError,
)
from appserver_https._retry import DEFAULT_RETRY_POLICY, RetryPolicy, is_retryable


def test_default_policy_values():
    assert DEFAULT_RETRY_POLICY.max_attempts == 5
    assert DEFAULT_RETRY_POLICY.delay_for(1) == 1.0
    assert DEFAULT_RETRY_POLICY.delay_for(2) == 2.0
    assert DEFAULT_RETRY_POLICY.delay_for(3) == 4.0
    assert DEFAULT_RETRY_POLICY.delay_for(10) == 10.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"initial_delay": -1.0},
        {"max_delay": -1.0},
        {"multiplier": 0.5},
    ],
)
def test_invalid_policy(kwargs):
    with pytest.raises(ValidationError):
        RetryPolicy(**kwargs)


@pytest.mark.parametrize(
    "error,expected",
    [
        (ManagementConnectionError("down"), True),
        (CommandFailure("failed"), True),
        (OSError("disk"), True),
        (ValidationError("bad"), False),
        (XmlStructureError("bad"), False),
        (UnsafeImplementationSwap("bad"), False),
        (AlreadyConnected("bad"), False),
        (NotConnected("bad"), False),
    ],
)
def test_is_retryable(error, expected):
    assert is_retryable(error) is expected


@pytest.mark.asyncio
async def test_execute_returns_first_success():
    policy = RetryPolicy(max_attempts=3, initial_delay=0.0)
    operation = AsyncMock(side_effect=[ManagementConnectionError("down"), "ok"])

    assert await policy.execute(operation, "do something") == "ok"
    assert [call.args[0] for call in operation.await_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_execute_reraises_last_failure(caplog):
    policy = RetryPolicy(max_attempts=3, initial_delay=0.0)
    operation = AsyncMock(side_effect=ManagementConnectionError("down"))

    with pytest.raises(ManagementConnectionError, match="down"):
        await policy.execute(operation, "reach the server")
    assert operation.await_count == 3
    assert "Giving up on 'reach the server' after 3 attempt(s)" in caplog.text


@pytest.mark.asyncio
async def test_execute_does_not_retry_deterministic_failures():
    policy = RetryPolicy(max_attempts=5, initial_delay=0.0)
    operation = AsyncMock(side_effect=ValidationError("bad"))

    with pytest.raises(ValidationError):
        await policy.execute(operation, "validate")
    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_execute_sleeps_with_backoff():
    policy = RetryPolicy(max_attempts=4, initial_delay=1.0, multiplier=3.0, max_delay=5.0)
    operation = AsyncMock(side_effect=OSError("busy"))

    with patch("appserver_https._retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(OSError):
            await policy.execute(operation, "write a file")
    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 3.0, 5.0]


@pytest.mark.asyncio
async def test_execute_custom_predicate():
    policy = RetryPolicy(max_attempts=3, initial_delay=0.0, retry_on=lambda e: False)
    operation = AsyncMock(side_effect=ManagementConnectionError("down"))

    with pytest.raises(ManagementConnectionError):
        await policy.execute(operation, "connect")
    assert operation.await_count == 1
