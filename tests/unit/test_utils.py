"""
Unit Tests for Utility Helpers and Cancellation
"""

import asyncio

import pytest

from rag_kernel.exceptions import (
    EmbeddingProviderError,
    InvalidArgumentError,
    OperationCancelledError,
    ProviderTimeoutError,
)
from rag_kernel.utils import (
    CancellationToken,
    Timer,
    calculate_cosine_similarity,
    chunk_list,
    create_unique_id,
    format_duration,
    guarded_call,
    retry_with_backoff,
)


class TestHelpers:
    def test_chunk_list(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunk_list([], 3) == []

        with pytest.raises(ValueError):
            chunk_list([1], 0)

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0.25, "250ms"), (2.5, "2.5s"), (125, "2m 5s"), (3725, "1h 2m")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_cosine_similarity(self):
        assert calculate_cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
        assert calculate_cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert calculate_cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
        assert calculate_cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

        with pytest.raises(ValueError):
            calculate_cosine_similarity([1.0], [1.0, 2.0])

    def test_create_unique_id(self):
        first = create_unique_id("docs")
        second = create_unique_id("docs")

        assert first.startswith("docs_")
        assert first != second
        assert "_" not in create_unique_id()

    def test_timer(self):
        timer = Timer("test")
        assert timer.elapsed_time == 0.0

        with timer:
            pass

        assert timer.elapsed_time >= 0.0
        assert timer.end_time is not None

    @pytest.mark.asyncio
    async def test_retry_with_backoff(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        result = await retry_with_backoff(flaky, max_retries=3, base_delay=0.0)

        assert result == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_retry_gives_up(self):
        async def broken():
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            await retry_with_backoff(broken, max_retries=1, base_delay=0.0)

    @pytest.mark.asyncio
    async def test_retry_only_listed_exceptions(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await retry_with_backoff(broken, base_delay=0.0, exceptions=(ConnectionError,))
        assert len(attempts) == 1


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_cancel(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

        token.cancel("user left")

        assert token.is_cancelled
        with pytest.raises(OperationCancelledError, match="user left"):
            token.raise_if_cancelled("search")


class TestGuardedCall:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def call():
            return 7

        assert await guarded_call(call(), "call", EmbeddingProviderError, timeout=1.0) == 7

    @pytest.mark.asyncio
    async def test_wraps_foreign_errors(self):
        async def call():
            raise ConnectionError("reset")

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await guarded_call(call(), "embed", EmbeddingProviderError)

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_kernel_errors_pass_through(self):
        async def call():
            raise InvalidArgumentError("bad")

        with pytest.raises(InvalidArgumentError):
            await guarded_call(call(), "embed", EmbeddingProviderError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(ProviderTimeoutError):
            await guarded_call(asyncio.sleep(1.0), "slow", EmbeddingProviderError, timeout=0.01)

    @pytest.mark.asyncio
    async def test_cancellation_while_waiting(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel, "stop")

        with pytest.raises(OperationCancelledError, match="stop"):
            await guarded_call(
                asyncio.sleep(1.0), "slow", EmbeddingProviderError, cancellation_token=token
            )

    @pytest.mark.asyncio
    async def test_already_cancelled_token(self):
        started = []

        async def call():
            started.append(1)
            return "never"

        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await guarded_call(call(), "call", EmbeddingProviderError, cancellation_token=token)
        assert started == []
