"""Tests for the retry executor - behavior focused."""

import asyncio
import time

import pytest
from storage_clients.exceptions import (
    AttemptTimeoutError,
    InvalidPolicyError,
    NonRetryableError,
    RetryAbortedError,
    RetryCancelledError,
    RetryExhaustedError,
    RetryOutcome,
    RetryableError,
)
from storage_clients.retry import (
    AttemptOutcome,
    RetryExecutor,
    RetryPolicy,
    async_with_retry,
    execute,
    with_retry,
)


# --- Helpers ---


class PinnedRandom:
    """Random source that always returns the upper end of the range."""

    def __init__(self):
        self.calls = []

    def uniform(self, a: float, b: float) -> float:
        self.calls.append((a, b))
        return b


def fast_policy(**overrides) -> RetryPolicy:
    """Policy with millisecond delays so tests run quickly."""
    values = dict(
        request_timeout=1.0,
        min_attempts=1,
        max_attempts=5,
        initial_delay=0.001,
        max_delay=0.004,
        backoff_factor=2.0,
        retry_period=3600.0,
    )
    values.update(overrides)
    return RetryPolicy(**values)


class FlakyWork:
    """Async unit of work that fails a fixed number of times, then succeeds."""

    def __init__(self, failures: int, error=None, result="ok"):
        self.failures = failures
        self.error = error or RetryableError("transient")
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


# --- Stopping rule ---


class TestStoppingRule:
    """Test when a failing sequence ends."""

    @pytest.mark.asyncio
    async def test_max_attempts_bounds_permanent_failure(self):
        """Given max_attempts=3, a permanently failing work runs exactly 3 times."""
        work = FlakyWork(failures=1000)
        executor = RetryExecutor(fast_policy(min_attempts=3, max_attempts=3))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.execute(work)

        assert work.calls == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.outcome is RetryOutcome.EXHAUSTED

    @pytest.mark.asyncio
    async def test_max_attempts_ignores_retry_period(self):
        """max_attempts wins even when the retry period is far away."""
        work = FlakyWork(failures=1000)
        policy = fast_policy(min_attempts=1, max_attempts=3, retry_period=1e9)

        with pytest.raises(RetryExhaustedError):
            await RetryExecutor(policy).execute(work)

        assert work.calls == 3

    @pytest.mark.asyncio
    async def test_retry_period_cannot_cut_below_min_attempts(self):
        """With retry_period=0, min_attempts=5 still makes 5 attempts."""
        work = FlakyWork(failures=1000)
        policy = fast_policy(min_attempts=5, max_attempts=100, retry_period=0.0)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await RetryExecutor(policy).execute(work)

        assert work.calls == 5
        assert exc_info.value.attempts == 5

    @pytest.mark.asyncio
    async def test_retry_period_measured_from_first_attempt(self):
        """After min_attempts, the sequence stops once retry_period has elapsed."""
        now = [0.0]

        async def slow_failure():
            now[0] += 2.0
            raise RetryableError("slow")

        policy = fast_policy(min_attempts=2, max_attempts=10, retry_period=5.0)
        executor = RetryExecutor(policy, clock=lambda: now[0])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.execute(slow_failure)

        # elapsed is 2, 4, 6: the third failure crosses the period
        assert exc_info.value.attempts == 3
        assert exc_info.value.elapsed == 6.0

    @pytest.mark.asyncio
    async def test_exhausted_wraps_last_error(self):
        """The terminal failure carries and chains the last underlying error."""
        errors = [RetryableError("first"), RetryableError("second")]

        async def work():
            raise errors.pop(0)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await RetryExecutor(fast_policy(min_attempts=2, max_attempts=2)).execute(work)

        assert str(exc_info.value.last_error) == "second"
        assert exc_info.value.__cause__ is exc_info.value.last_error


# --- Short circuits ---


class TestShortCircuits:
    """Test success and non-retryable failures."""

    @pytest.mark.asyncio
    async def test_returns_value_on_first_success(self):
        """Given immediate success, returns the value after one attempt."""
        work = FlakyWork(failures=0, result=42)
        rng = PinnedRandom()

        result = await RetryExecutor(fast_policy(), rng=rng).execute(work)

        assert result == 42
        assert work.calls == 1
        assert rng.calls == []

    @pytest.mark.asyncio
    async def test_success_after_failures_stops_computing_delays(self):
        """Succeeding on attempt 3 computes exactly two delays."""
        work = FlakyWork(failures=2)
        rng = PinnedRandom()

        result = await RetryExecutor(fast_policy(), rng=rng).execute(work)

        assert result == "ok"
        assert work.calls == 3
        assert len(rng.calls) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_failure_propagates_immediately(self):
        """A non-retryable error on attempt 1 means one attempt and no delay."""
        cause = NonRetryableError("permission denied")
        work = FlakyWork(failures=1000, error=cause)
        rng = PinnedRandom()
        retries = []
        executor = RetryExecutor(
            fast_policy(min_attempts=5, max_attempts=5),
            rng=rng,
            on_retry=lambda *args: retries.append(args),
        )

        with pytest.raises(RetryAbortedError) as exc_info:
            await executor.execute(work)

        assert work.calls == 1
        assert rng.calls == []
        assert retries == []
        assert exc_info.value.last_error is cause
        assert exc_info.value.outcome is RetryOutcome.NON_RETRYABLE

    @pytest.mark.asyncio
    async def test_plain_exceptions_are_not_retried(self):
        """Exceptions without a retryable flag are non-retryable."""
        work = FlakyWork(failures=1000, error=ValueError("bad input"))

        with pytest.raises(RetryAbortedError) as exc_info:
            await RetryExecutor(fast_policy()).execute(work)

        assert work.calls == 1
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_work_cancelling_itself_is_non_retryable(self):
        """Work that raises CancelledError on its own ends as RetryAbortedError."""
        calls = 0

        async def gives_up():
            nonlocal calls
            calls += 1
            raise asyncio.CancelledError()

        with pytest.raises(RetryAbortedError) as exc_info:
            await RetryExecutor(fast_policy()).execute(gives_up)

        assert calls == 1
        assert isinstance(exc_info.value.last_error, NonRetryableError)
        assert exc_info.value.outcome is RetryOutcome.NON_RETRYABLE

    @pytest.mark.asyncio
    async def test_non_retryable_wins_over_remaining_budget(self):
        """A non-retryable error mid-sequence stops even below min_attempts."""
        errors = [RetryableError("a"), NonRetryableError("b")]

        async def work():
            raise errors.pop(0)

        with pytest.raises(RetryAbortedError) as exc_info:
            await RetryExecutor(fast_policy(min_attempts=5, max_attempts=5)).execute(work)

        assert exc_info.value.attempts == 2


# --- Timeouts ---


class TestAttemptTimeout:
    """Test per-attempt timeout enforcement."""

    @pytest.mark.asyncio
    async def test_hung_work_times_out_as_retryable(self):
        """Work that never returns becomes a retryable AttemptTimeoutError."""
        calls = 0

        async def hang():
            nonlocal calls
            calls += 1
            await asyncio.sleep(3600)

        policy = fast_policy(request_timeout=0.05, min_attempts=2, max_attempts=2)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await RetryExecutor(policy).execute(hang)

        assert calls == 2
        assert isinstance(exc_info.value.last_error, AttemptTimeoutError)
        outcomes = [record.outcome for record in exc_info.value.history]
        assert outcomes == [AttemptOutcome.TIMEOUT, AttemptOutcome.TIMEOUT]

    @pytest.mark.asyncio
    async def test_timeout_fires_no_earlier_than_request_timeout(self):
        """The attempt is given the full request timeout."""

        async def hang():
            await asyncio.sleep(3600)

        policy = fast_policy(request_timeout=0.1, max_attempts=1)
        start = time.monotonic()

        with pytest.raises(RetryExhaustedError):
            await RetryExecutor(policy).execute(hang)

        assert time.monotonic() - start >= 0.09

    @pytest.mark.asyncio
    async def test_work_finishing_inside_timeout_succeeds(self):
        """Work slower than zero but faster than the timeout is not cut short."""

        async def slowish():
            await asyncio.sleep(0.02)
            return "done"

        policy = fast_policy(request_timeout=1.0, max_attempts=1)

        assert await RetryExecutor(policy).execute(slowish) == "done"

    @pytest.mark.asyncio
    async def test_timed_out_work_is_cancelled(self):
        """The losing work task is signalled to stop."""
        cancelled = asyncio.Event()

        async def hang():
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        policy = fast_policy(request_timeout=0.02, max_attempts=1)

        with pytest.raises(RetryExhaustedError):
            await RetryExecutor(policy).execute(hang)

        await asyncio.wait_for(cancelled.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_timeout_then_success(self):
        """A timed out attempt is retried like any retryable failure."""
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(3600)
            return "second time lucky"

        policy = fast_policy(request_timeout=0.02)

        assert await RetryExecutor(policy).execute(work) == "second time lucky"
        assert calls == 2


# --- Cancellation ---


class TestCancellation:
    """Test the external cancel signal."""

    @pytest.mark.asyncio
    async def test_cancel_during_delay(self):
        """Setting the cancel event aborts the inter-attempt sleep promptly."""
        cancel = asyncio.Event()
        work = FlakyWork(failures=1000)
        policy = fast_policy(initial_delay=60.0, max_delay=60.0, max_attempts=5)

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        start = time.monotonic()

        with pytest.raises(RetryCancelledError) as exc_info:
            await RetryExecutor(policy).execute(work, cancel_event=cancel)

        assert time.monotonic() - start < 5.0
        assert work.calls == 1
        assert exc_info.value.outcome is RetryOutcome.CANCELLED
        assert isinstance(exc_info.value.last_error, RetryableError)

    @pytest.mark.asyncio
    async def test_cancel_during_attempt(self):
        """Setting the cancel event aborts a running attempt."""
        cancel = asyncio.Event()

        async def hang():
            await asyncio.sleep(3600)

        policy = fast_policy(request_timeout=60.0)
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        with pytest.raises(RetryCancelledError) as exc_info:
            await RetryExecutor(policy).execute(hang, cancel_event=cancel)

        assert exc_info.value.attempts == 1
        assert exc_info.value.history[-1].outcome is AttemptOutcome.CANCELLED

    @pytest.mark.asyncio
    async def test_already_cancelled_makes_no_attempt(self):
        """A cancel event set before execution means zero attempts."""
        cancel = asyncio.Event()
        cancel.set()
        work = FlakyWork(failures=0)

        with pytest.raises(RetryCancelledError) as exc_info:
            await RetryExecutor(fast_policy()).execute(work, cancel_event=cancel)

        assert work.calls == 0
        assert exc_info.value.attempts == 0

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self):
        """Cancelling the surrounding task raises CancelledError."""

        async def hang():
            await asyncio.sleep(3600)

        task = asyncio.ensure_future(
            RetryExecutor(fast_policy(request_timeout=60.0)).execute(hang)
        )
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


# --- Bookkeeping ---


class TestAttemptHistory:
    """Test diagnostic metadata on failures."""

    @pytest.mark.asyncio
    async def test_history_records_delays(self):
        """Each failed attempt records the delay that followed it."""
        work = FlakyWork(failures=1000)
        policy = fast_policy(min_attempts=5, max_attempts=5)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await RetryExecutor(policy, rng=PinnedRandom()).execute(work)

        history = exc_info.value.history
        assert [record.index for record in history] == [1, 2, 3, 4, 5]
        assert [record.delay for record in history[:4]] == pytest.approx(
            [0.001, 0.002, 0.004, 0.004]
        )
        assert history[-1].delay is None
        assert all(record.outcome is AttemptOutcome.FAILURE for record in history)

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """on_retry receives attempt number, error and delay before each retry."""
        work = FlakyWork(failures=2)
        seen = []
        executor = RetryExecutor(
            fast_policy(),
            rng=PinnedRandom(),
            on_retry=lambda attempt, error, delay: seen.append((attempt, delay)),
        )

        await executor.execute(work)

        assert seen == [(1, 0.001), (2, 0.002)]

    @pytest.mark.asyncio
    async def test_logs_retry_warning_without_callback(self, caplog):
        """Without a callback, each retry is logged as a warning."""
        work = FlakyWork(failures=1)

        with caplog.at_level("WARNING", logger="storage_clients.retry.executor"):
            await RetryExecutor(fast_policy()).execute(work)

        assert "Retry 1/5" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_policy_rejected_at_execution(self):
        """A policy corrupted after construction is caught before any attempt."""
        policy = fast_policy()
        object.__setattr__(policy, "min_attempts", 50)
        work = FlakyWork(failures=0)

        with pytest.raises(InvalidPolicyError):
            await RetryExecutor(policy).execute(work)

        assert work.calls == 0


# --- Concurrency ---


class TestConcurrentSequences:
    """Test independent sequences sharing one policy."""

    @pytest.mark.asyncio
    async def test_shared_policy_has_no_cross_talk(self):
        """Concurrent sequences keep their own attempt counts."""
        policy = fast_policy(min_attempts=3, max_attempts=3)
        executor = RetryExecutor(policy)
        works = [FlakyWork(failures=i % 3) for i in range(12)]

        results = await asyncio.gather(*(executor.execute(w) for w in works))

        assert results == ["ok"] * 12
        assert [w.calls for w in works] == [(i % 3) + 1 for i in range(12)]

    @pytest.mark.asyncio
    async def test_module_level_execute(self):
        """execute() runs one sequence with a throwaway executor."""
        work = FlakyWork(failures=1)

        assert await execute(fast_policy(), work, rng=PinnedRandom()) == "ok"
        assert work.calls == 2


# --- Synchronous path ---


class TestSyncExecution:
    """Test blocking work through RetryExecutor.call and with_retry."""

    def test_call_retries_blocking_work(self):
        """Blocking work is retried until it succeeds."""
        calls = []

        def work():
            calls.append(1)
            if len(calls) < 3:
                raise RetryableError("not yet")
            return "synced"

        assert RetryExecutor(fast_policy()).call(work) == "synced"
        assert len(calls) == 3

    def test_call_times_out_blocking_work(self):
        """A hung blocking attempt is abandoned after the request timeout."""
        policy = fast_policy(request_timeout=0.05, min_attempts=2, max_attempts=2)
        start = time.monotonic()

        with pytest.raises(RetryExhaustedError) as exc_info:
            RetryExecutor(policy).call(lambda: time.sleep(0.5))

        assert time.monotonic() - start < 0.5
        assert isinstance(exc_info.value.last_error, AttemptTimeoutError)

    @pytest.mark.asyncio
    async def test_call_refuses_running_loop(self):
        """call() inside an event loop is a programming error."""
        with pytest.raises(RuntimeError):
            RetryExecutor(fast_policy()).call(lambda: None)

    @pytest.mark.asyncio
    async def test_with_retry_refuses_running_loop(self):
        """A with_retry function cannot be called from inside an event loop."""

        @with_retry(fast_policy())
        def ping():
            return "pong"

        with pytest.raises(RuntimeError):
            ping()

    def test_with_retry_decorator(self):
        """with_retry wraps a sync function and passes arguments through."""
        calls = []

        @with_retry(fast_policy())
        def add(a, b):
            calls.append((a, b))
            if len(calls) == 1:
                raise RetryableError("flaky")
            return a + b

        assert add(2, b=3) == 5
        assert calls == [(2, 3), (2, 3)]
        assert add.__name__ == "add"

    @pytest.mark.asyncio
    async def test_async_with_retry_decorator(self):
        """async_with_retry wraps a coroutine function."""
        calls = []

        @async_with_retry(fast_policy(min_attempts=2, max_attempts=2))
        async def fetch(key):
            calls.append(key)
            raise RetryableError("down")

        with pytest.raises(RetryExhaustedError):
            await fetch("k")

        assert calls == ["k", "k"]
