"""
Retry executor and retry decorators.

The executor runs a unit of work until it succeeds, fails with a
non-retryable error, or the stopping rule of its policy ends the sequence.
Each attempt races the work against a timer of `request_timeout` seconds.
"""

import asyncio
import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Callable, ParamSpec, TypeVar

from ..exceptions import (
    AttemptTimeoutError,
    NonRetryableError,
    RetryAbortedError,
    RetryCancelledError,
    RetryExhaustedError,
    is_retryable,
)
from .backoff import RandomSource, calculate_backoff, should_stop
from .config import RetryPolicy
from .state import AttemptOutcome, RetryState

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

OnRetry = Callable[[int, BaseException, float], None]


class _CancelSignal(Exception):
    """The caller's cancel event fired during a wait."""


def _discard_result(task: asyncio.Future) -> None:
    # Abandoned attempts still get their exception retrieved so asyncio
    # does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


class RetryExecutor:
    """
    Drives retry sequences for one policy.

    The executor itself holds no per-sequence state: every call to
    `execute` or `call` creates its own `RetryState`, so one executor may be
    shared by concurrent callers.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_retry: OnRetry | None = None,
    ):
        """
        Initialize the executor.

        Args:
            policy: Retry policy (default: RetryPolicy())
            rng: Random source for jitter (default: the `random` module)
            clock: Monotonic clock used for elapsed time
            on_retry: Optional callback(attempt, exception, delay) called before each retry
        """
        self.policy = policy if policy is not None else RetryPolicy()
        self.rng = rng
        self.clock = clock
        self.on_retry = on_retry

    async def execute(
        self,
        work: Callable[[], Awaitable[T]],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> T:
        """
        Run `work` under the retry policy.

        Args:
            work: Zero-argument callable returning an awaitable
            cancel_event: Optional event; setting it aborts the current
                attempt or delay

        Returns:
            The value of the first successful attempt

        Raises:
            InvalidPolicyError: If the policy is malformed
            RetryAbortedError: An attempt failed with a non-retryable error
            RetryExhaustedError: The stopping rule ended the sequence
            RetryCancelledError: `cancel_event` was set
        """
        policy = self.policy
        policy.validate()

        state = RetryState(started_at=self.clock())
        if cancel_event is not None and cancel_event.is_set():
            raise self._failure(RetryCancelledError, state, None)

        cancel_task = (
            asyncio.ensure_future(cancel_event.wait())
            if cancel_event is not None
            else None
        )
        try:
            while True:
                state.attempts += 1
                attempt_started = self.clock()

                try:
                    value = await self._attempt(work, cancel_task)
                except _CancelSignal:
                    previous = state.history[-1].error if state.history else None
                    state.record(attempt_started, AttemptOutcome.CANCELLED)
                    raise self._failure(RetryCancelledError, state, previous) from previous
                except Exception as e:
                    error = e
                else:
                    state.record(attempt_started, AttemptOutcome.SUCCESS)
                    return value

                outcome = (
                    AttemptOutcome.TIMEOUT
                    if isinstance(error, AttemptTimeoutError)
                    else AttemptOutcome.FAILURE
                )

                if not is_retryable(error):
                    state.record(attempt_started, outcome, error)
                    logger.debug(
                        f"Attempt {state.attempts} failed with non-retryable error: {error}"
                    )
                    raise self._failure(RetryAbortedError, state, error) from error

                state.consecutive_failures += 1
                elapsed = self.clock() - state.started_at
                if should_stop(state.attempts, elapsed, policy):
                    state.record(attempt_started, outcome, error)
                    logger.error(
                        f"All {state.attempts} attempts failed in {elapsed:.3f}s: {error}"
                    )
                    raise self._failure(RetryExhaustedError, state, error) from error

                delay = calculate_backoff(state.consecutive_failures, policy, self.rng)
                state.record(attempt_started, outcome, error, delay)
                if self.on_retry:
                    self.on_retry(state.attempts, error, delay)
                else:
                    logger.warning(
                        f"Retry {state.attempts}/{policy.max_attempts}: {error}, "
                        f"waiting {delay:.3f}s"
                    )

                try:
                    await self._sleep(delay, cancel_task)
                except _CancelSignal:
                    raise self._failure(RetryCancelledError, state, error) from error
        finally:
            if cancel_task is not None:
                cancel_task.cancel()

    def call(self, work: Callable[[], T]) -> T:
        """
        Run a blocking `work` callable under the retry policy.

        Each attempt runs on its own worker thread so the request timeout
        applies to blocking code too. A timed-out thread is abandoned, not
        joined. Must not be called from a running event loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            raise RuntimeError(
                "RetryExecutor.call() cannot run inside an event loop, use execute()"
            )

        pool = ThreadPoolExecutor(
            max_workers=self.policy.max_attempts,
            thread_name_prefix="retry-attempt",
        )

        async def run_in_thread() -> T:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(pool, work)

        try:
            return asyncio.run(self.execute(run_in_thread))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    async def _attempt(
        self,
        work: Callable[[], Awaitable[T]],
        cancel_task: asyncio.Future | None,
    ) -> T:
        """Race one attempt against the request timeout and the cancel signal."""
        timeout = self.policy.request_timeout
        work_task = asyncio.ensure_future(work())
        timer = asyncio.ensure_future(asyncio.sleep(timeout))
        waiters = {work_task, timer}
        if cancel_task is not None:
            waiters.add(cancel_task)

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
            if not work_task.done():
                work_task.add_done_callback(_discard_result)
                work_task.cancel()

        # Work that finished wins ties against both the timer and the cancel signal.
        if work_task.done():
            if work_task.cancelled():
                # Nobody outside cancelled it, so the work gave up on its own.
                raise NonRetryableError("Attempt cancelled itself")
            return work_task.result()
        if cancel_task is not None and cancel_task.done():
            raise _CancelSignal()

        logger.debug(f"Attempt timed out after {timeout}s")
        raise AttemptTimeoutError(timeout=timeout)

    async def _sleep(self, delay: float, cancel_task: asyncio.Future | None) -> None:
        if cancel_task is None:
            await asyncio.sleep(delay)
            return

        timer = asyncio.ensure_future(asyncio.sleep(delay))
        try:
            await asyncio.wait({timer, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
        if cancel_task.done():
            raise _CancelSignal()

    def _failure(self, error_class, state: RetryState, last_error: BaseException | None):
        return error_class(
            last_error=last_error,
            attempts=state.attempts,
            elapsed=self.clock() - state.started_at,
            history=state.history,
        )


async def execute(
    policy: RetryPolicy,
    work: Callable[[], Awaitable[T]],
    **kwargs,
) -> T:
    """
    Run `work` once under `policy` with a throwaway executor.

    Keyword arguments other than `cancel_event` are passed to RetryExecutor.
    """
    cancel_event = kwargs.pop("cancel_event", None)
    executor = RetryExecutor(policy, **kwargs)
    return await executor.execute(work, cancel_event=cancel_event)


def with_retry(
    policy: RetryPolicy | None = None,
    on_retry: OnRetry | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for synchronous functions with retry logic.

    The wrapped function runs its attempts on an event loop of its own, so it
    raises RuntimeError when called from a thread that is already running an
    event loop. Use async_with_retry there.

    Args:
        policy: Retry policy (default: RetryPolicy())
        on_retry: Optional callback(attempt, exception, delay) called before each retry

    Returns:
        Decorated function with retry behavior
    """
    executor = RetryExecutor(policy, on_retry=on_retry)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return executor.call(functools.partial(func, *args, **kwargs))

        return wrapper

    return decorator


def async_with_retry(
    policy: RetryPolicy | None = None,
    on_retry: OnRetry | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for async functions with retry logic.

    Args:
        policy: Retry policy (default: RetryPolicy())
        on_retry: Optional callback(attempt, exception, delay) called before each retry

    Returns:
        Decorated async function with retry behavior
    """
    executor = RetryExecutor(policy, on_retry=on_retry)

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await executor.execute(lambda: func(*args, **kwargs))

        return wrapper

    return decorator
