# =============================================================================
# Resilient Calls: Retry with Linear Backoff
# =============================================================================
#
# Every call to the generation service goes through ResilientCaller.
# It can wrap an arbitrary coroutine function (`call`) or stand in for an
# LLMProvider (`complete`), so components receive one object and never
# write their own retry loops.
#
# POLICY:
#   - max_attempts attempts in total (default 3)
#   - before retry N, wait N × base_delay seconds (1s, 2s, ...)
#   - only service/transport failures are retried; MalformedResponse and
#     ConfigurationError propagate immediately and unchanged
#   - task cancellation propagates at once and is never retried
#   - once attempts are exhausted, ServiceUnavailable is raised, chained
#     from the last underlying failure
#   - an optional per-attempt timeout turns a hung call into a retryable
#     failure
#
# Backoff sleeps are asyncio sleeps: only the retrying task is suspended.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from corpus_qa.config import settings
from corpus_qa.exceptions import (
    ConfigurationError,
    MalformedResponse,
    ServiceUnavailable,
)
from corpus_qa.services.llm import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that describe the request or the reply, not the service.
# Repeating the call cannot fix them.
_NON_RETRYABLE = (MalformedResponse, ConfigurationError)


class ResilientCaller:
    """
    Bounded-retry wrapper around an LLM provider.

    Args:
        provider: The provider whose `complete()` calls are protected.
        max_attempts: Total attempts, including the first.
        base_delay: Seconds; the wait before retry N is N × base_delay.
        timeout: Per-attempt timeout in seconds, or None for no limit.
        sleep: Awaitable sleep function. Tests pass a recorder here.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self.max_attempts = max_attempts or settings.llm_max_attempts
        self.base_delay = (
            settings.llm_retry_base_delay if base_delay is None else base_delay
        )
        self.timeout = timeout
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.base_delay, increment=self.base_delay),
            # CancelledError and other BaseExceptions are never retried
            retry=(
                retry_if_exception_type(Exception)
                & retry_if_not_exception_type(_NON_RETRYABLE)
            ),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=False,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Generation call failed, retrying (attempt %d/%d, wait=%.1fs): %s",
            retry_state.attempt_number, self.max_attempts, wait, exc,
        )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Await `func(*args, **kwargs)` under the retry policy.

        Raises:
            ServiceUnavailable: Every attempt failed with a retryable error.
            MalformedResponse, ConfigurationError: Raised by `func`; passed
                through on the first occurrence.
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    if self.timeout is None:
                        return await func(*args, **kwargs)
                    return await asyncio.wait_for(
                        func(*args, **kwargs), timeout=self.timeout,
                    )
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(
                "Generation call failed after %d attempts: %s",
                self.max_attempts, last,
            )
            raise ServiceUnavailable(
                f"Generation service unavailable after "
                f"{self.max_attempts} attempts: {last}"
            ) from last
        raise AssertionError("unreachable: tenacity yielded no attempt")

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_schema: type[BaseModel] | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        """LLMProvider.complete() with retries applied."""
        return await self.call(
            self._provider.complete,
            messages=messages,
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
            model=model,
            response_schema=response_schema,
            thinking_budget=thinking_budget,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_caller: ResilientCaller | None = None


def get_resilient_llm() -> ResilientCaller:
    """Return the configured provider wrapped in the shared retry policy."""
    from corpus_qa.services.llm import get_llm_provider

    global _caller
    if _caller is None:
        _caller = ResilientCaller(
            get_llm_provider(),
            timeout=settings.llm_timeout_seconds,
        )
    return _caller
