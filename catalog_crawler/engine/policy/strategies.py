"""Concrete request policies used by the chain."""

from __future__ import annotations

import random

from ...infra import DEFAULT_USER_AGENT, UserAgentPool
from .chain import RequestContext, RequestDirective, RequestOutcome, RequestPolicy, RequestPolicyChain


class RetryStrategy(RequestPolicy):
    """Bounded retries of transient failures with capped exponential backoff."""

    def retry_delay(self, context: RequestContext, outcome: RequestOutcome) -> float | None:
        if not outcome.transient or context.attempt >= max(1, context.api.max_attempts):
            return None
        return min(context.api.backoff_cap, context.api.backoff_base * (2 ** (context.attempt - 1)))


class UserAgentStrategy(RequestPolicy):
    """Assign a user agent, rotating through the pool when enabled."""

    def __init__(self, pool: UserAgentPool | None) -> None:
        self.pool = pool

    def shape(self, context: RequestContext, directive: RequestDirective) -> None:
        ua = None
        if context.api.user_agent_rotation and self.pool:
            ua = self.pool.get()
        directive.headers.setdefault("User-Agent", ua or DEFAULT_USER_AGENT)


class HeaderStrategy(RequestPolicy):
    """Apply configured static headers and timeout."""

    def shape(self, context: RequestContext, directive: RequestDirective) -> None:
        directive.headers.setdefault("Accept", "application/json")
        directive.headers.update(context.api.extra_headers)
        directive.timeout = context.api.timeout


class DelayStrategy(RequestPolicy):
    """Add a randomized polite delay before each attempt."""

    def shape(self, context: RequestContext, directive: RequestDirective) -> None:
        low, high = context.api.delay_range
        if high <= 0:
            return
        directive.delay = (directive.delay or 0.0) + random.uniform(low, high)


def build_chain(ua_pool: UserAgentPool | None = None) -> RequestPolicyChain:
    """Default chain; policies read their settings from the request context."""

    return RequestPolicyChain(
        [RetryStrategy(), HeaderStrategy(), UserAgentStrategy(ua_pool), DelayStrategy()]
    )


__all__ = [
    "DelayStrategy",
    "HeaderStrategy",
    "RetryStrategy",
    "UserAgentStrategy",
    "build_chain",
]
