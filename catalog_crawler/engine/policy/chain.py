"""Request policies applied to every GET the catalog source issues.

A logical request may take several attempts. Before each attempt the chain
builds a :class:`RequestDirective` (headers, timeout, delay) from its
policies; after a failed attempt it asks them whether another attempt is
warranted and how long to wait first.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from ...config import ApiConfig

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class RequestDirective:
    """Options for the next attempt."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    delay: float | None = None


@dataclass
class RequestContext:
    """One logical GET against the catalog API, across all of its attempts."""

    api: ApiConfig
    path: str = ""
    attempt: int = 1
    backoff: float = 0.0


@dataclass(frozen=True)
class RequestOutcome:
    """A failed attempt: either a transport error or an error response."""

    response: httpx.Response | None = None
    error: Exception | None = None

    @property
    def status(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    @property
    def transient(self) -> bool:
        if self.error is not None:
            return isinstance(self.error, httpx.TransportError)
        return self.status in RETRYABLE_STATUS_CODES


class RequestPolicy:
    """Base policy; subclasses override the hooks they care about."""

    def shape(self, context: RequestContext, directive: RequestDirective) -> None:
        """Adjust the directive before an attempt."""

    def retry_delay(self, context: RequestContext, outcome: RequestOutcome) -> float | None:
        """Seconds to wait before retrying, or ``None`` to not grant a retry."""
        return None


class RequestPolicyChain:
    """Ordered policies consulted by :class:`~catalog_crawler.engine.fetcher.CatalogSource`."""

    def __init__(self, policies: list[RequestPolicy] | None = None) -> None:
        self.policies = list(policies or [])

    def directive_for(self, context: RequestContext) -> RequestDirective:
        directive = RequestDirective(delay=context.backoff or None)
        for policy in self.policies:
            policy.shape(context, directive)
        return directive

    def next_attempt(self, context: RequestContext, outcome: RequestOutcome) -> bool:
        """Advance ``context`` when any policy grants a retry for ``outcome``."""

        delays = [
            delay
            for delay in (policy.retry_delay(context, outcome) for policy in self.policies)
            if delay is not None
        ]
        if not delays:
            return False
        context.attempt += 1
        context.backoff = max(delays)
        return True


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RequestContext",
    "RequestDirective",
    "RequestOutcome",
    "RequestPolicy",
    "RequestPolicyChain",
]
