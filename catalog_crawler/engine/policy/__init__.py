"""Request policy chain (retry/backoff, headers, user agents, delays)."""

from .chain import (
    RETRYABLE_STATUS_CODES,
    RequestContext,
    RequestDirective,
    RequestOutcome,
    RequestPolicy,
    RequestPolicyChain,
)
from .strategies import (
    DelayStrategy,
    HeaderStrategy,
    RetryStrategy,
    UserAgentStrategy,
    build_chain,
)

__all__ = [
    "DelayStrategy",
    "HeaderStrategy",
    "RETRYABLE_STATUS_CODES",
    "RequestContext",
    "RequestDirective",
    "RequestOutcome",
    "RequestPolicy",
    "RequestPolicyChain",
    "RetryStrategy",
    "UserAgentStrategy",
    "build_chain",
]
