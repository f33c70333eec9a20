"""
awarekv.resilience - Retry and Timeout Primitives
===================================================

Generic wrappers usable around any I/O call in awarekv:

    - with_timeout(operation, timeout_ms): stop waiting after a budget
    - with_retry(operation, name, policy=...): exponential backoff with jitter

Usage:
    from awarekv.resilience import with_retry, with_timeout
"""

from awarekv.resilience.retry import with_retry
from awarekv.resilience.timeout import with_timeout

__all__ = [
    "with_retry",
    "with_timeout",
]
