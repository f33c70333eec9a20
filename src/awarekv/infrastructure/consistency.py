"""
awarekv.infrastructure.consistency - Post-Write Key Availability
==================================================================

The KV provider is eventually consistent: a key written through one edge
location can stay invisible to reads for a short while. Callers that hand an
artifact to another system right after saving it poll for its keys first:

    saved = await store.save_phishing(pid, payload, "en-gb")
    keys = build_expected_phishing_keys(pid, "en-gb")
    await wait_for_consistency(transport, pid, keys, config.consistency)

Polling runs at a fixed interval rather than in a tight loop so that it stays
under the provider's rate limits. It never raises: a timeout is logged and
reported as False, and the caller decides whether that matters.
"""

from __future__ import annotations

import asyncio
import math
import time
from typing import Any, Optional, Sequence

import structlog

from awarekv.core.config import ConsistencyConfig
from awarekv.infrastructure.kv_transport import KVTransport


async def wait_for_consistency(
    transport: KVTransport,
    resource_id: str,
    expected_keys: Sequence[str],
    config: Optional[ConsistencyConfig] = None,
    *,
    logger: Optional[Any] = None,
) -> bool:
    """Poll until every expected key is readable or the wait budget is spent.

    All keys are checked concurrently on each poll.

    Args:
        transport: Transport bound to the namespace the keys were written to.
        resource_id: Artifact ID, for logging.
        expected_keys: Keys that must all be readable.
        config: Polling configuration. Defaults to ConsistencyConfig().
        logger: Optional structlog logger.

    Returns:
        True if all keys became readable (or polling is disabled), False if
        the budget ran out first.
    """
    config = config or ConsistencyConfig()
    log = (logger or structlog.get_logger()).bind(
        component="kv_consistency",
        resource_id=resource_id,
    )

    if not config.enabled:
        log.debug("kv_consistency_check_skipped")
        return True
    if not expected_keys:
        return True

    max_checks = max(1, math.ceil(config.max_wait_ms / config.check_interval_ms))
    started = time.monotonic()
    missing: list[str] = list(expected_keys)

    log.info(
        "kv_consistency_check_started",
        key_count=len(expected_keys),
        max_wait_ms=config.max_wait_ms,
        check_interval_ms=config.check_interval_ms,
        max_checks=max_checks,
    )

    for attempt in range(1, max_checks + 1):
        values = await asyncio.gather(*(transport.get(key) for key in expected_keys))
        missing = [key for key, value in zip(expected_keys, values) if value is None]

        if not missing:
            log.info(
                "kv_consistency_verified",
                attempt=attempt,
                duration_ms=round((time.monotonic() - started) * 1000),
            )
            return True

        if attempt < max_checks:
            log.debug(
                "kv_consistency_pending",
                attempt=attempt,
                max_checks=max_checks,
                missing_keys=missing,
            )
            await asyncio.sleep(config.check_interval_ms / 1000)

    log.warning(
        "kv_consistency_timeout",
        duration_ms=round((time.monotonic() - started) * 1000),
        missing_keys=missing,
    )
    return False
