"""Best-effort side channels — failures are logged, never raised."""

from __future__ import annotations

import logging
from typing import Any

from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_directory import CacheEvictionPort

logger = logging.getLogger(__name__)


async def record_audit(
    sink: AuditSink | None,
    entity_type: str,
    entity_id: int | None,
    action: str,
    before: Any = None,
    after: Any = None,
) -> None:
    if sink is None:
        return
    try:
        await sink.record(entity_type, entity_id, action, before, after)
    except Exception:
        logger.exception("Failed to write audit entry %s/%s %s", entity_type, entity_id, action)


async def evict_unallocated_cache(cache: CacheEvictionPort | None) -> None:
    if cache is None:
        return
    try:
        await cache.evict_unallocated_cases()
        logger.debug("Requested unallocated-cases cache eviction")
    except Exception as e:
        # TTL on the directory side refreshes the cache eventually
        logger.warning("Failed to evict unallocated-cases cache: %s", e)
