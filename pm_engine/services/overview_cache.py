"""Redis cache for fleet overview snapshots (fail-open)."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

import redis
from pydantic import ValidationError as SchemaValidationError
from redis.exceptions import RedisError

from ..config import settings
from ..schemas import ComplianceSnapshot

logger = logging.getLogger(__name__)

_redis_client = None


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def overview_key(company_id: UUID | str, *, dedupe: bool) -> str:
    return f"{settings.OVERVIEW_CACHE_PREFIX}:{company_id}:{'dedup' if dedupe else 'all'}"


def company_key_pattern(company_id: UUID | str) -> str:
    return f"{settings.OVERVIEW_CACHE_PREFIX}:{company_id}:*"


def read_overview(company_id: UUID, *, dedupe: bool) -> Optional[ComplianceSnapshot]:
    try:
        raw = _get_redis().get(overview_key(company_id, dedupe=dedupe))
    except RedisError:
        logger.exception("Redis error while reading fleet overview cache (ignored)")
        return None
    if not raw:
        return None
    try:
        return ComplianceSnapshot.model_validate_json(raw)
    except SchemaValidationError:
        logger.exception("Unreadable fleet overview cache entry for company %s (ignored)", company_id)
        return None


def write_overview(company_id: UUID, snapshot: ComplianceSnapshot, *, dedupe: bool) -> None:
    try:
        _get_redis().setex(
            overview_key(company_id, dedupe=dedupe),
            settings.OVERVIEW_CACHE_TTL_SECONDS,
            snapshot.model_dump_json(),
        )
    except RedisError:
        logger.exception("Redis error while writing fleet overview cache (ignored)")


def drop_company_overviews(company_id: UUID | str) -> int:
    """Delete every cached overview of `company_id`; returns the number of keys removed."""
    client = _get_redis()
    keys = list(client.scan_iter(match=company_key_pattern(company_id)))
    if not keys:
        return 0
    return int(client.delete(*keys))
