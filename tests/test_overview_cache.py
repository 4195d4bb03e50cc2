from __future__ import annotations

import fnmatch
import logging
from types import SimpleNamespace
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pm_engine import celery_app as celery_module
from pm_engine.schemas import ComplianceSnapshot
from pm_engine.services import overview_cache


class _RedisStub:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttl: dict[str, int] = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttl[key] = ttl

    def scan_iter(self, match):
        return [key for key in list(self.store) if fnmatch.fnmatch(key, match)]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed


class _BrokenRedis:
    def __getattr__(self, _name):
        def _fail(*_args, **_kwargs):
            raise RedisConnectionError("connection refused")
        return _fail


@pytest.fixture()
def redis_stub(monkeypatch):
    stub = _RedisStub()
    monkeypatch.setattr(overview_cache, "_get_redis", lambda: stub)
    return stub


def test_overview_round_trips_through_cache(redis_stub) -> None:
    company_id = uuid4()
    overview_cache.write_overview(company_id, ComplianceSnapshot(total=3, compliance_rate=67), dedupe=True)

    cached = overview_cache.read_overview(company_id, dedupe=True)

    assert cached.total == 3
    assert cached.compliance_rate == 67
    assert overview_cache.read_overview(company_id, dedupe=False) is None
    assert list(redis_stub.ttl.values()) == [overview_cache.settings.OVERVIEW_CACHE_TTL_SECONDS]


def test_drop_company_overviews_only_touches_that_company(redis_stub) -> None:
    company_id, other_id = uuid4(), uuid4()
    overview_cache.write_overview(company_id, ComplianceSnapshot(), dedupe=True)
    overview_cache.write_overview(company_id, ComplianceSnapshot(), dedupe=False)
    overview_cache.write_overview(other_id, ComplianceSnapshot(), dedupe=True)

    assert overview_cache.drop_company_overviews(company_id) == 2
    assert list(redis_stub.store) == [overview_cache.overview_key(other_id, dedupe=True)]
    assert overview_cache.drop_company_overviews(company_id) == 0


def test_cache_fails_open_when_redis_is_down(monkeypatch, caplog) -> None:
    monkeypatch.setattr(overview_cache, "_get_redis", lambda: _BrokenRedis())

    with caplog.at_level(logging.ERROR, logger="pm_engine.services.overview_cache"):
        assert overview_cache.read_overview(uuid4(), dedupe=True) is None
        overview_cache.write_overview(uuid4(), ComplianceSnapshot(), dedupe=True)

    assert "fleet overview cache (ignored)" in caplog.text


def test_invalidation_task_drops_company_views(monkeypatch) -> None:
    dropped = []
    monkeypatch.setattr(celery_module, "drop_company_overviews", lambda company_id: dropped.append(company_id) or 2)

    result = celery_module.invalidate_maintenance_views("company-1", "plan-1", "instance-1")

    assert result == {"removed": 2}
    assert dropped == ["company-1"]


def test_publish_invalidation_queues_task_with_string_ids(monkeypatch) -> None:
    queued = []
    monkeypatch.setattr(
        celery_module,
        "invalidate_maintenance_views",
        SimpleNamespace(delay=lambda *args: queued.append(args)),
    )
    record = SimpleNamespace(plan_id=uuid4(), instance_id=uuid4())
    company_id = uuid4()

    celery_module.publish_invalidation(company_id=company_id, record=record)

    assert queued == [(str(company_id), str(record.plan_id), str(record.instance_id))]


def test_unreadable_cache_entry_is_treated_as_a_miss(redis_stub, caplog) -> None:
    company_id = uuid4()
    redis_stub.store[overview_cache.overview_key(company_id, dedupe=True)] = '{"total": "many"'

    with caplog.at_level(logging.ERROR, logger="pm_engine.services.overview_cache"):
        assert overview_cache.read_overview(company_id, dedupe=True) is None

    assert "Unreadable fleet overview cache entry" in caplog.text
