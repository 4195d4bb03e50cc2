"""
Celery worker for cache invalidation after accepted executions.
"""
from celery import Celery
import logging
from redis.exceptions import RedisError

from .config import settings
from .services.overview_cache import drop_company_overviews

logger = logging.getLogger(__name__)

celery_app = Celery(
    "pm_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


@celery_app.task(name="invalidate_maintenance_views", bind=True, max_retries=3)
def invalidate_maintenance_views(self, company_id: str, plan_id: str, instance_id: str):
    """
    Drop cached plan list / calendar / history views affected by an execution.
    """
    try:
        removed = drop_company_overviews(company_id)
    except RedisError as exc:
        logger.warning("Cache invalidation for plan %s failed, retrying: %s", plan_id, exc)
        raise self.retry(exc=exc, countdown=2 ** self.request.retries * 10)

    logger.info(
        "Invalidated %s cached views for company=%s plan=%s instance=%s",
        removed,
        company_id,
        plan_id,
        instance_id,
    )
    return {"removed": removed}


def publish_invalidation(*, company_id, record) -> None:
    """Queue invalidation for `record`; the caller does not wait for it."""
    invalidate_maintenance_views.delay(str(company_id), str(record.plan_id), str(record.instance_id))
