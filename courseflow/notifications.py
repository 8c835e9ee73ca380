"""Cache invalidation events for course dashboards."""
import logging
from datetime import datetime

import httpx

from courseflow.config import settings

logger = logging.getLogger(__name__)


async def send_invalidation(event: dict) -> None:
    """POST an invalidation event to the configured webhook."""
    if not settings.CACHE_INVALIDATION_WEBHOOK_URL:
        logger.debug("Cache invalidation skipped, no webhook configured: %s", event)
        return

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(
                settings.CACHE_INVALIDATION_WEBHOOK_URL,
                json=event,
                timeout=settings.CACHE_INVALIDATION_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Cache invalidation for %s failed: %s", event.get("course_id"), e)


async def invalidate_course_views(course_id: int, reason: str) -> None:
    """Tell dashboards that cached views of ``course_id`` are stale."""
    await send_invalidation(
        {
            "type": "course.invalidate",
            "course_id": course_id,
            "reason": reason,
            "sent_at": datetime.utcnow().isoformat(),
        }
    )
