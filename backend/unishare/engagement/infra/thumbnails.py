"""Background thumbnail regeneration through the screenshot service."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Set

import httpx

from unishare.obs import metrics as obs_metrics
from unishare.obs.logging import safe_log
from unishare.settings import settings

_LOG = logging.getLogger(__name__)

# Strong references so fire-and-forget tasks are not garbage collected mid-flight
_pending: Set[asyncio.Task] = set()


async def request_regeneration(
	payload: dict[str, Any],
	*,
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
	"""POST the resource details to the thumbnail service; never raises."""
	url = settings.thumbnail_service_url
	if not url:
		obs_metrics.inc_thumbnail_request("disabled")
		return False
	try:
		async with httpx.AsyncClient(timeout=settings.thumbnail_timeout_seconds, transport=transport) as client:
			response = await client.post(url, json=payload)
			response.raise_for_status()
	except httpx.HTTPError:
		obs_metrics.inc_thumbnail_request("error")
		safe_log(_LOG, logging.WARNING, "thumbnail_regeneration_failed", exc_info=True, resource_id=payload.get("resourceId"))
		return False
	obs_metrics.inc_thumbnail_request("ok")
	return True


def schedule_regeneration(payload: dict[str, Any]) -> asyncio.Task:
	"""Start regeneration without blocking the caller's response."""
	task = asyncio.create_task(request_regeneration(payload), name=f"thumbnail-{payload.get('resourceId')}")
	_pending.add(task)
	task.add_done_callback(_pending.discard)
	return task
