"""In-app notifications raised by engagement actions."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from unishare.engagement.domain import models, repo as repo_module
from unishare.obs import metrics as obs_metrics

FOLLOW_KIND = "follow"


class NotificationsService:
	def __init__(self, *, repository: repo_module.EngagementRepository | None = None) -> None:
		self.repo = repository or repo_module.EngagementRepository()

	async def notify_follow(
		self,
		*,
		target_id: UUID,
		actor_id: UUID,
		actor_username: Optional[str],
	) -> models.Notification | None:
		"""Tell ``target_id`` they gained a follower, at most once per follower."""
		username = actor_username or "someone"
		notification = await self.repo.insert_notification_once(
			user_id=target_id,
			actor_id=actor_id,
			kind=FOLLOW_KIND,
			title="New Follower",
			message=f"User @{username} started following you",
			link=f"/u/{username}",
		)
		obs_metrics.inc_notification(FOLLOW_KIND, "created" if notification else "duplicate")
		return notification
