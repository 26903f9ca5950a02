"""Follow and unfollow between user profiles."""

from __future__ import annotations

import logging
from uuid import UUID

from unishare.engagement.domain import events, policies, repo as repo_module
from unishare.engagement.domain.exceptions import NotFoundError, RateLimitedError
from unishare.engagement.domain.notifications_service import NotificationsService
from unishare.engagement.schemas import dto
from unishare.infra import rate_limit
from unishare.infra.auth import AuthenticatedUser
from unishare.obs import metrics as obs_metrics
from unishare.obs.logging import safe_log
from unishare.settings import settings

_LOG = logging.getLogger(__name__)


class FollowsService:
	def __init__(
		self,
		*,
		repository: repo_module.EngagementRepository | None = None,
		notifications: NotificationsService | None = None,
	) -> None:
		self.repo = repository or repo_module.EngagementRepository()
		self.notifications = notifications or NotificationsService(repository=self.repo)

	async def toggle(
		self,
		user: AuthenticatedUser,
		target_id: UUID,
		payload: dto.FollowRequest,
	) -> dto.FollowResponse:
		actor_id = UUID(user.id)
		policies.ensure_not_self(actor_id, target_id)
		if not await rate_limit.allow("follow", user.id, limit=settings.follow_rate_limit_per_minute):
			obs_metrics.inc_follow(payload.action, "rate_limited")
			raise RateLimitedError()
		target = await self.repo.get_profile(target_id)
		if target is None:
			raise NotFoundError("user_not_found")

		if payload.action == "unfollow":
			removed = await self.repo.remove_follow(target_id=target_id, follower_id=actor_id)
			obs_metrics.inc_follow("unfollow", "removed" if removed else "noop")
			if removed:
				await events.follow_changed(target_id, actor_id, action="unfollow")
			return dto.FollowResponse(action="unfollow", message=f"You have unfollowed {target.display_name}")

		created = await self.repo.add_follow(target_id=target_id, follower_id=actor_id)
		obs_metrics.inc_follow("follow", "created" if created else "duplicate")
		if not created:
			return dto.FollowResponse(action="follow", message="Already following this user")
		await events.follow_changed(target_id, actor_id, action="follow")
		await self._notify(target_id, actor_id)
		return dto.FollowResponse(action="follow", message=f"You are now following {target.display_name}")

	async def _notify(self, target_id: UUID, actor_id: UUID) -> None:
		# The follow is already committed; notification trouble is only logged.
		try:
			follower = await self.repo.get_profile(actor_id)
			await self.notifications.notify_follow(
				target_id=target_id,
				actor_id=actor_id,
				actor_username=follower.username if follower else None,
			)
		except Exception:  # noqa: BLE001
			obs_metrics.inc_notification("follow", "error")
			safe_log(
				_LOG,
				logging.WARNING,
				"follow_notification_failed",
				exc_info=True,
				target_id=str(target_id),
				actor_id=str(actor_id),
			)

	async def state(self, user: AuthenticatedUser, target_id: UUID) -> dto.FollowStateResponse:
		if await self.repo.get_profile(target_id) is None:
			raise NotFoundError("user_not_found")
		state = await self.repo.get_follow_state(target_id=target_id, follower_id=UUID(user.id))
		return dto.FollowStateResponse(is_following=state.is_following, followers_count=state.followers_count)
