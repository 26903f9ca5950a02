"""Engagement components wiring the view, mutations, reconciliation and realtime feed.

Each instance owns its own ``LocalEngagementView``; call ``mount()`` once and
``unmount()`` when the item leaves the screen.
"""

from __future__ import annotations

from typing import Any, Optional

from unishare.client.api import CommentPosted, UniShareClient
from unishare.client.delivery import DeliveryEnvironment, DeliveryOutcome, DownloadIndicator, FileDelivery, ResourceInfo
from unishare.client.mutations import ActionKind, MutationOutcome, MutationStatus, OptimisticMutationHandler
from unishare.client.reconcile import CounterReconciler, projection
from unishare.client.results import ApiError, ErrorKind
from unishare.client.subscriptions import ChangeEvent, RealtimeFeed, SubscriptionScope, WatchSpec
from unishare.client.view import LocalEngagementView


def eq_filter(column: str, value: str) -> str:
	return f"{column}=eq.{value}"


class _EngagementComponent:
	def __init__(
		self,
		target_id: str,
		*,
		client: UniShareClient,
		feed: RealtimeFeed,
		animation_seconds: Optional[float] = None,
	) -> None:
		self.client = client
		self.view = LocalEngagementView(target_id=target_id)
		self.reconciler = CounterReconciler(self.view)
		options: dict[str, Any] = {}
		if animation_seconds is not None:
			options["animation_seconds"] = animation_seconds
		self.mutations = OptimisticMutationHandler(self.view, self.reconciler, **options)
		self.scope = SubscriptionScope(feed, self.on_change)

	def watch_specs(self) -> list[WatchSpec]:
		raise NotImplementedError

	async def refresh(self) -> None:
		raise NotImplementedError

	async def on_change(self, event: ChangeEvent) -> None:
		# Payloads are signals only; authoritative values come from a refetch
		if self.view.mounted:
			await self.refresh()

	async def mount(self) -> None:
		await self.scope.open(self.watch_specs())
		await self.refresh()

	async def unmount(self) -> None:
		self.view.unmount()
		self.mutations.dispose()
		await self.scope.close_all()


class ResourceEngagement(_EngagementComponent):
	"""Likes, comments and downloads for one resource."""

	def __init__(
		self,
		resource: ResourceInfo,
		*,
		client: UniShareClient,
		feed: RealtimeFeed,
		environment: Optional[DeliveryEnvironment] = None,
		indicator: Optional[DownloadIndicator] = None,
		animation_seconds: Optional[float] = None,
	) -> None:
		super().__init__(resource.id, client=client, feed=feed, animation_seconds=animation_seconds)
		self.resource = resource
		self.environment = environment
		self.indicator = indicator or DownloadIndicator()
		self.delivery = FileDelivery(client, environment, self.indicator) if environment is not None else None

	def watch_specs(self) -> list[WatchSpec]:
		resource_id = self.resource.id
		return [
			WatchSpec("resource_likes", eq_filter("resource_id", resource_id)),
			WatchSpec("resource_comments", eq_filter("resource_id", resource_id)),
			WatchSpec("resources", eq_filter("id", resource_id), ("UPDATE",)),
		]

	async def on_change(self, event: ChangeEvent) -> None:
		if not self.view.mounted:
			return
		if event.table == "resource_comments":
			await self.refresh_comments()
		else:
			await self.refresh_likes()

	async def refresh(self) -> None:
		await self.refresh_likes()
		await self.refresh_comments()

	async def refresh_likes(self) -> bool:
		return await self.reconciler.refetch(
			"like",
			lambda: self.client.like_state(self.resource.id),
			projection(has_liked="has_liked", like_count="like_count"),
		)

	async def refresh_comments(self) -> bool:
		return await self.reconciler.refetch(
			"comments",
			lambda: self.client.list_comments(self.resource.id),
			lambda page: {"comments": list(page.comments), "comment_count": page.count},
		)

	async def like(self) -> MutationOutcome:
		return await self.mutations.run(
			ActionKind.LIKE,
			self.resource.id,
			lambda: self.client.like(self.resource.id),
			settle=lambda count: {"like_count": count, "has_liked": True},
			refetch=self.refresh_likes,
		)

	async def post_comment(self, text: str) -> MutationOutcome:
		body = (text or "").strip()
		if not body:
			error = ApiError.of(ErrorKind.VALIDATION, detail="comment_required")
			self.view.update(error=error.message)
			return MutationOutcome(MutationStatus.FAILED, error=error)

		def _settle(posted: CommentPosted) -> dict[str, Any]:
			comments = [item for item in self.view.comments if item.id != posted.comment.id]
			comments.append(posted.comment)
			return {"comment_count": posted.count, "comments": comments}

		return await self.mutations.run(
			ActionKind.POST_COMMENT,
			self.resource.id,
			lambda: self.client.post_comment(self.resource.id, body),
			settle=_settle,
		)

	async def delete_comment(self, comment_id: str) -> MutationOutcome:
		return await self.mutations.run(
			ActionKind.DELETE_COMMENT,
			comment_id,
			lambda: self.client.delete_comment(self.resource.id, comment_id),
			settle=lambda count: {
				"comment_count": count,
				"comments": [item for item in self.view.comments if item.id != comment_id],
			},
		)

	async def download(self) -> DeliveryOutcome:
		if self.delivery is None:
			raise RuntimeError("no delivery environment configured")
		return await self.delivery.deliver(self.resource)

	async def unmount(self) -> None:
		await super().unmount()
		self.indicator.dispose()


class StudyGroupEngagement(_EngagementComponent):
	"""Membership state and direct joins for one study group."""

	def watch_specs(self) -> list[WatchSpec]:
		group_id = self.view.target_id
		return [
			WatchSpec("study_group_members", eq_filter("study_group_id", group_id)),
			WatchSpec("study_groups", eq_filter("id", group_id), ("UPDATE",)),
		]

	async def refresh(self) -> None:
		await self.reconciler.refetch(
			"membership",
			lambda: self.client.membership(self.view.target_id),
			projection(is_member="is_member", member_count="member_count"),
		)

	async def join(self) -> MutationOutcome:
		group_id = self.view.target_id
		return await self.mutations.run(
			ActionKind.JOIN_GROUP,
			group_id,
			lambda: self.client.join_group(group_id),
			settle=projection(is_member="is_member", member_count="member_count"),
			refetch=self._refetch,
		)

	async def _refetch(self) -> bool:
		await self.refresh()
		return True


class FollowControl(_EngagementComponent):
	"""Follow button and follower count for one profile."""

	def watch_specs(self) -> list[WatchSpec]:
		return [WatchSpec("user_followers", eq_filter("user_id", self.view.target_id))]

	async def refresh(self) -> None:
		await self.refresh_state()

	async def refresh_state(self) -> bool:
		return await self.reconciler.refetch(
			"follow",
			lambda: self.client.follow_state(self.view.target_id),
			projection(is_following="is_following", followers_count="followers_count"),
		)

	async def follow(self) -> MutationOutcome:
		user_id = self.view.target_id
		return await self.mutations.run(
			ActionKind.FOLLOW,
			user_id,
			lambda: self.client.follow(user_id),
			refetch=self.refresh_state,
		)

	async def unfollow(self) -> MutationOutcome:
		user_id = self.view.target_id
		return await self.mutations.run(
			ActionKind.UNFOLLOW,
			user_id,
			lambda: self.client.unfollow(user_id),
			refetch=self.refresh_state,
		)
