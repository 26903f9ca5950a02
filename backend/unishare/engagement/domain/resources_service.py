"""Likes, comments, downloads and edits on shared resources."""

from __future__ import annotations

import logging
from typing import Any, Callable
from uuid import UUID

from unishare.engagement.domain import events, models, policies, repo as repo_module
from unishare.engagement.domain.exceptions import NotFoundError, ValidationError
from unishare.engagement.infra import thumbnails
from unishare.engagement.infra.content_filter import ContentFilter, get_content_filter
from unishare.engagement.infra.storage import FileStorage, StoredFile
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser
from unishare.obs import metrics as obs_metrics
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

_FILTERED_FIELDS = ("title", "description", "course_code")


def download_filename(resource: models.Resource) -> str:
	base = (resource.title or "").strip().replace('"', "") or "download"
	return f"{base}.pdf"


class ResourcesService:
	"""Engagement operations scoped to a single resource."""

	def __init__(
		self,
		*,
		repository: repo_module.EngagementRepository | None = None,
		content_filter: ContentFilter | None = None,
		storage: FileStorage | None = None,
		schedule_thumbnail: Callable[[dict[str, Any]], Any] | None = None,
	) -> None:
		self.repo = repository or repo_module.EngagementRepository()
		self._content_filter = content_filter
		self.storage = storage or FileStorage()
		self.schedule_thumbnail = schedule_thumbnail or thumbnails.schedule_regeneration

	@property
	def content_filter(self) -> ContentFilter:
		if self._content_filter is None:
			self._content_filter = get_content_filter()
		return self._content_filter

	@staticmethod
	def _comment_to_response(comment: models.ResourceComment) -> dto.CommentResponse:
		return dto.CommentResponse(
			id=comment.id,
			resource_id=comment.resource_id,
			user_id=comment.user_id,
			content=comment.content,
			created_at=comment.created_at,
			author=dto.CommentAuthor(username=comment.author_username, full_name=comment.author_full_name),
		)

	async def _require_resource(self, resource_id: UUID) -> models.Resource:
		return policies.require_resource(await self.repo.get_resource(resource_id))

	# ------------------------------------------------------------------
	# Likes

	async def like(self, user: AuthenticatedUser, resource_id: UUID) -> dto.LikeCountResponse:
		"""Add the caller's like; repeating it leaves the count unchanged."""
		resource = await self._require_resource(resource_id)
		user_id = UUID(user.id)
		inserted, count = await self.repo.add_like(resource.id, user_id)
		obs_metrics.inc_resource_like("created" if inserted else "duplicate")
		if inserted:
			await events.like_changed(resource.id, user_id)
		return dto.LikeCountResponse(like_count=count)

	async def like_state(self, user: AuthenticatedUser, resource_id: UUID) -> dto.LikeStateResponse:
		await self._require_resource(resource_id)
		state = await self.repo.get_like_state(resource_id, UUID(user.id))
		return dto.LikeStateResponse(has_liked=state.has_liked, like_count=state.like_count)

	# ------------------------------------------------------------------
	# Comments

	async def list_comments(self, resource_id: UUID) -> dto.CommentListResponse:
		await self._require_resource(resource_id)
		snapshot = await self.repo.list_comments(resource_id)
		return dto.CommentListResponse(
			comments=[self._comment_to_response(comment) for comment in snapshot.comments],
			count=snapshot.count,
		)

	async def create_comment(
		self,
		user: AuthenticatedUser,
		resource_id: UUID,
		payload: dto.CommentCreateRequest,
	) -> dto.CommentCreatedResponse:
		content = policies.ensure_comment_body(payload.comment)
		if self.content_filter.contains_bad_words(content):
			raise ValidationError("comment_inappropriate_language")
		resource = await self._require_resource(resource_id)
		comment, count = await self.repo.create_comment(
			resource_id=resource.id,
			user_id=UUID(user.id),
			content=content,
		)
		profile = await self.repo.get_profile(comment.user_id)
		if profile is not None:
			comment = comment.model_copy(
				update={"author_username": profile.username, "author_full_name": profile.full_name}
			)
		obs_metrics.inc_resource_comment("created")
		await events.comment_created(comment)
		return dto.CommentCreatedResponse(comment=self._comment_to_response(comment), count=count)

	async def delete_comment(
		self,
		user: AuthenticatedUser,
		resource_id: UUID,
		comment_id: UUID,
	) -> dto.CommentDeletedResponse:
		resource = await self._require_resource(resource_id)
		comment = await self.repo.get_comment(comment_id)
		if comment is None or comment.resource_id != resource.id:
			raise NotFoundError("comment_not_found")
		policies.assert_can_delete_comment(comment, resource, UUID(user.id))
		count = await self.repo.delete_comment(resource.id, comment.id)
		obs_metrics.inc_resource_comment("deleted")
		await events.comment_deleted(resource.id, comment.id)
		return dto.CommentDeletedResponse(count=count)

	# ------------------------------------------------------------------
	# Downloads

	async def open_download(self, resource_id: UUID) -> tuple[models.Resource, StoredFile]:
		"""Open the stored file and count the download once the store answers."""
		resource = await self._require_resource(resource_id)
		if not resource.file_url:
			raise NotFoundError("file_not_available")
		stored = await self.storage.open(resource.file_url)
		await self.repo.record_download(resource.id)
		obs_metrics.inc_resource_download()
		return resource, stored

	# ------------------------------------------------------------------
	# Author operations

	async def edit(
		self,
		user: AuthenticatedUser,
		resource_id: UUID,
		payload: dto.ResourceEditRequest,
	) -> dto.SuccessResponse:
		resource = await self._require_resource(resource_id)
		policies.assert_is_author(resource, UUID(user.id))
		fields = payload.model_dump(by_alias=False)
		policies.ensure_edit_limits(fields)
		policies.ensure_resource_type(payload.resource_type)
		for name in _FILTERED_FIELDS:
			if self.content_filter.contains_bad_words(fields.get(name)):
				raise ValidationError(f"{name}_inappropriate_language")

		updated = await self.repo.update_resource(resource.id, fields)
		regenerate = policies.needs_new_thumbnail(
			resource,
			resource_type=payload.resource_type,
			external_link=payload.external_link,
		)
		obs_metrics.inc_resource_edit(thumbnail=regenerate)
		if regenerate:
			self._trigger_thumbnail(updated, previous=resource)
		await events.resource_updated(
			resource.id,
			{name: fields.get(name) for name in ("title", "description", "resource_type", "course_code", "external_link")},
		)
		return dto.SuccessResponse()

	def _trigger_thumbnail(self, updated: models.Resource, *, previous: models.Resource) -> None:
		payload = {
			"resourceId": str(updated.id),
			"resourceType": updated.resource_type,
			"fileUrl": updated.file_url or previous.file_url,
			"externalLink": updated.external_link or previous.external_link,
		}
		try:
			self.schedule_thumbnail(payload)
		except RuntimeError:
			safe_log(_LOG, logging.WARNING, "thumbnail_schedule_failed", exc_info=True, resource_id=str(updated.id))

	async def delete(self, user: AuthenticatedUser, resource_id: UUID) -> dto.SuccessResponse:
		resource = await self._require_resource(resource_id)
		policies.assert_is_author(resource, UUID(user.id))
		await self.repo.delete_resource(resource.id)
		await events.resource_deleted(resource.id)
		return dto.SuccessResponse(message="Resource deleted")
