"""Authorization and validation policies for engagement operations."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from unishare.engagement.domain import models
from unishare.engagement.domain.exceptions import ForbiddenError, NotFoundError, ValidationError

EDIT_CHAR_LIMITS = {
	"title": 25,
	"description": 100,
	"course_code": 10,
	"external_link": 100,
}
COMMENT_MAX_LENGTH = 500
RESOURCE_TYPES = {"notes", "textbook", "solution", "tutorial", "practice_exam", "link", "other"}
GROUP_ADMIN_ROLES = {"admin"}
GROUP_ROLES = {"admin", "member"}
INVITATION_CODE_LENGTH = 8
# No 0/O or 1/I so codes survive being read aloud
INVITATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_INVITATION_HOURS = 24 * 30
LIST_LIMIT_MAX = 50


def require_resource(resource: models.Resource | None) -> models.Resource:
	if resource is None:
		raise NotFoundError("resource_not_found")
	return resource


def assert_is_author(resource: models.Resource, user_id: UUID) -> None:
	if resource.author_id != user_id:
		raise ForbiddenError("not_resource_author")


def assert_can_delete_comment(
	comment: models.ResourceComment,
	resource: models.Resource,
	user_id: UUID,
) -> None:
	"""Comment authors may delete their own comments; resource owners moderate theirs."""
	if comment.user_id == user_id or resource.author_id == user_id:
		return
	raise ForbiddenError("not_comment_owner")


def ensure_edit_limits(fields: dict[str, Optional[str]]) -> None:
	for name, limit in EDIT_CHAR_LIMITS.items():
		value = fields.get(name)
		if value and len(value) > limit:
			raise ValidationError(f"{name}_too_long")


def ensure_resource_type(resource_type: Optional[str]) -> None:
	if resource_type is not None and resource_type not in RESOURCE_TYPES:
		raise ValidationError("invalid_resource_type")


def ensure_comment_body(body: str) -> str:
	text = (body or "").strip()
	if not text:
		raise ValidationError("comment_required")
	if len(text) > COMMENT_MAX_LENGTH:
		raise ValidationError("comment_too_long")
	return text


def needs_new_thumbnail(
	previous: models.Resource,
	*,
	resource_type: Optional[str],
	external_link: Optional[str],
) -> bool:
	"""Thumbnail is stale when the type changes or a link resource points elsewhere."""
	if resource_type != previous.resource_type:
		return True
	return resource_type == "link" and external_link != previous.external_link


def ensure_not_self(actor_id: UUID, target_id: UUID) -> None:
	if actor_id == target_id:
		raise ValidationError("cannot_follow_self")


def require_visible_group(group: models.StudyGroup | None, *, is_member: bool) -> models.StudyGroup:
	if group is None:
		raise NotFoundError("study_group_not_found")
	if group.is_private and not is_member:
		raise ForbiddenError("membership_required")
	return group


def assert_can_join_directly(group: models.StudyGroup) -> None:
	if group.is_private:
		raise ForbiddenError("invitation_required")


def assert_can_manage_invitations(
	group: models.StudyGroup,
	membership: models.GroupMembership | None,
	user_id: UUID,
) -> None:
	if group.created_by == user_id:
		return
	if membership is not None and membership.role in GROUP_ADMIN_ROLES:
		return
	raise ForbiddenError("admin_role_required")


def assert_group_creator(group: models.StudyGroup, user_id: UUID) -> None:
	if group.created_by != user_id:
		raise ForbiddenError("creator_required")


def assert_can_change_role(group: models.StudyGroup, actor_id: UUID, member_id: UUID, role: str) -> None:
	assert_group_creator(group, actor_id)
	if role not in GROUP_ROLES:
		raise ValidationError("invalid_role")
	if member_id == group.created_by:
		raise ValidationError("cannot_change_creator_role")


def assert_can_remove_member(
	group: models.StudyGroup,
	actor: models.GroupMembership | None,
	actor_id: UUID,
	target: models.GroupMembership,
) -> None:
	"""The creator removes anyone but themselves; admins remove plain members only."""
	if target.user_id == group.created_by:
		raise ForbiddenError("cannot_remove_creator")
	if group.created_by == actor_id:
		return
	if actor is not None and actor.role in GROUP_ADMIN_ROLES and target.role not in GROUP_ADMIN_ROLES:
		return
	raise ForbiddenError("admin_role_required")


def ensure_invitation_params(expires_in_hours: Optional[int], max_uses: Optional[int]) -> None:
	if max_uses is not None and max_uses < 1:
		raise ValidationError("max_uses_must_be_positive")
	if expires_in_hours is not None and (expires_in_hours < 0 or expires_in_hours > MAX_INVITATION_HOURS):
		raise ValidationError("expires_in_out_of_range")


def invitation_expiry(expires_in_hours: Optional[int], *, now: datetime | None = None) -> Optional[datetime]:
	"""Zero or missing hours means the invitation never expires."""
	if not expires_in_hours:
		return None
	now = now or datetime.now(timezone.utc)
	return now + timedelta(hours=expires_in_hours)


def generate_invitation_code() -> str:
	return "".join(secrets.choice(INVITATION_CODE_ALPHABET) for _ in range(INVITATION_CODE_LENGTH))


def normalise_invitation_code(code: str) -> str:
	text = (code or "").strip()
	if not text:
		raise ValidationError("invitation_code_required")
	return text.upper()


def ensure_list_window(limit: int, offset: int) -> None:
	if limit < 1 or limit > LIST_LIMIT_MAX:
		raise ValidationError("limit_out_of_range")
	if offset < 0:
		raise ValidationError("offset_out_of_range")
