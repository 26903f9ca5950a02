"""Change notifications published after committed engagement mutations.

Payloads carry row identity only; subscribers refetch authoritative state
instead of trusting anything carried here.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from unishare.engagement.domain import models
from unishare.engagement.sockets import server as realtime


def eq_filter(column: str, value: UUID | str) -> str:
	return f"{column}=eq.{value}"


async def like_changed(resource_id: UUID, user_id: UUID) -> None:
	row = {"resource_id": str(resource_id), "user_id": str(user_id)}
	await realtime.emit_change("resource_likes", eq_filter("resource_id", resource_id), "INSERT", new=row)


async def comment_created(comment: models.ResourceComment) -> None:
	await realtime.emit_change(
		"resource_comments",
		eq_filter("resource_id", comment.resource_id),
		"INSERT",
		new=comment.model_dump(mode="json"),
	)


async def comment_deleted(resource_id: UUID, comment_id: UUID) -> None:
	await realtime.emit_change(
		"resource_comments",
		eq_filter("resource_id", resource_id),
		"DELETE",
		old={"id": str(comment_id), "resource_id": str(resource_id)},
	)


async def resource_updated(resource_id: UUID, changes: dict[str, Any]) -> None:
	row = {"id": str(resource_id), **changes}
	await realtime.emit_change("resources", eq_filter("id", resource_id), "UPDATE", new=row)


async def resource_deleted(resource_id: UUID) -> None:
	await realtime.emit_change("resources", eq_filter("id", resource_id), "DELETE", old={"id": str(resource_id)})


async def membership_added(group_id: UUID, user_id: UUID, member_count: int) -> None:
	await realtime.emit_change(
		"study_group_members",
		eq_filter("study_group_id", group_id),
		"INSERT",
		new={"study_group_id": str(group_id), "user_id": str(user_id)},
	)
	await realtime.emit_change(
		"study_groups",
		eq_filter("id", group_id),
		"UPDATE",
		new={"id": str(group_id), "member_count": member_count},
	)


async def membership_removed(group_id: UUID, user_id: UUID, member_count: int) -> None:
	await realtime.emit_change(
		"study_group_members",
		eq_filter("study_group_id", group_id),
		"DELETE",
		old={"study_group_id": str(group_id), "user_id": str(user_id)},
	)
	await realtime.emit_change(
		"study_groups",
		eq_filter("id", group_id),
		"UPDATE",
		new={"id": str(group_id), "member_count": member_count},
	)


async def membership_role_changed(group_id: UUID, user_id: UUID, role: str) -> None:
	await realtime.emit_change(
		"study_group_members",
		eq_filter("study_group_id", group_id),
		"UPDATE",
		new={"study_group_id": str(group_id), "user_id": str(user_id), "role": role},
	)


async def study_group_deleted(group_id: UUID) -> None:
	await realtime.emit_change("study_groups", eq_filter("id", group_id), "DELETE", old={"id": str(group_id)})


async def follow_changed(target_id: UUID, follower_id: UUID, *, action: str) -> None:
	row = {"user_id": str(target_id), "follower_id": str(follower_id)}
	if action == "follow":
		await realtime.emit_change("user_followers", eq_filter("user_id", target_id), "INSERT", new=row)
	else:
		await realtime.emit_change("user_followers", eq_filter("user_id", target_id), "DELETE", old=row)
