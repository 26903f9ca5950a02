"""Async repository helpers for the engagement domain.

Every counter write locks the parent row, changes the edge and recomputes the
live aggregate inside one transaction, so the denormalised columns on
``resources``, ``study_groups`` and ``user_profiles`` never drift from the edge
tables. Concurrent writers queue on the parent lock and each recount sees the
rows committed before it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg

from unishare.engagement.domain import models
from unishare.engagement.domain.exceptions import ConflictError, NotFoundError
from unishare.infra.postgres import get_pool

_RESOURCE_EDITABLE = ("title", "description", "resource_type", "course_code", "external_link")


def _rows_affected(status: str | None) -> int:
	return int(status.split()[-1]) if status else 0


async def _lock_row(conn: asyncpg.Connection, table: str, row_id: UUID) -> None:
	await conn.execute(f"SELECT 1 FROM {table} WHERE id=$1 FOR UPDATE", row_id)


class EngagementRepository:
	"""Thin data-access layer around asyncpg."""

	# --- Resources --------------------------------------------------------

	async def get_resource(self, resource_id: UUID) -> models.Resource | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM resources WHERE id=$1", resource_id)
		return models.Resource.model_validate(dict(record)) if record else None

	async def update_resource(self, resource_id: UUID, fields: dict[str, Any]) -> models.Resource:
		assignments: list[str] = []
		values: list[object] = [resource_id]
		for name in _RESOURCE_EDITABLE:
			if name in fields:
				values.append(fields[name])
				assignments.append(f"{name}=${len(values)}")
		assignments.append("updated_at=NOW()")
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"UPDATE resources SET {', '.join(assignments)} WHERE id=$1 RETURNING *",
				*values,
			)
		if record is None:
			raise NotFoundError("resource_not_found")
		return models.Resource.model_validate(dict(record))

	async def delete_resource(self, resource_id: UUID) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute("DELETE FROM resource_likes WHERE resource_id=$1", resource_id)
				await conn.execute("DELETE FROM resource_comments WHERE resource_id=$1", resource_id)
				deleted = await conn.execute("DELETE FROM resources WHERE id=$1", resource_id)
		if _rows_affected(deleted) == 0:
			raise NotFoundError("resource_not_found")

	async def record_download(self, resource_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			count = await conn.fetchval(
				"""
				UPDATE resources SET download_count = download_count + 1
				WHERE id=$1
				RETURNING download_count
				""",
				resource_id,
			)
		if count is None:
			raise NotFoundError("resource_not_found")
		return int(count)

	# --- Likes ------------------------------------------------------------

	async def add_like(self, resource_id: UUID, user_id: UUID) -> tuple[bool, int]:
		"""Insert the like edge if missing and return (inserted, live like count)."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_row(conn, "resources", resource_id)
				inserted = await conn.execute(
					"""
					INSERT INTO resource_likes (resource_id, user_id, created_at)
					VALUES ($1, $2, NOW())
					ON CONFLICT (resource_id, user_id) DO NOTHING
					""",
					resource_id,
					user_id,
				)
				count = await conn.fetchval(
					"SELECT COUNT(*) FROM resource_likes WHERE resource_id=$1",
					resource_id,
				)
				await conn.execute("UPDATE resources SET likes=$2 WHERE id=$1", resource_id, count)
		return _rows_affected(inserted) > 0, int(count)

	async def get_like_state(self, resource_id: UUID, user_id: UUID) -> models.LikeState:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				SELECT
					EXISTS(SELECT 1 FROM resource_likes WHERE resource_id=$1 AND user_id=$2) AS has_liked,
					(SELECT COUNT(*) FROM resource_likes WHERE resource_id=$1) AS like_count
				""",
				resource_id,
				user_id,
			)
		return models.LikeState(has_liked=bool(record["has_liked"]), like_count=int(record["like_count"]))

	# --- Comments ---------------------------------------------------------

	async def list_comments(self, resource_id: UUID) -> models.CommentsSnapshot:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT c.*, p.username AS author_username, p.full_name AS author_full_name
				FROM resource_comments c
				LEFT JOIN user_profiles p ON p.id = c.user_id
				WHERE c.resource_id=$1
				ORDER BY c.created_at ASC
				""",
				resource_id,
			)
		comments = [models.ResourceComment.model_validate(dict(row)) for row in rows]
		return models.CommentsSnapshot(comments=comments, count=len(comments))

	async def get_comment(self, comment_id: UUID) -> models.ResourceComment | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM resource_comments WHERE id=$1", comment_id)
		return models.ResourceComment.model_validate(dict(record)) if record else None

	async def _sync_comment_count(self, conn: asyncpg.Connection, resource_id: UUID) -> int:
		count = await conn.fetchval(
			"SELECT COUNT(*) FROM resource_comments WHERE resource_id=$1",
			resource_id,
		)
		await conn.execute("UPDATE resources SET comment_count=$2 WHERE id=$1", resource_id, count)
		return int(count)

	async def create_comment(
		self,
		*,
		resource_id: UUID,
		user_id: UUID,
		content: str,
	) -> tuple[models.ResourceComment, int]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_row(conn, "resources", resource_id)
				record = await conn.fetchrow(
					"""
					INSERT INTO resource_comments (id, resource_id, user_id, content, created_at)
					VALUES ($1, $2, $3, $4, NOW())
					RETURNING *
					""",
					uuid4(),
					resource_id,
					user_id,
					content,
				)
				count = await self._sync_comment_count(conn, resource_id)
		return models.ResourceComment.model_validate(dict(record)), count

	async def delete_comment(self, resource_id: UUID, comment_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_row(conn, "resources", resource_id)
				deleted = await conn.execute(
					"DELETE FROM resource_comments WHERE id=$1 AND resource_id=$2",
					comment_id,
					resource_id,
				)
				if _rows_affected(deleted) == 0:
					raise NotFoundError("comment_not_found")
				return await self._sync_comment_count(conn, resource_id)

	# --- Profiles & follows ----------------------------------------------

	async def get_profile(self, user_id: UUID) -> models.UserProfile | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM user_profiles WHERE id=$1", user_id)
		return models.UserProfile.model_validate(dict(record)) if record else None

	async def _lock_profiles(self, conn: asyncpg.Connection, *user_ids: UUID) -> None:
		# Fixed order so A->B and B->A follows cannot deadlock
		for user_id in sorted(set(user_ids)):
			await _lock_row(conn, "user_profiles", user_id)

	async def _sync_follow_counts(self, conn: asyncpg.Connection, target_id: UUID, follower_id: UUID) -> int:
		followers = await conn.fetchval(
			"SELECT COUNT(*) FROM user_followers WHERE user_id=$1",
			target_id,
		)
		following = await conn.fetchval(
			"SELECT COUNT(*) FROM user_followers WHERE follower_id=$1",
			follower_id,
		)
		await conn.execute("UPDATE user_profiles SET followers_count=$2 WHERE id=$1", target_id, followers)
		await conn.execute("UPDATE user_profiles SET following_count=$2 WHERE id=$1", follower_id, following)
		return int(followers)

	async def add_follow(self, *, target_id: UUID, follower_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await self._lock_profiles(conn, target_id, follower_id)
				inserted = await conn.execute(
					"""
					INSERT INTO user_followers (user_id, follower_id, created_at)
					VALUES ($1, $2, NOW())
					ON CONFLICT (user_id, follower_id) DO NOTHING
					""",
					target_id,
					follower_id,
				)
				created = _rows_affected(inserted) > 0
				if created:
					await self._sync_follow_counts(conn, target_id, follower_id)
		return created

	async def remove_follow(self, *, target_id: UUID, follower_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await self._lock_profiles(conn, target_id, follower_id)
				deleted = await conn.execute(
					"DELETE FROM user_followers WHERE user_id=$1 AND follower_id=$2",
					target_id,
					follower_id,
				)
				removed = _rows_affected(deleted) > 0
				if removed:
					await self._sync_follow_counts(conn, target_id, follower_id)
		return removed

	async def get_follow_state(self, *, target_id: UUID, follower_id: UUID) -> models.FollowState:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				SELECT
					EXISTS(SELECT 1 FROM user_followers WHERE user_id=$1 AND follower_id=$2) AS is_following,
					(SELECT COUNT(*) FROM user_followers WHERE user_id=$1) AS followers_count
				""",
				target_id,
				follower_id,
			)
		return models.FollowState(
			is_following=bool(record["is_following"]),
			followers_count=int(record["followers_count"]),
		)

	# --- Notifications ----------------------------------------------------

	async def insert_notification_once(
		self,
		*,
		user_id: UUID,
		actor_id: UUID,
		kind: str,
		title: str,
		message: str,
		link: Optional[str],
	) -> models.Notification | None:
		"""Insert unless one already exists for (user, actor, type); return None when skipped."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				INSERT INTO notifications (id, user_id, actor_id, type, title, message, link, is_read, created_at)
				SELECT $1, $2, $3, $4, $5, $6, $7, FALSE, NOW()
				WHERE NOT EXISTS (
					SELECT 1 FROM notifications WHERE user_id=$2 AND actor_id=$3 AND type=$4
				)
				ON CONFLICT DO NOTHING
				RETURNING *
				""",
				uuid4(),
				user_id,
				actor_id,
				kind,
				title,
				message,
				link,
			)
		return models.Notification.model_validate(dict(record)) if record else None

	# --- Study groups -----------------------------------------------------

	async def get_study_group(self, group_id: UUID) -> models.StudyGroup | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM study_groups WHERE id=$1", group_id)
		return models.StudyGroup.model_validate(dict(record)) if record else None

	async def get_membership(self, group_id: UUID, user_id: UUID) -> models.GroupMembership | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT * FROM study_group_members WHERE study_group_id=$1 AND user_id=$2",
				group_id,
				user_id,
			)
		return models.GroupMembership.model_validate(dict(record)) if record else None

	async def _sync_member_count(self, conn: asyncpg.Connection, group_id: UUID) -> int:
		count = await conn.fetchval(
			"SELECT COUNT(*) FROM study_group_members WHERE study_group_id=$1",
			group_id,
		)
		await conn.execute("UPDATE study_groups SET member_count=$2 WHERE id=$1", group_id, count)
		return int(count)

	async def add_member(self, group_id: UUID, user_id: UUID, *, role: str = "member") -> tuple[bool, int]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_row(conn, "study_groups", group_id)
				inserted = await conn.execute(
					"""
					INSERT INTO study_group_members (study_group_id, user_id, role, joined_at)
					VALUES ($1, $2, $3, NOW())
					ON CONFLICT (study_group_id, user_id) DO NOTHING
					""",
					group_id,
					user_id,
					role,
				)
				count = await self._sync_member_count(conn, group_id)
		return _rows_affected(inserted) > 0, count

	async def update_member_role(self, group_id: UUID, user_id: UUID, role: str) -> models.GroupMembership | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE study_group_members SET role=$3
				WHERE study_group_id=$1 AND user_id=$2
				RETURNING *
				""",
				group_id,
				user_id,
				role,
			)
		return models.GroupMembership.model_validate(dict(record)) if record else None

	async def remove_member(self, group_id: UUID, user_id: UUID) -> tuple[bool, int]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_row(conn, "study_groups", group_id)
				deleted = await conn.execute(
					"DELETE FROM study_group_members WHERE study_group_id=$1 AND user_id=$2",
					group_id,
					user_id,
				)
				count = await self._sync_member_count(conn, group_id)
		return _rows_affected(deleted) > 0, count

	async def delete_study_group(self, group_id: UUID) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute("DELETE FROM study_group_invitations WHERE study_group_id=$1", group_id)
				await conn.execute("DELETE FROM study_group_members WHERE study_group_id=$1", group_id)
				deleted = await conn.execute("DELETE FROM study_groups WHERE id=$1", group_id)
		if _rows_affected(deleted) == 0:
			raise NotFoundError("study_group_not_found")

	async def get_membership_state(self, group_id: UUID, user_id: UUID) -> models.MembershipState:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				SELECT
					EXISTS(SELECT 1 FROM study_group_members WHERE study_group_id=$1 AND user_id=$2) AS is_member,
					(SELECT COUNT(*) FROM study_group_members WHERE study_group_id=$1) AS member_count
				""",
				group_id,
				user_id,
			)
		return models.MembershipState(
			is_member=bool(record["is_member"]),
			member_count=int(record["member_count"]),
		)

	async def list_public_study_groups(
		self,
		*,
		university_id: UUID | None,
		limit: int,
		offset: int,
		search: str | None = None,
	) -> tuple[list[models.StudyGroup], int]:
		clauses = ["university_id IS NOT DISTINCT FROM $1", "is_private = FALSE"]
		values: list[object] = [university_id]
		if search:
			values.append(f"%{search}%")
			idx = len(values)
			clauses.append(f"(name ILIKE ${idx} OR description ILIKE ${idx} OR course_code ILIKE ${idx})")
		where = " AND ".join(clauses)
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(f"SELECT COUNT(*) FROM study_groups WHERE {where}", *values)
			rows = await conn.fetch(
				f"""
				SELECT * FROM study_groups
				WHERE {where}
				ORDER BY created_at DESC
				LIMIT ${len(values) + 1} OFFSET ${len(values) + 2}
				""",
				*values,
				limit,
				offset,
			)
		return [models.StudyGroup.model_validate(dict(row)) for row in rows], int(total)

	async def list_member_groups(self, user_id: UUID) -> list[models.StudyGroup]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT g.* FROM study_groups g
				JOIN study_group_members m ON m.study_group_id = g.id
				WHERE m.user_id=$1
				ORDER BY g.created_at DESC
				""",
				user_id,
			)
		return [models.StudyGroup.model_validate(dict(row)) for row in rows]

	# --- Invitations ------------------------------------------------------

	async def create_invitation(
		self,
		*,
		group_id: UUID,
		code: str,
		created_by: UUID,
		expires_at: datetime | None,
		max_uses: int | None,
	) -> models.Invitation:
		pool = await get_pool()
		async with pool.acquire() as conn:
			try:
				record = await conn.fetchrow(
					"""
					INSERT INTO study_group_invitations
						(id, study_group_id, code, created_by, expires_at, max_uses, current_uses, created_at)
					VALUES ($1, $2, $3, $4, $5, $6, 0, NOW())
					RETURNING *
					""",
					uuid4(),
					group_id,
					code,
					created_by,
					expires_at,
					max_uses,
				)
			except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
				raise ConflictError("invitation_code_exists") from exc
		return models.Invitation.model_validate(dict(record))

	async def list_invitations(self, group_id: UUID) -> list[models.Invitation]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM study_group_invitations
				WHERE study_group_id=$1
				ORDER BY created_at DESC
				""",
				group_id,
			)
		return [models.Invitation.model_validate(dict(row)) for row in rows]

	async def redeem_invitation(
		self,
		code: str,
		user_id: UUID,
		*,
		now: datetime | None = None,
	) -> models.RedemptionOutcome:
		"""Check expiry and use ceiling, consume one use and add the member atomically.

		The invitation row is locked for the duration of the transaction so two
		actors racing for the last use serialise on it.
		"""
		now = now or datetime.now(timezone.utc)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				invite = await conn.fetchrow(
					"SELECT * FROM study_group_invitations WHERE code=$1 FOR UPDATE",
					code,
				)
				if invite is None:
					return models.RedemptionOutcome(status=models.RedemptionStatus.NOT_FOUND)
				group_id = invite["study_group_id"]
				already = await conn.fetchval(
					"SELECT 1 FROM study_group_members WHERE study_group_id=$1 AND user_id=$2",
					group_id,
					user_id,
				)
				if already:
					return models.RedemptionOutcome(
						status=models.RedemptionStatus.ALREADY_MEMBER,
						study_group_id=group_id,
					)
				if invite["expires_at"] is not None and now > invite["expires_at"]:
					return models.RedemptionOutcome(status=models.RedemptionStatus.EXPIRED, study_group_id=group_id)
				if invite["max_uses"] is not None and invite["current_uses"] >= invite["max_uses"]:
					return models.RedemptionOutcome(status=models.RedemptionStatus.EXHAUSTED, study_group_id=group_id)
				# Invitation before group; no path takes them in the other order
				await _lock_row(conn, "study_groups", group_id)
				await conn.execute(
					"UPDATE study_group_invitations SET current_uses = current_uses + 1 WHERE id=$1",
					invite["id"],
				)
				await conn.execute(
					"""
					INSERT INTO study_group_members (study_group_id, user_id, role, joined_at)
					VALUES ($1, $2, 'member', NOW())
					ON CONFLICT (study_group_id, user_id) DO NOTHING
					""",
					group_id,
					user_id,
				)
				count = await self._sync_member_count(conn, group_id)
		return models.RedemptionOutcome(
			status=models.RedemptionStatus.JOINED,
			study_group_id=group_id,
			member_count=count,
		)

