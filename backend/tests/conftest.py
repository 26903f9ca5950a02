import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from unishare.engagement.domain import models
from unishare.engagement.domain.exceptions import ConflictError, NotFoundError
from unishare.engagement.sockets import server as realtime_server
from unishare.infra import postgres
from unishare.main import app
from unishare.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from unishare.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id headers, which are only accepted in dev mode."""
	original_env = settings.environment
	original_thumbnail_url = settings.thumbnail_service_url
	settings.environment = "dev"
	settings.thumbnail_service_url = None
	try:
		yield
	finally:
		settings.environment = original_env
		settings.thumbnail_service_url = original_thumbnail_url


@pytest.fixture
def realtime_changes(monkeypatch):
	"""Capture change notifications instead of pushing them to Socket.IO."""
	captured: list[dict[str, Any]] = []

	async def _capture(table, filter_expr, event, *, new=None, old=None):
		captured.append({"table": table, "filter": filter_expr, "event": event, "new": new, "old": old})

	monkeypatch.setattr(realtime_server, "emit_change", _capture)
	return captured


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


def _now() -> datetime:
	return datetime.now(timezone.utc)


class InMemoryEngagementRepository:
	"""Dict-backed stand-in for ``EngagementRepository`` with the same atomicity."""

	def __init__(self) -> None:
		self.resources: dict[UUID, models.Resource] = {}
		self.likes: set[tuple[UUID, UUID]] = set()
		self.comments: dict[UUID, models.ResourceComment] = {}
		self.profiles: dict[UUID, models.UserProfile] = {}
		self.follows: set[tuple[UUID, UUID]] = set()
		self.notifications: list[models.Notification] = []
		self.groups: dict[UUID, models.StudyGroup] = {}
		self.members: dict[tuple[UUID, UUID], models.GroupMembership] = {}
		self.invitations: dict[str, models.Invitation] = {}
		self.updated_fields: list[dict[str, Any]] = []
		self.fail_notifications = False
		self._invite_lock = asyncio.Lock()

	# Seeding helpers -----------------------------------------------------

	def add_resource(self, **overrides: Any) -> models.Resource:
		data = {
			"id": uuid4(),
			"author_id": uuid4(),
			"title": "Linear Algebra Notes",
			"resource_type": "notes",
			"file_url": "https://files.example/notes.pdf",
			"created_at": _now(),
		}
		data.update(overrides)
		resource = models.Resource(**data)
		self.resources[resource.id] = resource
		return resource

	def add_profile(self, **overrides: Any) -> models.UserProfile:
		data = {"id": uuid4(), "username": "student"}
		data.update(overrides)
		profile = models.UserProfile(**data)
		self.profiles[profile.id] = profile
		return profile

	def add_group(self, **overrides: Any) -> models.StudyGroup:
		data = {"id": uuid4(), "name": "MATH 133", "created_by": uuid4(), "created_at": _now()}
		data.update(overrides)
		group = models.StudyGroup(**data)
		self.groups[group.id] = group
		return group

	def add_invitation(self, group_id: UUID, **overrides: Any) -> models.Invitation:
		data = {
			"id": uuid4(),
			"study_group_id": group_id,
			"code": "ABCD2345",
			"created_by": self.groups[group_id].created_by,
			"created_at": _now(),
		}
		data.update(overrides)
		invitation = models.Invitation(**data)
		self.invitations[invitation.code] = invitation
		return invitation

	def member_count(self, group_id: UUID) -> int:
		return sum(1 for (gid, _) in self.members if gid == group_id)

	# Resources -----------------------------------------------------------

	async def get_resource(self, resource_id: UUID) -> models.Resource | None:
		return self.resources.get(resource_id)

	async def update_resource(self, resource_id: UUID, fields: dict[str, Any]) -> models.Resource:
		resource = self.resources.get(resource_id)
		if resource is None:
			raise NotFoundError("resource_not_found")
		self.updated_fields.append(dict(fields))
		changes = {key: value for key, value in fields.items() if key in models.Resource.model_fields}
		updated = resource.model_copy(update={**changes, "updated_at": _now()})
		self.resources[resource_id] = updated
		return updated

	async def delete_resource(self, resource_id: UUID) -> None:
		if self.resources.pop(resource_id, None) is None:
			raise NotFoundError("resource_not_found")
		self.likes = {edge for edge in self.likes if edge[0] != resource_id}
		self.comments = {key: c for key, c in self.comments.items() if c.resource_id != resource_id}

	async def record_download(self, resource_id: UUID) -> int:
		resource = self.resources[resource_id]
		updated = resource.model_copy(update={"download_count": resource.download_count + 1})
		self.resources[resource_id] = updated
		return updated.download_count

	# Likes ---------------------------------------------------------------

	def _like_count(self, resource_id: UUID) -> int:
		return sum(1 for (rid, _) in self.likes if rid == resource_id)

	async def add_like(self, resource_id: UUID, user_id: UUID) -> tuple[bool, int]:
		inserted = (resource_id, user_id) not in self.likes
		self.likes.add((resource_id, user_id))
		return inserted, self._like_count(resource_id)

	async def get_like_state(self, resource_id: UUID, user_id: UUID) -> models.LikeState:
		return models.LikeState(
			has_liked=(resource_id, user_id) in self.likes,
			like_count=self._like_count(resource_id),
		)

	# Comments ------------------------------------------------------------

	async def list_comments(self, resource_id: UUID) -> models.CommentsSnapshot:
		items = sorted(
			(c for c in self.comments.values() if c.resource_id == resource_id),
			key=lambda c: c.created_at,
		)
		return models.CommentsSnapshot(comments=items, count=len(items))

	async def get_comment(self, comment_id: UUID) -> models.ResourceComment | None:
		return self.comments.get(comment_id)

	async def create_comment(self, *, resource_id: UUID, user_id: UUID, content: str) -> tuple[models.ResourceComment, int]:
		comment = models.ResourceComment(
			id=uuid4(),
			resource_id=resource_id,
			user_id=user_id,
			content=content,
			created_at=_now(),
		)
		self.comments[comment.id] = comment
		return comment, (await self.list_comments(resource_id)).count

	async def delete_comment(self, resource_id: UUID, comment_id: UUID) -> int:
		comment = self.comments.get(comment_id)
		if comment is None or comment.resource_id != resource_id:
			raise NotFoundError("comment_not_found")
		del self.comments[comment_id]
		return (await self.list_comments(resource_id)).count

	# Profiles & follows --------------------------------------------------

	async def get_profile(self, user_id: UUID) -> models.UserProfile | None:
		return self.profiles.get(user_id)

	async def add_follow(self, *, target_id: UUID, follower_id: UUID) -> bool:
		if (target_id, follower_id) in self.follows:
			return False
		self.follows.add((target_id, follower_id))
		return True

	async def remove_follow(self, *, target_id: UUID, follower_id: UUID) -> bool:
		if (target_id, follower_id) not in self.follows:
			return False
		self.follows.discard((target_id, follower_id))
		return True

	async def get_follow_state(self, *, target_id: UUID, follower_id: UUID) -> models.FollowState:
		return models.FollowState(
			is_following=(target_id, follower_id) in self.follows,
			followers_count=sum(1 for (tid, _) in self.follows if tid == target_id),
		)

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
		if self.fail_notifications:
			raise RuntimeError("notifications table unavailable")
		for existing in self.notifications:
			if existing.user_id == user_id and existing.actor_id == actor_id and existing.type == kind:
				return None
		notification = models.Notification(
			id=uuid4(),
			user_id=user_id,
			actor_id=actor_id,
			type=kind,
			title=title,
			message=message,
			link=link,
			created_at=_now(),
		)
		self.notifications.append(notification)
		return notification

	# Study groups --------------------------------------------------------

	async def get_study_group(self, group_id: UUID) -> models.StudyGroup | None:
		return self.groups.get(group_id)

	async def get_membership(self, group_id: UUID, user_id: UUID) -> models.GroupMembership | None:
		return self.members.get((group_id, user_id))

	def _insert_member(self, group_id: UUID, user_id: UUID, role: str) -> bool:
		if (group_id, user_id) in self.members:
			return False
		self.members[(group_id, user_id)] = models.GroupMembership(
			study_group_id=group_id,
			user_id=user_id,
			role=role,
			joined_at=_now(),
		)
		return True

	async def add_member(self, group_id: UUID, user_id: UUID, *, role: str = "member") -> tuple[bool, int]:
		inserted = self._insert_member(group_id, user_id, role)
		return inserted, self.member_count(group_id)

	async def update_member_role(self, group_id: UUID, user_id: UUID, role: str) -> models.GroupMembership | None:
		membership = self.members.get((group_id, user_id))
		if membership is None:
			return None
		updated = membership.model_copy(update={"role": role})
		self.members[(group_id, user_id)] = updated
		return updated

	async def remove_member(self, group_id: UUID, user_id: UUID) -> tuple[bool, int]:
		removed = self.members.pop((group_id, user_id), None) is not None
		return removed, self.member_count(group_id)

	async def delete_study_group(self, group_id: UUID) -> None:
		if self.groups.pop(group_id, None) is None:
			raise NotFoundError("study_group_not_found")
		self.members = {key: m for key, m in self.members.items() if key[0] != group_id}
		self.invitations = {code: inv for code, inv in self.invitations.items() if inv.study_group_id != group_id}

	async def get_membership_state(self, group_id: UUID, user_id: UUID) -> models.MembershipState:
		return models.MembershipState(
			is_member=(group_id, user_id) in self.members,
			member_count=self.member_count(group_id),
		)

	async def list_public_study_groups(
		self,
		*,
		university_id: UUID | None,
		limit: int,
		offset: int,
		search: str | None = None,
	) -> tuple[list[models.StudyGroup], int]:
		needle = (search or "").lower()
		matches = [
			group
			for group in self.groups.values()
			if group.university_id == university_id
			and not group.is_private
			and (
				not needle
				or any(needle in (value or "").lower() for value in (group.name, group.description, group.course_code))
			)
		]
		matches.sort(key=lambda group: group.created_at, reverse=True)
		return matches[offset : offset + limit], len(matches)

	async def list_member_groups(self, user_id: UUID) -> list[models.StudyGroup]:
		return [self.groups[gid] for (gid, uid) in self.members if uid == user_id]

	# Invitations ---------------------------------------------------------

	async def create_invitation(
		self,
		*,
		group_id: UUID,
		code: str,
		created_by: UUID,
		expires_at: datetime | None,
		max_uses: int | None,
	) -> models.Invitation:
		if code in self.invitations:
			raise ConflictError("invitation_code_exists")
		return self.add_invitation(group_id, code=code, created_by=created_by, expires_at=expires_at, max_uses=max_uses)

	async def list_invitations(self, group_id: UUID) -> list[models.Invitation]:
		return [inv for inv in self.invitations.values() if inv.study_group_id == group_id]

	async def redeem_invitation(self, code: str, user_id: UUID, *, now: datetime | None = None) -> models.RedemptionOutcome:
		now = now or _now()
		async with self._invite_lock:
			invite = self.invitations.get(code)
			if invite is None:
				return models.RedemptionOutcome(status=models.RedemptionStatus.NOT_FOUND)
			group_id = invite.study_group_id
			if (group_id, user_id) in self.members:
				return models.RedemptionOutcome(status=models.RedemptionStatus.ALREADY_MEMBER, study_group_id=group_id)
			if invite.expires_at is not None and now > invite.expires_at:
				return models.RedemptionOutcome(status=models.RedemptionStatus.EXPIRED, study_group_id=group_id)
			if invite.max_uses is not None and invite.current_uses >= invite.max_uses:
				return models.RedemptionOutcome(status=models.RedemptionStatus.EXHAUSTED, study_group_id=group_id)
			# Yield while holding the row lock so racing redeemers really interleave
			await asyncio.sleep(0)
			self.invitations[code] = invite.model_copy(update={"current_uses": invite.current_uses + 1})
			self._insert_member(group_id, user_id, "member")
			return models.RedemptionOutcome(
				status=models.RedemptionStatus.JOINED,
				study_group_id=group_id,
				member_count=self.member_count(group_id),
			)


@pytest.fixture
def memory_repo() -> InMemoryEngagementRepository:
	return InMemoryEngagementRepository()
