"""Domain models for resources, study groups and the edges between them."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Resource(BaseModel):
	"""A shared academic resource (uploaded file or external link)."""

	id: UUID
	author_id: UUID
	title: str
	description: Optional[str] = None
	resource_type: str
	course_code: Optional[str] = None
	file_url: Optional[str] = None
	external_link: Optional[str] = None
	thumbnail_url: Optional[str] = None
	university_id: Optional[UUID] = None
	likes: int = 0
	comment_count: int = 0
	download_count: int = 0
	created_at: datetime
	updated_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_link(self) -> bool:
		return bool(self.external_link)


class ResourceComment(BaseModel):
	id: UUID
	resource_id: UUID
	user_id: UUID
	content: str
	created_at: datetime
	updated_at: Optional[datetime] = None
	author_username: Optional[str] = None
	author_full_name: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class UserProfile(BaseModel):
	id: UUID
	username: Optional[str] = None
	full_name: Optional[str] = None
	university_id: Optional[UUID] = None
	followers_count: int = 0
	following_count: int = 0

	model_config = ConfigDict(from_attributes=True)

	@property
	def display_name(self) -> str:
		return self.username or self.full_name or "this user"


class StudyGroup(BaseModel):
	id: UUID
	name: str
	description: Optional[str] = None
	course_code: Optional[str] = None
	is_private: bool = False
	created_by: UUID
	university_id: Optional[UUID] = None
	member_count: int = 0
	created_at: datetime
	updated_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)


class GroupMembership(BaseModel):
	study_group_id: UUID
	user_id: UUID
	role: str
	joined_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Invitation(BaseModel):
	id: UUID
	study_group_id: UUID
	code: str
	created_by: UUID
	expires_at: Optional[datetime] = None
	max_uses: Optional[int] = None
	current_uses: int = 0
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
	id: UUID
	user_id: UUID
	actor_id: Optional[UUID] = None
	type: str
	title: str
	message: str
	link: Optional[str] = None
	is_read: bool = False
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class RedemptionStatus(str, enum.Enum):
	JOINED = "joined"
	ALREADY_MEMBER = "already_member"
	NOT_FOUND = "not_found"
	EXPIRED = "expired"
	EXHAUSTED = "exhausted"


class RedemptionOutcome(BaseModel):
	"""Result of the atomic check-and-increment performed by the store."""

	status: RedemptionStatus
	study_group_id: Optional[UUID] = None
	member_count: Optional[int] = None

	@property
	def succeeded(self) -> bool:
		return self.status in (RedemptionStatus.JOINED, RedemptionStatus.ALREADY_MEMBER)


class LikeState(BaseModel):
	has_liked: bool
	like_count: int


class CommentsSnapshot(BaseModel):
	comments: list[ResourceComment]
	count: int


class MembershipState(BaseModel):
	is_member: bool
	member_count: int


class FollowState(BaseModel):
	is_following: bool
	followers_count: int
