"""Pydantic schemas for the engagement API.

Wire names are camelCase; attributes stay snake_case and either spelling is
accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LikeCountResponse(BaseModel):
	like_count: int = Field(alias="likeCount")

	model_config = {"populate_by_name": True}


class LikeStateResponse(BaseModel):
	has_liked: bool = Field(alias="hasLiked")
	like_count: int = Field(alias="likeCount")

	model_config = {"populate_by_name": True}


class CommentAuthor(BaseModel):
	username: Optional[str] = None
	full_name: Optional[str] = Field(default=None, alias="fullName")

	model_config = {"populate_by_name": True}


class CommentResponse(BaseModel):
	id: UUID
	resource_id: UUID = Field(alias="resourceId")
	user_id: UUID = Field(alias="userId")
	content: str
	created_at: datetime = Field(alias="createdAt")
	author: CommentAuthor

	model_config = {"populate_by_name": True}


class CommentCreateRequest(BaseModel):
	comment: str = Field(..., max_length=2000)


class CommentListResponse(BaseModel):
	comments: List[CommentResponse]
	count: int


class CommentCreatedResponse(BaseModel):
	comment: CommentResponse
	count: int


class CommentDeletedResponse(BaseModel):
	success: bool = True
	count: int


class ResourceEditRequest(BaseModel):
	title: str = Field(..., min_length=1)
	description: Optional[str] = None
	resource_type: str = Field(alias="resourceType")
	course_code: Optional[str] = Field(default=None, alias="courseCode")
	external_link: Optional[str] = Field(default=None, alias="externalLink")

	model_config = {"populate_by_name": True}


class SuccessResponse(BaseModel):
	success: bool = True
	message: Optional[str] = None


class FollowRequest(BaseModel):
	action: Literal["follow", "unfollow"]


class FollowResponse(BaseModel):
	success: bool = True
	action: Literal["follow", "unfollow"]
	message: str


class FollowStateResponse(BaseModel):
	is_following: bool = Field(alias="isFollowing")
	followers_count: int = Field(alias="followersCount")

	model_config = {"populate_by_name": True}


class MembershipResponse(BaseModel):
	is_member: bool = Field(alias="isMember")
	member_count: int = Field(alias="memberCount")

	model_config = {"populate_by_name": True}


class MemberRoleRequest(BaseModel):
	role: Literal["admin", "member"]


class GroupMemberResponse(BaseModel):
	study_group_id: UUID = Field(alias="studyGroupId")
	user_id: UUID = Field(alias="userId")
	role: str
	joined_at: datetime = Field(alias="joinedAt")

	model_config = {"populate_by_name": True}


class StudyGroupResponse(BaseModel):
	id: UUID
	name: str
	description: Optional[str] = None
	course_code: Optional[str] = Field(default=None, alias="courseCode")
	is_private: bool = Field(alias="isPrivate")
	created_by: UUID = Field(alias="createdBy")
	member_count: int = Field(alias="memberCount")
	created_at: datetime = Field(alias="createdAt")

	model_config = {"populate_by_name": True}


class StudyGroupListResponse(BaseModel):
	study_groups: List[StudyGroupResponse] = Field(alias="studyGroups")
	user_group_ids: List[UUID] = Field(alias="userGroupIds")
	my_study_groups: List[StudyGroupResponse] = Field(alias="myStudyGroups")
	total_count: int = Field(alias="totalCount")

	model_config = {"populate_by_name": True}


class InvitationCreateRequest(BaseModel):
	study_group_id: UUID = Field(alias="studyGroupId")
	expires_in_hours: Optional[int] = Field(default=None, alias="expiresInHours")
	max_uses: Optional[int] = Field(default=None, alias="maxUses")

	model_config = {"populate_by_name": True}


class InvitationResponse(BaseModel):
	id: UUID
	study_group_id: UUID = Field(alias="studyGroupId")
	code: str
	created_by: UUID = Field(alias="createdBy")
	expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
	max_uses: Optional[int] = Field(default=None, alias="maxUses")
	current_uses: int = Field(alias="currentUses")
	created_at: datetime = Field(alias="createdAt")

	model_config = {"populate_by_name": True}


class InvitationEnvelope(BaseModel):
	invitation: InvitationResponse


class InvitationListResponse(BaseModel):
	invitations: List[InvitationResponse]


class InvitationUseRequest(BaseModel):
	code: str = Field(..., max_length=64)


class InvitationUseResponse(BaseModel):
	study_group_id: UUID = Field(alias="studyGroupId")
	message: str
	already_member: bool = Field(default=False, alias="alreadyMember")

	model_config = {"populate_by_name": True}
