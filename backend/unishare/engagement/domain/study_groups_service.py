"""Study group joins, discovery and creator/admin management of members."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from unishare.engagement.domain import events, models, policies, repo as repo_module
from unishare.engagement.domain.exceptions import NotFoundError
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser
from unishare.obs import metrics as obs_metrics


class StudyGroupsService:
	def __init__(self, *, repository: repo_module.EngagementRepository | None = None) -> None:
		self.repo = repository or repo_module.EngagementRepository()

	@staticmethod
	def _group_to_response(group: models.StudyGroup) -> dto.StudyGroupResponse:
		return dto.StudyGroupResponse(**group.model_dump())

	async def join(self, user: AuthenticatedUser, group_id: UUID) -> dto.MembershipResponse:
		"""Join a public group; joining twice leaves the member count alone."""
		group = await self.repo.get_study_group(group_id)
		if group is None:
			raise NotFoundError("study_group_not_found")
		policies.assert_can_join_directly(group)
		user_id = UUID(user.id)
		inserted, count = await self.repo.add_member(group.id, user_id)
		obs_metrics.inc_group_join("joined" if inserted else "already_member")
		if inserted:
			await events.membership_added(group.id, user_id, count)
		return dto.MembershipResponse(is_member=True, member_count=count)

	async def membership(self, user: AuthenticatedUser, group_id: UUID) -> dto.MembershipResponse:
		group = await self.repo.get_study_group(group_id)
		state = await self.repo.get_membership_state(group_id, UUID(user.id))
		policies.require_visible_group(group, is_member=state.is_member)
		return dto.MembershipResponse(is_member=state.is_member, member_count=state.member_count)

	async def _require_group(self, group_id: UUID) -> models.StudyGroup:
		group = await self.repo.get_study_group(group_id)
		if group is None:
			raise NotFoundError("study_group_not_found")
		return group

	async def delete_group(self, user: AuthenticatedUser, group_id: UUID) -> dto.SuccessResponse:
		group = await self._require_group(group_id)
		policies.assert_group_creator(group, UUID(user.id))
		await self.repo.delete_study_group(group.id)
		obs_metrics.inc_group_admin_action("delete_group")
		await events.study_group_deleted(group.id)
		return dto.SuccessResponse(message="Study group deleted")

	async def change_role(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		member_id: UUID,
		payload: dto.MemberRoleRequest,
	) -> dto.GroupMemberResponse:
		"""Promote or demote a member. Only the creator may, and never on their own role."""
		group = await self._require_group(group_id)
		policies.assert_can_change_role(group, UUID(user.id), member_id, payload.role)
		membership = await self.repo.update_member_role(group.id, member_id, payload.role)
		if membership is None:
			raise NotFoundError("member_not_found")
		obs_metrics.inc_group_admin_action("promote" if payload.role == "admin" else "demote")
		await events.membership_role_changed(group.id, member_id, membership.role)
		return dto.GroupMemberResponse(**membership.model_dump())

	async def remove_member(self, user: AuthenticatedUser, group_id: UUID, member_id: UUID) -> dto.MembershipResponse:
		"""Remove ``member_id`` and return their (now absent) membership with the recounted total."""
		group = await self._require_group(group_id)
		actor_id = UUID(user.id)
		target = await self.repo.get_membership(group.id, member_id)
		if target is None:
			raise NotFoundError("member_not_found")
		actor = await self.repo.get_membership(group.id, actor_id)
		policies.assert_can_remove_member(group, actor, actor_id, target)
		removed, count = await self.repo.remove_member(group.id, member_id)
		if removed:
			obs_metrics.inc_group_admin_action("remove_member")
			await events.membership_removed(group.id, member_id, count)
		return dto.MembershipResponse(is_member=False, member_count=count)

	async def list_groups(
		self,
		user: AuthenticatedUser,
		*,
		limit: int = 6,
		offset: int = 0,
		search: Optional[str] = None,
	) -> dto.StudyGroupListResponse:
		policies.ensure_list_window(limit, offset)
		user_id = UUID(user.id)
		profile = await self.repo.get_profile(user_id)
		if profile is not None:
			university_id = profile.university_id
		else:
			university_id = UUID(user.university_id) if user.university_id else None
		groups, total = await self.repo.list_public_study_groups(
			university_id=university_id,
			limit=limit,
			offset=offset,
			search=(search or "").strip() or None,
		)
		mine = await self.repo.list_member_groups(user_id)
		return dto.StudyGroupListResponse(
			study_groups=[self._group_to_response(group) for group in groups],
			user_group_ids=[group.id for group in mine],
			my_study_groups=[self._group_to_response(group) for group in mine],
			total_count=total,
		)
