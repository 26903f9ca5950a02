"""Invitation codes that admit actors into private study groups."""

from __future__ import annotations

from uuid import UUID

from unishare.engagement.domain import events, models, policies, repo as repo_module
from unishare.engagement.domain.exceptions import (
	ConflictError,
	InvitationExhausted,
	InvitationExpired,
	NotFoundError,
)
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser
from unishare.obs import metrics as obs_metrics

_CODE_ATTEMPTS = 5


class InvitationsService:
	"""Create, list and redeem study group invitations."""

	def __init__(self, *, repository: repo_module.EngagementRepository | None = None) -> None:
		self.repo = repository or repo_module.EngagementRepository()

	@staticmethod
	def _to_response(invitation: models.Invitation) -> dto.InvitationResponse:
		return dto.InvitationResponse(**invitation.model_dump())

	async def _require_manager(self, user: AuthenticatedUser, group_id: UUID) -> models.StudyGroup:
		group = await self.repo.get_study_group(group_id)
		if group is None:
			raise NotFoundError("study_group_not_found")
		membership = await self.repo.get_membership(group_id, UUID(user.id))
		policies.assert_can_manage_invitations(group, membership, UUID(user.id))
		return group

	async def create(self, user: AuthenticatedUser, payload: dto.InvitationCreateRequest) -> dto.InvitationEnvelope:
		policies.ensure_invitation_params(payload.expires_in_hours, payload.max_uses)
		group = await self._require_manager(user, payload.study_group_id)
		expires_at = policies.invitation_expiry(payload.expires_in_hours)
		invitation: models.Invitation | None = None
		for _ in range(_CODE_ATTEMPTS):
			try:
				invitation = await self.repo.create_invitation(
					group_id=group.id,
					code=policies.generate_invitation_code(),
					created_by=UUID(user.id),
					expires_at=expires_at,
					max_uses=payload.max_uses,
				)
				break
			except ConflictError:
				continue
		if invitation is None:
			raise ConflictError("invitation_code_unavailable")
		obs_metrics.inc_invitation_created()
		return dto.InvitationEnvelope(invitation=self._to_response(invitation))

	async def list_invitations(self, user: AuthenticatedUser, group_id: UUID) -> dto.InvitationListResponse:
		await self._require_manager(user, group_id)
		invitations = await self.repo.list_invitations(group_id)
		return dto.InvitationListResponse(invitations=[self._to_response(item) for item in invitations])

	async def redeem(self, user: AuthenticatedUser, payload: dto.InvitationUseRequest) -> dto.InvitationUseResponse:
		"""Join the invitation's group; already-members succeed without using up the code."""
		code = policies.normalise_invitation_code(payload.code)
		user_id = UUID(user.id)
		outcome = await self.repo.redeem_invitation(code, user_id)
		obs_metrics.inc_invitation_redemption(outcome.status.value)
		if outcome.status is models.RedemptionStatus.NOT_FOUND:
			raise NotFoundError("invitation_not_found")
		if outcome.status is models.RedemptionStatus.EXPIRED:
			raise InvitationExpired()
		if outcome.status is models.RedemptionStatus.EXHAUSTED:
			raise InvitationExhausted()

		if outcome.study_group_id is None:
			raise NotFoundError("study_group_not_found")
		if outcome.status is models.RedemptionStatus.ALREADY_MEMBER:
			return dto.InvitationUseResponse(
				study_group_id=outcome.study_group_id,
				message="You are already a member of this study group",
				already_member=True,
			)
		await events.membership_added(outcome.study_group_id, user_id, outcome.member_count or 0)
		return dto.InvitationUseResponse(
			study_group_id=outcome.study_group_id,
			message="Successfully joined the study group",
		)
