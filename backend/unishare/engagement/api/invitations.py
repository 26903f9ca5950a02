"""Invitation code routes for private study groups."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.invitations_service import InvitationsService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:invitations"])
_service = InvitationsService()


@router.post("/study-groups/invitations", response_model=dto.InvitationEnvelope, status_code=201)
async def create_invitation_endpoint(
	payload: dto.InvitationCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.InvitationEnvelope:
	try:
		return await _service.create(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/study-groups/invitations", response_model=dto.InvitationListResponse)
async def list_invitations_endpoint(
	study_group_id: UUID = Query(alias="studyGroupId"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.InvitationListResponse:
	try:
		return await _service.list_invitations(auth_user, study_group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/study-groups/invitations/use", response_model=dto.InvitationUseResponse)
async def use_invitation_endpoint(
	payload: dto.InvitationUseRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.InvitationUseResponse:
	try:
		return await _service.redeem(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
