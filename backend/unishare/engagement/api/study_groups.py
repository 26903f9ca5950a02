"""Study group membership, discovery and management routes."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.study_groups_service import StudyGroupsService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:study-groups"])
_service = StudyGroupsService()


@router.get("/study-groups/list", response_model=dto.StudyGroupListResponse)
async def list_study_groups_endpoint(
	limit: int = Query(default=6, ge=1, le=50),
	offset: int = Query(default=0, ge=0),
	search: Optional[str] = Query(default=None, max_length=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.StudyGroupListResponse:
	try:
		return await _service.list_groups(auth_user, limit=limit, offset=offset, search=search)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/study-groups/{group_id}/join", response_model=dto.MembershipResponse)
async def join_study_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipResponse:
	try:
		return await _service.join(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/study-groups/{group_id}/membership", response_model=dto.MembershipResponse)
async def membership_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipResponse:
	try:
		return await _service.membership(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/study-groups/{group_id}/delete", response_model=dto.SuccessResponse)
async def delete_study_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.SuccessResponse:
	try:
		return await _service.delete_group(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/study-groups/{group_id}/members/{user_id}", response_model=dto.GroupMemberResponse)
async def change_member_role_endpoint(
	group_id: UUID,
	user_id: UUID,
	payload: dto.MemberRoleRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupMemberResponse:
	try:
		return await _service.change_role(auth_user, group_id, user_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/study-groups/{group_id}/members/{user_id}", response_model=dto.MembershipResponse)
async def remove_member_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipResponse:
	try:
		return await _service.remove_member(auth_user, group_id, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
