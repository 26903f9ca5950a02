"""Follow routes between user profiles."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.follows_service import FollowsService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:follows"])
_service = FollowsService()


@router.post("/users/{user_id}/follow", response_model=dto.FollowResponse)
async def toggle_follow_endpoint(
	user_id: UUID,
	payload: dto.FollowRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FollowResponse:
	try:
		return await _service.toggle(auth_user, user_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/users/{user_id}/follow", response_model=dto.FollowStateResponse)
async def follow_state_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FollowStateResponse:
	try:
		return await _service.state(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
