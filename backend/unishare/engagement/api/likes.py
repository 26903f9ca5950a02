"""Like routes for resources."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.resources_service import ResourcesService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:likes"])
_service = ResourcesService()


@router.post("/resources/{resource_id}/like", response_model=dto.LikeCountResponse)
async def like_resource_endpoint(
	resource_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.LikeCountResponse:
	try:
		return await _service.like(auth_user, resource_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/resources/{resource_id}/like", response_model=dto.LikeStateResponse)
async def like_state_endpoint(
	resource_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.LikeStateResponse:
	try:
		return await _service.like_state(auth_user, resource_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
