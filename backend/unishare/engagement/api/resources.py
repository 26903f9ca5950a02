"""Author-only routes for editing and deleting resources."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.resources_service import ResourcesService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:resources"])
_service = ResourcesService()


@router.post("/resources/{resource_id}/edit", response_model=dto.SuccessResponse, response_model_exclude_none=True)
async def edit_resource_endpoint(
	resource_id: UUID,
	payload: dto.ResourceEditRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.SuccessResponse:
	try:
		return await _service.edit(auth_user, resource_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/resources/{resource_id}/delete", response_model=dto.SuccessResponse, response_model_exclude_none=True)
async def delete_resource_endpoint(
	resource_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.SuccessResponse:
	try:
		return await _service.delete(auth_user, resource_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
