"""Comment routes for resources."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.resources_service import ResourcesService
from unishare.engagement.schemas import dto
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:comments"])
_service = ResourcesService()


@router.get("/resources/{resource_id}/comments", response_model=dto.CommentListResponse)
async def list_comments_endpoint(
	resource_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentListResponse:
	try:
		return await _service.list_comments(resource_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/resources/{resource_id}/comments", response_model=dto.CommentCreatedResponse)
async def create_comment_endpoint(
	resource_id: UUID,
	payload: dto.CommentCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentCreatedResponse:
	try:
		return await _service.create_comment(auth_user, resource_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/resources/{resource_id}/comments", response_model=dto.CommentDeletedResponse)
async def delete_comment_endpoint(
	resource_id: UUID,
	comment_id: UUID = Query(alias="commentId"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentDeletedResponse:
	try:
		return await _service.delete_comment(auth_user, resource_id, comment_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
