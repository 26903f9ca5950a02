"""File download route that streams stored documents to the caller."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from starlette.responses import StreamingResponse

from unishare.engagement.api._errors import to_http_error
from unishare.engagement.domain.resources_service import ResourcesService, download_filename
from unishare.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["engagement:downloads"])
_service = ResourcesService()


@router.get("/resources/{resource_id}/download")
async def download_resource_endpoint(
	resource_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StreamingResponse:
	try:
		resource, stored = await _service.open_download(resource_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	headers = {"Content-Disposition": f'attachment; filename="{download_filename(resource)}"'}
	if stored.content_length is not None:
		headers["Content-Length"] = str(stored.content_length)
	return StreamingResponse(stored.chunks, media_type=stored.content_type, headers=headers)


__all__ = ["router"]
