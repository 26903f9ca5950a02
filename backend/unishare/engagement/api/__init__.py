"""FastAPI routers for the engagement domain."""

from __future__ import annotations

from fastapi import APIRouter

from unishare.engagement.api import comments, downloads, follows, invitations, likes, resources, study_groups

router = APIRouter(prefix="/api")

router.include_router(likes.router)
router.include_router(comments.router)
router.include_router(downloads.router)
router.include_router(resources.router)
router.include_router(follows.router)
router.include_router(invitations.router)
router.include_router(study_groups.router)

__all__ = ["router"]
