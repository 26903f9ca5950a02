"""Custom exceptions for engagement services."""

from __future__ import annotations

from fastapi import status


class EngagementError(Exception):
	"""Base class for engagement related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "engagement_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class UnauthorizedError(EngagementError):
	"""Raised when no authenticated actor is present."""

	status_code = status.HTTP_401_UNAUTHORIZED
	detail = "authentication_required"


class NotFoundError(EngagementError):
	"""Thrown when a resource is not visible or missing."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ForbiddenError(EngagementError):
	"""Raised when authorization fails."""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class ConflictError(EngagementError):
	"""Raised for conflicting operations."""

	status_code = status.HTTP_409_CONFLICT
	detail = "conflict"


class ValidationError(EngagementError):
	"""Raised for validation errors not covered by FastAPI schema validation."""

	status_code = status.HTTP_400_BAD_REQUEST
	detail = "validation_error"


class InvitationExpired(EngagementError):
	status_code = status.HTTP_410_GONE
	detail = "invitation_expired"


class InvitationExhausted(ConflictError):
	detail = "invitation_exhausted"


class StorageUnavailable(EngagementError):
	"""Raised when the object store cannot serve a file."""

	status_code = status.HTTP_502_BAD_GATEWAY
	detail = "storage_unavailable"


class RateLimitedError(EngagementError):
	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "rate_limited"
