"""Tagged success/error results returned by every client call.

Network-boundary failures never escape as exceptions; callers branch on
``result.ok`` and read either ``value`` or ``error``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, enum.Enum):
	NETWORK = "network"
	VALIDATION = "validation"
	AUTHORIZATION = "authorization"
	NOT_FOUND = "not_found"
	CONFLICT = "conflict"
	EXPIRED = "expired"
	EXHAUSTED = "exhausted"
	SERVER = "server"


DEFAULT_MESSAGES = {
	ErrorKind.NETWORK: "Network error. Please check your connection and try again.",
	ErrorKind.VALIDATION: "The request was invalid.",
	ErrorKind.AUTHORIZATION: "You are not authorized to perform this action.",
	ErrorKind.NOT_FOUND: "The requested item could not be found.",
	ErrorKind.CONFLICT: "This action conflicts with the current state.",
	ErrorKind.EXPIRED: "This invitation has expired.",
	ErrorKind.EXHAUSTED: "This invitation has reached its maximum number of uses.",
	ErrorKind.SERVER: "An unexpected error occurred.",
}

# Server error codes with a more specific message than their kind's default
DETAIL_MESSAGES = {
	"invitation_not_found": "Invalid invitation code.",
	"invitation_expired": "This invitation has expired.",
	"invitation_exhausted": "This invitation has reached its maximum number of uses.",
	"invitation_code_required": "Please enter an invitation code.",
	"cannot_follow_self": "You cannot follow yourself.",
	"user_not_found": "User not found.",
	"resource_not_found": "Resource not found.",
	"comment_required": "Comment cannot be empty.",
	"comment_too_long": "Comment is too long.",
	"comment_inappropriate_language": "Comment contains inappropriate language.",
	"not_resource_author": "You are not authorized to edit this resource.",
	"not_comment_owner": "You can only delete your own comments.",
	"invitation_required": "This study group requires an invitation.",
	"membership_required": "You must be a member to view this study group.",
	"rate_limited": "You're doing that too often. Please wait a moment.",
	"authentication_required": "Please sign in to continue.",
}


def kind_for_status(status: int, detail: Optional[str] = None) -> ErrorKind:
	if status == 409:
		return ErrorKind.EXHAUSTED if detail == "invitation_exhausted" else ErrorKind.CONFLICT
	if status == 410:
		return ErrorKind.EXPIRED
	if status == 404:
		return ErrorKind.NOT_FOUND
	if status in (401, 403):
		return ErrorKind.AUTHORIZATION
	if 400 <= status < 500 and status != 429:
		return ErrorKind.VALIDATION
	return ErrorKind.SERVER


@dataclass(frozen=True, slots=True)
class ApiError:
	kind: ErrorKind
	message: str
	status: Optional[int] = None
	detail: Optional[str] = None

	@classmethod
	def of(cls, kind: ErrorKind, *, status: Optional[int] = None, detail: Optional[str] = None) -> "ApiError":
		message = DETAIL_MESSAGES.get(detail or "") or DEFAULT_MESSAGES[kind]
		return cls(kind=kind, message=message, status=status, detail=detail)

	@classmethod
	def from_status(cls, status: int, detail: Optional[str] = None) -> "ApiError":
		return cls.of(kind_for_status(status, detail), status=status, detail=detail)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
	value: T
	ok: ClassVar[bool] = True

	def map(self, fn: Callable[[T], U]) -> "Ok[U]":
		return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err:
	error: ApiError
	ok: ClassVar[bool] = False

	def map(self, fn: Callable[[Any], Any]) -> "Err":
		return self


Result = Union[Ok[T], Err]
