"""Typed HTTP client for the engagement endpoints.

``UniShareClient`` is constructed explicitly and handed to the components
that need it; there is no module level instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import httpx

from unishare.client.results import ApiError, Err, ErrorKind, Ok, Result
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Comment:
	id: str
	resource_id: str
	user_id: str
	content: str
	created_at: str
	author_username: Optional[str] = None
	author_full_name: Optional[str] = None

	@classmethod
	def from_json(cls, body: dict[str, Any]) -> "Comment":
		author = body.get("author") or {}
		return cls(
			id=str(body["id"]),
			resource_id=str(body["resourceId"]),
			user_id=str(body["userId"]),
			content=body["content"],
			created_at=str(body["createdAt"]),
			author_username=author.get("username"),
			author_full_name=author.get("fullName"),
		)


@dataclass(frozen=True, slots=True)
class LikeState:
	has_liked: bool
	like_count: int


@dataclass(frozen=True, slots=True)
class CommentsPage:
	comments: tuple[Comment, ...]
	count: int


@dataclass(frozen=True, slots=True)
class CommentPosted:
	comment: Comment
	count: int


@dataclass(frozen=True, slots=True)
class FollowResult:
	action: str
	message: str


@dataclass(frozen=True, slots=True)
class FollowState:
	is_following: bool
	followers_count: int


@dataclass(frozen=True, slots=True)
class MembershipState:
	is_member: bool
	member_count: int


@dataclass(frozen=True, slots=True)
class Redemption:
	study_group_id: str
	message: str
	already_member: bool = False


@dataclass(frozen=True, slots=True)
class DownloadedFile:
	content: bytes
	content_type: str


def _detail_of(response: httpx.Response) -> Optional[str]:
	try:
		body = response.json()
	except ValueError:
		return None
	if isinstance(body, dict):
		detail = body.get("detail") or body.get("error")
		return detail if isinstance(detail, str) else None
	return None


class UniShareClient:
	"""Thin wrapper over ``httpx.AsyncClient`` returning tagged results."""

	def __init__(
		self,
		base_url: str,
		*,
		token: Optional[str] = None,
		user_id: Optional[str] = None,
		university_id: Optional[str] = None,
		timeout: float = 10.0,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		headers: dict[str, str] = {}
		if token:
			headers["Authorization"] = f"Bearer {token}"
		if user_id:
			headers["X-User-Id"] = user_id
		if university_id:
			headers["X-University-Id"] = university_id
		self.base_url = base_url.rstrip("/")
		self.http = httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)

	async def __aenter__(self) -> "UniShareClient":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	async def aclose(self) -> None:
		await self.http.aclose()

	def download_url(self, resource_id: str) -> str:
		return f"{self.base_url}/api/resources/{resource_id}/download"

	async def _send(self, method: str, path: str, **kwargs: Any) -> Result[httpx.Response]:
		try:
			response = await self.http.request(method, path, **kwargs)
		except httpx.HTTPError as exc:
			safe_log(_LOG, logging.INFO, "client_network_error", method=method, path=path, error=str(exc))
			return Err(ApiError.of(ErrorKind.NETWORK, detail=str(exc)))
		if response.is_success:
			return Ok(response)
		return Err(ApiError.from_status(response.status_code, _detail_of(response)))

	async def _call(self, method: str, path: str, parse: Callable[[dict[str, Any]], T], **kwargs: Any) -> Result[T]:
		result = await self._send(method, path, **kwargs)
		if not result.ok:
			return result
		try:
			return Ok(parse(result.value.json()))
		except (ValueError, KeyError, TypeError):
			safe_log(_LOG, logging.WARNING, "client_malformed_response", method=method, path=path)
			return Err(ApiError.of(ErrorKind.SERVER, detail="malformed_response"))

	# Resources -----------------------------------------------------------

	async def like(self, resource_id: str) -> Result[int]:
		return await self._call("POST", f"/api/resources/{resource_id}/like", lambda body: int(body["likeCount"]))

	async def like_state(self, resource_id: str) -> Result[LikeState]:
		return await self._call(
			"GET",
			f"/api/resources/{resource_id}/like",
			lambda body: LikeState(has_liked=bool(body["hasLiked"]), like_count=int(body["likeCount"])),
		)

	async def list_comments(self, resource_id: str) -> Result[CommentsPage]:
		return await self._call(
			"GET",
			f"/api/resources/{resource_id}/comments",
			lambda body: CommentsPage(
				comments=tuple(Comment.from_json(item) for item in body["comments"]),
				count=int(body["count"]),
			),
		)

	async def post_comment(self, resource_id: str, text: str) -> Result[CommentPosted]:
		return await self._call(
			"POST",
			f"/api/resources/{resource_id}/comments",
			lambda body: CommentPosted(comment=Comment.from_json(body["comment"]), count=int(body["count"])),
			json={"comment": text},
		)

	async def delete_comment(self, resource_id: str, comment_id: str) -> Result[int]:
		return await self._call(
			"DELETE",
			f"/api/resources/{resource_id}/comments",
			lambda body: int(body["count"]),
			params={"commentId": comment_id},
		)

	async def fetch_download(self, resource_id: str) -> Result[DownloadedFile]:
		result = await self._send("GET", f"/api/resources/{resource_id}/download", headers={"Accept": "application/pdf"})
		if not result.ok:
			return result
		response = result.value
		return Ok(DownloadedFile(
			content=response.content,
			content_type=response.headers.get("content-type", "application/pdf"),
		))

	# Follows -------------------------------------------------------------

	async def follow(self, user_id: str) -> Result[FollowResult]:
		return await self._toggle_follow(user_id, "follow")

	async def unfollow(self, user_id: str) -> Result[FollowResult]:
		return await self._toggle_follow(user_id, "unfollow")

	async def _toggle_follow(self, user_id: str, action: str) -> Result[FollowResult]:
		return await self._call(
			"POST",
			f"/api/users/{user_id}/follow",
			lambda body: FollowResult(action=body.get("action") or action, message=body.get("message") or ""),
			json={"action": action},
		)

	async def follow_state(self, user_id: str) -> Result[FollowState]:
		return await self._call(
			"GET",
			f"/api/users/{user_id}/follow",
			lambda body: FollowState(is_following=bool(body["isFollowing"]), followers_count=int(body["followersCount"])),
		)

	# Study groups --------------------------------------------------------

	async def join_group(self, group_id: str) -> Result[MembershipState]:
		return await self._call("POST", f"/api/study-groups/{group_id}/join", _membership)

	async def membership(self, group_id: str) -> Result[MembershipState]:
		return await self._call("GET", f"/api/study-groups/{group_id}/membership", _membership)

	async def redeem_invitation(self, code: str) -> Result[Redemption]:
		return await self._call(
			"POST",
			"/api/study-groups/invitations/use",
			lambda body: Redemption(
				study_group_id=str(body["studyGroupId"]),
				message=body.get("message") or "",
				already_member=bool(body.get("alreadyMember")),
			),
			json={"code": code},
		)


def _membership(body: dict[str, Any]) -> MembershipState:
	return MembershipState(is_member=bool(body["isMember"]), member_count=int(body["memberCount"]))
