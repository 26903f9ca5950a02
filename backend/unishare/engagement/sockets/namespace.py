"""Socket.IO namespace carrying row-level change notifications."""

from __future__ import annotations

import re
from typing import Dict, Optional, Set
from uuid import UUID

import socketio
from fastapi import HTTPException

from unishare.engagement.domain import repo as repo_module
from unishare.infra.auth import AuthenticatedUser, verify_access_jwt
from unishare.obs import metrics as obs_metrics
from unishare.settings import settings

# table -> column that a subscription may filter on
WATCHABLE_TABLES = {
	"resources": "id",
	"resource_likes": "resource_id",
	"resource_comments": "resource_id",
	"study_groups": "id",
	"study_group_members": "study_group_id",
	"user_followers": "user_id",
}
_GROUP_TABLES = {"study_groups", "study_group_members"}
_FILTER_RE = re.compile(r"^(?P<column>[a-z_]+)=eq\.(?P<value>[0-9a-fA-F-]{36})$")


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def parse_filter(table: str, filter_expr: str) -> UUID:
	"""Validate a ``column=eq.<uuid>`` filter for ``table`` and return the id."""
	column = WATCHABLE_TABLES.get(table)
	if column is None:
		raise ValueError("table_not_watchable")
	match = _FILTER_RE.match(filter_expr or "")
	if not match or match.group("column") != column:
		raise ValueError("invalid_filter")
	return UUID(match.group("value"))


class RealtimeNamespace(socketio.AsyncNamespace):
	"""Clients join one room per watched table/filter pair."""

	def __init__(self, *, repository: repo_module.EngagementRepository | None = None) -> None:
		super().__init__("/realtime")
		self.repo = repository or repo_module.EngagementRepository()
		self._sessions: Dict[str, AuthenticatedUser] = {}
		self._rooms: Dict[str, Set[str]] = {}

	@staticmethod
	def room_name(table: str, filter_expr: str) -> str:
		return f"{table}:{filter_expr}"

	def _resolve_user(self, environ: dict, auth: Optional[dict]) -> AuthenticatedUser:
		"""Same rules as HTTP: a session JWT, or a bare user id in development only."""
		scope = environ.get("asgi.scope", environ)
		payload = auth or {}
		token = payload.get("token")
		if not token:
			bearer = _header(scope, "authorization") or ""
			scheme, _, value = bearer.partition(" ")
			if scheme.lower() == "bearer" and value:
				token = value.strip()
		if token:
			try:
				return verify_access_jwt(str(token))
			except HTTPException as exc:
				raise ConnectionRefusedError(exc.detail) from exc
		if not settings.is_dev():
			raise ConnectionRefusedError("authentication_required")
		user_id = payload.get("userId") or _header(scope, "x-user-id")
		if not user_id:
			raise ConnectionRefusedError("missing user id")
		return AuthenticatedUser(id=str(user_id), university_id=payload.get("universityId"))

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		user = self._resolve_user(environ, auth)
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user
		self._rooms[sid] = set()

	async def on_disconnect(self, sid: str, *args) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		for room in self._rooms.pop(sid, set()):
			await self.leave_room(sid, room)
		self._sessions.pop(sid, None)

	async def on_subscribe(self, sid: str, data: dict) -> dict:
		user = self._sessions.get(sid)
		if user is None:
			return {"ok": False, "error": "not_connected"}
		table = str((data or {}).get("table") or "")
		filter_expr = str((data or {}).get("filter") or "")
		try:
			target_id = parse_filter(table, filter_expr)
		except ValueError as exc:
			return {"ok": False, "error": str(exc)}
		if table in _GROUP_TABLES:
			group = await self.repo.get_study_group(target_id)
			if group is None:
				return {"ok": False, "error": "study_group_not_found"}
			if group.is_private:
				membership = await self.repo.get_membership(target_id, UUID(user.id))
				if membership is None:
					return {"ok": False, "error": "membership_required"}
		room = self.room_name(table, filter_expr)
		await self.enter_room(sid, room)
		self._rooms.setdefault(sid, set()).add(room)
		return {"ok": True, "room": room}

	async def on_unsubscribe(self, sid: str, data: dict) -> dict:
		room = self.room_name(str((data or {}).get("table") or ""), str((data or {}).get("filter") or ""))
		rooms = self._rooms.get(sid, set())
		if room in rooms:
			rooms.discard(room)
			await self.leave_room(sid, room)
		return {"ok": True}
