from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest

from unishare.engagement.domain import models
from unishare.engagement.domain import repo as repo_module


class _RecordingConnection:
	"""Stands in for an asyncpg connection and keeps every statement in order."""

	def __init__(self, *, rows: list[dict[str, Any]] | None = None) -> None:
		self.statements: list[tuple[str, tuple[Any, ...]]] = []
		self._rows = list(rows or [])

	def _record(self, sql: str, args: tuple[Any, ...]) -> str:
		text = " ".join(sql.split())
		self.statements.append((text, args))
		return text

	@asynccontextmanager
	async def transaction(self):
		yield

	async def execute(self, sql: str, *args: Any) -> str:
		text = self._record(sql, args)
		verb = text.split()[0]
		return "INSERT 0 1" if verb == "INSERT" else f"{verb} 1"

	async def fetchval(self, sql: str, *args: Any) -> Any:
		text = self._record(sql, args)
		if text.startswith("SELECT 1 FROM study_group_members"):
			return None
		return 3

	async def fetchrow(self, sql: str, *args: Any) -> Any:
		self._record(sql, args)
		return self._rows.pop(0) if self._rows else None

	def index_of(self, prefix: str) -> int:
		for idx, (text, _) in enumerate(self.statements):
			if text.startswith(prefix):
				return idx
		raise AssertionError(f"no statement starting with {prefix!r} in {self.statements}")


class _RecordingPool:
	def __init__(self, conn: _RecordingConnection) -> None:
		self.conn = conn

	@asynccontextmanager
	async def acquire(self):
		yield self.conn


@pytest.fixture
def recording_conn(monkeypatch):
	conn = _RecordingConnection()
	pool = _RecordingPool(conn)

	async def _get_pool():
		return pool

	monkeypatch.setattr(repo_module, "get_pool", _get_pool)
	return conn


@pytest.mark.asyncio
async def test_like_locks_resource_before_inserting_and_recounting(recording_conn):
	resource_id = uuid4()

	inserted, count = await repo_module.EngagementRepository().add_like(resource_id, uuid4())

	assert (inserted, count) == (True, 3)
	assert recording_conn.statements[0] == ("SELECT 1 FROM resources WHERE id=$1 FOR UPDATE", (resource_id,))
	assert recording_conn.index_of("INSERT INTO resource_likes") > 0
	assert recording_conn.index_of("SELECT COUNT(*) FROM resource_likes") > recording_conn.index_of("INSERT INTO resource_likes")
	assert recording_conn.statements[-1][0] == "UPDATE resources SET likes=$2 WHERE id=$1"


@pytest.mark.asyncio
async def test_comment_writes_lock_resource_first(recording_conn):
	resource_id = uuid4()
	recording_conn._rows.append(
		{
			"id": uuid4(),
			"resource_id": resource_id,
			"user_id": uuid4(),
			"content": "thanks!",
			"created_at": datetime.now(timezone.utc),
		}
	)
	repo = repo_module.EngagementRepository()

	_, count = await repo.create_comment(resource_id=resource_id, user_id=uuid4(), content="thanks!")
	assert count == 3
	assert recording_conn.statements[0][0] == "SELECT 1 FROM resources WHERE id=$1 FOR UPDATE"

	recording_conn.statements.clear()
	await repo.delete_comment(resource_id, uuid4())
	assert recording_conn.statements[0][0] == "SELECT 1 FROM resources WHERE id=$1 FOR UPDATE"
	assert recording_conn.index_of("DELETE FROM resource_comments") == 1


@pytest.mark.asyncio
async def test_follow_locks_both_profiles_in_stable_order(recording_conn):
	first, second = sorted([uuid4(), uuid4()])
	repo = repo_module.EngagementRepository()

	await repo.add_follow(target_id=second, follower_id=first)
	forward = [args for text, args in recording_conn.statements if text.endswith("FOR UPDATE")]
	recording_conn.statements.clear()
	await repo.remove_follow(target_id=first, follower_id=second)
	backward = [args for text, args in recording_conn.statements if text.endswith("FOR UPDATE")]

	assert forward == backward == [(first,), (second,)]
	assert recording_conn.statements[0][0] == "SELECT 1 FROM user_profiles WHERE id=$1 FOR UPDATE"


@pytest.mark.asyncio
async def test_membership_writes_lock_group_before_recount(recording_conn):
	group_id = uuid4()
	repo = repo_module.EngagementRepository()

	await repo.add_member(group_id, uuid4())
	assert recording_conn.statements[0] == ("SELECT 1 FROM study_groups WHERE id=$1 FOR UPDATE", (group_id,))

	recording_conn.statements.clear()
	removed, count = await repo.remove_member(group_id, uuid4())
	assert (removed, count) == (True, 3)
	assert recording_conn.statements[0] == ("SELECT 1 FROM study_groups WHERE id=$1 FOR UPDATE", (group_id,))
	assert recording_conn.statements[-1][0] == "UPDATE study_groups SET member_count=$2 WHERE id=$1"


@pytest.mark.asyncio
async def test_redeem_locks_invitation_row_then_group(recording_conn):
	group_id = uuid4()
	recording_conn._rows.append(
		{
			"id": uuid4(),
			"study_group_id": group_id,
			"expires_at": None,
			"max_uses": 1,
			"current_uses": 0,
		}
	)

	outcome = await repo_module.EngagementRepository().redeem_invitation("ABCD2345", uuid4())

	assert outcome.status is models.RedemptionStatus.JOINED
	assert outcome.member_count == 3
	assert recording_conn.statements[0] == (
		"SELECT * FROM study_group_invitations WHERE code=$1 FOR UPDATE",
		("ABCD2345",),
	)
	group_lock = recording_conn.index_of("SELECT 1 FROM study_groups WHERE id=$1 FOR UPDATE")
	assert group_lock < recording_conn.index_of("UPDATE study_group_invitations SET current_uses")
	assert group_lock < recording_conn.index_of("INSERT INTO study_group_members")
