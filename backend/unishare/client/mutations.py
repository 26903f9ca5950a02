"""One optimistic-then-reconcile state machine shared by every action kind."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from unishare.client.reconcile import CounterReconciler
from unishare.client.results import ApiError, ErrorKind, Result
from unishare.client.view import LocalEngagementView
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

LIKE_ANIMATION_SECONDS = 0.8


class ActionKind(str, enum.Enum):
	LIKE = "like"
	FOLLOW = "follow"
	UNFOLLOW = "unfollow"
	JOIN_GROUP = "join_group"
	POST_COMMENT = "post_comment"
	DELETE_COMMENT = "delete_comment"


@dataclass(frozen=True)
class ActionSpec:
	channel: str
	counter: str
	delta: int
	flag: Optional[str] = None
	flag_value: bool = True
	animate: bool = False
	# Server "already done" conflicts count as success for these
	idempotent: bool = False


ACTIONS = {
	ActionKind.LIKE: ActionSpec("like", "like_count", +1, flag="has_liked", animate=True, idempotent=True),
	ActionKind.FOLLOW: ActionSpec("follow", "followers_count", +1, flag="is_following", idempotent=True),
	ActionKind.UNFOLLOW: ActionSpec(
		"follow", "followers_count", -1, flag="is_following", flag_value=False, idempotent=True
	),
	ActionKind.JOIN_GROUP: ActionSpec("membership", "member_count", +1, flag="is_member", idempotent=True),
	ActionKind.POST_COMMENT: ActionSpec("comments", "comment_count", +1),
	ActionKind.DELETE_COMMENT: ActionSpec("comments", "comment_count", -1),
}


class MutationStatus(str, enum.Enum):
	APPLIED = "applied"
	NOOP = "noop"
	BUSY = "busy"
	FAILED = "failed"
	DROPPED = "dropped"


@dataclass(frozen=True)
class MutationOutcome:
	status: MutationStatus
	error: Optional[ApiError] = None

	@property
	def succeeded(self) -> bool:
		return self.status in (MutationStatus.APPLIED, MutationStatus.NOOP)


class OptimisticMutationHandler:
	"""Run state-changing actions against one view.

	Per call: precondition check, optimistic update, request, then either a
	full-replace settle from the response or a revert with a visible error.
	At most one request per (kind, target) is outstanding at a time.
	"""

	def __init__(
		self,
		view: LocalEngagementView,
		reconciler: CounterReconciler,
		*,
		animation_seconds: float = LIKE_ANIMATION_SECONDS,
	) -> None:
		self.view = view
		self.reconciler = reconciler
		self.animation_seconds = animation_seconds
		self._pending: set[tuple[ActionKind, str]] = set()
		self._timers: set[asyncio.TimerHandle] = set()

	def is_pending(self, kind: ActionKind, target: str) -> bool:
		return (kind, target) in self._pending

	def is_terminal(self, kind: ActionKind) -> bool:
		spec = ACTIONS[kind]
		return spec.flag is not None and getattr(self.view, spec.flag) == spec.flag_value

	async def run(
		self,
		kind: ActionKind,
		target: str,
		send: Callable[[], Awaitable[Result[T]]],
		*,
		settle: Optional[Callable[[T], dict[str, Any]]] = None,
		refetch: Optional[Callable[[], Awaitable[bool]]] = None,
	) -> MutationOutcome:
		if not self.view.mounted:
			return MutationOutcome(MutationStatus.DROPPED)
		if self.is_terminal(kind):
			return MutationOutcome(MutationStatus.NOOP)
		key = (kind, target)
		if key in self._pending:
			return MutationOutcome(MutationStatus.BUSY)

		spec = ACTIONS[kind]
		self._pending.add(key)
		tracked = (spec.counter,) if spec.flag is None else (spec.counter, spec.flag)
		before = self.view.snapshot(*tracked)
		baseline = self.reconciler.last_applied(spec.channel)
		optimistic = {spec.counter: getattr(self.view, spec.counter) + spec.delta}
		if spec.flag is not None:
			optimistic[spec.flag] = spec.flag_value
		self.view.update(error=None, **optimistic)
		if spec.animate:
			self._start_animation()
		ticket = self.reconciler.issue()
		try:
			result = await send()
		finally:
			self._pending.discard(key)

		if not self.view.mounted:
			return MutationOutcome(MutationStatus.DROPPED)
		if result.ok:
			await self._settle(spec, ticket, result.value, settle, refetch)
			return MutationOutcome(MutationStatus.APPLIED)
		if spec.idempotent and result.error.kind is ErrorKind.CONFLICT:
			if refetch is not None:
				await refetch()
			return MutationOutcome(MutationStatus.APPLIED)

		# Any authoritative value that landed in flight is fresher than the snapshot
		if self.reconciler.last_applied(spec.channel) == baseline:
			self.view.update(**before)
		self.view.update(error=result.error.message)
		safe_log(
			_LOG,
			logging.INFO,
			"mutation_failed",
			action=kind.value,
			target_id=target,
			kind=result.error.kind.value,
		)
		return MutationOutcome(MutationStatus.FAILED, error=result.error)

	async def _settle(
		self,
		spec: ActionSpec,
		ticket: int,
		value: Any,
		settle: Optional[Callable[[Any], dict[str, Any]]],
		refetch: Optional[Callable[[], Awaitable[bool]]],
	) -> None:
		if settle is not None:
			self.reconciler.apply(ticket, spec.channel, settle(value))
		elif refetch is not None:
			await refetch()

	def _start_animation(self) -> None:
		self.view.update(like_animating=True)
		loop = asyncio.get_running_loop()
		handle: asyncio.TimerHandle

		def _clear() -> None:
			self._timers.discard(handle)
			self.view.update(like_animating=False)

		handle = loop.call_later(self.animation_seconds, _clear)
		self._timers.add(handle)

	def dispose(self) -> None:
		for handle in self._timers:
			handle.cancel()
		self._timers.clear()
