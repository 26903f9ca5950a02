from __future__ import annotations

import asyncio

import pytest

from unishare.client.mutations import ActionKind, MutationStatus, OptimisticMutationHandler
from unishare.client.reconcile import CounterReconciler
from unishare.client.results import DEFAULT_MESSAGES, ApiError, Err, ErrorKind, Ok
from unishare.client.view import LocalEngagementView


def _handler(like_count: int = 5, **flags):
	view = LocalEngagementView(target_id="r1", like_count=like_count, **flags)
	reconciler = CounterReconciler(view)
	return view, reconciler, OptimisticMutationHandler(view, reconciler, animation_seconds=0.01)


def _settle_like(count: int) -> dict:
	return {"like_count": count, "has_liked": True}


@pytest.mark.asyncio
async def test_like_applies_then_second_like_is_a_local_noop():
	view, _, handler = _handler()
	calls = 0

	async def _send():
		nonlocal calls
		calls += 1
		return Ok(6)

	first = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)
	second = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert first.status is MutationStatus.APPLIED
	assert second.status is MutationStatus.NOOP and second.succeeded
	assert calls == 1
	assert (view.like_count, view.has_liked) == (6, True)


@pytest.mark.asyncio
async def test_optimistic_value_visible_while_request_in_flight():
	view, _, handler = _handler()
	seen: list[tuple[int, bool]] = []

	async def _send():
		seen.append((view.like_count, view.has_liked))
		return Ok(6)

	await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert seen == [(6, True)]


@pytest.mark.asyncio
async def test_failure_reverts_and_surfaces_error():
	view, _, handler = _handler()

	async def _send():
		return Err(ApiError.of(ErrorKind.NETWORK))

	outcome = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert outcome.status is MutationStatus.FAILED
	assert outcome.error.kind is ErrorKind.NETWORK
	assert (view.like_count, view.has_liked) == (5, False)
	assert view.error == DEFAULT_MESSAGES[ErrorKind.NETWORK]


@pytest.mark.asyncio
async def test_failure_keeps_authoritative_value_that_landed_meanwhile():
	view, reconciler, handler = _handler()

	async def _send():
		reconciler.apply(reconciler.issue(), "like", {"like_count": 9, "has_liked": False})
		return Err(ApiError.of(ErrorKind.SERVER))

	await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert view.like_count == 9
	assert view.error is not None


@pytest.mark.asyncio
async def test_failure_keeps_refetch_issued_before_the_click():
	view, reconciler, handler = _handler()
	# A refetch started before the click, so its ticket is older than the mutation's
	refetch_ticket = reconciler.issue()

	async def _send():
		reconciler.apply(refetch_ticket, "like", {"like_count": 6, "has_liked": False})
		return Err(ApiError.of(ErrorKind.NETWORK))

	outcome = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert outcome.status is MutationStatus.FAILED
	assert (view.like_count, view.has_liked) == (6, False)
	assert view.error == DEFAULT_MESSAGES[ErrorKind.NETWORK]


@pytest.mark.asyncio
async def test_animation_flag_clears_after_duration():
	view, _, handler = _handler()

	async def _send():
		return Ok(6)

	await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)
	assert view.like_animating is True
	await asyncio.sleep(0.05)
	assert view.like_animating is False


@pytest.mark.asyncio
async def test_second_request_for_same_target_is_busy():
	view, _, handler = _handler(comment_count=1)
	release = asyncio.Event()

	async def _send():
		await release.wait()
		return Ok(0)

	first = asyncio.create_task(
		handler.run(ActionKind.DELETE_COMMENT, "c1", _send, settle=lambda count: {"comment_count": count})
	)
	await asyncio.sleep(0)
	assert handler.is_pending(ActionKind.DELETE_COMMENT, "c1")

	busy = await handler.run(ActionKind.DELETE_COMMENT, "c1", _send)
	release.set()
	done = await first

	assert busy.status is MutationStatus.BUSY
	assert done.status is MutationStatus.APPLIED
	assert view.comment_count == 0


@pytest.mark.asyncio
async def test_idempotent_conflict_is_success_and_refetches():
	view, reconciler, handler = _handler()

	async def _send():
		return Err(ApiError.of(ErrorKind.CONFLICT, status=409))

	async def _refetch():
		return reconciler.apply(reconciler.issue(), "like", {"like_count": 12, "has_liked": True})

	outcome = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like, refetch=_refetch)

	assert outcome.status is MutationStatus.APPLIED
	assert view.error is None
	assert (view.like_count, view.has_liked) == (12, True)


@pytest.mark.asyncio
async def test_conflict_on_comment_post_is_a_failure():
	view, _, handler = _handler(comment_count=2)

	async def _send():
		return Err(ApiError.of(ErrorKind.CONFLICT, status=409))

	outcome = await handler.run(ActionKind.POST_COMMENT, "r1", _send)

	assert outcome.status is MutationStatus.FAILED
	assert view.comment_count == 2


@pytest.mark.asyncio
async def test_response_after_unmount_is_dropped():
	view, _, handler = _handler()

	async def _send():
		view.unmount()
		return Err(ApiError.of(ErrorKind.SERVER))

	outcome = await handler.run(ActionKind.LIKE, "r1", _send, settle=_settle_like)

	assert outcome.status is MutationStatus.DROPPED
	assert view.error is None
	assert await handler.run(ActionKind.LIKE, "r1", _send) == outcome
	handler.dispose()


@pytest.mark.asyncio
async def test_unfollow_decrements_and_clears_flag():
	view = LocalEngagementView(target_id="u2", followers_count=3, is_following=True)
	handler = OptimisticMutationHandler(view, CounterReconciler(view))

	async def _send():
		return Ok(None)

	outcome = await handler.run(ActionKind.UNFOLLOW, "u2", _send)

	assert outcome.status is MutationStatus.APPLIED
	assert (view.followers_count, view.is_following) == (2, False)
