"""Authoritative counter reconciliation.

Reads and mutation responses are stamped with a ticket when issued. A value
lands in the view only if its ticket is newer than the last one applied on the
same channel, so a slow stale read never overwrites a fresher one. Values are
always full replacements.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from unishare.client.results import Result
from unishare.client.view import LocalEngagementView
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


class CounterReconciler:
	def __init__(self, view: LocalEngagementView) -> None:
		self.view = view
		self._tickets = itertools.count(1)
		self._applied: dict[str, int] = {}

	def issue(self) -> int:
		return next(self._tickets)

	def last_applied(self, channel: str) -> int:
		return self._applied.get(channel, 0)

	def apply(self, ticket: int, channel: str, updates: dict[str, Any]) -> bool:
		if not self.view.mounted:
			return False
		if ticket <= self.last_applied(channel):
			return False
		self._applied[channel] = ticket
		return self.view.update(**updates)

	async def refetch(
		self,
		channel: str,
		fetch: Callable[[], Awaitable[Result[T]]],
		project: Callable[[T], dict[str, Any]],
	) -> bool:
		"""Read the authoritative value and apply it unless a fresher one already landed."""
		ticket = self.issue()
		result = await fetch()
		if not result.ok:
			safe_log(
				_LOG,
				logging.INFO,
				"refetch_failed",
				channel=channel,
				target_id=self.view.target_id,
				kind=result.error.kind.value,
			)
			return False
		return self.apply(ticket, channel, project(result.value))


def projection(**mapping: str) -> Callable[[Any], dict[str, Any]]:
	"""Build a projection copying result attributes onto view fields.

	``projection(like_count="like_count", has_liked="has_liked")``
	"""

	def _project(value: Any) -> dict[str, Any]:
		return {view_name: getattr(value, attr) for view_name, attr in mapping.items()}

	return _project


__all__ = ["CounterReconciler", "projection"]
