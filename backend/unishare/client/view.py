"""Per-component cache of one engaged item's counters and the actor's edges."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional

from unishare.client.api import Comment

COUNTERS = ("like_count", "comment_count", "member_count", "download_count", "followers_count")
FLAGS = ("has_liked", "is_member", "is_following")


@dataclass
class LocalEngagementView:
	"""Owned by exactly one component instance and discarded on unmount.

	Writes after ``unmount()`` are dropped silently so late responses and
	notifications never touch a torn-down view.
	"""

	target_id: str
	like_count: int = 0
	comment_count: int = 0
	member_count: int = 0
	download_count: int = 0
	followers_count: int = 0
	has_liked: bool = False
	is_member: bool = False
	is_following: bool = False
	comments: list[Comment] = field(default_factory=list)
	like_animating: bool = False
	error: Optional[str] = None
	mounted: bool = True

	def unmount(self) -> None:
		self.mounted = False

	def update(self, **changes: Any) -> bool:
		if not self.mounted:
			return False
		known = {item.name for item in fields(self)}
		for name, value in changes.items():
			if name not in known or name in ("target_id", "mounted"):
				raise AttributeError(name)
			if name in COUNTERS:
				value = max(0, int(value))
			setattr(self, name, value)
		return True

	def snapshot(self, *names: str) -> dict[str, Any]:
		return {name: getattr(self, name) for name in names}
