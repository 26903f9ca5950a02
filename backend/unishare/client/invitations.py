"""Client side of invitation code redemption."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from unishare.client.api import Redemption, UniShareClient
from unishare.client.results import ApiError, Err, ErrorKind, Result
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

Navigate = Callable[[str], Union[Awaitable[None], None]]


def group_view_path(study_group_id: str) -> str:
	return f"/dashboard/study-groups?view={study_group_id}"


class InvitationRedeemer:
	"""Redeem a code and move the actor to the group view.

	Only emptiness is checked locally; expiry and the use ceiling are decided
	atomically by the server.
	"""

	def __init__(self, client: UniShareClient, *, navigate: Optional[Navigate] = None) -> None:
		self.client = client
		self.navigate = navigate
		self.pending = False

	async def redeem(self, raw_code: str) -> Result[Redemption]:
		code = (raw_code or "").strip()
		if not code:
			return Err(ApiError.of(ErrorKind.VALIDATION, detail="invitation_code_required"))
		if self.pending:
			return Err(ApiError.of(ErrorKind.CONFLICT, detail="redemption_in_progress"))
		self.pending = True
		try:
			result = await self.client.redeem_invitation(code)
		finally:
			self.pending = False
		if result.ok and self.navigate is not None:
			await self._go(group_view_path(result.value.study_group_id))
		return result

	async def _go(self, path: str) -> None:
		try:
			outcome = self.navigate(path)
			if inspect.isawaitable(outcome):
				await outcome
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "post_redeem_navigation_failed", exc_info=True, path=path)
