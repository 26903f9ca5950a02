"""Entry-point utilities for emitting row change notifications."""

from __future__ import annotations

import logging
from typing import Any, Optional

import socketio

from unishare.engagement.sockets.namespace import RealtimeNamespace
from unishare.obs import metrics as obs_metrics
from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

_realtime_ns: Optional[RealtimeNamespace] = None

CHANGE_EVENT = "change"


def register(server: socketio.AsyncServer) -> RealtimeNamespace:
	"""Register the realtime namespace on the Socket.IO server."""
	namespace = RealtimeNamespace()
	server.register_namespace(namespace)
	set_namespace(namespace)
	return namespace


def set_namespace(namespace: Optional[RealtimeNamespace]) -> None:
	global _realtime_ns
	_realtime_ns = namespace


async def emit_change(
	table: str,
	filter_expr: str,
	event: str,
	*,
	new: dict[str, Any] | None = None,
	old: dict[str, Any] | None = None,
) -> None:
	"""Push a change notification to every subscriber of ``table``/``filter_expr``.

	Delivery is best-effort; the committed mutation never depends on it.
	"""
	if _realtime_ns is None:
		return
	payload = {"table": table, "filter": filter_expr, "event": event, "new": new, "old": old}
	try:
		obs_metrics.socket_event(_realtime_ns.namespace, f"{table}:{event}")
		await _realtime_ns.emit(CHANGE_EVENT, payload, room=RealtimeNamespace.room_name(table, filter_expr))
	except Exception:  # noqa: BLE001 - push is advisory
		safe_log(_LOG, logging.WARNING, "realtime_emit_failed", exc_info=True, table=table, event=event)
