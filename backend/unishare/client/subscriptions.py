"""Realtime subscription lifecycle scoped to one mounted component."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

import socketio

from unishare.obs.logging import safe_log

_LOG = logging.getLogger(__name__)

NAMESPACE = "/realtime"
ALL_EVENTS = ("*",)
# Synthetic event sent to every listener after a reconnect rejoins its room
RESYNC_EVENT = "RESYNC"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
	table: str
	filter: str
	event: str
	new: Optional[dict[str, Any]] = None
	old: Optional[dict[str, Any]] = None


ChangeCallback = Callable[[ChangeEvent], Union[Awaitable[None], None]]


class SubscriptionError(RuntimeError):
	pass


class Subscription:
	"""Disposable handle; ``close()`` may be called any number of times."""

	def __init__(self, closer: Optional[Callable[[], Awaitable[None]]] = None) -> None:
		self._closer = closer
		self._closed = False

	@property
	def closed(self) -> bool:
		return self._closed

	async def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		closer, self._closer = self._closer, None
		if closer is None:
			return
		try:
			await closer()
		except Exception:  # noqa: BLE001 - teardown is best effort
			safe_log(_LOG, logging.WARNING, "subscription_close_failed", exc_info=True)


class RealtimeFeed(Protocol):
	async def subscribe(
		self,
		table: str,
		filter_expr: str,
		events: Iterable[str],
		callback: ChangeCallback,
	) -> Subscription: ...


@dataclass(frozen=True, slots=True)
class WatchSpec:
	table: str
	filter: str
	events: tuple[str, ...] = ALL_EVENTS


async def _invoke(callback: ChangeCallback, event: ChangeEvent) -> None:
	outcome = callback(event)
	if inspect.isawaitable(outcome):
		await outcome


class SubscriptionScope:
	"""Owns every subscription a component opened while mounted."""

	def __init__(self, feed: RealtimeFeed, on_change: ChangeCallback) -> None:
		self.feed = feed
		self.on_change = on_change
		self.mounted = True
		self.subscriptions: list[Subscription] = []

	async def open(self, specs: Iterable[WatchSpec]) -> list[Subscription]:
		opened: list[Subscription] = []
		for spec in specs:
			if not self.mounted:
				break
			try:
				subscription = await self.feed.subscribe(spec.table, spec.filter, spec.events, self._dispatch)
			except Exception:  # noqa: BLE001 - one failed channel must not block the rest
				safe_log(
					_LOG,
					logging.WARNING,
					"subscription_setup_failed",
					exc_info=True,
					table=spec.table,
					filter=spec.filter,
				)
				subscription = Subscription()
			if not self.mounted:
				await subscription.close()
				break
			opened.append(subscription)
		self.subscriptions.extend(opened)
		return opened

	async def _dispatch(self, event: ChangeEvent) -> None:
		if not self.mounted:
			return
		await _invoke(self.on_change, event)

	async def close_all(self) -> None:
		self.mounted = False
		subscriptions, self.subscriptions = self.subscriptions, []
		for subscription in subscriptions:
			await subscription.close()


class SocketIORealtimeFeed:
	"""``RealtimeFeed`` backed by the server's Socket.IO change namespace."""

	def __init__(
		self,
		url: str,
		*,
		auth: Optional[dict[str, Any]] = None,
		client: Optional[socketio.AsyncClient] = None,
		timeout: float = 5.0,
	) -> None:
		self.url = url
		self.auth = auth
		self.timeout = timeout
		self.sio = client or socketio.AsyncClient(reconnection=True)
		self._handlers: dict[str, list[tuple[frozenset[str], ChangeCallback]]] = {}
		self._watched: dict[str, tuple[str, str]] = {}
		self.sio.on("change", self._on_change, namespace=NAMESPACE)
		self.sio.on("connect", self._on_connect, namespace=NAMESPACE)

	@staticmethod
	def room(table: str, filter_expr: str) -> str:
		return f"{table}:{filter_expr}"

	async def connect(self) -> None:
		if self.sio.connected:
			return
		await self.sio.connect(self.url, namespaces=[NAMESPACE], auth=self.auth)

	async def _join(self, table: str, filter_expr: str) -> Any:
		return await self.sio.call(
			"subscribe",
			{"table": table, "filter": filter_expr},
			namespace=NAMESPACE,
			timeout=self.timeout,
		)

	async def subscribe(
		self,
		table: str,
		filter_expr: str,
		events: Iterable[str],
		callback: ChangeCallback,
	) -> Subscription:
		await self.connect()
		ack = await self._join(table, filter_expr)
		if not isinstance(ack, dict) or not ack.get("ok"):
			error = ack.get("error") if isinstance(ack, dict) else None
			raise SubscriptionError(error or "subscribe_rejected")
		room = self.room(table, filter_expr)
		entry = (frozenset(events), callback)
		self._handlers.setdefault(room, []).append(entry)
		self._watched[room] = (table, filter_expr)

		async def _close() -> None:
			handlers = self._handlers.get(room, [])
			if entry in handlers:
				handlers.remove(entry)
			if handlers:
				return
			self._handlers.pop(room, None)
			self._watched.pop(room, None)
			if self.sio.connected:
				await self.sio.emit("unsubscribe", {"table": table, "filter": filter_expr}, namespace=NAMESPACE)

		return Subscription(_close)

	async def _on_change(self, payload: dict[str, Any]) -> None:
		event = ChangeEvent(
			table=str(payload.get("table") or ""),
			filter=str(payload.get("filter") or ""),
			event=str(payload.get("event") or ""),
			new=payload.get("new"),
			old=payload.get("old"),
		)
		await self._dispatch(event)

	async def _dispatch(self, event: ChangeEvent, *, every_listener: bool = False) -> None:
		for events, callback in list(self._handlers.get(self.room(event.table, event.filter), ())):
			if not every_listener and "*" not in events and event.event not in events:
				continue
			try:
				await _invoke(callback, event)
			except Exception:  # noqa: BLE001
				safe_log(_LOG, logging.WARNING, "change_callback_failed", exc_info=True, table=event.table)

	async def _on_connect(self) -> None:
		# The server forgets rooms when a session drops; the read loop must not block on acks
		if self._watched:
			self.sio.start_background_task(self.resubscribe)

	async def resubscribe(self) -> None:
		"""Rejoin every watched room, then have its listeners refetch what they missed."""
		for room, (table, filter_expr) in list(self._watched.items()):
			try:
				ack = await self._join(table, filter_expr)
			except Exception:  # noqa: BLE001 - one room must not stop the others
				safe_log(_LOG, logging.WARNING, "resubscribe_failed", exc_info=True, table=table)
				continue
			if not isinstance(ack, dict) or not ack.get("ok"):
				error = ack.get("error") if isinstance(ack, dict) else None
				safe_log(_LOG, logging.WARNING, "resubscribe_rejected", table=table, error=error)
				continue
			if room in self._watched:
				await self._dispatch(ChangeEvent(table, filter_expr, RESYNC_EVENT), every_listener=True)

	async def close(self) -> None:
		self._handlers.clear()
		self._watched.clear()
		if self.sio.connected:
			await self.sio.disconnect()
