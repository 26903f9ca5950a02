"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"unishare_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"unishare_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"unishare_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"unishare_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

RESOURCE_LIKES = Counter(
	"unishare_resource_likes_total",
	"Like requests by result",
	["result"],
)

RESOURCE_COMMENTS = Counter(
	"unishare_resource_comments_total",
	"Comment writes by action",
	["action"],
)

RESOURCE_DOWNLOADS = Counter(
	"unishare_resource_downloads_total",
	"Resource downloads served",
)

RESOURCE_EDITS = Counter(
	"unishare_resource_edits_total",
	"Resource edits by thumbnail regeneration decision",
	["thumbnail"],
)

FOLLOW_ACTIONS = Counter(
	"unishare_follow_actions_total",
	"Follow toggles by action and result",
	["action", "result"],
)

NOTIFICATIONS_CREATED = Counter(
	"unishare_notifications_total",
	"Notifications persisted by type and result",
	["type", "result"],
)

INVITATIONS_CREATED = Counter(
	"unishare_invitations_created_total",
	"Study group invitations created",
)

INVITATION_REDEMPTIONS = Counter(
	"unishare_invitation_redemptions_total",
	"Invitation redemptions by outcome",
	["outcome"],
)

GROUP_JOINS = Counter(
	"unishare_study_group_joins_total",
	"Direct study group joins by result",
	["result"],
)

GROUP_ADMIN_ACTIONS = Counter(
	"unishare_study_group_admin_actions_total",
	"Study group management actions by type",
	["action"],
)

THUMBNAIL_REQUESTS = Counter(
	"unishare_thumbnail_requests_total",
	"Background thumbnail regeneration calls by result",
	["result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_resource_like(result: str) -> None:
	RESOURCE_LIKES.labels(result=result).inc()


def inc_resource_comment(action: str) -> None:
	RESOURCE_COMMENTS.labels(action=action).inc()


def inc_resource_download() -> None:
	RESOURCE_DOWNLOADS.inc()


def inc_resource_edit(*, thumbnail: bool) -> None:
	RESOURCE_EDITS.labels(thumbnail="regenerate" if thumbnail else "keep").inc()


def inc_follow(action: str, result: str) -> None:
	FOLLOW_ACTIONS.labels(action=action, result=result).inc()


def inc_notification(kind: str, result: str) -> None:
	NOTIFICATIONS_CREATED.labels(type=kind, result=result).inc()


def inc_invitation_created() -> None:
	INVITATIONS_CREATED.inc()


def inc_invitation_redemption(outcome: str) -> None:
	INVITATION_REDEMPTIONS.labels(outcome=outcome).inc()


def inc_group_join(result: str) -> None:
	GROUP_JOINS.labels(result=result).inc()


def inc_group_admin_action(action: str) -> None:
	GROUP_ADMIN_ACTIONS.labels(action=action).inc()


def inc_thumbnail_request(result: str) -> None:
	THUMBNAIL_REQUESTS.labels(result=result).inc()
