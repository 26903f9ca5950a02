"""Deliver a resource's file or link, falling back across mechanisms."""

from __future__ import annotations

import asyncio
import enum
import logging
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import httpx

from unishare.client.api import UniShareClient
from unishare.obs.logging import safe_log
from unishare.settings import settings

_LOG = logging.getLogger(__name__)

SUCCESS_DISMISS_SECONDS = 3.0
RETRYING_MESSAGE = "There was a problem downloading the file. Trying alternative method..."
FAILED_MESSAGE = "The file could not be downloaded. Please try again."
NO_CONTENT_MESSAGE = "No downloadable content available"
LINK_FAILED_MESSAGE = "Failed to open external link. It may be blocked by your browser."
IN_PROGRESS_MESSAGE = "Download already in progress"


class DownloadState(str, enum.Enum):
	IDLE = "idle"
	DOWNLOADING = "downloading"
	SUCCESS = "success"
	ERROR = "error"


class DeliveryMethod(str, enum.Enum):
	NAVIGATE = "navigate"
	NEW_CONTEXT = "new_context"
	SAVE = "save"
	ANCHOR = "anchor"
	NEW_TAB = "new_tab"
	NONE = "none"


@dataclass(frozen=True, slots=True)
class ResourceInfo:
	id: str
	title: str = ""
	file_url: Optional[str] = None
	external_link: Optional[str] = None

	@property
	def filename(self) -> str:
		return f"{self.title.strip() or 'download'}.pdf"


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
	state: DownloadState
	method: DeliveryMethod
	message: Optional[str] = None


class DownloadIndicator:
	"""User-visible status for one delivery; hides itself a while after success."""

	def __init__(
		self,
		*,
		dismiss_after: float = SUCCESS_DISMISS_SECONDS,
		on_change: Optional[Callable[["DownloadIndicator"], None]] = None,
	) -> None:
		self.dismiss_after = dismiss_after
		self.on_change = on_change
		self.state = DownloadState.IDLE
		self.message: Optional[str] = None
		self.visible = False
		self.transitions: list[DownloadState] = []
		self._dismiss: Optional[asyncio.TimerHandle] = None

	def set(self, state: DownloadState, message: Optional[str] = None) -> None:
		self._cancel_dismiss()
		self.state = state
		self.message = message
		self.visible = state is not DownloadState.IDLE
		self.transitions.append(state)
		self._notify()
		if state is DownloadState.SUCCESS:
			self._dismiss = asyncio.get_running_loop().call_later(self.dismiss_after, self._hide)

	def _hide(self) -> None:
		self._dismiss = None
		self.state = DownloadState.IDLE
		self.message = None
		self.visible = False
		self._notify()

	def _notify(self) -> None:
		if self.on_change is None:
			return
		try:
			self.on_change(self)
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "indicator_listener_failed", exc_info=True)

	def _cancel_dismiss(self) -> None:
		if self._dismiss is not None:
			self._dismiss.cancel()
			self._dismiss = None

	def dispose(self) -> None:
		self._cancel_dismiss()


class DeliveryEnvironment(Protocol):
	"""Host capabilities used by the fallback chain.

	Each method raises (or returns False for the open calls) when the host
	refuses the mechanism.
	"""

	is_embedded_shell: bool

	async def navigate(self, url: str) -> None: ...

	async def open_new_context(self, url: str) -> bool: ...

	async def save_bytes(self, content: bytes, filename: str) -> None: ...

	async def anchor_download(self, url: str, filename: str) -> None: ...

	async def open_new_tab(self, url: str) -> bool: ...


def is_embedded_user_agent(user_agent: Optional[str]) -> bool:
	text = (user_agent or "").lower()
	return any(marker.lower() in text for marker in settings.embedded_shell_user_agents)


class DesktopEnvironment:
	"""Delivers to the local machine: the system browser and a download folder."""

	def __init__(
		self,
		*,
		http: Optional[httpx.AsyncClient] = None,
		download_dir: Optional[str] = None,
		user_agent: Optional[str] = None,
	) -> None:
		self.http = http
		self.download_dir = Path(download_dir or settings.download_dir).expanduser()
		self.is_embedded_shell = is_embedded_user_agent(user_agent)

	def _target(self, filename: str) -> Path:
		self.download_dir.mkdir(parents=True, exist_ok=True)
		candidate = self.download_dir / Path(filename).name
		stem, suffix = candidate.stem, candidate.suffix
		counter = 1
		while candidate.exists():
			candidate = self.download_dir / f"{stem} ({counter}){suffix}"
			counter += 1
		return candidate

	async def navigate(self, url: str) -> None:
		if not webbrowser.open(url, new=0):
			raise RuntimeError("navigation_refused")

	async def open_new_context(self, url: str) -> bool:
		return webbrowser.open(url, new=1)

	async def save_bytes(self, content: bytes, filename: str) -> None:
		self._target(filename).write_bytes(content)

	async def anchor_download(self, url: str, filename: str) -> None:
		if self.http is None:
			raise RuntimeError("no_http_client")
		target = self._target(filename)
		async with self.http.stream("GET", url) as response:
			response.raise_for_status()
			with open(target, "wb") as fh:
				async for chunk in response.aiter_bytes():
					fh.write(chunk)

	async def open_new_tab(self, url: str) -> bool:
		return webbrowser.open_new_tab(url)


class FileDelivery:
	"""Strictly sequential fallback chain; a later mechanism runs only after the previous one failed."""

	def __init__(
		self,
		client: UniShareClient,
		environment: DeliveryEnvironment,
		indicator: Optional[DownloadIndicator] = None,
	) -> None:
		self.client = client
		self.environment = environment
		self.indicator = indicator or DownloadIndicator()
		self.in_flight = False

	async def deliver(self, resource: ResourceInfo) -> DeliveryOutcome:
		"""Run the chain once; calls made while it is running return at once without side effects."""
		if self.in_flight:
			return DeliveryOutcome(DownloadState.DOWNLOADING, DeliveryMethod.NONE, IN_PROGRESS_MESSAGE)
		self.in_flight = True
		try:
			return await self._deliver(resource)
		finally:
			self.in_flight = False

	async def _deliver(self, resource: ResourceInfo) -> DeliveryOutcome:
		if resource.external_link:
			return await self._open_link(resource.external_link)
		if resource.file_url:
			if self.environment.is_embedded_shell:
				return await self._open_link(resource.file_url)
			return await self._download(resource)
		self.indicator.set(DownloadState.ERROR, NO_CONTENT_MESSAGE)
		return DeliveryOutcome(DownloadState.ERROR, DeliveryMethod.NONE, NO_CONTENT_MESSAGE)

	async def _open_link(self, url: str) -> DeliveryOutcome:
		try:
			if self.environment.is_embedded_shell:
				await self.environment.navigate(url)
				return DeliveryOutcome(DownloadState.SUCCESS, DeliveryMethod.NAVIGATE)
			if await self.environment.open_new_context(url):
				return DeliveryOutcome(DownloadState.SUCCESS, DeliveryMethod.NEW_CONTEXT)
			await self.environment.navigate(url)
			return DeliveryOutcome(DownloadState.SUCCESS, DeliveryMethod.NAVIGATE)
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "link_open_failed", exc_info=True, url=url)
			self.indicator.set(DownloadState.ERROR, LINK_FAILED_MESSAGE)
			return DeliveryOutcome(DownloadState.ERROR, DeliveryMethod.NONE, LINK_FAILED_MESSAGE)

	async def _download(self, resource: ResourceInfo) -> DeliveryOutcome:
		self.indicator.set(DownloadState.DOWNLOADING)
		if await self._try_save(resource):
			return self._succeeded(DeliveryMethod.SAVE)

		self.indicator.set(DownloadState.ERROR, RETRYING_MESSAGE)
		self.indicator.set(DownloadState.DOWNLOADING)
		url = self.client.download_url(resource.id)
		try:
			await self.environment.anchor_download(url, resource.filename)
			return self._succeeded(DeliveryMethod.ANCHOR)
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "anchor_download_failed", exc_info=True, resource_id=resource.id)

		try:
			opened = await self.environment.open_new_tab(url)
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "new_tab_download_failed", exc_info=True, resource_id=resource.id)
			opened = False
		if opened:
			return self._succeeded(DeliveryMethod.NEW_TAB)
		self.indicator.set(DownloadState.ERROR, FAILED_MESSAGE)
		return DeliveryOutcome(DownloadState.ERROR, DeliveryMethod.NONE, FAILED_MESSAGE)

	async def _try_save(self, resource: ResourceInfo) -> bool:
		result = await self.client.fetch_download(resource.id)
		if not result.ok:
			safe_log(
				_LOG,
				logging.INFO,
				"primary_download_failed",
				resource_id=resource.id,
				kind=result.error.kind.value,
			)
			return False
		try:
			await self.environment.save_bytes(result.value.content, resource.filename)
		except Exception:  # noqa: BLE001
			safe_log(_LOG, logging.WARNING, "save_download_failed", exc_info=True, resource_id=resource.id)
			return False
		return True

	def _succeeded(self, method: DeliveryMethod) -> DeliveryOutcome:
		self.indicator.set(DownloadState.SUCCESS)
		return DeliveryOutcome(DownloadState.SUCCESS, method)
