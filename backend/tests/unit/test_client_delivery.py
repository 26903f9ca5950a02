from __future__ import annotations

import asyncio

import httpx
import pytest

from unishare.client.api import UniShareClient
from unishare.client.delivery import (
	FAILED_MESSAGE,
	IN_PROGRESS_MESSAGE,
	LINK_FAILED_MESSAGE,
	NO_CONTENT_MESSAGE,
	RETRYING_MESSAGE,
	DeliveryMethod,
	DownloadIndicator,
	DownloadState,
	FileDelivery,
	ResourceInfo,
	is_embedded_user_agent,
)

PDF = ResourceInfo(id="r1", title="Week 3", file_url="https://files.example/w3.pdf")


class _FakeEnvironment:
	def __init__(
		self,
		*,
		embedded: bool = False,
		save_fails: bool = False,
		anchor_fails: bool = False,
		new_tab: bool = True,
		new_context: bool = True,
		navigate_fails: bool = False,
	) -> None:
		self.is_embedded_shell = embedded
		self.save_fails = save_fails
		self.anchor_fails = anchor_fails
		self.new_tab = new_tab
		self.new_context = new_context
		self.navigate_fails = navigate_fails
		self.calls: list[tuple[str, str]] = []

	async def navigate(self, url):
		self.calls.append(("navigate", url))
		if self.navigate_fails:
			raise RuntimeError("blocked")

	async def open_new_context(self, url):
		self.calls.append(("new_context", url))
		return self.new_context

	async def save_bytes(self, content, filename):
		self.calls.append(("save", filename))
		if self.save_fails:
			raise OSError("disk full")

	async def anchor_download(self, url, filename):
		self.calls.append(("anchor", url))
		if self.anchor_fails:
			raise RuntimeError("anchor refused")

	async def open_new_tab(self, url):
		self.calls.append(("new_tab", url))
		return self.new_tab


def _client(status: int = 200) -> UniShareClient:
	fetched: list[httpx.Request] = []

	def _handler(request: httpx.Request) -> httpx.Response:
		fetched.append(request)
		return httpx.Response(status, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})

	client = UniShareClient("http://api.test", transport=httpx.MockTransport(_handler))
	client.fetched = fetched
	return client


@pytest.mark.asyncio
async def test_primary_save_succeeds_without_fallbacks():
	env = _FakeEnvironment()
	indicator = DownloadIndicator()
	async with _client() as client:
		outcome = await FileDelivery(client, env, indicator).deliver(PDF)

	assert outcome.method is DeliveryMethod.SAVE
	assert env.calls == [("save", "Week 3.pdf")]
	assert indicator.transitions == [DownloadState.DOWNLOADING, DownloadState.SUCCESS]
	indicator.dispose()


@pytest.mark.asyncio
async def test_secondary_success_never_reaches_tertiary():
	env = _FakeEnvironment()
	messages: list[str | None] = []
	indicator = DownloadIndicator(on_change=lambda ind: messages.append(ind.message))
	async with _client(status=502) as client:
		outcome = await FileDelivery(client, env, indicator).deliver(PDF)

	assert outcome.method is DeliveryMethod.ANCHOR
	assert [name for name, _ in env.calls] == ["anchor"]
	assert env.calls[0][1] == "http://api.test/api/resources/r1/download"
	assert indicator.transitions == [
		DownloadState.DOWNLOADING,
		DownloadState.ERROR,
		DownloadState.DOWNLOADING,
		DownloadState.SUCCESS,
	]
	assert RETRYING_MESSAGE in messages
	indicator.dispose()


@pytest.mark.asyncio
async def test_save_failure_falls_through_to_new_tab():
	env = _FakeEnvironment(save_fails=True, anchor_fails=True)
	indicator = DownloadIndicator()
	async with _client() as client:
		outcome = await FileDelivery(client, env, indicator).deliver(PDF)

	assert outcome.method is DeliveryMethod.NEW_TAB
	assert [name for name, _ in env.calls] == ["save", "anchor", "new_tab"]
	indicator.dispose()


@pytest.mark.asyncio
async def test_all_mechanisms_failing_ends_in_error():
	env = _FakeEnvironment(anchor_fails=True, new_tab=False)
	indicator = DownloadIndicator()
	async with _client(status=500) as client:
		outcome = await FileDelivery(client, env, indicator).deliver(PDF)

	assert outcome.state is DownloadState.ERROR
	assert outcome.message == FAILED_MESSAGE
	assert indicator.state is DownloadState.ERROR
	assert indicator.message == FAILED_MESSAGE


@pytest.mark.asyncio
async def test_external_link_prefers_new_context_then_navigates():
	link = ResourceInfo(id="r2", title="Lecture", external_link="https://video.example/x")
	async with _client() as client:
		opened = await FileDelivery(client, _FakeEnvironment()).deliver(link)
		blocked_env = _FakeEnvironment(new_context=False)
		fallback = await FileDelivery(client, blocked_env).deliver(link)
		assert client.fetched == []

	assert opened.method is DeliveryMethod.NEW_CONTEXT
	assert fallback.method is DeliveryMethod.NAVIGATE
	assert [name for name, _ in blocked_env.calls] == ["new_context", "navigate"]


@pytest.mark.asyncio
async def test_embedded_shell_navigates_in_place():
	env = _FakeEnvironment(embedded=True)
	async with _client() as client:
		outcome = await FileDelivery(client, env).deliver(PDF)
		assert client.fetched == []

	assert outcome.method is DeliveryMethod.NAVIGATE
	assert env.calls == [("navigate", PDF.file_url)]


@pytest.mark.asyncio
async def test_blocked_link_reports_error():
	env = _FakeEnvironment(embedded=True, navigate_fails=True)
	indicator = DownloadIndicator()
	async with _client() as client:
		outcome = await FileDelivery(client, env, indicator).deliver(
			ResourceInfo(id="r3", external_link="https://blocked.example")
		)

	assert outcome.state is DownloadState.ERROR
	assert indicator.message == LINK_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_no_content():
	indicator = DownloadIndicator()
	async with _client() as client:
		outcome = await FileDelivery(client, _FakeEnvironment(), indicator).deliver(ResourceInfo(id="r4"))

	assert outcome.method is DeliveryMethod.NONE
	assert indicator.message == NO_CONTENT_MESSAGE


@pytest.mark.asyncio
async def test_indicator_hides_after_success():
	indicator = DownloadIndicator(dismiss_after=0.01)
	indicator.set(DownloadState.DOWNLOADING)
	indicator.set(DownloadState.SUCCESS)
	assert indicator.visible

	await asyncio.sleep(0.05)

	assert not indicator.visible
	assert indicator.state is DownloadState.IDLE


def test_embedded_user_agent_detection():
	assert is_embedded_user_agent("Mozilla/5.0 (iPhone) Appilix/2.1") is True
	assert is_embedded_user_agent("Mozilla/5.0 (Macintosh) Safari") is False
	assert is_embedded_user_agent(None) is False


class _SlowSaveEnvironment(_FakeEnvironment):
	def __init__(self) -> None:
		super().__init__()
		self.release = asyncio.Event()

	async def save_bytes(self, content, filename):
		await self.release.wait()
		await super().save_bytes(content, filename)


@pytest.mark.asyncio
async def test_second_download_while_one_runs_is_ignored():
	client = _client()
	environment = _SlowSaveEnvironment()
	delivery = FileDelivery(client, environment)

	first = asyncio.create_task(delivery.deliver(PDF))
	await asyncio.sleep(0.01)
	second = await delivery.deliver(PDF)
	environment.release.set()
	done = await first

	assert second.state is DownloadState.DOWNLOADING
	assert second.method is DeliveryMethod.NONE
	assert second.message == IN_PROGRESS_MESSAGE
	assert done.method is DeliveryMethod.SAVE
	assert len(client.fetched) == 1
	assert environment.calls == [("save", PDF.filename)]

	again = await delivery.deliver(PDF)
	assert again.method is DeliveryMethod.SAVE
	assert len(client.fetched) == 2
