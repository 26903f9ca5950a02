"""Streaming reads from the object store that hosts uploaded documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from unishare.engagement.domain.exceptions import NotFoundError, StorageUnavailable
from unishare.settings import settings


@dataclass(slots=True)
class StoredFile:
	content_type: str
	content_length: Optional[int]
	chunks: AsyncIterator[bytes]


class FileStorage:
	"""Open stored files over HTTP and expose their bytes as an async stream."""

	def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self._transport = transport

	async def open(self, file_url: str) -> StoredFile:
		client = httpx.AsyncClient(
			timeout=settings.storage_timeout_seconds,
			transport=self._transport,
			follow_redirects=True,
		)
		try:
			response = await client.send(client.build_request("GET", file_url), stream=True)
		except httpx.HTTPError as exc:
			await client.aclose()
			raise StorageUnavailable() from exc
		if response.status_code >= 400:
			await response.aclose()
			await client.aclose()
			if response.status_code == 404:
				raise NotFoundError("file_not_found")
			raise StorageUnavailable()

		async def _chunks() -> AsyncIterator[bytes]:
			try:
				async for chunk in response.aiter_bytes():
					yield chunk
			finally:
				await response.aclose()
				await client.aclose()

		length = response.headers.get("content-length")
		return StoredFile(
			content_type=response.headers.get("content-type", "application/pdf"),
			content_length=int(length) if length and length.isdigit() else None,
			chunks=_chunks(),
		)
