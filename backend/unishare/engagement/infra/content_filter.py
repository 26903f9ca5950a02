"""Word-list content filter for user supplied text."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import yaml

from unishare.settings import settings

_DEFAULT_PATH = Path(__file__).resolve().parents[3] / "config" / "bad_words.yml"


class ContentFilter:
	"""Match text against a fixed vocabulary on word boundaries."""

	def __init__(self, words: Iterable[str]) -> None:
		cleaned = sorted({word.strip().lower() for word in words if word and word.strip()})
		self._pattern: Optional[re.Pattern[str]] = None
		if cleaned:
			alternation = "|".join(re.escape(word) for word in cleaned)
			self._pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)

	@classmethod
	def from_yaml(cls, path: str | Path) -> "ContentFilter":
		with open(path, "r", encoding="utf-8") as fh:
			data = yaml.safe_load(fh) or {}
		return cls(data.get("words") or [])

	def contains_bad_words(self, text: Optional[str]) -> bool:
		if not text or self._pattern is None:
			return False
		return self._pattern.search(text) is not None


@lru_cache(maxsize=1)
def get_content_filter() -> ContentFilter:
	path = Path(settings.bad_words_path) if settings.bad_words_path else _DEFAULT_PATH
	if not path.exists():
		return ContentFilter(())
	return ContentFilter.from_yaml(path)
