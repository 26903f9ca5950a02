from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from unishare.engagement.domain import models, policies
from unishare.engagement.domain.exceptions import ForbiddenError, ValidationError
from unishare.engagement.infra.content_filter import ContentFilter


def _resource(**overrides) -> models.Resource:
	data = {
		"id": uuid4(),
		"author_id": uuid4(),
		"title": "Notes",
		"resource_type": "notes",
		"created_at": datetime.now(timezone.utc),
	}
	data.update(overrides)
	return models.Resource(**data)


@pytest.mark.parametrize(
	"field,limit",
	[("title", 25), ("description", 100), ("course_code", 10), ("external_link", 100)],
)
def test_edit_limits(field, limit):
	policies.ensure_edit_limits({field: "x" * limit})
	with pytest.raises(ValidationError) as exc:
		policies.ensure_edit_limits({field: "x" * (limit + 1)})
	assert exc.value.detail == f"{field}_too_long"


def test_needs_new_thumbnail():
	notes = _resource()
	link = _resource(resource_type="link", external_link="https://a.example")

	assert policies.needs_new_thumbnail(notes, resource_type="notes", external_link=None) is False
	assert policies.needs_new_thumbnail(notes, resource_type="link", external_link="https://a.example") is True
	assert policies.needs_new_thumbnail(link, resource_type="link", external_link="https://a.example") is False
	assert policies.needs_new_thumbnail(link, resource_type="link", external_link="https://b.example") is True


def test_invitation_codes_use_unambiguous_alphabet():
	codes = {policies.generate_invitation_code() for _ in range(50)}
	assert all(len(code) == 8 for code in codes)
	assert not set("".join(codes)) & set("01IO")


def test_invitation_expiry_zero_means_never():
	now = datetime(2024, 1, 1, tzinfo=timezone.utc)
	assert policies.invitation_expiry(0, now=now) is None
	assert policies.invitation_expiry(None, now=now) is None
	assert policies.invitation_expiry(2, now=now) == datetime(2024, 1, 1, 2, tzinfo=timezone.utc)


def test_comment_deletion_rights():
	owner = uuid4()
	commenter = uuid4()
	resource = _resource(author_id=owner)
	comment = models.ResourceComment(
		id=uuid4(),
		resource_id=resource.id,
		user_id=commenter,
		content="hi",
		created_at=datetime.now(timezone.utc),
	)
	policies.assert_can_delete_comment(comment, resource, commenter)
	policies.assert_can_delete_comment(comment, resource, owner)
	with pytest.raises(ForbiddenError):
		policies.assert_can_delete_comment(comment, resource, uuid4())


def test_content_filter_matches_whole_words_only():
	content_filter = ContentFilter(["ass"])
	assert content_filter.contains_bad_words("what an ASS") is True
	assert content_filter.contains_bad_words("class assignment") is False
	assert content_filter.contains_bad_words(None) is False
	assert ContentFilter([]).contains_bad_words("anything") is False


def test_content_filter_loads_yaml(tmp_path):
	path = tmp_path / "words.yml"
	path.write_text("words:\n  - heck\n  - Darn\n", encoding="utf-8")

	content_filter = ContentFilter.from_yaml(path)

	assert content_filter.contains_bad_words("oh darn") is True
	assert content_filter.contains_bad_words("heckle") is False
