"""Bounded post version history."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from siteforge.domain.entities import Post
from siteforge.domain.ledger import (
    DEFAULT_MAX_VERSIONS,
    append_version,
    apply_content_change,
    find_version,
    restore_version,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
EDITOR = uuid4()


def make_post(content: str = "v0") -> Post:
    return Post(site_id=uuid4(), author_id=EDITOR, title="T", slug="t", content=content)


def test_append_keeps_order():
    ledger = append_version([], "a", EDITOR, NOW)
    ledger = append_version(ledger, "b", EDITOR, NOW)

    assert [v.content for v in ledger] == ["a", "b"]
    assert ledger[0].created_by == EDITOR


def test_eleventh_entry_evicts_oldest():
    post = make_post()
    for i in range(1, 12):
        post = apply_content_change(post, f"v{i}", EDITOR, NOW + timedelta(minutes=i))

    assert len(post.versions) == DEFAULT_MAX_VERSIONS
    assert post.versions[0].content == "v1"
    assert post.versions[-1].content == "v10"
    assert post.content == "v11"


def test_custom_limit():
    ledger = []
    for i in range(5):
        ledger = append_version(ledger, str(i), EDITOR, NOW, max_versions=3)

    assert [v.content for v in ledger] == ["2", "3", "4"]


def test_unchanged_content_records_nothing():
    post = make_post("same")

    assert apply_content_change(post, "same", EDITOR, NOW) is post


def test_restore_pushes_current_content():
    post = apply_content_change(make_post("first"), "second", EDITOR, NOW)
    old = post.versions[0]

    restored = restore_version(post, old, EDITOR, NOW + timedelta(minutes=1))

    assert restored.content == "first"
    assert [v.content for v in restored.versions] == ["first", "second"]
    assert restored.updated_at == NOW + timedelta(minutes=1)


def test_restore_of_identical_content_still_recorded():
    post = apply_content_change(make_post("x"), "y", EDITOR, NOW)
    post = apply_content_change(post, "x", EDITOR, NOW)

    restored = restore_version(post, post.versions[0], EDITOR, NOW)

    assert restored.content == "x"
    assert len(restored.versions) == 3


def test_find_version():
    post = apply_content_change(make_post(), "next", EDITOR, NOW)

    assert find_version(post, post.versions[0].id) == post.versions[0]
    assert find_version(post, uuid4()) is None
