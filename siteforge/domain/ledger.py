"""
Version ledger for post content.

Each entry is a snapshot of content that was replaced. The ledger is bounded:
appending past the limit evicts the oldest entries first.
"""

from datetime import datetime
from uuid import UUID

from siteforge.domain.entities import Post, PostVersion

DEFAULT_MAX_VERSIONS = 10


def append_version(
    versions: list[PostVersion],
    content: str,
    created_by: UUID,
    now: datetime,
    max_versions: int = DEFAULT_MAX_VERSIONS,
) -> list[PostVersion]:
    """Return a new ledger with `content` appended and trimmed to `max_versions`."""
    entry = PostVersion(content=content, created_at=now, created_by=created_by)
    ledger = [*versions, entry]
    overflow = len(ledger) - max_versions
    if overflow > 0:
        ledger = ledger[overflow:]
    return ledger


def find_version(post: Post, version_id: UUID) -> PostVersion | None:
    for version in post.versions:
        if version.id == version_id:
            return version
    return None


def apply_content_change(
    post: Post,
    new_content: str,
    editor_id: UUID,
    now: datetime,
    max_versions: int = DEFAULT_MAX_VERSIONS,
) -> Post:
    """Replace content, recording the outgoing text. Unchanged content is a no-op."""
    if new_content == post.content:
        return post
    versions = append_version(post.versions, post.content, editor_id, now, max_versions)
    return post.model_copy(
        update={"content": new_content, "versions": versions, "updated_at": now}
    )


def restore_version(
    post: Post,
    version: PostVersion,
    editor_id: UUID,
    now: datetime,
    max_versions: int = DEFAULT_MAX_VERSIONS,
) -> Post:
    """
    Make a prior snapshot current again.

    The current content is always pushed first, even when it equals the restored
    text, so a restore is itself undoable.
    """
    versions = append_version(post.versions, post.content, editor_id, now, max_versions)
    return post.model_copy(
        update={"content": version.content, "versions": versions, "updated_at": now}
    )
