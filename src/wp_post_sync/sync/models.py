"""Pydantic models for the post sync engine.

Defines the core data contracts used across all sync modules:

- ``RenderedText``: WordPress ``{raw, rendered}`` text field.
- ``Post``: A WordPress post as returned by the REST API (``context=edit``).
- ``EditableMetadata``: The user-editable projection of a post.
- ``CachedSnapshot``: A cached post plus its baseline fingerprints.
- ``SyncAction``: Enum of per-post sync outcomes.
- ``SyncReport``: Aggregate results for a full sync pass.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class RenderedText(BaseModel):
    """A WordPress text field carrying raw and rendered forms.

    The API is inconsistent about the shape of these fields, so a bare
    string (both forms set to it) and an array (first element used) are
    accepted alongside the usual object.
    """

    raw: str | None = None
    rendered: str | None = None

    model_config = {"frozen": True, "extra": "allow"}

    @model_validator(mode="before")
    @classmethod
    def _coerce_wire_shape(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"raw": value, "rendered": value}
        if isinstance(value, list):
            if not value:
                return {}
            first = value[0]
            if isinstance(first, str):
                return {"raw": first, "rendered": first}
            if isinstance(first, dict):
                return first
            return {}
        return value

    def __str__(self) -> str:
        if self.rendered is not None:
            return self.rendered
        return self.raw or ""


class EditableMetadata(BaseModel):
    """Editable subset of a post, persisted as ``*_editable.yaml``.

    Only these fields take part in the metadata fingerprint.  Every
    field is optional so a partially filled file still parses.
    """

    title: str | None = None
    slug: str | None = None
    status: str | None = None
    date: datetime | None = None
    excerpt: str | None = None
    featured_media: int | None = None
    comment_status: str | None = None
    ping_status: str | None = None

    model_config = {"frozen": True}

    def to_update_fields(self) -> dict[str, Any]:
        """Return the non-empty fields as a REST update payload."""
        fields: dict[str, Any] = {}
        for name, value in self:
            if value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            fields[name] = value
        return fields


class Post(BaseModel):
    """A WordPress post (the remote-authoritative document).

    Fields not listed here are kept as extras so the cached snapshot
    holds the full representation the server returned.
    """

    id: int
    date: datetime | None = None
    date_gmt: datetime | None = None
    guid: RenderedText | None = None
    modified: datetime | None = None
    modified_gmt: datetime | None = None
    slug: str | None = None
    status: str | None = None
    type: str | None = None
    link: str | None = None
    title: RenderedText | None = None
    content: RenderedText | None = None
    excerpt: RenderedText | None = None
    author: int | None = None
    featured_media: int | None = None
    comment_status: str | None = None
    ping_status: str | None = None
    sticky: bool | None = None
    template: str | None = None
    format: str | None = None
    categories: list[int] | None = None
    tags: list[int] | None = None
    password: str | None = None
    permalink_template: str | None = None
    generated_slug: str | None = None
    class_list: list[str] | dict[str, str] | None = None

    model_config = {"frozen": True, "extra": "allow"}

    @property
    def body(self) -> str:
        """Raw post content, or an empty string."""
        if self.content is None or self.content.raw is None:
            return ""
        return self.content.raw

    def editable_metadata(self) -> EditableMetadata:
        """Project the editable fields of this post."""
        return EditableMetadata(
            title=self.title.raw if self.title else None,
            slug=self.slug,
            status=self.status,
            date=self.date,
            excerpt=self.excerpt.raw if self.excerpt else None,
            featured_media=self.featured_media,
            comment_status=self.comment_status,
            ping_status=self.ping_status,
        )


class CachedSnapshot(BaseModel):
    """A cached post with its baseline fingerprints.

    The two hashes describe the last state known to be identical on both
    replicas.  They are only ever written alongside the exact content and
    metadata payloads they were computed from.

    Attributes:
        post: Full post as last received from the server.
        content_hash: SHA-256 of the cached body.
        editable_meta_hash: SHA-256 of the canonical metadata encoding.
    """

    post: Post
    content_hash: str = Field(alias="contentHash")
    editable_meta_hash: str = Field(alias="editableMetaHash")

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def post_id(self) -> int:
        return self.post.id


class SyncAction(str, Enum):
    """Outcome of reconciling one post."""

    SKIP = "skip"
    PUSH = "push"
    PULL = "pull"
    CONFLICT = "conflict"
    CREATE_LOCAL = "create_local"
    DELETE_LOCAL = "delete_local"


class SyncReport(BaseModel):
    """Aggregate report for a full sync pass.

    Each processed post id appears in at most one of the five lists, in
    the order the ids were processed.

    Attributes:
        pushed_to_server: Local edits sent to WordPress.
        pulled_from_server: Remote edits written to the cache.
        deleted_from_local: Posts removed locally after the server
            confirmed they no longer exist.
        conflicted: Posts changed on both sides; nothing was written.
        newly_cached: Remote posts cached for the first time.
        cancelled: True if the pass stopped early on request.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass ended.
    """

    pushed_to_server: tuple[int, ...] = ()
    pulled_from_server: tuple[int, ...] = ()
    deleted_from_local: tuple[int, ...] = ()
    conflicted: tuple[int, ...] = ()
    newly_cached: tuple[int, ...] = ()
    cancelled: bool = False
    started_at: str | None = None
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        """True when the pass changed nothing and found no conflicts."""
        return self.total == 0

    @property
    def total(self) -> int:
        return (
            len(self.pushed_to_server)
            + len(self.pulled_from_server)
            + len(self.deleted_from_local)
            + len(self.conflicted)
            + len(self.newly_cached)
        )

    def summary(self) -> str:
        """Format a human-readable summary of the sync pass.

        Returns:
            Multi-line summary string with counts and ids per category.
        """

        def _ids(ids: tuple[int, ...]) -> str:
            if not ids:
                return str(0)
            return f"{len(ids)} ({', '.join(str(i) for i in ids)})"

        lines = [
            "Sync report" + (" (cancelled)" if self.cancelled else ""),
            f"  Pushed to server:   {_ids(self.pushed_to_server)}",
            f"  Pulled from server: {_ids(self.pulled_from_server)}",
            f"  Newly cached:       {_ids(self.newly_cached)}",
            f"  Deleted locally:    {_ids(self.deleted_from_local)}",
            f"  Conflicts:          {_ids(self.conflicted)}",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable dict of the report."""
        data = self.model_dump(mode="json")
        data["total"] = self.total
        return data
