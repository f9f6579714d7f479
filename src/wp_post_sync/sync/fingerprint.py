"""Content fingerprinting for change detection.

Hashes are SHA-256 hex digests over the UTF-8 bytes of a canonical
serialization:

* **Content** -- the raw post body, verbatim.  There is no line-ending
  or whitespace normalisation: the body is written to disk
  byte-for-byte, so any difference is a real edit.
* **Editable metadata** -- a YAML document whose keys are always emitted
  in ``EDITABLE_FIELDS`` order.  Absent values are written as ``null``
  so the key set never varies.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any

import yaml
from pydantic import ValidationError

from wp_post_sync.errors import CacheFormatError
from wp_post_sync.sync.models import EditableMetadata

EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "slug",
    "status",
    "date",
    "excerpt",
    "featured_media",
    "comment_status",
    "ping_status",
)

# Characters YAML treats as line breaks.  Outside double quotes the
# loader folds them, so "\x85" would come back as a space.
_LINE_BREAKS = ("\r", "\n", "\x85", "\u2028", "\u2029")


class _EditableDumper(yaml.SafeDumper):
    """SafeDumper that double-quotes strings containing line breaks."""


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if any(ch in value for ch in _LINE_BREAKS):
        return dumper.represent_scalar(
            "tag:yaml.org,2002:str", value, style='"'
        )
    return dumper.represent_str(value)


_EditableDumper.add_representer(str, _represent_str)


def hash_text(text: str) -> str:
    """Return the SHA-256 hex digest of *text* encoded as UTF-8."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_hash(body: str) -> str:
    """Fingerprint a post body."""
    return hash_text(body)


def serialize_editable(meta: EditableMetadata) -> str:
    """Encode *meta* as YAML with a fixed key order.

    Dates are written as ISO 8601 strings (quoted by the dumper so they
    load back as strings, not YAML timestamps).  Strings holding line
    breaks are double-quoted with escapes so they load back unchanged.
    """
    data: dict[str, Any] = {}
    for name in EDITABLE_FIELDS:
        value = getattr(meta, name)
        if isinstance(value, datetime):
            value = value.isoformat()
        data[name] = value
    return yaml.dump(
        data,
        Dumper=_EditableDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def deserialize_editable(text: str) -> EditableMetadata:
    """Parse YAML written by ``serialize_editable`` (or edited by hand).

    Unknown keys are ignored; missing keys are treated as absent.

    Raises:
        CacheFormatError: If *text* is not valid YAML, is not a mapping,
            or holds values of the wrong type.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CacheFormatError(f"Invalid editable metadata: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CacheFormatError(
            "Invalid editable metadata: expected a mapping, got "
            f"{type(data).__name__}"
        )

    fields = {name: data.get(name) for name in EDITABLE_FIELDS}
    try:
        return EditableMetadata(**fields)
    except ValidationError as exc:
        raise CacheFormatError(f"Invalid editable metadata: {exc}") from exc


def metadata_hash(meta: EditableMetadata) -> str:
    """Fingerprint the canonical encoding of *meta*."""
    return hash_text(serialize_editable(meta))
