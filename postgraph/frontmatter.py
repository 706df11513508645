"""
Post metadata extraction from YAML front matter.

A post is markdown with an optional front matter block delimited by
``---`` lines (the opening line may also be ``---yaml``). The engine only
receives the structured fields; the body is passed through untouched.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import yaml

from .errors import MetadataError
from .types import parse_timestamp, utc_now

# Tolerated clock skew for ``updated`` timestamps
MAX_FUTURE_SKEW = timedelta(hours=24)

_OPENING_DELIMITERS = ("---", "---yaml")
_CLOSING_DELIMITER = "---"


@dataclass(frozen=True)
class ParsedPost:
    """Structured metadata of a post plus its body bytes."""
    tags: list[str]
    name: str
    updated_at: datetime
    description: str = ""
    body: bytes = b""


def split_frontmatter(text: str) -> tuple[dict, str]:
    """Split text into (front matter dict, body).

    Leading blank lines before the opening delimiter are allowed. If no
    complete front matter block is present the whole text is the body.
    """
    lines = text.splitlines(keepends=True)
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start >= len(lines) or lines[start].strip() not in _OPENING_DELIMITERS:
        return {}, text

    for end in range(start + 1, len(lines)):
        if lines[end].strip() == _CLOSING_DELIMITER:
            block = "".join(lines[start + 1:end])
            body = "".join(lines[end + 1:])
            try:
                data = yaml.safe_load(block)
            except yaml.YAMLError as e:
                raise MetadataError(f"Invalid front matter: {e}") from e
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise MetadataError("Front matter must be a mapping")
            return data, body
    return {}, text


def _as_tag_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    raise MetadataError(f"tags must be a list, got {type(value).__name__}")


def parse_post(raw: bytes) -> ParsedPost:
    """
    Parse raw post bytes into structured metadata.

    The ``updated`` field is required (``date`` is accepted as a legacy
    fallback) and may not lie more than a day in the future.
    ``description`` falls back to ``lead``; one of the two is required.

    Raises:
        MetadataError: If the front matter is invalid or incomplete
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MetadataError(f"Post is not valid UTF-8: {e}") from e

    meta, body = split_frontmatter(text)

    raw_updated = meta.get("updated") or meta.get("date")
    if not raw_updated:
        raise MetadataError("updated timestamp required")
    try:
        updated_at = parse_timestamp(raw_updated)
    except ValueError as e:
        raise MetadataError(str(e)) from e
    if updated_at > utc_now() + MAX_FUTURE_SKEW:
        raise MetadataError("updated timestamp cannot be in the far future")

    description = str(meta.get("description") or "").strip()
    if not description:
        description = str(meta.get("lead") or "").strip()
    if not description:
        raise MetadataError("description (or lead) required")

    return ParsedPost(
        tags=_as_tag_list(meta.get("tags")),
        name=str(meta.get("name") or "").strip(),
        updated_at=updated_at,
        description=description,
        body=body.encode("utf-8"),
    )
