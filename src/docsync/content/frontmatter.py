"""Markdown front-matter parsing and rendering.

Remote documents are plain markdown files, optionally prefixed by a YAML
front-matter block::

    ---
    title: Release notes
    tags: [release, changelog]
    visibility: public
    ---
    # Release notes
    ...

``parse_document`` turns such a file into the fields the document model
needs; ``render_document`` writes a ``Content`` back out in the same shape.
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import PurePosixPath
from typing import Any

import yaml
from pydantic import BaseModel

from docsync.content.models import (
    DEFAULT_LANGUAGE,
    Content,
    Metadata,
    Visibility,
)

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_HEADING_RE = re.compile(r"^#[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_INLINE_TAG_RE = re.compile(r"(?:^|\s)#([\w/-]+)")
_FENCED_CODE_RE = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)


class ParsedDocument(BaseModel):
    """Fields extracted from one markdown file.

    ``visibility`` is ``None`` unless the file marks it explicitly.
    """

    title: str
    body: str
    tags: frozenset[str] = frozenset()
    categories: frozenset[str] = frozenset()
    language: str = DEFAULT_LANGUAGE
    visibility: Visibility | None = None
    reading_time: int | None = None

    model_config = {"frozen": True}

    @property
    def metadata(self) -> Metadata:
        return Metadata(
            tags=self.tags,
            categories=self.categories,
            language=self.language,
            reading_time=self.reading_time,
        )


def split_front_matter(raw: str) -> tuple[dict[str, Any], str]:
    """Split *raw* into its front-matter mapping and the remaining body.

    Malformed or non-mapping front matter is logged and treated as absent
    (the block is still stripped from the body).
    """
    text = raw.lstrip("\ufeff")
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text

    body = text[match.end():]
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed front matter: %s", exc)
        return {}, body
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring front matter that is not a mapping (%s)",
            type(data).__name__,
        )
        return {}, body
    return data, body


def _as_labels(value: Any) -> set[str]:
    """Normalise a tag/category value (list or comma string) to labels."""
    if value is None:
        return set()
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    labels = set()
    for item in items:
        label = str(item).strip().lstrip("#").strip()
        if label:
            labels.add(label)
    return labels


def _inline_tags(body: str) -> set[str]:
    stripped = _FENCED_CODE_RE.sub("", body)
    tags = {tag.strip("/") for tag in _INLINE_TAG_RE.findall(stripped)}
    tags.discard("")
    return tags


def _visibility_hint(data: dict[str, Any]) -> Visibility | None:
    value = data.get("visibility")
    if isinstance(value, str):
        try:
            return Visibility(value.strip().lower())
        except ValueError:
            logger.warning("Ignoring unknown visibility %r", value)
    if data.get("public") is True:
        return Visibility.PUBLIC
    return None


def derive_title(data: dict[str, Any], body: str, path: str) -> str:
    """Front-matter title, else the first level-one heading, else the stem."""
    title = data.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    match = _HEADING_RE.search(body)
    if match is not None and match.group(1).strip():
        return match.group(1).strip()
    return PurePosixPath(path).stem or path


def estimate_reading_time(body: str) -> int:
    """Minutes needed to read *body* at ``WORDS_PER_MINUTE``."""
    return math.ceil(len(body.split()) / WORDS_PER_MINUTE)


def parse_document(
    raw: str,
    path: str,
    *,
    default_language: str = DEFAULT_LANGUAGE,
    inline_tags: bool = False,
) -> ParsedDocument:
    """Parse a markdown file into document fields.

    Args:
        raw: Full file text.
        path: Repository-relative path (used for the fallback title).
        default_language: Language used when the file names none.
        inline_tags: Also collect ``#tag`` markers from the body (vault
            notes use them).

    Returns:
        The parsed document.
    """
    data, body = split_front_matter(raw)

    tags = _as_labels(data.get("tags"))
    if inline_tags:
        tags |= _inline_tags(body)
    categories = _as_labels(data.get("categories", data.get("category")))

    language = data.get("language", data.get("lang"))
    if not isinstance(language, str) or not language.strip():
        language = default_language

    return ParsedDocument(
        title=derive_title(data, body, path),
        body=body,
        tags=frozenset(tags),
        categories=frozenset(categories),
        language=language.strip(),
        visibility=_visibility_hint(data),
        reading_time=estimate_reading_time(body),
    )


def render_document(content: Content) -> str:
    """Render *content* as a markdown file with YAML front matter."""
    data: dict[str, Any] = {"title": content.title}
    if content.metadata.tags:
        data["tags"] = sorted(content.metadata.tags)
    if content.metadata.categories:
        data["categories"] = sorted(content.metadata.categories)
    data["language"] = content.metadata.language
    data["visibility"] = content.visibility.value

    header = yaml.safe_dump(
        data, default_flow_style=False, allow_unicode=True, sort_keys=False
    )
    return f"---\n{header}---\n{content.body}"
