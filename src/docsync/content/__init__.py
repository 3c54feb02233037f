"""Document model, version history and front-matter handling."""

from .frontmatter import ParsedDocument, parse_document, render_document
from .models import (
    Content,
    ContentChanges,
    ContentSnapshot,
    Metadata,
    MetadataChanges,
    Version,
    Visibility,
    new_id,
)
from .versioning import VersioningService

__all__ = [
    "Content",
    "ContentChanges",
    "ContentSnapshot",
    "Metadata",
    "MetadataChanges",
    "ParsedDocument",
    "Version",
    "VersioningService",
    "Visibility",
    "new_id",
    "parse_document",
    "render_document",
]
