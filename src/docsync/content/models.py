"""Pydantic models for versioned documents.

Defines the document model used by the versioning service and the
reconciler:

- ``Visibility``: Who may see a document.
- ``Metadata``: Tags, categories, language and reading time.
- ``MetadataChanges``: Sparse metadata update (presence tracked per field).
- ``ContentChanges``: Sparse record of the fields changed by one version.
- ``Version``: One recorded historical change.
- ``ContentSnapshot``: The versioned fields of a document at one point.
- ``Content``: The document aggregate.

All models are frozen (immutable).  Every mutation helper on ``Content``
returns a new, re-validated instance.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_serializer,
    model_validator,
)

from docsync.errors import ContentValidationError
from docsync.validators import validate_commit_id, validate_document_path

DEFAULT_LANGUAGE = "ja"


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _required(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


class Visibility(str, Enum):
    """Publication scope of a document."""

    PRIVATE = "private"
    UNLISTED = "unlisted"
    PUBLIC = "public"


class Metadata(BaseModel):
    """Descriptive metadata of a document.

    Attributes:
        tags: Free-form tags.
        categories: Categories the document is filed under.
        language: Language code of the body.
        reading_time: Estimated reading time in minutes.
    """

    tags: frozenset[str] = frozenset()
    categories: frozenset[str] = frozenset()
    language: str = DEFAULT_LANGUAGE
    reading_time: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}


class MetadataChanges(BaseModel):
    """Sparse metadata update.

    A sub-field is part of the change only when it was explicitly set, so
    ``MetadataChanges(reading_time=None)`` clears the reading time while
    ``MetadataChanges()`` changes nothing.  Serialisation keeps only the
    set fields so the presence information survives a round trip.
    """

    tags: frozenset[str] | None = None
    categories: frozenset[str] | None = None
    language: str | None = None
    reading_time: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _no_null_required_fields(self) -> MetadataChanges:
        for name in ("tags", "categories", "language"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"metadata.{name} cannot be cleared")
        return self

    @model_serializer(mode="wrap")
    def _serialize_set_fields(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if key in self.model_fields_set
        }

    @classmethod
    def from_metadata(cls, metadata: Metadata) -> MetadataChanges:
        """Build a change record that sets every field of *metadata*."""
        return cls(
            tags=metadata.tags,
            categories=metadata.categories,
            language=metadata.language,
            reading_time=metadata.reading_time,
        )

    def is_empty(self) -> bool:
        return not self.model_fields_set

    def apply_to(self, metadata: Metadata) -> Metadata:
        """Return *metadata* with the set fields of this change applied."""
        if self.is_empty():
            return metadata
        data = metadata.model_dump()
        for name in self.model_fields_set:
            data[name] = getattr(self, name)
        return Metadata.model_validate(data)


class ContentChanges(BaseModel):
    """Fields changed by one version.

    A field is present when it is not ``None``.  Fields absent from the
    record did not change at that step.
    """

    title: str | None = None
    body: str | None = None
    metadata: MetadataChanges | None = None

    model_config = {"frozen": True}

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str | None) -> str | None:
        if value is not None:
            _required(value, "Title")
        return value

    def changed_fields(self) -> list[str]:
        """Names of the fields present in this record, in model order."""
        fields: list[str] = []
        if self.title is not None:
            fields.append("title")
        if self.body is not None:
            fields.append("body")
        if self.metadata is not None and not self.metadata.is_empty():
            fields.append("metadata")
        return fields

    def is_empty(self) -> bool:
        return not self.changed_fields()


class ContentSnapshot(BaseModel):
    """The versioned fields of a document at one point in its history."""

    title: str
    body: str
    metadata: Metadata

    model_config = {"frozen": True}

    def apply(self, changes: ContentChanges) -> ContentSnapshot:
        """Merge the present fields of *changes* over this snapshot."""
        title = self.title if changes.title is None else changes.title
        body = self.body if changes.body is None else changes.body
        metadata = self.metadata
        if changes.metadata is not None:
            metadata = changes.metadata.apply_to(metadata)
        return ContentSnapshot(title=title, body=body, metadata=metadata)


class Version(BaseModel):
    """One recorded change of a document.

    Attributes:
        id: Unique version identifier.
        content_id: Id of the owning document (lookup only).
        commit_id: External change identifier (e.g. a git commit sha).
        created_at: When the change was recorded.
        changes: The fields changed at this step (never empty).
    """

    id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    commit_id: str
    created_at: datetime
    changes: ContentChanges

    model_config = {"frozen": True}

    @field_validator("commit_id")
    @classmethod
    def _valid_commit_id(cls, value: str) -> str:
        ok, message = validate_commit_id(value)
        if not ok:
            raise ValueError(message)
        return value

    @field_validator("changes")
    @classmethod
    def _changes_not_empty(cls, value: ContentChanges) -> ContentChanges:
        if value.is_empty():
            raise ValueError("A version must change at least one field")
        return value


class Content(BaseModel):
    """A versioned document.

    ``versions`` is append-only and ordered oldest first.  ``baseline``
    holds the document state from before its first version and is used
    to replay history.
    """

    id: str
    repository_id: str
    user_id: str
    path: str
    title: str
    body: str = ""
    metadata: Metadata = Field(default_factory=Metadata)
    visibility: Visibility = Visibility.PRIVATE
    versions: tuple[Version, ...] = ()
    baseline: ContentSnapshot | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @field_validator("id", "repository_id", "user_id")
    @classmethod
    def _ids_not_blank(cls, value: str, info: ValidationInfo) -> str:
        return _required(value, info.field_name)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return _required(value, "Title")

    @field_validator("path")
    @classmethod
    def _valid_path(cls, value: str) -> str:
        ok, message = validate_document_path(value)
        if not ok:
            raise ValueError(message)
        return value

    @model_validator(mode="after")
    def _unique_commit_ids(self) -> Content:
        seen: set[str] = set()
        for version in self.versions:
            if version.commit_id in seen:
                raise ValueError(
                    f"Duplicate commit id in history: {version.commit_id}"
                )
            seen.add(version.commit_id)
        return self

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        *,
        repository_id: str,
        user_id: str,
        path: str,
        title: str,
        body: str = "",
        metadata: Metadata | None = None,
        visibility: Visibility = Visibility.PRIVATE,
        content_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Content:
        """Create a new document with no history.

        Raises:
            ContentValidationError: If a required field is empty or the
                path is malformed.
        """
        now = created_at or utcnow()
        try:
            return cls(
                id=content_id or new_id(),
                repository_id=repository_id,
                user_id=user_id,
                path=path,
                title=title,
                body=body,
                metadata=metadata or Metadata(),
                visibility=visibility,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as exc:
            raise ContentValidationError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Clone-with-changes helpers
    # ------------------------------------------------------------------

    def replace(self, **updates: Any) -> Content:
        """Return a validated copy with *updates* applied.

        ``updated_at`` is refreshed unless supplied explicitly.
        """
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(updates)
        if "updated_at" not in updates:
            data["updated_at"] = utcnow()
        try:
            return type(self).model_validate(data)
        except ValidationError as exc:
            raise ContentValidationError(str(exc)) from exc

    def snapshot(self) -> ContentSnapshot:
        return ContentSnapshot(
            title=self.title, body=self.body, metadata=self.metadata
        )

    def with_title(self, title: str) -> Content:
        return self.replace(title=title)

    def with_body(self, body: str) -> Content:
        return self.replace(body=body)

    def with_metadata(self, metadata: Metadata) -> Content:
        return self.replace(metadata=metadata)

    def with_visibility(self, visibility: Visibility) -> Content:
        return self.replace(visibility=Visibility(visibility))

    def apply_changes(self, changes: ContentChanges) -> Content:
        """Return a copy with the present fields of *changes* merged in."""
        merged = self.snapshot().apply(changes)
        return self.replace(
            title=merged.title, body=merged.body, metadata=merged.metadata
        )

    def add_version(self, version: Version) -> Content:
        """Append *version* to the history.

        Records the current state as ``baseline`` when this is the first
        version.

        Raises:
            ContentValidationError: If the version belongs to another
                document or reuses a recorded commit id.
        """
        if version.content_id != self.id:
            raise ContentValidationError(
                f"Version {version.id} belongs to content "
                f"{version.content_id}, not {self.id}"
            )
        baseline = self.baseline
        if baseline is None and not self.versions:
            baseline = self.snapshot()
        return self.replace(
            versions=(*self.versions, version), baseline=baseline
        )

    def has_commit(self, commit_id: str) -> bool:
        return any(v.commit_id == commit_id for v in self.versions)
