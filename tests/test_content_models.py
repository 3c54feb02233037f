"""Tests for docsync.content.models -- the document model and its change records."""

import pytest
from pydantic import ValidationError

from conftest import T0, make_content
from docsync.content.models import (
    Content,
    ContentChanges,
    ContentSnapshot,
    Metadata,
    MetadataChanges,
    Version,
    Visibility,
)
from docsync.errors import ContentValidationError


def _version(content_id: str, commit_id: str, **changes) -> Version:
    return Version(
        id=f"v-{commit_id}",
        content_id=content_id,
        commit_id=commit_id,
        created_at=T0,
        changes=ContentChanges(**changes),
    )


# -------------------------------------------------------------------------
# Content.create()
# -------------------------------------------------------------------------


class TestContentCreate:
    def test_defaults(self):
        content = make_content()
        assert content.id
        assert content.visibility == Visibility.PRIVATE
        assert content.versions == ()
        assert content.baseline is None
        assert content.created_at == content.updated_at == T0

    def test_explicit_id(self):
        assert make_content(content_id="c-1").id == "c-1"

    def test_ids_are_unique(self):
        assert make_content().id != make_content().id

    def test_blank_title_rejected(self):
        with pytest.raises(ContentValidationError, match="Title"):
            make_content(title="   ")

    def test_blank_repository_id_rejected(self):
        with pytest.raises(ContentValidationError):
            make_content(repository_id="")

    @pytest.mark.parametrize(
        "path", ["", "/abs.md", "../up.md", "a//b.md", "a\\b.md"]
    )
    def test_bad_path_rejected(self, path):
        with pytest.raises(ContentValidationError):
            make_content(path=path)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            make_content(title="")


# -------------------------------------------------------------------------
# Clone-with-changes helpers
# -------------------------------------------------------------------------


class TestCloneHelpers:
    def test_with_title_leaves_original_untouched(self):
        content = make_content()
        renamed = content.with_title("Other")
        assert renamed.title == "Other"
        assert content.title == "Intro"
        assert renamed.id == content.id

    def test_replace_refreshes_updated_at(self):
        content = make_content()
        assert content.with_body("new").updated_at > T0

    def test_replace_keeps_explicit_updated_at(self):
        content = make_content()
        assert content.replace(body="x", updated_at=T0).updated_at == T0

    def test_replace_validates(self):
        with pytest.raises(ContentValidationError):
            make_content().with_title("")

    def test_with_visibility(self):
        content = make_content().with_visibility(Visibility.PUBLIC)
        assert content.visibility == Visibility.PUBLIC

    def test_with_metadata(self):
        meta = Metadata(language="en", reading_time=3)
        assert make_content().with_metadata(meta).metadata == meta

    def test_frozen(self):
        content = make_content()
        with pytest.raises(ValidationError):
            content.title = "mutated"

    def test_apply_changes_merges_present_fields(self):
        content = make_content()
        changed = content.apply_changes(ContentChanges(body="new body"))
        assert changed.body == "new body"
        assert changed.title == "Intro"
        assert changed.metadata == content.metadata


# -------------------------------------------------------------------------
# History
# -------------------------------------------------------------------------


class TestAddVersion:
    def test_first_version_records_baseline(self):
        content = make_content()
        versioned = content.add_version(_version(content.id, "c1", body="x"))
        assert versioned.baseline == content.snapshot()
        assert [v.commit_id for v in versioned.versions] == ["c1"]

    def test_baseline_kept_on_later_versions(self):
        content = make_content()
        first = content.add_version(_version(content.id, "c1", body="x"))
        second = first.apply_changes(ContentChanges(body="x")).add_version(
            _version(content.id, "c2", body="y")
        )
        assert second.baseline == content.snapshot()

    def test_foreign_version_rejected(self):
        with pytest.raises(ContentValidationError, match="belongs to"):
            make_content().add_version(_version("other", "c1", body="x"))

    def test_duplicate_commit_rejected(self):
        content = make_content()
        first = content.add_version(_version(content.id, "c1", body="x"))
        with pytest.raises(ContentValidationError, match="Duplicate"):
            first.add_version(_version(content.id, "c1", body="y"))

    def test_has_commit(self):
        content = make_content()
        versioned = content.add_version(_version(content.id, "c1", body="x"))
        assert versioned.has_commit("c1")
        assert not versioned.has_commit("c2")


class TestVersion:
    def test_empty_changes_rejected(self):
        with pytest.raises(ValidationError):
            _version("c", "c1")

    def test_blank_commit_rejected(self):
        with pytest.raises(ValidationError):
            _version("c", " ", body="x")

    def test_commit_with_whitespace_rejected(self):
        with pytest.raises(ValidationError):
            _version("c", "a b", body="x")


# -------------------------------------------------------------------------
# Change records
# -------------------------------------------------------------------------


class TestContentChanges:
    def test_changed_fields_in_model_order(self):
        changes = ContentChanges(
            metadata=MetadataChanges(language="en"), title="T"
        )
        assert changes.changed_fields() == ["title", "metadata"]

    def test_empty(self):
        assert ContentChanges().is_empty()
        assert ContentChanges(metadata=MetadataChanges()).is_empty()

    def test_empty_body_counts_as_change(self):
        assert ContentChanges(body="").changed_fields() == ["body"]

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            ContentChanges(title="  ")


class TestMetadataChanges:
    def test_presence_tracks_explicit_none(self):
        clear = MetadataChanges(reading_time=None)
        assert not clear.is_empty()
        meta = Metadata(reading_time=5)
        assert clear.apply_to(meta).reading_time is None

    def test_unset_fields_left_alone(self):
        meta = Metadata(tags=frozenset({"a"}), language="en")
        updated = MetadataChanges(tags=frozenset({"b"})).apply_to(meta)
        assert updated.tags == frozenset({"b"})
        assert updated.language == "en"

    def test_cannot_clear_required_field(self):
        with pytest.raises(ValidationError):
            MetadataChanges(language=None)

    def test_serialization_keeps_only_set_fields(self):
        dumped = MetadataChanges(reading_time=None).model_dump()
        assert dumped == {"reading_time": None}

    def test_round_trip_preserves_presence(self):
        original = ContentChanges(metadata=MetadataChanges(reading_time=None))
        restored = ContentChanges.model_validate(
            original.model_dump(mode="json")
        )
        assert restored.metadata.model_fields_set == {"reading_time"}

    def test_from_metadata_sets_everything(self):
        meta = Metadata(tags=frozenset({"x"}), language="en", reading_time=2)
        changes = MetadataChanges.from_metadata(meta)
        assert changes.apply_to(Metadata()) == meta


class TestContentSnapshot:
    def test_apply(self):
        snap = ContentSnapshot(title="A", body="b", metadata=Metadata())
        applied = snap.apply(ContentChanges(title="B"))
        assert applied.title == "B"
        assert applied.body == "b"


class TestContentSerialization:
    def test_json_round_trip(self):
        content = make_content()
        versioned = content.add_version(_version(content.id, "c1", body="x"))
        loaded = Content.model_validate(versioned.model_dump(mode="json"))
        assert loaded == versioned
