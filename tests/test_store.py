"""Unit tests for the tagged store and its file helpers."""

import json

import pytest

from conftest import task
from tagtm.data import ResolvedTagView, TaggedStore, atomic_write, load_json_file, load_yaml_file
from tagtm.data.validate import validate_document
from tagtm.recovery import CorruptionError, FatalError, InvalidTasksFileError, MoveErrorCode


class TestTaggedStoreLoad:
    """Test loading the tagged document."""

    def test_load_raw(self, write_tasks):
        """Test loading every tag without selecting one."""
        path = write_tasks({
            "master": {"tasks": [task(1), task(2, deps=[1])]},
            "feature": {"tasks": [task(1)]},
        })
        data = TaggedStore().load_raw(path)
        assert data.tag_names() == ["master", "feature"]
        assert data["master"].task_ids() == [1, 2]

    def test_load_resolved_keeps_raw(self, write_tasks):
        """Test that a resolved view still exposes every tag."""
        path = write_tasks({"master": {"tasks": [task(1)]}, "feature": {"tasks": [task(9)]}})
        view = TaggedStore().load_resolved(path, "feature")
        assert isinstance(view, ResolvedTagView)
        assert [t.id for t in view.tasks] == [9]
        assert view.raw["master"].task_ids() == [1]

    def test_missing_tag(self, write_tasks):
        """Test that an unknown tag is reported with the available ones."""
        path = write_tasks({"master": {"tasks": []}})
        with pytest.raises(InvalidTasksFileError) as exc_info:
            TaggedStore().load_resolved(path, "nope")
        assert exc_info.value.code == MoveErrorCode.INVALID_TASKS_FILE
        assert exc_info.value.data["availableTags"] == ["master"]

    def test_missing_file(self, tmp_path):
        """Test that a missing file is an invalid tasks file."""
        with pytest.raises(InvalidTasksFileError, match="not found"):
            TaggedStore().load_raw(tmp_path / "absent.json")

    def test_corrupt_json(self, tmp_path):
        """Test that broken JSON is not auto-repaired."""
        path = tmp_path / "tasks.json"
        path.write_text('{"master": {"tasks": [', encoding="utf-8")
        with pytest.raises(InvalidTasksFileError) as exc_info:
            TaggedStore().load_raw(path)
        assert isinstance(exc_info.value, CorruptionError)

    def test_unreadable_file(self, tmp_path):
        """Test that a path that cannot be read as a file is an invalid tasks file."""
        with pytest.raises(InvalidTasksFileError) as exc_info:
            TaggedStore().load_raw(tmp_path)
        assert exc_info.value.code == MoveErrorCode.INVALID_TASKS_FILE
        assert exc_info.value.data["path"] == str(tmp_path)

    def test_structurally_invalid(self, write_tasks):
        """Test that a tag without a task list is rejected."""
        path = write_tasks({"master": {"tasks": "not a list"}})
        with pytest.raises(InvalidTasksFileError) as exc_info:
            TaggedStore().load_raw(path)
        assert exc_info.value.data["errors"]

    def test_legacy_layout_reads_as_master(self, write_tasks):
        """Test that an untagged document is read as the master tag."""
        path = write_tasks({"tasks": [task(1), task(2)]})
        data = TaggedStore().load_raw(path)
        assert data.tag_names() == ["master"]
        assert data["master"].task_ids() == [1, 2]


class TestTaggedStoreSave:
    """Test writing the tagged document."""

    def test_save_strips_transient_keys(self, write_tasks, read_tasks):
        """Test that underscore-prefixed cache keys never reach the file."""
        path = write_tasks({
            "master": {"tasks": [task(1)]},
            "_rawTaggedData": {"master": "cached"},
        })
        store = TaggedStore()
        store.save(path, store.load_raw(path))
        assert list(read_tasks(path)) == ["master"]

    def test_save_view_writes_all_tags(self, write_tasks, read_tasks):
        """Test that saving a resolved view rewrites the whole document."""
        path = write_tasks({"master": {"tasks": [task(1)]}, "feature": {"tasks": [task(2)]}})
        store = TaggedStore()
        view = store.load_resolved(path, "master")
        view.tasks[0].title = "Renamed"
        store.save(path, view)

        saved = read_tasks(path)
        assert saved["master"]["tasks"][0]["title"] == "Renamed"
        assert saved["feature"]["tasks"][0]["id"] == 2

    def test_round_trip_preserves_content(self, write_tasks, read_tasks):
        """Test that load then save keeps unknown fields and timestamps as written."""
        document = {"master": {
            "tasks": [task(1, priority="high", testStrategy="unit", complexity=3, metadata={"moveHistory": [
                {"fromTag": "feature", "toTag": "master", "timestamp": "2025-06-13T10:00:00.000Z"},
            ]})],
            "metadata": {"created": "2025-06-13T10:00:00.000Z", "description": "Main"},
        }}
        path = write_tasks(document)
        store = TaggedStore()
        store.save(path, store.load_raw(path))
        assert read_tasks(path) == document


class TestFileHelpers:
    """Test atomic writes and loaders."""

    def test_atomic_write_json(self, tmp_path):
        """Test JSON writes create parent directories when asked."""
        path = tmp_path / "nested" / "dir" / "out.json"
        atomic_write(path, {"a": 1}, create_dirs=True)
        assert json.loads(path.read_text()) == {"a": 1}
        assert [p.name for p in path.parent.iterdir()] == ["out.json"]

    def test_atomic_write_unserializable(self, tmp_path):
        """Test that unserializable data is fatal and leaves no file behind."""
        path = tmp_path / "out.json"
        with pytest.raises(FatalError):
            atomic_write(path, {"a": object()})
        assert list(tmp_path.iterdir()) == []

    def test_load_yaml(self, tmp_path):
        """Test YAML config reads."""
        path = tmp_path / "config.yml"
        path.write_text("default_tag: main\n", encoding="utf-8")
        assert load_yaml_file(path) == {"default_tag": "main"}

    def test_loaders_missing_file(self, tmp_path):
        """Test that missing files read as None."""
        assert load_json_file(tmp_path / "none.json") is None
        assert load_yaml_file(tmp_path / "none.yml") is None

    def test_load_json_non_object(self, tmp_path):
        """Test that a top-level array is corruption."""
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(CorruptionError):
            load_json_file(path)


class TestValidateDocument:
    """Test the structural schema check."""

    def test_valid(self):
        """Test a well-formed document."""
        assert validate_document({"master": {"tasks": [{"id": 1, "subtasks": [{"id": 1}]}]}}) == []

    def test_reports_paths(self):
        """Test that errors name where they happened."""
        errors = validate_document({"master": {"tasks": [{"title": "no id"}]}})
        assert len(errors) == 1
        assert errors[0].startswith("master/tasks/0:")
