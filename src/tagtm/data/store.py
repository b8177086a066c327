"""
TaggedStore - loads and saves the tag-keyed tasks document.

The backing file is read in full, mutated in memory by the callers and
rewritten in full. Writes are atomic (no torn files) but there is no lock and
no version check: two processes racing on the same file is last-writer-wins.
"""
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from tagtm.logs import get_logger
from tagtm.models import Tag, TaggedData, Task
from tagtm.recovery import CorruptionError, FileOperationError, InvalidTasksFileError
from .io import atomic_write, load_json_file
from .validate import is_legacy_document, validate_document

log = get_logger("data.store")

LEGACY_TAG = "master"


class ResolvedTagView:
    """Convenience view of one tag; ``raw`` is the full, unresolved document."""

    def __init__(self, tag: str, raw: TaggedData):
        self.tag = tag
        self.raw = raw

    @property
    def tasks(self) -> List[Task]:
        return self.raw[self.tag].tasks

    def __repr__(self) -> str:
        return f"ResolvedTagView(tag={self.tag!r}, tasks={len(self.tasks)})"


class TaggedStore:
    """Reads and writes the tagged tasks JSON file."""

    def load_raw(self, tasks_path: Union[Path, str]) -> TaggedData:
        """Load the whole multi-tag document without selecting any tag."""
        tasks_path = Path(tasks_path)
        if not tasks_path.exists():
            log.error(f"Tasks file not found: {tasks_path}")
            raise InvalidTasksFileError(f"Tasks file not found at {tasks_path}", {"path": str(tasks_path)})

        try:
            document = load_json_file(tasks_path)
        except (CorruptionError, FileOperationError) as e:
            log.error(str(e))
            raise InvalidTasksFileError(f"Invalid tasks file at {tasks_path}: {e}", {"path": str(tasks_path)}) from e

        document = self._strip_transient(document)
        if is_legacy_document(document):
            log.warning(f"{tasks_path} uses the untagged layout, reading it as tag '{LEGACY_TAG}'")
            document = {LEGACY_TAG: {"tasks": document["tasks"], "metadata": document.get("metadata")}}

        errors = validate_document(document)
        if errors:
            raise InvalidTasksFileError(
                f"Invalid tasks file at {tasks_path}: {errors[0]}",
                {"path": str(tasks_path), "errors": errors}
            )

        try:
            data = TaggedData.from_document(document)
        except ValidationError as e:
            log.error(f"Tasks file {tasks_path} failed model validation: {e}")
            raise InvalidTasksFileError(
                f"Invalid tasks file at {tasks_path}: {e.error_count()} field error(s)",
                {"path": str(tasks_path), "errors": [err["msg"] for err in e.errors()]}
            ) from e

        self._warn_duplicate_ids(data)
        log.debug(f"Loaded {len(data.tag_names())} tag(s) from {tasks_path}")
        return data

    def load_resolved(self, tasks_path: Union[Path, str], tag: str) -> ResolvedTagView:
        """Load the document and select one tag; the raw form stays reachable via ``view.raw``."""
        raw = self.load_raw(tasks_path)
        if not raw.has_tag(tag):
            raise InvalidTasksFileError(
                f'Invalid tasks file or tag "{tag}" not found at {tasks_path}',
                {"path": str(tasks_path), "tag": tag, "availableTags": raw.tag_names()}
            )
        return ResolvedTagView(tag, raw)

    def save(self, tasks_path: Union[Path, str], data: Union[TaggedData, ResolvedTagView]) -> None:
        """Rewrite the whole file with only tag-keyed task lists and metadata."""
        if isinstance(data, ResolvedTagView):
            data = data.raw
        document = data.to_document()
        atomic_write(tasks_path, document, create_dirs=True)
        log.info(f"Saved {len(document)} tag(s) to {tasks_path}")

    @staticmethod
    def _strip_transient(document: Dict[str, Any]) -> Dict[str, Any]:
        transient = [key for key in document if key.startswith("_")]
        for key in transient:
            log.debug(f"Dropping transient key '{key}' from tasks document")
        return {key: value for key, value in document.items() if key not in transient}

    @staticmethod
    def _warn_duplicate_ids(data: TaggedData) -> None:
        for tag_name in data.tag_names():
            tag: Tag = data[tag_name]
            duplicates = [task_id for task_id, count in Counter(tag.task_ids()).items() if count > 1]
            if duplicates:
                log.warning(f"Tag '{tag_name}' has duplicate task ids: {duplicates}")
