from enum import Enum
from typing import Any, Dict, List, Optional


class TagTMError(Exception):
    """Base exception for all tagtm errors."""
    pass

class RecoverableError(TagTMError):
    """An error that can be recovered from without data loss."""
    pass

class FatalError(TagTMError):
    """An error that requires application termination or major intervention."""
    pass

class CorruptionError(FatalError):
    """Corrupted Data Error - from syntax errors in data formats, to just unknown data"""
    pass

class FileOperationError(RecoverableError):
    """File operation failed but can be retried."""
    pass


class MoveErrorCode(str, Enum):
    # pre-flight
    ID_COUNT_MISMATCH = "ID_COUNT_MISMATCH"
    INVALID_SOURCE_TAG = "INVALID_SOURCE_TAG"
    INVALID_TARGET_TAG = "INVALID_TARGET_TAG"
    CANNOT_MOVE_SUBTASK = "CANNOT_MOVE_SUBTASK"
    SOURCE_TARGET_TAGS_SAME = "SOURCE_TARGET_TAGS_SAME"
    # lookup
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    SUBTASK_NOT_FOUND = "SUBTASK_NOT_FOUND"
    PARENT_TASK_NOT_FOUND = "PARENT_TASK_NOT_FOUND"
    PARENT_TASK_NO_SUBTASKS = "PARENT_TASK_NO_SUBTASKS"
    DESTINATION_TASK_NOT_FOUND = "DESTINATION_TASK_NOT_FOUND"
    # conflict
    TASK_ALREADY_EXISTS = "TASK_ALREADY_EXISTS"
    CROSS_TAG_DEPENDENCY_CONFLICTS = "CROSS_TAG_DEPENDENCY_CONFLICTS"
    TASK_HAS_SUBTASKS = "TASK_HAS_SUBTASKS"
    # store
    INVALID_TASKS_FILE = "INVALID_TASKS_FILE"


LOOKUP_ERROR_CODES = frozenset({
    MoveErrorCode.TASK_NOT_FOUND,
    MoveErrorCode.SUBTASK_NOT_FOUND,
    MoveErrorCode.PARENT_TASK_NOT_FOUND,
    MoveErrorCode.PARENT_TASK_NO_SUBTASKS,
    MoveErrorCode.DESTINATION_TASK_NOT_FOUND,
})

SUGGESTIONS: Dict[MoveErrorCode, List[str]] = {
    MoveErrorCode.CROSS_TAG_DEPENDENCY_CONFLICTS: [
        "Use --with-dependencies to move dependent tasks together",
        "Use --ignore-dependencies to break cross-tag dependencies",
        "Run 'tagtm validate-dependencies' to check for issues",
        "Move dependencies first, then move the main task",
    ],
    MoveErrorCode.CANNOT_MOVE_SUBTASK: [
        "Promote the subtask to a full task first: tagtm move --from=<parent.sub> --to=<newId>",
        "Move the parent task with all subtasks instead",
    ],
    MoveErrorCode.TASK_ALREADY_EXISTS: [
        "Choose a different target tag without conflicting IDs",
        "Move a different set of IDs (avoid existing ones)",
        "If needed, move within-tag to a new ID first, then cross-tag move",
    ],
    MoveErrorCode.SOURCE_TARGET_TAGS_SAME: [
        "Use different tags for cross-tag moves",
        "Use within-tag move: tagtm move --from=<id> --to=<id> --tag=<tag>",
        "Check available tags: tagtm tags",
    ],
    MoveErrorCode.TASK_HAS_SUBTASKS: [
        "Promote or move the task's subtasks first",
        "Move the task to a new top-level ID instead",
    ],
}


class MoveTaskError(TagTMError):
    """Structured error for move operations, carrying a stable code and remediation data."""

    def __init__(self, code: MoveErrorCode, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = MoveErrorCode(code)
        self.message = message
        self.data = dict(data or {})
        if "suggestions" not in self.data and self.code in SUGGESTIONS:
            self.data["suggestions"] = list(SUGGESTIONS[self.code])

    @property
    def is_lookup_error(self) -> bool:
        return self.code in LOOKUP_ERROR_CODES

    @property
    def suggestions(self) -> List[str]:
        return self.data.get("suggestions", [])

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "data": self.data}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value!r}, {self.message!r})"


class InvalidTasksFileError(MoveTaskError, CorruptionError):
    """The backing tasks file is missing or structurally invalid."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(MoveErrorCode.INVALID_TASKS_FILE, message, data)
