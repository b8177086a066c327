"""
Task and subtask identifier parsing.

Ids arrive as ints, numeric strings or dotted ``"parent.sub"`` strings. The
normalizers here reduce dependency references to the numeric parent id and
never raise, so legacy or external references degrade to ``None``.
"""
import math
import re
from typing import Any, List, Optional, Union

TaskRefLike = Union[int, str]


def _parse_int(text: str) -> Optional[int]:
    # parseInt-style: leading sign and digits, trailing junk ignored
    match = re.match(r'^\s*([+-]?\d+)', text)
    return int(match.group(1)) if match else None


def normalize_dependency(dep: Any) -> Optional[int]:
    """Reduce a dependency reference to its numeric parent task id."""
    if dep is None:
        return None
    if isinstance(dep, bool):
        return None
    if isinstance(dep, int):
        return dep
    if isinstance(dep, float):
        return int(dep) if math.isfinite(dep) and dep.is_integer() else None
    if isinstance(dep, str):
        trimmed = dep.strip()
        if not trimmed:
            return None
        parent_part = trimmed.split('.')[0] if '.' in trimmed else trimmed
        return _parse_int(parent_part)
    return None


def normalize_dependencies(deps: Any) -> Optional[List[int]]:
    """Normalize a dependency list, dropping entries that do not resolve."""
    if deps is None:
        return None
    if not isinstance(deps, (list, tuple)):
        return deps
    normalized = (normalize_dependency(d) for d in deps)
    return [n for n in normalized if n is not None]


def split_ids(text: Union[str, int]) -> List[str]:
    """Split a comma-separated id list into trimmed, non-empty entries."""
    return [part.strip() for part in str(text).split(',') if part.strip()]


class TaskRef:
    """Typed task or subtask identifier.

    ``TaskRef.parse("5")`` addresses top-level task 5, ``TaskRef.parse("5.2")``
    addresses subtask 2 of task 5.
    """

    REF_PATTERN = re.compile(r'^\s*(\d+)(?:\.(\d+))?\s*$')

    def __init__(self, parent_id: int, sub_id: Optional[int] = None):
        self.parent_id = parent_id
        self.sub_id = sub_id

    @classmethod
    def parse(cls, value: TaskRefLike) -> 'TaskRef':
        if isinstance(value, bool):
            raise ValueError(f"Invalid task id: {value!r}")
        if isinstance(value, int):
            return cls(value)
        match = cls.REF_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"Invalid task id: {value!r}")
        sub = match.group(2)
        return cls(int(match.group(1)), int(sub) if sub is not None else None)

    @classmethod
    def is_valid(cls, value: TaskRefLike) -> bool:
        try:
            cls.parse(value)
            return True
        except ValueError:
            return False

    @property
    def is_subtask(self) -> bool:
        return self.sub_id is not None

    def __eq__(self, other) -> bool:
        if not isinstance(other, TaskRef):
            return NotImplemented
        return (self.parent_id, self.sub_id) == (other.parent_id, other.sub_id)

    def __hash__(self) -> int:
        return hash((self.parent_id, self.sub_id))

    def __str__(self) -> str:
        if self.is_subtask:
            return f"{self.parent_id}.{self.sub_id}"
        return str(self.parent_id)

    def __repr__(self) -> str:
        return f"TaskRef({str(self)!r})"
