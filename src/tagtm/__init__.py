"""
tagtm - a tagged task graph mutation engine.

Tasks live in named tags inside one JSON document. This package moves tasks
and subtasks within a tag (relabel, reorder, promote, demote) and migrates
top-level tasks between tags while keeping dependency edges inside their tag.
"""

from .version import VERSION
from .models import (
    Subtask,
    Task,
    Tag,
    TaggedData,
    MoveResult,
    BatchMoveResult,
    CrossTagMoveResult,
)
from .refs import TaskRef, normalize_dependency, normalize_dependencies
from .recovery import MoveErrorCode, MoveTaskError
from .data import TaggedStore
from .moves import IntraTagMover, move_item, move_tasks
from .graph import dependency_closure, find_cross_tag_dependencies
from .policies import BlockPolicy, IgnoreDependenciesPolicy, WithDependenciesPolicy, policy_from_flags
from .migrate import CrossTagMigrator

__version__ = VERSION

__all__ = [
    "VERSION",
    "Subtask",
    "Task",
    "Tag",
    "TaggedData",
    "MoveResult",
    "BatchMoveResult",
    "CrossTagMoveResult",
    "TaskRef",
    "normalize_dependency",
    "normalize_dependencies",
    "MoveErrorCode",
    "MoveTaskError",
    "TaggedStore",
    "IntraTagMover",
    "move_item",
    "move_tasks",
    "dependency_closure",
    "find_cross_tag_dependencies",
    "BlockPolicy",
    "IgnoreDependenciesPolicy",
    "WithDependenciesPolicy",
    "policy_from_flags",
    "CrossTagMigrator",
]
