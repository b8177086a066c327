import abc
from typing import Any, Dict, List, Optional

from tagtm.graph import dependency_closure, find_cross_tag_dependencies
from tagtm.logs import get_logger
from tagtm.models import DependencyConflict, TaggedData, Task
from tagtm.recovery import MoveErrorCode, MoveTaskError
from tagtm.refs import normalize_dependency

log = get_logger("policies")


class Selection:
    """The tasks a cross-tag move was asked for, plus the document they live in."""

    def __init__(self, requested_ids: List[int], tasks: List[Task], source_tag: str, target_tag: str,
                 data: TaggedData, max_depth: int = 100):
        self.requested_ids = requested_ids
        self.tasks = tasks
        self.source_tag = source_tag
        self.target_tag = target_tag
        self.data = data
        self.max_depth = max_depth

    def conflicts(self) -> List[DependencyConflict]:
        return find_cross_tag_dependencies(self.tasks, self.source_tag, self.target_tag, self.data)


class Resolution:
    """What a policy decided: which ids move, and which dependency lists change."""

    def __init__(self, policy: str, task_ids: List[int],
                 dependency_updates: Optional[Dict[str, list]] = None,
                 tips: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.policy = policy
        self.task_ids = task_ids
        self.dependency_updates = dependency_updates or {}
        self.tips = tips or []
        self.details = details or {}

    def summary(self) -> Dict[str, Any]:
        return {"policy": self.policy, **self.details}


class DependencyPolicy(abc.ABC):
    """
    Decides what happens to dependency edges that would cross tags.

    Each concrete policy implements resolve() for one of the caller-facing
    choices: refuse the move, drop the edges, or bring the dependencies along.
    """
    NAME = None

    @abc.abstractmethod
    def resolve(self, selection: Selection) -> Resolution:
        """
        Resolve cross-tag dependencies for a selection.

        Args:
            selection: The requested tasks and their context.

        Returns:
            The resolution to execute.

        Raises:
            MoveTaskError: When the policy refuses the move.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class BlockPolicy(DependencyPolicy):
    """Default: refuse any move that would leave a dependency behind."""
    NAME = "block"

    def resolve(self, selection: Selection) -> Resolution:
        conflicts = selection.conflicts()
        if conflicts:
            log.warning(f"Blocked move of {selection.requested_ids}: {len(conflicts)} cross-tag conflict(s)")
            raise MoveTaskError(
                MoveErrorCode.CROSS_TAG_DEPENDENCY_CONFLICTS,
                f"Cannot move tasks: {len(conflicts)} cross-tag dependency conflicts found",
                {
                    "conflicts": [c.model_dump(by_alias=True) for c in conflicts],
                    "sourceTag": selection.source_tag,
                    "targetTag": selection.target_tag,
                    "taskIds": sorted({normalize_dependency(c.task_id) for c in conflicts}),
                }
            )
        return Resolution(self.NAME, list(selection.requested_ids))


class IgnoreDependenciesPolicy(DependencyPolicy):
    """Move anyway, dropping every edge that would cross tags, in both directions."""
    NAME = "ignoreDependencies"

    def resolve(self, selection: Selection) -> Resolution:
        moving = set(selection.requested_ids)
        staying = [t for t in selection.data[selection.source_tag].tasks if t.id not in moving]
        broken = selection.conflicts() + dangling_dependents(staying, selection.requested_ids)
        dropped = {(str(c.task_id), str(c.dependency_id)) for c in broken}

        # keyed "5" for a task and "5.1" for a subtask
        updates = {}
        for task in selection.data[selection.source_tag].tasks:
            owners = [(str(task.id), task)] + [(f"{task.id}.{st.id}", st) for st in task.subtasks]
            for key, item in owners:
                kept = [dep for dep in item.dependencies if (key, str(dep)) not in dropped]
                if len(kept) != len(item.dependencies):
                    updates[key] = kept

        for edge in broken:
            log.warning(f"Dropping dependency {edge.dependency_id} from {edge.task_id}: {edge.message}")

        return Resolution(
            self.NAME,
            list(selection.requested_ids),
            dependency_updates=updates,
            tips=[
                "Run 'tagtm validate-dependencies' to check for any issues",
                f"Review dependencies of the moved tasks in tag '{selection.target_tag}'",
            ],
            details={"brokenDependencies": [c.model_dump(by_alias=True) for c in broken]}
        )


class WithDependenciesPolicy(DependencyPolicy):
    """Move the requested tasks together with everything they depend on."""
    NAME = "withDependencies"

    def resolve(self, selection: Selection) -> Resolution:
        source_tasks = selection.data[selection.source_tag].tasks
        by_id = {task.id: task for task in source_tasks}
        moving = set(selection.requested_ids)

        # subtask refs are not part of the closure walk, so fold them in until nothing is left behind
        while True:
            selected = [by_id[task_id] for task_id in sorted(moving)]
            moving |= dependency_closure(selected, source_tasks,
                                         max_depth=selection.max_depth, include_self=False)
            selected = [by_id[task_id] for task_id in sorted(moving)]
            left_behind = {
                normalize_dependency(c.dependency_id)
                for c in find_cross_tag_dependencies(selected, selection.source_tag, selection.target_tag,
                                                     selection.data, moving_ids=moving)
            }
            if not left_behind:
                break
            moving |= left_behind

        added = sorted(moving - set(selection.requested_ids))
        if added:
            log.info(f"Moving dependencies {added} along with {selection.requested_ids}")
        return Resolution(
            self.NAME,
            list(selection.requested_ids) + added,
            details={"dependentTaskIds": added}
        )


def policy_from_flags(with_dependencies: bool = False, ignore_dependencies: bool = False) -> DependencyPolicy:
    """Map the caller's two flags onto exactly one policy."""
    if with_dependencies and ignore_dependencies:
        raise ValueError("Cannot use both with_dependencies and ignore_dependencies")
    if with_dependencies:
        return WithDependenciesPolicy()
    if ignore_dependencies:
        return IgnoreDependenciesPolicy()
    return BlockPolicy()


def dangling_dependents(staying: List[Task], moved_ids: List[int]) -> List[DependencyConflict]:
    """Edges from tasks left in the source tag to tasks that moved away."""
    moved = set(moved_ids)
    issues = []
    for task in staying:
        for dep in task.dependencies:
            if normalize_dependency(dep) in moved:
                issues.append(DependencyConflict(
                    task_id=task.id,
                    dependency_id=dep,
                    message=f"Task {task.id} depends on {dep}, which moved to another tag"
                ))
        for subtask in task.subtasks:
            owner = f"{task.id}.{subtask.id}"
            for dep in subtask.dependencies:
                if "." in str(dep) and normalize_dependency(dep) in moved:
                    issues.append(DependencyConflict(
                        task_id=owner,
                        dependency_id=dep,
                        message=f"Subtask {owner} depends on {dep}, which moved to another tag"
                    ))
    return issues
