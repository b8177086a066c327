"""
Dependency graph walks over a bounded set of tasks.

Dependencies are followed by their normalized parent id, so ``"5.2"`` walks to
task 5. Walks never leave the task set they are given.
"""
from typing import Collection, Dict, Iterable, List, Optional, Set

from tagtm.logs import get_logger
from tagtm.models import DependencyConflict, TaggedData, Task
from tagtm.refs import TaskRef, normalize_dependencies, normalize_dependency

log = get_logger("graph")

DEFAULT_MAX_DEPTH = 50


def dependency_closure(source_tasks: Iterable[Task], tasks_in_scope: Iterable[Task],
                       max_depth: int = DEFAULT_MAX_DEPTH, include_self: bool = False) -> Set[int]:
    """
    Collect the forward dependency closure of ``source_tasks``.

    Args:
        source_tasks: Tasks whose dependencies are followed.
        tasks_in_scope: The only tasks the walk may visit.
        max_depth: Maximum number of dependency hops from a source task.
        include_self: Whether the source ids are part of the result.

    Returns:
        Ids of every task reachable from the sources within the scope.
    """
    by_id: Dict[int, Task] = {task.id: task for task in tasks_in_scope}
    source_tasks = list(source_tasks)
    source_ids = [task.id for task in source_tasks]

    visited: Set[int] = set(source_ids)
    result: Set[int] = set(source_ids) if include_self else set()
    frontier: List[Task] = source_tasks
    depth = 0

    while frontier:
        if depth >= max_depth:
            log.warning(f"Dependency walk stopped at max depth {max_depth}; "
                        f"{len(frontier)} task(s) not expanded")
            break
        next_frontier = []
        for task in frontier:
            for dep_id in normalize_dependencies(task.dependencies) or []:
                if dep_id in visited or dep_id not in by_id:
                    continue
                visited.add(dep_id)
                result.add(dep_id)
                next_frontier.append(by_id[dep_id])
        frontier = next_frontier
        depth += 1

    return result


def find_cross_tag_dependencies(source_tasks: Iterable[Task], source_tag: str, target_tag: str,
                                data: TaggedData,
                                moving_ids: Optional[Collection[int]] = None) -> List[DependencyConflict]:
    """
    Find dependency edges that would cross a tag boundary once ``source_tasks`` move.

    An edge conflicts when it resolves to a task that stays behind in the
    source tag. Edges between tasks that move together never conflict, and
    references that resolve nowhere are left to dependency validation.
    """
    source_tasks = list(source_tasks)
    moving = set(moving_ids) if moving_ids is not None else {task.id for task in source_tasks}
    staying = {task.id for task in data[source_tag].tasks if task.id not in moving}

    conflicts = []
    for task in source_tasks:
        for dep in task.dependencies or []:
            if normalize_dependency(dep) in staying:
                conflicts.append(DependencyConflict(
                    task_id=task.id,
                    dependency_id=dep,
                    dependency_tag=source_tag,
                    message=f"Task {task.id} depends on {dep} (in {source_tag})"
                ))
        # bare numbers in a subtask name siblings, only dotted refs can leave the task
        for subtask in task.subtasks:
            owner = f"{task.id}.{subtask.id}"
            for dep in subtask.dependencies or []:
                if "." in str(dep) and normalize_dependency(dep) in staying:
                    conflicts.append(DependencyConflict(
                        task_id=owner,
                        dependency_id=dep,
                        dependency_tag=source_tag,
                        message=f"Subtask {owner} depends on {dep} (in {source_tag})"
                    ))

    if conflicts:
        log.info(f"Found {len(conflicts)} cross-tag dependency conflict(s) moving "
                 f"from '{source_tag}' to '{target_tag}'")
    return conflicts


def find_unresolved_dependencies(tasks: List[Task]) -> List[DependencyConflict]:
    """List task and subtask dependencies that do not resolve inside ``tasks``."""
    by_id = {task.id: task for task in tasks}
    issues = []

    def report(owner, dep, message):
        issues.append(DependencyConflict(task_id=owner, dependency_id=dep, message=message))

    for task in tasks:
        for dep in task.dependencies or []:
            parent_id = normalize_dependency(dep)
            if parent_id is None or parent_id not in by_id:
                report(task.id, dep, f"Task {task.id} depends on non-existent task {dep}")
            elif parent_id == task.id and '.' not in str(dep):
                report(task.id, dep, f"Task {task.id} depends on itself")

        for subtask in task.subtasks:
            owner = f"{task.id}.{subtask.id}"
            for dep in subtask.dependencies or []:
                if not _subtask_dependency_resolves(task, dep, by_id):
                    report(owner, dep, f"Subtask {owner} depends on non-existent task/subtask {dep}")

    return issues


def _subtask_dependency_resolves(parent: Task, dep, by_id: Dict[int, Task]) -> bool:
    try:
        ref = TaskRef.parse(dep)
    except ValueError:
        return False
    if ref.is_subtask:
        target = by_id.get(ref.parent_id)
        return target is not None and target.find_subtask(ref.sub_id) is not None
    # a bare number inside a subtask names a sibling first, then a top-level task
    return parent.find_subtask(ref.parent_id) is not None or ref.parent_id in by_id
