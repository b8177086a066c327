"""
Intra-tag moves: relabel tasks, reorder subtasks, promote and demote.

``move_item`` works on a snapshot of a tag's task list and returns a new list,
leaving its input untouched. ``IntraTagMover`` wraps it with loading, batching
and the single write at the end.
"""
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from tagtm.data import TaggedStore
from tagtm.logs import get_logger
from tagtm.models import BatchMoveResult, MoveResult, Subtask, Task
from tagtm.recovery import MoveErrorCode, MoveTaskError
from tagtm.refs import TaskRef, split_ids

log = get_logger("moves")

T = TypeVar("T")
Regenerator = Callable[[Path, Path, Dict[str, Optional[str]]], None]


# --- list arithmetic -------------------------------------------------------

def remove_at(items: Sequence[T], index: int) -> List[T]:
    return list(items[:index]) + list(items[index + 1:])


def insert_at(items: Sequence[T], index: int, item: T) -> List[T]:
    return list(items[:index]) + [item] + list(items[index:])


def insertion_index(ids: Sequence[int], dest_id: int) -> int:
    """Position right after ``dest_id`` when present, otherwise the end."""
    for i, existing in enumerate(ids):
        if existing == dest_id:
            return i + 1
    return len(ids)


def insert_sorted_by_id(tasks: Sequence[Task], task: Task) -> List[Task]:
    """Insert before the first task with a larger id."""
    index = next((i for i, t in enumerate(tasks) if t.id > task.id), len(tasks))
    return insert_at(tasks, index, task)


# --- dependency rewriting --------------------------------------------------

Dependency = Union[int, str]


def _rewrite_dependencies(tasks: List[Task], rewrite: Callable[[Dependency], Dependency],
                          siblings_first: bool = False) -> None:
    for task in tasks:
        task.dependencies = [rewrite(dep) for dep in task.dependencies]
        sibling_ids = {str(st.id) for st in task.subtasks} if siblings_first else set()
        for subtask in task.subtasks:
            subtask.dependencies = [
                dep if str(dep).strip() in sibling_ids else rewrite(dep) for dep in subtask.dependencies
            ]


def _task_id_rewriter(old_id: int, new_id: int) -> Callable[[Dependency], Dependency]:
    """Retarget plain and dotted references from one task id to another."""
    def rewrite(dep):
        try:
            ref = TaskRef.parse(dep)
        except ValueError:
            return dep
        if ref.parent_id != old_id:
            return dep
        if ref.is_subtask:
            return f"{new_id}.{ref.sub_id}"
        return new_id if isinstance(dep, int) else str(new_id)
    return rewrite


def _task_ref_rewriter(old_id: int, new_ref: str) -> Callable[[Dependency], Dependency]:
    """Retarget plain references to a task that became a subtask."""
    def rewrite(dep):
        try:
            ref = TaskRef.parse(dep)
        except ValueError:
            return dep
        return new_ref if not ref.is_subtask and ref.parent_id == old_id else dep
    return rewrite


def _subtask_ref_rewriter(old_ref: TaskRef, new_ref: Dependency) -> Callable[[Dependency], Dependency]:
    """Retarget dotted references to one subtask."""
    def rewrite(dep):
        if not isinstance(dep, str) or '.' not in dep:
            return dep
        try:
            return new_ref if TaskRef.parse(dep) == old_ref else dep
        except ValueError:
            return dep
    return rewrite


# --- lookups ---------------------------------------------------------------

def _parse(value: str) -> TaskRef:
    try:
        return TaskRef.parse(value)
    except ValueError as e:
        raise MoveTaskError(MoveErrorCode.TASK_NOT_FOUND, f"Invalid task id '{value}'", {"taskId": value}) from e


def _index_of(tasks: Sequence[Task], task_id: int) -> int:
    return next((i for i, t in enumerate(tasks) if t.id == task_id), -1)


def _parent(tasks: Sequence[Task], parent_id: int, role: str) -> Task:
    index = _index_of(tasks, parent_id)
    if index == -1:
        raise MoveTaskError(
            MoveErrorCode.PARENT_TASK_NOT_FOUND,
            f"{role} parent task with ID {parent_id} not found",
            {"parentId": parent_id}
        )
    return tasks[index]


def _source_subtask(parent: Task, ref: TaskRef) -> int:
    index = parent.subtask_index(ref.sub_id)
    if index == -1:
        raise MoveTaskError(
            MoveErrorCode.SUBTASK_NOT_FOUND,
            f"Source subtask {ref} not found",
            {"subtaskId": str(ref), "parentId": ref.parent_id}
        )
    return index


def _free_subtask_id(parent: Task, wanted: int) -> int:
    if parent.find_subtask(wanted) is None:
        return wanted
    free = max(st.id for st in parent.subtasks) + 1
    log.info(f"Subtask id {parent.id}.{wanted} is taken, using {parent.id}.{free}")
    return free


# --- the four transforms ---------------------------------------------------

def move_task_to_task(tasks: List[Task], source: TaskRef, dest: TaskRef) -> Tuple[List[Task], MoveResult]:
    source_index = _index_of(tasks, source.parent_id)
    if source_index == -1:
        raise MoveTaskError(
            MoveErrorCode.TASK_NOT_FOUND,
            f"Source task with ID {source.parent_id} not found",
            {"taskId": source.parent_id}
        )
    if _index_of(tasks, dest.parent_id) != -1:
        raise MoveTaskError(
            MoveErrorCode.TASK_ALREADY_EXISTS,
            f"Task with ID {dest.parent_id} already exists. Use a different destination ID.",
            {"conflictingId": dest.parent_id}
        )

    _rewrite_dependencies(tasks, _task_id_rewriter(source.parent_id, dest.parent_id))
    moved = tasks[source_index]
    moved.id = dest.parent_id
    tasks = remove_at(tasks, source_index) + [moved]

    log.info(f"Moved task {source} to new ID {dest}")
    return tasks, MoveResult(message=f"Moved task {source} to new ID {dest}", moved_item=moved)


def move_subtask_to_subtask(tasks: List[Task], source: TaskRef, dest: TaskRef) -> Tuple[List[Task], MoveResult]:
    source_parent = _parent(tasks, source.parent_id, "Source")
    dest_parent = _parent(tasks, dest.parent_id, "Destination")
    source_index = _source_subtask(source_parent, source)
    subtask = source_parent.subtasks[source_index]

    if source_parent is dest_parent:
        if source.sub_id != dest.sub_id:
            remaining = remove_at(source_parent.subtasks, source_index)
            position = insertion_index([st.id for st in remaining], dest.sub_id)
            source_parent.subtasks = insert_at(remaining, position, subtask)
        moved = subtask
    else:
        moved = subtask.model_copy(deep=True)
        moved.id = _free_subtask_id(dest_parent, dest.sub_id)
        position = insertion_index([st.id for st in dest_parent.subtasks], dest.sub_id)
        dest_parent.subtasks = insert_at(dest_parent.subtasks, position, moved)
        source_parent.subtasks = remove_at(source_parent.subtasks, source_index)
        _rewrite_dependencies(tasks, _subtask_ref_rewriter(source, f"{dest_parent.id}.{moved.id}"))

    log.info(f"Moved subtask {source} to {dest}")
    return tasks, MoveResult(message=f"Moved subtask {source} to {dest}", moved_item=moved)


def move_subtask_to_task(tasks: List[Task], source: TaskRef, dest: TaskRef) -> Tuple[List[Task], MoveResult]:
    source_parent = _parent(tasks, source.parent_id, "Source")
    if not source_parent.subtasks:
        raise MoveTaskError(
            MoveErrorCode.PARENT_TASK_NO_SUBTASKS,
            f"Source parent task {source.parent_id} has no subtasks",
            {"parentId": source.parent_id}
        )
    source_index = _source_subtask(source_parent, source)
    if _index_of(tasks, dest.parent_id) != -1:
        raise MoveTaskError(
            MoveErrorCode.TASK_ALREADY_EXISTS,
            f"Cannot move to existing task ID {dest.parent_id}. Choose a different ID or use subtask destination.",
            {"conflictingId": dest.parent_id}
        )

    subtask = source_parent.subtasks[source_index]
    extra = subtask.model_extra or {}
    new_task = Task(
        id=dest.parent_id,
        title=subtask.title,
        description=subtask.description,
        status=subtask.status or "pending",
        dependencies=list(subtask.dependencies),
        priority=extra.get("priority") or "medium",
        details=subtask.details or "",
        test_strategy=subtask.test_strategy or "",
        subtasks=[],
    )

    source_parent.subtasks = remove_at(source_parent.subtasks, source_index)
    tasks = insert_sorted_by_id(tasks, new_task)
    _rewrite_dependencies(tasks, _subtask_ref_rewriter(source, dest.parent_id))

    log.info(f"Converted subtask {source} to task {dest}")
    return tasks, MoveResult(message=f"Converted subtask {source} to task {dest}", moved_item=new_task)


def move_task_to_subtask(tasks: List[Task], source: TaskRef, dest: TaskRef) -> Tuple[List[Task], MoveResult]:
    source_index = _index_of(tasks, source.parent_id)
    if source_index == -1:
        raise MoveTaskError(
            MoveErrorCode.TASK_NOT_FOUND,
            f"Source task with ID {source.parent_id} not found",
            {"taskId": source.parent_id}
        )
    if source.parent_id == dest.parent_id:
        raise MoveTaskError(
            MoveErrorCode.DESTINATION_TASK_NOT_FOUND,
            f"Cannot make task {source} a subtask of itself",
            {"taskId": source.parent_id, "parentId": dest.parent_id}
        )
    dest_parent = _parent(tasks, dest.parent_id, "Destination")
    task = tasks[source_index]
    if task.subtasks:
        raise MoveTaskError(
            MoveErrorCode.TASK_HAS_SUBTASKS,
            f"Task {source} has {len(task.subtasks)} subtask(s) and cannot become a subtask",
            {"taskId": source.parent_id, "subtaskIds": [st.id for st in task.subtasks]}
        )

    new_subtask = Subtask(
        id=_free_subtask_id(dest_parent, dest.sub_id),
        title=task.title,
        description=task.description,
        status=task.status or "pending",
        dependencies=list(task.dependencies),
        details=task.details or "",
        test_strategy=task.test_strategy or "",
    )
    position = insertion_index([st.id for st in dest_parent.subtasks], dest.sub_id)
    dest_parent.subtasks = insert_at(dest_parent.subtasks, position, new_subtask)
    tasks = remove_at(tasks, source_index)
    _rewrite_dependencies(tasks, _task_ref_rewriter(source.parent_id, f"{dest_parent.id}.{new_subtask.id}"),
                          siblings_first=True)

    log.info(f"Converted task {source} to subtask {dest_parent.id}.{new_subtask.id}")
    return tasks, MoveResult(message=f"Converted task {source} to subtask {dest}", moved_item=new_subtask)


def move_item(tasks: Sequence[Task], source_id: str, destination_id: str) -> Tuple[List[Task], MoveResult]:
    """
    Move one task or subtask within a tag.

    Args:
        tasks: The tag's task list; it is copied, never modified.
        source_id: ``"5"`` for a task or ``"5.2"`` for a subtask.
        destination_id: Same forms as ``source_id``.

    Returns:
        The new task list and a description of the moved item.
    """
    source = _parse(source_id)
    dest = _parse(destination_id)
    snapshot = [task.model_copy(deep=True) for task in tasks]

    if source.is_subtask and dest.is_subtask:
        return move_subtask_to_subtask(snapshot, source, dest)
    if source.is_subtask:
        return move_subtask_to_task(snapshot, source, dest)
    if dest.is_subtask:
        return move_task_to_subtask(snapshot, source, dest)
    return move_task_to_task(snapshot, source, dest)


class IntraTagMover:
    """Runs single and comma-separated batch moves against a tasks file."""

    def __init__(self, store: Optional[TaggedStore] = None, regenerate: Optional[Regenerator] = None):
        self.store = store or TaggedStore()
        self.regenerate = regenerate

    def move(self, tasks_path: Union[Path, str], source_id: str, destination_id: str, tag: str,
             project_root: Optional[Union[Path, str]] = None) -> Union[MoveResult, BatchMoveResult]:
        """
        Move tasks/subtasks inside ``tag``; ids may be comma-separated lists paired by index.

        Pairs run in order against one loaded document, which is written once.
        In a batch, lookup failures are recorded and skipped; any other
        failure saves the pairs already applied and re-raises.
        """
        source_ids = split_ids(source_id)
        destination_ids = split_ids(destination_id)
        if not source_ids or len(source_ids) != len(destination_ids):
            raise MoveTaskError(
                MoveErrorCode.ID_COUNT_MISMATCH,
                f"Number of source IDs ({len(source_ids)}) must match number of destination IDs ({len(destination_ids)})",
                {"sourceIds": source_ids, "destinationIds": destination_ids}
            )

        tasks_path = Path(tasks_path)
        view = self.store.load_resolved(tasks_path, tag)
        tag_data = view.raw[tag]
        is_batch = len(source_ids) > 1
        log.info(f"Moving task/subtask {source_id} to {destination_id} (tag: {tag})")

        moves: List[MoveResult] = []
        errors = []
        for src, dst in zip(source_ids, destination_ids):
            try:
                tag_data.tasks, result = move_item(tag_data.tasks, src, dst)
            except MoveTaskError as e:
                if is_batch and e.is_lookup_error:
                    log.warning(f"Skipping move {src} -> {dst}: {e.message}")
                    errors.append({"source": src, "destination": dst, **e.to_dict()})
                    continue
                if moves:
                    log.warning(f"Move {src} -> {dst} failed, keeping {len(moves)} move(s) already applied")
                    self._persist(tasks_path, view, tag, project_root)
                raise
            moves.append(result)

        if moves:
            self._persist(tasks_path, view, tag, project_root)

        if not is_batch:
            return moves[0]
        return BatchMoveResult(
            message=f"Successfully moved {len(moves)} tasks/subtasks",
            moves=moves,
            errors=errors
        )

    def _persist(self, tasks_path: Path, view, tag: str, project_root) -> None:
        self.store.save(tasks_path, view)
        if self.regenerate is not None:
            self.regenerate(tasks_path, tasks_path.parent, {
                "tag": tag,
                "project_root": str(project_root) if project_root else None,
            })


def move_tasks(tasks_path: Union[Path, str], source_id: str, destination_id: str, tag: str,
               project_root: Optional[Union[Path, str]] = None, store: Optional[TaggedStore] = None,
               regenerate: Optional[Regenerator] = None) -> Union[MoveResult, BatchMoveResult]:
    """Shortcut for ``IntraTagMover(store, regenerate).move(...)``."""
    return IntraTagMover(store, regenerate).move(tasks_path, source_id, destination_id, tag, project_root)
