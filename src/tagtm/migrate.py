"""
Cross-tag migration of top-level tasks.

A migration validates, selects, resolves dependencies through a
DependencyPolicy, checks the target tag for id collisions, and only then
moves tasks on the loaded document and writes it back once. Anything that
fails before the write leaves the file untouched.
"""
from pathlib import Path
from typing import Iterable, List, Optional, Union

from tagtm.data import TaggedStore
from tagtm.logs import get_logger
from tagtm.models import CrossTagMoveResult, MovedTask, TaggedData, Task, utcnow
from tagtm.moves import Regenerator, remove_at
from tagtm.policies import BlockPolicy, DependencyPolicy, Resolution, Selection, dangling_dependents
from tagtm.recovery import MoveErrorCode, MoveTaskError
from tagtm.refs import TaskRef, split_ids

log = get_logger("migrate")

WITH_DEPENDENCIES_MAX_DEPTH = 100


def parse_task_ids(task_ids: Union[str, int, Iterable[Union[str, int]]]) -> List[int]:
    """Turn ``"1,2"``, ``[1, "2"]`` or ``3`` into unique top-level ids, in order."""
    if isinstance(task_ids, (str, int)):
        raw = split_ids(task_ids)
    else:
        raw = [str(task_id).strip() for task_id in task_ids]

    parsed = []
    for value in raw:
        try:
            ref = TaskRef.parse(value)
        except ValueError as e:
            raise MoveTaskError(MoveErrorCode.TASK_NOT_FOUND, f"Invalid task id '{value}'", {"taskId": value}) from e
        if ref.is_subtask:
            raise MoveTaskError(
                MoveErrorCode.CANNOT_MOVE_SUBTASK,
                f"Cannot move subtask {ref} directly between tags. First promote it to a full task.",
                {"taskId": str(ref)}
            )
        if ref.parent_id not in parsed:
            parsed.append(ref.parent_id)
    return parsed


class CrossTagMigrator:
    """Moves top-level tasks from one tag to another."""

    def __init__(self, store: Optional[TaggedStore] = None, regenerate: Optional[Regenerator] = None,
                 max_depth: int = WITH_DEPENDENCIES_MAX_DEPTH):
        self.store = store or TaggedStore()
        self.regenerate = regenerate
        self.max_depth = max_depth

    def move_between_tags(self, tasks_path: Union[Path, str], task_ids, source_tag: str, target_tag: str,
                          policy: Optional[DependencyPolicy] = None,
                          project_root: Optional[Union[Path, str]] = None) -> CrossTagMoveResult:
        """
        Move tasks from ``source_tag`` to ``target_tag``.

        Args:
            tasks_path: The tagged tasks file.
            task_ids: Comma-separated string or iterable of top-level ids.
            source_tag: Tag the tasks currently live in.
            target_tag: Tag to move them to; created if it does not exist.
            policy: How to treat cross-tag dependencies. Defaults to BlockPolicy.
            project_root: Passed through to the regeneration hook.

        Returns:
            The moved tasks, tips and a summary of the dependency resolution.

        Raises:
            MoveTaskError: On any validation, lookup or conflict failure; nothing is written.
        """
        policy = policy or BlockPolicy()
        tasks_path = Path(tasks_path)

        # validate
        if not target_tag or not str(target_tag).strip():
            raise MoveTaskError(MoveErrorCode.INVALID_TARGET_TAG, "Target tag is required", {"targetTag": target_tag})
        if not source_tag or not str(source_tag).strip():
            raise MoveTaskError(MoveErrorCode.INVALID_SOURCE_TAG, "Source tag is required", {"sourceTag": source_tag})
        if source_tag == target_tag:
            raise MoveTaskError(
                MoveErrorCode.SOURCE_TARGET_TAGS_SAME,
                f'Source and target tags are the same ("{source_tag}")',
                {"sourceTag": source_tag, "targetTag": target_tag}
            )
        requested_ids = parse_task_ids(task_ids)
        if not requested_ids:
            raise MoveTaskError(MoveErrorCode.TASK_NOT_FOUND, "At least one task ID is required", {"taskIds": []})

        data = self.store.load_raw(tasks_path)
        if not data.has_tag(source_tag):
            raise MoveTaskError(
                MoveErrorCode.INVALID_SOURCE_TAG,
                f'Source tag "{source_tag}" not found or invalid',
                {"sourceTag": source_tag, "availableTags": data.tag_names()}
            )
        if not data.has_tag(target_tag):
            log.info(f'Creating target tag "{target_tag}"')
        data.ensure_tag(target_tag)

        # select
        selected = self._select(data, source_tag, requested_ids)
        selection = Selection(requested_ids, selected, source_tag, target_tag, data, self.max_depth)

        # resolve
        resolution = policy.resolve(selection)

        # collisions
        self._check_collisions(data, target_tag, resolution.task_ids)

        # execute
        moved = self._execute(data, source_tag, target_tag, resolution)

        tips = list(resolution.tips)
        summary = resolution.summary()
        dangling = dangling_dependents(data[source_tag].tasks, resolution.task_ids)
        if dangling:
            for issue in dangling:
                log.warning(issue.message)
            summary["danglingDependents"] = [issue.model_dump(by_alias=True) for issue in dangling]
            tips.append(f"Tasks left in '{source_tag}' still depend on moved tasks; "
                        f"run 'tagtm validate-dependencies --tag {source_tag}'")

        # finalize
        self.store.save(tasks_path, data)
        if self.regenerate is not None:
            for tag in (source_tag, target_tag):
                self.regenerate(tasks_path, tasks_path.parent, {
                    "tag": tag,
                    "project_root": str(project_root) if project_root else None,
                })

        message = f'Successfully moved {len(moved)} tasks from "{source_tag}" to "{target_tag}"'
        log.info(message)
        return CrossTagMoveResult(
            message=message,
            moved_tasks=moved,
            tips=tips,
            dependency_resolution=summary
        )

    @staticmethod
    def _select(data: TaggedData, source_tag: str, requested_ids: List[int]) -> List[Task]:
        by_id = {str(task.id): task for task in data[source_tag].tasks}
        selected = []
        for task_id in requested_ids:
            task = by_id.get(str(task_id))
            if task is None:
                raise MoveTaskError(
                    MoveErrorCode.TASK_NOT_FOUND,
                    f'Task {task_id} not found in source tag "{source_tag}"',
                    {"taskId": task_id, "sourceTag": source_tag}
                )
            selected.append(task)
        return selected

    @staticmethod
    def _check_collisions(data: TaggedData, target_tag: str, task_ids: List[int]) -> None:
        existing = set(data[target_tag].task_ids())
        for task_id in task_ids:
            if task_id in existing:
                raise MoveTaskError(
                    MoveErrorCode.TASK_ALREADY_EXISTS,
                    f'Task {task_id} already exists in target tag "{target_tag}"',
                    {"conflictingId": task_id, "targetTag": target_tag}
                )

    @staticmethod
    def _execute(data: TaggedData, source_tag: str, target_tag: str, resolution: Resolution) -> List[MovedTask]:
        source = data[source_tag]
        target = data[target_tag]
        timestamp = utcnow()

        updates = resolution.dependency_updates
        for task in source.tasks:
            if str(task.id) in updates:
                task.dependencies = updates[str(task.id)]
            for subtask in task.subtasks:
                key = f"{task.id}.{subtask.id}"
                if key in updates:
                    subtask.dependencies = updates[key]

        moved = []
        for task_id in resolution.task_ids:
            index = source.task_index(task_id)
            task = source.tasks[index]
            source.tasks = remove_at(source.tasks, index)

            task.tag = target_tag
            task.record_move(source_tag, target_tag, timestamp)
            target.tasks = target.tasks + [task]

            moved.append(MovedTask(id=task_id, from_tag=source_tag, to_tag=target_tag))
            log.debug(f"Moved task {task_id} from '{source_tag}' to '{target_tag}'")
        return moved
