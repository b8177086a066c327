from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

TaskDependency = Union[int, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(value: Optional[Union[datetime, str]] = None) -> str:
    """Render a UTC instant as ``2025-06-13T10:00:00.000Z``; strings pass through untouched."""
    if isinstance(value, str):
        return value
    value = (value or utcnow()).astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


class Subtask(BaseModel):
    """A work item nested under a top-level task; its id is unique only within the parent."""

    model_config = ConfigDict(extra='allow', populate_by_name=True)

    id: int = Field(description="Identifier, unique among the parent's subtasks")
    title: str = Field(default="", description="Short title of the subtask")
    description: Optional[str] = Field(default=None, description="What the subtask is about")
    status: str = Field(default="pending", description="Workflow status, opaque to the mover")
    dependencies: List[TaskDependency] = Field(
        default_factory=list,
        description="Sibling subtask ids or dotted/plain task references"
    )
    details: Optional[str] = Field(default=None, description="Implementation details")
    test_strategy: Optional[str] = Field(default=None, alias="testStrategy", description="How to verify the subtask")

    @field_validator('dependencies', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v


class Task(BaseModel):
    """A top-level task inside a tag."""

    model_config = ConfigDict(extra='allow', populate_by_name=True)

    id: int = Field(description="Identifier, unique among the tag's top-level tasks")
    title: str = Field(default="", description="Short title of the task")
    description: Optional[str] = Field(default=None, description="What the task is about")
    status: str = Field(default="pending", description="Workflow status, opaque to the mover")
    priority: Optional[str] = Field(default=None, description="Priority, opaque to the mover")
    dependencies: List[TaskDependency] = Field(
        default_factory=list,
        description="Ids of tasks in the same tag this task depends on"
    )
    details: Optional[str] = Field(default=None, description="Implementation details")
    test_strategy: Optional[str] = Field(default=None, alias="testStrategy", description="How to verify the task")
    subtasks: List[Subtask] = Field(default_factory=list, description="Ordered list of subtasks")
    metadata: Optional['Task.Metadata'] = Field(default=None, description="Bookkeeping, including move history")
    # Derived from the containing tag; stamped in memory by cross-tag moves, never persisted.
    tag: Optional[str] = Field(default=None, exclude=True)

    @field_validator('dependencies', 'subtasks', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v

    def find_subtask(self, subtask_id: int) -> Optional[Subtask]:
        """Find a subtask by id."""
        return next((st for st in self.subtasks if st.id == subtask_id), None)

    def subtask_index(self, subtask_id: int) -> int:
        return next((i for i, st in enumerate(self.subtasks) if st.id == subtask_id), -1)

    @property
    def move_history(self) -> List['Task.MoveRecord']:
        if self.metadata is None or self.metadata.move_history is None:
            return []
        return self.metadata.move_history

    def record_move(self, from_tag: str, to_tag: str, timestamp: Optional[Union[datetime, str]] = None) -> 'Task.MoveRecord':
        """Append a cross-tag move to the history; earlier entries are never touched."""
        if self.metadata is None:
            self.metadata = Task.Metadata()
        if self.metadata.move_history is None:
            self.metadata.move_history = []
        record = Task.MoveRecord(from_tag=from_tag, to_tag=to_tag, timestamp=iso_timestamp(timestamp))
        self.metadata.move_history.append(record)
        return record

    class MoveRecord(BaseModel):
        model_config = ConfigDict(populate_by_name=True)

        from_tag: str = Field(alias="fromTag", description="Tag the task left")
        to_tag: str = Field(alias="toTag", description="Tag the task entered")
        timestamp: str = Field(description="When the move happened, as an ISO-8601 string")

        @field_validator('timestamp', mode='before')
        @classmethod
        def datetime_to_str(cls, v):
            return iso_timestamp(v) if isinstance(v, datetime) else v

    class Metadata(BaseModel):
        model_config = ConfigDict(extra='allow', populate_by_name=True)

        move_history: Optional[List['Task.MoveRecord']] = Field(
            default=None,
            alias="moveHistory",
            description="Append-only log of cross-tag moves"
        )

Task.Metadata.model_rebuild()
Task.model_rebuild()


class Tag(BaseModel):
    """A named namespace holding an independent task list."""

    model_config = ConfigDict(extra='allow', populate_by_name=True)

    tasks: List[Task] = Field(default_factory=list, description="Tasks in display order")
    metadata: Optional['Tag.Metadata'] = Field(default=None, description="Tag metadata")

    def find_task(self, task_id: int) -> Optional[Task]:
        """Find a top-level task by id."""
        return next((t for t in self.tasks if t.id == task_id), None)

    def task_index(self, task_id: int) -> int:
        return next((i for i, t in enumerate(self.tasks) if t.id == task_id), -1)

    def task_ids(self) -> List[int]:
        return [t.id for t in self.tasks]

    class Metadata(BaseModel):
        model_config = ConfigDict(extra='allow')

        created: Optional[str] = Field(default=None, description="When the tag was created, kept as written")
        description: Optional[str] = Field(default=None, description="Free-text description")

Tag.model_rebuild()


class TaggedData(RootModel[Dict[str, Tag]]):
    """The whole multi-tag document: tag name to tag."""

    root: Dict[str, Tag] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> 'TaggedData':
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Serializable form; derived fields such as ``Task.tag`` are excluded."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    def tag_names(self) -> List[str]:
        return list(self.root)

    def has_tag(self, name: str) -> bool:
        return name in self.root

    def get_tag(self, name: str) -> Optional[Tag]:
        return self.root.get(name)

    def ensure_tag(self, name: str, description: Optional[str] = None) -> Tag:
        """Return the named tag, creating an empty one if it does not exist yet."""
        if name not in self.root:
            self.root[name] = Tag(metadata=Tag.Metadata(
                created=iso_timestamp(),
                description=description or f"Tag created on {utcnow().date().isoformat()}"
            ))
        return self.root[name]

    def iter_tasks(self) -> Iterator[Tuple[str, Task]]:
        for tag_name, tag in self.root.items():
            for task in tag.tasks:
                yield tag_name, task

    def __contains__(self, name: str) -> bool:
        return name in self.root

    def __getitem__(self, name: str) -> Tag:
        return self.root[name]


class MovedTask(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    from_tag: str = Field(alias="fromTag")
    to_tag: str = Field(alias="toTag")


class DependencyConflict(BaseModel):
    """A dependency edge that does not resolve inside the task's own tag."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: TaskDependency = Field(alias="taskId", description="Task or subtask holding the dependency")
    dependency_id: TaskDependency = Field(alias="dependencyId", description="The dependency reference as written")
    dependency_tag: Optional[str] = Field(default=None, alias="dependencyTag", description="Tag the dependency lives in, if any")
    message: str = ""


class MoveResult(BaseModel):
    """Outcome of one intra-tag move."""

    message: str
    moved_item: Union[Task, Subtask] = Field(alias="movedItem")
    model_config = ConfigDict(populate_by_name=True)


class BatchMoveResult(BaseModel):
    message: str
    moves: List[MoveResult] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list, description="Lookup failures skipped by the batch")


class CrossTagMoveResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    moved_tasks: List[MovedTask] = Field(default_factory=list, alias="movedTasks")
    tips: List[str] = Field(default_factory=list)
    dependency_resolution: Dict[str, Any] = Field(default_factory=dict, alias="dependencyResolution")
