import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from tagtm.data.io import load_yaml_file
from tagtm.logs import get_logger
from tagtm.recovery import FatalError

log = get_logger("config")

CONFIG_RELATIVE_PATH = Path(".tagtm") / "config.yml"


class TagTMConfig(BaseModel):
    """Project-level settings, read from ``.tagtm/config.yml``."""

    tasks_path: Path = Field(
        default=Path(".taskmaster") / "tasks" / "tasks.json",
        description="Tasks document, relative to the project root unless absolute"
    )
    default_tag: str = Field(default="master", description="Tag used when a command names none")
    with_dependencies_max_depth: int = Field(
        default=100, ge=1,
        description="Depth bound when expanding a cross-tag move with its dependencies"
    )

    def resolve_tasks_path(self, project_root: Union[Path, str]) -> Path:
        if self.tasks_path.is_absolute():
            return self.tasks_path
        return Path(project_root) / self.tasks_path


def load_config(project_root: Optional[Union[Path, str]] = None) -> TagTMConfig:
    """Load the project config, applying TAGTM_* environment overrides."""
    project_root = Path(project_root or Path.cwd())
    config_file = project_root / CONFIG_RELATIVE_PATH

    values = load_yaml_file(config_file) or {}
    if values:
        log.debug(f"Loaded config from {config_file}")

    if os.getenv('TAGTM_TASKS_PATH'):
        values['tasks_path'] = os.environ['TAGTM_TASKS_PATH']
    if os.getenv('TAGTM_DEFAULT_TAG'):
        values['default_tag'] = os.environ['TAGTM_DEFAULT_TAG']

    try:
        return TagTMConfig(**values)
    except ValidationError as e:
        error_msg = f"Invalid configuration in {config_file}: {e}"
        log.error(error_msg)
        raise FatalError(error_msg) from e
