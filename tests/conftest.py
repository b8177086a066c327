"""Shared fixtures for tagtm tests."""

import json
import pytest


def task(task_id, deps=None, subtasks=None, **fields):
    """Build a raw task dict the way it appears in tasks.json."""
    data = {
        "id": task_id,
        "title": fields.pop("title", f"Task {task_id}"),
        "status": fields.pop("status", "pending"),
        "dependencies": deps or [],
        "subtasks": subtasks or [],
    }
    data.update(fields)
    return data


def subtask(subtask_id, deps=None, **fields):
    data = {
        "id": subtask_id,
        "title": fields.pop("title", f"Subtask {subtask_id}"),
        "status": fields.pop("status", "pending"),
        "dependencies": deps or [],
    }
    data.update(fields)
    return data


@pytest.fixture
def write_tasks(tmp_path):
    """Write a tagged document to a temp tasks.json and return its path."""
    def _write(document, name="tasks.json"):
        path = tmp_path / name
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def read_tasks():
    def _read(path):
        return json.loads(path.read_text(encoding="utf-8"))
    return _read
