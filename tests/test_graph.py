"""Unit tests for dependency graph walks."""

from conftest import subtask, task
from tagtm.graph import dependency_closure, find_cross_tag_dependencies, find_unresolved_dependencies
from tagtm.models import TaggedData, Task


def tasks(*raw):
    return [Task.model_validate(t) for t in raw]


class TestDependencyClosure:
    """Test forward dependency closure."""

    def test_cycle_terminates(self):
        """Test that A -> B -> C -> A returns exactly {B, C}."""
        a, b, c = tasks(task(1, deps=[2]), task(2, deps=[3]), task(3, deps=[1]))
        assert dependency_closure([a], [a, b, c], max_depth=10, include_self=False) == {2, 3}

    def test_include_self(self):
        """Test that source ids can be part of the result."""
        a, b = tasks(task(1, deps=[2]), task(2))
        assert dependency_closure([a], [a, b], include_self=True) == {1, 2}

    def test_dotted_refs_follow_parent(self):
        """Test that subtask references walk to their parent task."""
        a, b, c = tasks(task(1, deps=["2.1"]), task(2, deps=[3]), task(3))
        assert dependency_closure([a], [a, b, c]) == {2, 3}

    def test_scope_bounds_walk(self):
        """Test that ids outside the scope are neither returned nor expanded."""
        a, b, c = tasks(task(1, deps=[2, 99]), task(2, deps=[3]), task(3))
        assert dependency_closure([a], [a, b]) == {2}

    def test_max_depth(self):
        """Test that the depth bound stops a long chain."""
        chain = tasks(*(task(i, deps=[i + 1]) for i in range(1, 10)), task(10))
        assert dependency_closure([chain[0]], chain, max_depth=2) == {2, 3}


class TestCrossTagDependencies:
    """Test conflict detection for cross-tag moves."""

    def _data(self):
        return TaggedData.from_document({
            "backlog": {"tasks": [task(1), task(2, deps=[1]), task(3, deps=["1.2", 2])]},
            "done": {"tasks": []},
        })

    def test_edge_to_staying_task(self):
        """Test that a dependency left behind conflicts."""
        data = self._data()
        conflicts = find_cross_tag_dependencies([data["backlog"].find_task(2)], "backlog", "done", data)
        assert len(conflicts) == 1
        assert conflicts[0].task_id == 2
        assert conflicts[0].dependency_id == 1
        assert conflicts[0].dependency_tag == "backlog"

    def test_edges_within_moving_set(self):
        """Test that tasks moving together never conflict with each other."""
        data = self._data()
        moving = [data["backlog"].find_task(i) for i in (1, 2, 3)]
        assert find_cross_tag_dependencies(moving, "backlog", "done", data) == []

    def test_dotted_conflict(self):
        """Test that dotted references conflict through their parent."""
        data = self._data()
        conflicts = find_cross_tag_dependencies(
            [data["backlog"].find_task(2), data["backlog"].find_task(3)], "backlog", "done", data
        )
        assert [(c.task_id, c.dependency_id) for c in conflicts] == [(2, 1), (3, "1.2")]

    def test_subtask_dotted_conflict(self):
        """Test that a moving subtask's dotted ref to a staying task conflicts, bare siblings do not."""
        data = TaggedData.from_document({
            "a": {"tasks": [
                task(1, subtasks=[subtask(1)]),
                task(2, subtasks=[subtask(1), subtask(2, deps=[1, "1.1", "2.1"])]),
            ]},
        })
        conflicts = find_cross_tag_dependencies([data["a"].find_task(2)], "a", "b", data)
        assert [(c.task_id, c.dependency_id) for c in conflicts] == [("2.2", "1.1")]
        assert conflicts[0].message == "Subtask 2.2 depends on 1.1 (in a)"


class TestUnresolvedDependencies:
    """Test the read-only dependency check."""

    def test_reports_missing_and_self(self):
        """Test missing tasks, self references and bad subtask refs."""
        found = find_unresolved_dependencies(tasks(
            task(1, deps=[7]),
            task(2, deps=[2, 1]),
            task(3, subtasks=[subtask(1), subtask(2, deps=[1, "3.9", "1.1"])]),
        ))
        messages = [issue.message for issue in found]
        assert messages == [
            "Task 1 depends on non-existent task 7",
            "Task 2 depends on itself",
            "Subtask 3.2 depends on non-existent task/subtask 3.9",
            "Subtask 3.2 depends on non-existent task/subtask 1.1",
        ]

    def test_clean(self):
        """Test a tag with valid dependencies."""
        assert find_unresolved_dependencies(tasks(task(1), task(2, deps=[1, "1"]))) == []
