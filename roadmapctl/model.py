"""Read model of a roadmap built from rootline tree, query and graph output."""

from __future__ import annotations

import enum
import os
import posixpath
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from roadmapctl.dependencies import graph_diagnostics
from roadmapctl.diagnostic import Diagnostic
from roadmapctl.status import FieldConfig, _array_value, _string_field


class StatusRole(str, enum.Enum):
    """The part a lifecycle status plays in the roadmap workflow."""

    PENDING = "pending"
    SPECIFIED = "specified"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    OBSOLETE = "obsolete"


@dataclass
class Outcome:
    """A directory grouping related tasks."""

    name: str = ""
    path: str = ""
    completed: int = 0
    total: int = 0


@dataclass
class Task:
    """A single roadmap task record."""

    name: str = ""
    path: str = ""
    outcome_path: str = ""
    status: str = ""
    type: str = ""
    title: str = ""
    completed: int = 0
    total: int = 0
    done: bool = False
    active: bool = False
    dependencies: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)


@dataclass
class Dependency:
    """A dependency link from one record to another."""

    source: str
    target: str
    type: str


@dataclass
class RoadmapContext:
    """Outcomes and tasks as rootline's tree reports them."""

    outcomes: list[Outcome] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    status_roles: dict[StatusRole, str] = field(default_factory=dict)


@dataclass
class StatusRoleConfig:
    """Which statuses count as done and which as active."""

    done: list[str] = field(default_factory=list)
    active: list[str] = field(default_factory=list)


@dataclass
class ReadModel:
    """Tasks with their statuses and dependency links, indexed by path."""

    outcomes: list[Outcome] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    task_by_path: dict[str, Task] = field(default_factory=dict)
    dependencies: list[Dependency] = field(default_factory=list)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> ReadModel:
        """Build a model holding the given tasks, indexed by their paths."""
        task_list = list(tasks)
        return cls(tasks=task_list, task_by_path={task.path: task for task in task_list})


def number_value(value: Any) -> int:
    """Return value as an int when it is a number, otherwise 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def clean_slash_path(path: str) -> str:
    """Normalise a path and use slash separators; empty stays empty."""
    if not path:
        return ""
    cleaned = os.path.normpath(path)
    if os.sep != "/":
        cleaned = cleaned.replace(os.sep, "/")
    return cleaned


def _bool_field(fields: Mapping[str, Any], key: str) -> bool:
    return fields.get(key) is True


def _number_field(fields: Mapping[str, Any], key: str) -> int:
    return number_value(fields.get(key))


def _base_name(path: str) -> str:
    if not path:
        return "."
    return posixpath.basename(path.rstrip("/")) or "/"


def _outcome_path_for_task(path: str) -> str:
    index = path.rfind("/")
    return path[:index] if index >= 0 else ""


def _effective_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    """Merge frontmatter and derived fields, derived taking priority."""
    result: dict[str, Any] = {}
    frontmatter = row.get("frontmatter")
    if isinstance(frontmatter, dict):
        result.update(frontmatter)
    derived = row.get("derived")
    if isinstance(derived, dict):
        result.update(derived)
    return result


def _task_from_tree_node(node: Mapping[str, Any], outcome_path: str) -> Task:
    return Task(
        name=_string_field(node, "name"),
        path=clean_slash_path(_string_field(node, "path")),
        outcome_path=outcome_path,
        status=_string_field(node, "estado"),
        completed=_number_field(node, "completed"),
        total=_number_field(node, "total"),
    )


def roadmap_context_from_tree(decoded: Mapping[str, Any]) -> RoadmapContext:
    """Collect outcomes and tasks from rootline tree output.

    Raises ValueError when the output has no root object.
    """
    root = decoded.get("root")
    if not isinstance(root, dict):
        raise ValueError("rootline tree JSON missing root object")
    context = RoadmapContext()
    for child in _array_value(root.get("children")):
        if not isinstance(child, dict):
            continue
        if _bool_field(child, "is_leaf"):
            context.tasks.append(_task_from_tree_node(child, ""))
            continue
        outcome_path = clean_slash_path(_string_field(child, "path"))
        context.outcomes.append(
            Outcome(
                name=_string_field(child, "name"),
                path=outcome_path,
                completed=_number_field(child, "completed"),
                total=_number_field(child, "total"),
            )
        )
        for node in _array_value(child.get("children")):
            if isinstance(node, dict) and _bool_field(node, "is_leaf"):
                context.tasks.append(_task_from_tree_node(node, outcome_path))
    return context


def _tasks_from_query_rows(query: Mapping[str, Any], fields: FieldConfig) -> list[Task]:
    tasks: list[Task] = []
    for row in _array_value(query.get("rows")):
        if not isinstance(row, dict):
            continue
        path = clean_slash_path(_string_field(row, "path"))
        row_fields = _effective_fields(row)
        if _string_field(row_fields, fields.record_type) != fields.task_value:
            continue
        tasks.append(
            Task(
                name=_base_name(path),
                path=path,
                outcome_path=_outcome_path_for_task(path),
                status=_string_field(row_fields, fields.lifecycle),
                type=fields.task_value,
                title=_string_field(row_fields, fields.display_name),
            )
        )
    return tasks


def read_model_from_rootline(
    tree: Mapping[str, Any],
    query: Mapping[str, Any],
    graph: Mapping[str, Any],
    fields: FieldConfig,
    roles: StatusRoleConfig,
) -> tuple[ReadModel, list[Diagnostic]]:
    """Combine tree, query and graph output into a read model and graph diagnostics."""
    try:
        context = roadmap_context_from_tree(tree)
    except ValueError:
        context = RoadmapContext()
    model = ReadModel(outcomes=context.outcomes, tasks=context.tasks)

    status_by_path: dict[str, str] = {}
    type_by_path: dict[str, str] = {}
    title_by_path: dict[str, str] = {}
    for row in _array_value(query.get("rows")):
        if not isinstance(row, dict):
            continue
        path = clean_slash_path(_string_field(row, "path"))
        row_fields = _effective_fields(row)
        status_by_path[path] = _string_field(row_fields, fields.lifecycle)
        type_by_path[path] = _string_field(row_fields, fields.record_type)
        title_by_path[path] = _string_field(row_fields, fields.display_name)

    if not model.tasks:
        model.tasks = _tasks_from_query_rows(query, fields)

    done_set = set(roles.done)
    active_set = set(roles.active)
    for task in model.tasks:
        if task.path in status_by_path:
            task.status = status_by_path[task.path]
        task.type = type_by_path.get(task.path, "")
        task.title = title_by_path.get(task.path, "")
        task.done = task.status in done_set
        task.active = task.status in active_set
        model.task_by_path[task.path] = task

    for edge in _array_value(graph.get("edges")):
        if not isinstance(edge, dict) or _string_field(edge, "type") != fields.dependency_link:
            continue
        dependency = Dependency(
            source=clean_slash_path(_string_field(edge, "source")),
            target=clean_slash_path(_string_field(edge, "target")),
            type=fields.dependency_link,
        )
        model.dependencies.append(dependency)
        source_task = model.task_by_path.get(dependency.source)
        if source_task is not None:
            source_task.dependencies.append(dependency.target)
        target_task = model.task_by_path.get(dependency.target)
        if target_task is not None:
            target_task.blocks.append(dependency.source)

    return model, graph_diagnostics(fields, graph)