import pytest

from roadmapctl.dependencies import DIAGNOSTIC_GRAPH_CYCLE
from roadmapctl.diagnostic import DIAGNOSTIC_INVALID_BLOCKED_BY
from roadmapctl.model import (
    ReadModel,
    StatusRoleConfig,
    Task,
    clean_slash_path,
    number_value,
    read_model_from_rootline,
    roadmap_context_from_tree,
)
from roadmapctl.status import FieldConfig

FIELDS = FieldConfig(
    lifecycle="estado",
    record_type="tipo",
    task_value="task",
    outcome_value="outcome",
    display_name="titulo",
    dependency_link="blocked_by",
)

EMPTY_GRAPH = {"edges": [], "cycles": [], "broken_links": []}


def test_context_from_tree_supports_direct_and_outcome_tasks():
    decoded = {
        "root": {
            "children": [
                {"name": "T001-direct.md", "path": "T001-direct.md", "is_leaf": True,
                 "estado": "Pending", "completed": 0.0, "total": 1.0},
                {"name": "O01-work", "path": "O01-work", "completed": 1.0, "total": 2.0, "children": [
                    {"name": "T001-first.md", "path": "O01-work/T001-first.md", "is_leaf": True,
                     "estado": "Completed", "completed": 1.0, "total": 1.0},
                    {"name": "T002-second.md", "path": "O01-work/T002-second.md", "is_leaf": True,
                     "estado": "On Hold", "completed": 0.0, "total": 1.0},
                ]},
            ]
        }
    }
    ctx = roadmap_context_from_tree(decoded)
    assert len(ctx.outcomes) == 1
    outcome = ctx.outcomes[0]
    assert (outcome.path, outcome.completed, outcome.total) == ("O01-work", 1, 2)
    assert len(ctx.tasks) == 3
    assert ctx.tasks[0].path == "T001-direct.md"
    assert ctx.tasks[0].outcome_path == ""
    assert ctx.tasks[0].status == "Pending"
    assert ctx.tasks[2].path == "O01-work/T002-second.md"
    assert ctx.tasks[2].outcome_path == "O01-work"
    assert ctx.tasks[2].status == "On Hold"


def test_context_from_tree_requires_root():
    with pytest.raises(ValueError):
        roadmap_context_from_tree({"children": []})


def test_read_model_normalizes_dependencies_and_status_roles():
    tree = {"root": {"children": [
        {"name": "T001-direct.md", "path": "T001-direct.md", "is_leaf": True, "estado": "Pending",
         "completed": 0.0, "total": 1.0},
        {"name": "O01-work", "path": "O01-work", "children": [
            {"name": "T001-done.md", "path": "O01-work/T001-done.md", "is_leaf": True, "estado": "Done",
             "completed": 1.0, "total": 1.0},
            {"name": "T002-blocked.md", "path": "O01-work/T002-blocked.md", "is_leaf": True,
             "estado": "Ready", "completed": 0.0, "total": 1.0},
        ]},
    ]}}
    query = {"rows": [
        {"path": "T001-direct.md", "frontmatter": {"tipo": "task", "estado": "Pending"}},
        {"path": "O01-work/T001-done.md", "frontmatter": {"tipo": "task", "estado": "Done"}},
        {"path": "O01-work/T002-blocked.md", "frontmatter": {"tipo": "task", "estado": "Ready"}},
    ]}
    graph = {
        "edges": [{"source": "O01-work/T002-blocked.md", "target": "O01-work/T001-done.md",
                   "type": "blocked_by"}],
        "cycles": [],
        "broken_links": [],
    }
    model, diagnostics = read_model_from_rootline(
        tree, query, graph, FIELDS, StatusRoleConfig(done=["Done"], active=["Pending", "Ready"])
    )
    assert diagnostics == []
    assert len(model.tasks) == 3
    blocked = model.task_by_path["O01-work/T002-blocked.md"]
    assert blocked.active
    assert not blocked.done
    assert blocked.dependencies == ["O01-work/T001-done.md"]
    done = model.task_by_path["O01-work/T001-done.md"]
    assert done.done
    assert done.blocks == ["O01-work/T002-blocked.md"]
    assert len(model.dependencies) == 1
    assert model.dependencies[0].type == "blocked_by"


def test_read_model_falls_back_to_query_rows():
    query = {"rows": [
        {"path": "O01-work/T001-ready.md", "frontmatter": {"tipo": "task", "estado": "Ready"}},
    ]}
    model, diagnostics = read_model_from_rootline(
        {"root": {}}, query, EMPTY_GRAPH, FIELDS, StatusRoleConfig(done=["Done"], active=["Ready"])
    )
    assert diagnostics == []
    assert len(model.tasks) == 1
    task = model.tasks[0]
    assert task.name == "T001-ready.md"
    assert task.outcome_path == "O01-work"
    assert task.active
    assert task.type == "task"


def test_read_model_fallback_skips_non_task_rows_and_prefers_derived_fields():
    query = {"rows": [
        {"path": "O01-work/README.md", "frontmatter": {"tipo": "outcome", "estado": "Pending"}},
        {"path": "O01-work/T002-x.md", "frontmatter": {"tipo": "task", "estado": "Ready", "titulo": "Old"},
         "derived": {"titulo": "New"}},
    ]}
    model, _ = read_model_from_rootline({}, query, EMPTY_GRAPH, FIELDS, StatusRoleConfig())
    assert [task.path for task in model.tasks] == ["O01-work/T002-x.md"]
    assert model.tasks[0].title == "New"


def test_read_model_reports_graph_diagnostics():
    graph = {
        "cycles": [["a", "b"]],
        "broken_links": [{"source": "a", "target": "missing", "type": "blocked_by"}],
    }
    model, diagnostics = read_model_from_rootline(
        {"root": {}}, {"rows": []}, graph, FIELDS, StatusRoleConfig()
    )
    assert model.tasks == []
    assert len(diagnostics) == 2
    assert {d.id for d in diagnostics} == {DIAGNOSTIC_GRAPH_CYCLE, DIAGNOSTIC_INVALID_BLOCKED_BY}


def test_number_value_handles_int_float_and_other():
    assert number_value(3) == 3
    assert number_value(2.0) == 2
    assert number_value("4") == 0
    assert number_value(True) == 0


def test_clean_slash_path():
    assert clean_slash_path("") == ""
    assert clean_slash_path("O01-work/./T001-a.md") == "O01-work/T001-a.md"
    assert clean_slash_path("O01-work/sub/../T001-a.md") == "O01-work/T001-a.md"


def test_read_model_from_tasks_indexes_by_path():
    tasks = [Task(path="a.md", status="Ready"), Task(path="b.md", status="Done")]
    model = ReadModel.from_tasks(tasks)
    assert model.task_by_path["b.md"].status == "Done"
    assert model.task_by_path["a.md"] is model.tasks[0]