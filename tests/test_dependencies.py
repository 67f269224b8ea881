import pytest

from roadmapctl.dependencies import (
    DIAGNOSTIC_GRAPH_CYCLE,
    DIAGNOSTIC_ROOTLINE_QUERY_FAILED,
    DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED,
    RootlineCheckOptions,
    check_rootline,
    ensure_dir_path,
    graph_diagnostics,
    rootline_operation_diagnostic,
    validate_diagnostics,
)
from roadmapctl.diagnostic import (
    DIAGNOSTIC_INVALID_BLOCKED_BY,
    DIAGNOSTIC_ROOTLINE_MISSING,
    EXIT_ENVIRONMENT,
    EXIT_VALIDATION,
)
from roadmapctl.rootline import ErrorKind, JSONResult, RootlineError
from roadmapctl.status import (
    DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH,
    DIAGNOSTIC_STATUS_UNKNOWN,
    DIAGNOSTIC_TYPE_UNKNOWN,
    FieldConfig,
    OperationalStatus,
)

ALL_STATUSES = ["Pending", "Specified", "In Progress", "Completed", "Blocked", "Obsolete"]
VALID = {"version": 1, "kind": "rootline/validate-batch", "summary": {"invalid": 0}}


def default_fields():
    return FieldConfig(
        lifecycle="estado",
        record_type="tipo",
        task_value="task",
        outcome_value="outcome",
        display_name="titulo",
        dependency_link="blocked_by",
    )


class FakeClient:
    def __init__(self, validate=None, describe=None, query=None, graph=None, err=None,
                 validate_err=None, describe_err=None, query_err=None, graph_err=None):
        self.responses = {"validate": validate, "describe": describe, "query": query, "graph": graph}
        self.errors = {"validate": validate_err, "describe": describe_err, "query": query_err, "graph": graph_err}
        self.err = err
        self.calls = []
        self.args = {}
        self.used_graph_check = False

    def _result(self, name, args):
        self.calls.append(name)
        self.args[name] = args
        if self.err is not None:
            raise self.err
        decoded = self.responses[name]
        if decoded is None:
            raise RuntimeError("missing fake response")
        result = JSONResult(decoded=decoded)
        op_err = self.errors[name]
        if op_err is not None:
            op_err.result = result
            raise op_err
        return result

    def validate(self, *args):
        return self._result("validate", args)

    def describe(self, target, *args):
        return self._result("describe", (target, *args))

    def query(self, root, *args):
        return self._result("query", (root, *args))

    def graph(self, root, *args):
        if any(where in ("--check", "check") for where in args):
            self.used_graph_check = True
        return self._result("graph", (root, *args))


def options(statuses=None, **kwargs):
    return RootlineCheckOptions(
        roadmap_root=kwargs.pop("roadmap_root", "/repo/docs/roadmap"),
        leaf_filter="isIndex == false",
        allowed_statuses=list(statuses or []),
        **kwargs,
    )


def summary(diagnostics):
    return [(d.id, d.path, d.details) for d in diagnostics]


def has(diagnostics, diagnostic_id, path):
    return any(d.id == diagnostic_id and d.path == path for d in diagnostics)


def has_detail(diagnostics, diagnostic_id, key, want):
    return any(d.id == diagnostic_id and d.details.get(key) == want for d in diagnostics)


def test_detects_cycle_from_graph_json():
    cycle = ["O01-work/T001-a.md", "O01-work/T002-b.md"]
    client = FakeClient(
        validate=VALID,
        describe={"values": ALL_STATUSES},
        query={"rows": []},
        graph={"cycles": [cycle]},
    )
    found = check_rootline(default_fields(), client, options(ALL_STATUSES))
    assert summary(found) == [(DIAGNOSTIC_GRAPH_CYCLE, "", {"cycle": cycle})]


def test_detects_broken_blocked_by_from_graph_json():
    client = FakeClient(
        validate=VALID,
        describe={"values": ALL_STATUSES},
        query={"rows": []},
        graph={"broken_links": [{"source": "O01-work/T001-task.md", "target": "O01-work/T999-missing.md", "type": "blocked_by", "line": 6}]},
    )
    found = check_rootline(default_fields(), client, options(ALL_STATUSES))
    assert summary(found) == [
        (
            DIAGNOSTIC_INVALID_BLOCKED_BY,
            "O01-work/T001-task.md",
            {"target": "O01-work/T999-missing.md", "line": 6},
        )
    ]


def test_detects_status_outside_schema_or_config():
    client = FakeClient(
        validate=VALID,
        describe={"values": ["Pending", "Completed"]},
        query={"rows": [{"path": "O01-work/T001-task.md", "frontmatter": {"estado": "Bogus", "tipo": "task"}}]},
        graph={},
    )
    found = check_rootline(default_fields(), client, options(["Pending", "Completed"]))
    assert summary(found) == [(DIAGNOSTIC_STATUS_UNKNOWN, "O01-work/T001-task.md", {"estado": "Bogus"})]


def test_allows_schema_status_without_operational_role():
    client = FakeClient(
        validate=VALID,
        describe={"schema": {"estado": {"values": ["Pending", "Completed", "On Hold"]}, "tipo": {"values": ["task", "outcome"]}}},
        query={"rows": [{"path": "O01-work/T001-task.md", "frontmatter": {"estado": "On Hold", "tipo": "task"}}]},
        graph={},
    )
    found = check_rootline(default_fields(), client, options(["Pending", "Completed"]))
    assert not any(d.id == DIAGNOSTIC_STATUS_UNKNOWN for d in found)


def test_detects_type_outside_schema():
    client = FakeClient(
        validate=VALID,
        describe={"schema": {"estado": {"values": ["Pending", "Completed"]}, "tipo": {"values": ["task", "outcome"]}}},
        query={"rows": [{"path": "O01-work/T001-task.md", "frontmatter": {"estado": "Pending", "tipo": "story"}}]},
        graph={},
    )
    found = check_rootline(default_fields(), client, options(["Pending", "Completed"]))
    assert summary(found) == [(DIAGNOSTIC_TYPE_UNKNOWN, "O01-work/T001-task.md", {"tipo": "story"})]


def test_detects_operational_status_outside_schema():
    client = FakeClient(
        validate=VALID,
        describe={"schema": {"estado": {"values": ["Pending", "Completed"]}, "tipo": {"values": ["task", "outcome"]}}},
        query={"rows": [{"path": "O01-work/T001-task.md", "frontmatter": {"estado": "Pending", "tipo": "task"}}]},
        graph={},
    )
    cfg_path = "docs/roadmap/.roadmapctl.toml"
    opts = options(operational_statuses=[
        OperationalStatus(source="status-values.completed", value="Done", path=cfg_path),
        OperationalStatus(source="done-statuses", value="Archived", path=cfg_path),
        OperationalStatus(source="active-statuses", value="Doing", path=cfg_path),
    ])
    found = check_rootline(default_fields(), client, opts)
    assert summary(found) == [
        (DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH, cfg_path, {"source": "status-values.completed", "status": "Done"}),
        (DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH, cfg_path, {"source": "done-statuses", "status": "Archived"}),
        (DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH, cfg_path, {"source": "active-statuses", "status": "Doing"}),
    ]


def test_missing_rootline_diagnostic_exit_environment():
    client = FakeClient(err=RootlineError(ErrorKind.MISSING_BINARY, "missing rootline", exit_code=EXIT_ENVIRONMENT))
    found = check_rootline(default_fields(), client, options(["Pending"]))
    assert has(found, DIAGNOSTIC_ROOTLINE_MISSING, "")
    assert [d.exit_code for d in found] == [EXIT_ENVIRONMENT]
    assert client.calls == ["validate"]


def test_parses_validate_json_on_non_zero_exit():
    client = FakeClient(
        validate={"version": 1, "kind": "rootline/validate", "summary": {"invalid": 1}},
        validate_err=RootlineError(ErrorKind.EXECUTION, "rootline command failed", stderr="validation failed", exit_code=1),
        describe={"values": ["Pending"]},
        query={"rows": []},
        graph={},
    )
    found = check_rootline(default_fields(), client, options(["Pending"]))
    assert has(found, DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED, "")
    assert has_detail(found, DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED, "invalid", 1)
    validate_diag = next(d for d in found if d.id == DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED)
    assert validate_diag.details["stderr"] == "validation failed"
    assert validate_diag.exit_code == EXIT_VALIDATION


def test_uses_generic_rootline_json_commands():
    client = FakeClient(
        validate={"summary": {"invalid": 0}},
        describe={"values": ["Pending"]},
        query={"rows": []},
        graph={},
    )
    found = check_rootline(default_fields(), client, options(["Pending"], roadmap_root="docs/roadmap"))
    assert found == []
    assert client.calls == ["validate", "describe", "query", "graph"]
    assert client.used_graph_check is False
    assert client.args["validate"] == ("--all", "docs/roadmap")
    assert client.args["describe"] == ("docs/roadmap/",)
    assert client.args["query"] == ("docs/roadmap", "isIndex == false", 'tipo == "task"')


def test_operation_failure_for_query_is_reported_and_graph_still_runs():
    client = FakeClient(validate=VALID, describe={"values": ["Pending"]}, graph={})
    found = check_rootline(default_fields(), client, options(["Pending"]))
    assert [d.id for d in found] == [DIAGNOSTIC_ROOTLINE_QUERY_FAILED]
    assert found[0].message == "missing fake response"
    assert found[0].exit_code == EXIT_ENVIRONMENT
    assert client.calls[-1] == "graph"


def test_validate_diagnostics_uses_invalid_count_fallback():
    found = validate_diagnostics({"summary": {"invalid_count": 2.0}})
    assert [d.details for d in found] == [{"invalid": 2}]
    assert validate_diagnostics({"summary": {"invalid": 0}}) == []


def test_graph_diagnostics_ignores_other_link_types():
    decoded = {"broken_links": [{"source": "a", "target": "b", "type": "reference"}, "bad"]}
    assert graph_diagnostics(default_fields(), decoded) == []


@pytest.mark.parametrize(
    ("kind", "operation", "want_exit"),
    [
        (ErrorKind.EXECUTION, "validate", EXIT_VALIDATION),
        (ErrorKind.EXECUTION, "graph", 5),
        (ErrorKind.TIMEOUT, "validate", 5),
    ],
)
def test_rootline_operation_diagnostic_exit_codes(kind, operation, want_exit):
    error = RootlineError(kind, "failed", stderr="oops", exit_code=5)
    diagnostic = rootline_operation_diagnostic(operation, error)
    assert diagnostic.exit_code == want_exit
    assert diagnostic.details == {"operation": operation, "kind": kind.value, "stderr": "oops"}


def test_ensure_dir_path():
    assert ensure_dir_path("docs/roadmap") == "docs/roadmap/"
    assert ensure_dir_path("docs/roadmap/") == "docs/roadmap/"
    assert ensure_dir_path("docs\\roadmap\\") == "docs\\roadmap\\"