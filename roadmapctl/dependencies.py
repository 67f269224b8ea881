"""Roadmap checks that run through rootline: validation, statuses and graph."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from roadmapctl.diagnostic import (
    DIAGNOSTIC_INVALID_BLOCKED_BY,
    EXIT_ENVIRONMENT,
    EXIT_VALIDATION,
    Diagnostic,
    Severity,
)
from roadmapctl.rootline import ErrorKind, JSONResult, RootlineError
from roadmapctl.status import (
    FieldConfig,
    OperationalStatus,
    _array_value,
    _string_field,
    extract_status_values,
    extract_type_values,
    operational_status_diagnostics,
    status_diagnostics,
)

DIAGNOSTIC_GRAPH_CYCLE = "RMC_GRAPH_CYCLE"
DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED = "RMC_ROOTLINE_VALIDATE_FAILED"
DIAGNOSTIC_ROOTLINE_DESCRIBE_FAILED = "RMC_ROOTLINE_DESCRIBE_FAILED"
DIAGNOSTIC_ROOTLINE_QUERY_FAILED = "RMC_ROOTLINE_QUERY_FAILED"
DIAGNOSTIC_ROOTLINE_GRAPH_FAILED = "RMC_ROOTLINE_GRAPH_FAILED"

_OPERATION_IDS = {
    "validate": DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED,
    "describe": DIAGNOSTIC_ROOTLINE_DESCRIBE_FAILED,
    "query": DIAGNOSTIC_ROOTLINE_QUERY_FAILED,
    "graph": DIAGNOSTIC_ROOTLINE_GRAPH_FAILED,
}


class _Client(Protocol):
    def validate(self, *args: str) -> JSONResult: ...

    def describe(self, target: str, *args: str) -> JSONResult: ...

    def query(self, root: str, *args: str) -> JSONResult: ...

    def graph(self, root: str, *args: str) -> JSONResult: ...


@dataclass
class RootlineCheckOptions:
    """What to check and which statuses configuration allows."""

    roadmap_root: str
    leaf_filter: str = ""
    allowed_statuses: list[str] = field(default_factory=list)
    operational_statuses: list[OperationalStatus] = field(default_factory=list)


def check_rootline(
    fields: FieldConfig, client: _Client, options: RootlineCheckOptions
) -> list[Diagnostic]:
    """Run rootline validate, describe, query and graph and collect diagnostics."""
    found: list[Diagnostic] = []

    try:
        validate_result = client.validate("--all", options.roadmap_root)
    except Exception as exc:  # any failure becomes a diagnostic
        partial = exc.result if isinstance(exc, RootlineError) else None
        parsed = (
            validate_diagnostics(partial.decoded) if isinstance(partial, JSONResult) else []
        )
        if parsed:
            found.extend(_add_rootline_error_details("validate", exc, parsed))
        else:
            found.append(rootline_operation_diagnostic("validate", exc))
        if _is_missing_rootline(exc):
            return found
    else:
        found.extend(validate_diagnostics(validate_result.decoded))

    schema_statuses: list[str] = []
    schema_types: list[str] = []
    try:
        describe_result = client.describe(ensure_dir_path(options.roadmap_root))
    except Exception as exc:
        found.append(rootline_operation_diagnostic("describe", exc))
    else:
        schema_statuses = extract_status_values(describe_result.decoded, fields)
        schema_types = extract_type_values(describe_result.decoded, fields)
        found.extend(
            operational_status_diagnostics(options.operational_statuses, schema_statuses)
        )

    query_filter = f'{fields.record_type} == "{fields.task_value}"'
    try:
        query_result = client.query(options.roadmap_root, options.leaf_filter, query_filter)
    except Exception as exc:
        found.append(rootline_operation_diagnostic("query", exc))
    else:
        found.extend(
            status_diagnostics(
                query_result.decoded,
                fields,
                options.allowed_statuses,
                schema_statuses,
                schema_types,
            )
        )

    try:
        graph_result = client.graph(options.roadmap_root, options.leaf_filter)
    except Exception as exc:
        found.append(rootline_operation_diagnostic("graph", exc))
    else:
        found.extend(graph_diagnostics(fields, graph_result.decoded))

    return found


def _number_at(decoded: Any, *keys: str) -> int:
    current = decoded
    for key in keys:
        if not isinstance(current, Mapping):
            return 0
        current = current.get(key)
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        return 0
    return int(current)


def validate_diagnostics(decoded: Mapping[str, Any]) -> list[Diagnostic]:
    """Report the invalid-record count from rootline validate output."""
    invalid = _number_at(decoded, "summary", "invalid")
    if invalid == 0:
        invalid = _number_at(decoded, "summary", "invalid_count")
    if invalid == 0:
        return []
    return [
        Diagnostic(
            id=DIAGNOSTIC_ROOTLINE_VALIDATE_FAILED,
            severity=Severity.ERROR,
            message="rootline validation reported invalid roadmap records",
            details={"invalid": invalid},
        )
    ]


def graph_diagnostics(fields: FieldConfig, decoded: Mapping[str, Any]) -> list[Diagnostic]:
    """Report cycles and broken dependency links from rootline graph output."""
    found = [
        Diagnostic(
            id=DIAGNOSTIC_GRAPH_CYCLE,
            severity=Severity.ERROR,
            message="roadmap dependency graph contains a cycle",
            details={"cycle": cycle},
        )
        for cycle in _array_value(decoded.get("cycles"))
    ]
    for link in _array_value(decoded.get("broken_links")):
        if not isinstance(link, dict):
            continue
        if _string_field(link, "type") != fields.dependency_link:
            continue
        found.append(
            Diagnostic(
                id=DIAGNOSTIC_INVALID_BLOCKED_BY,
                severity=Severity.ERROR,
                message="blocked_by link is broken or invalid",
                path=_string_field(link, "source"),
                details={"target": _string_field(link, "target"), "line": link.get("line")},
            )
        )
    return found


def _rootline_diagnostic_id(operation: str) -> str:
    return _OPERATION_IDS.get(operation, "RMC_ROOTLINE_ERROR")


def rootline_operation_diagnostic(operation: str, error: BaseException) -> Diagnostic:
    """Describe a failed rootline operation as a diagnostic."""
    if isinstance(error, RootlineError):
        if error.kind == ErrorKind.MISSING_BINARY:
            return error.diagnostic()
        exit_code = error.exit_code
        if operation == "validate" and error.kind == ErrorKind.EXECUTION:
            exit_code = EXIT_VALIDATION
        return Diagnostic(
            id=_rootline_diagnostic_id(operation),
            severity=Severity.ERROR,
            message=error.message,
            path=error.path,
            details={
                "operation": operation,
                "kind": ErrorKind(error.kind).value,
                "stderr": error.stderr,
            },
            exit_code=exit_code,
        )
    return Diagnostic(
        id=_rootline_diagnostic_id(operation),
        severity=Severity.ERROR,
        message=str(error),
        details={"operation": operation},
        exit_code=EXIT_ENVIRONMENT,
    )


def _add_rootline_error_details(
    operation: str, error: BaseException, parsed: list[Diagnostic]
) -> list[Diagnostic]:
    operation_diagnostic = rootline_operation_diagnostic(operation, error)
    for diagnostic in parsed:
        diagnostic.details.update(operation_diagnostic.details)
        if diagnostic.exit_code == 0:
            diagnostic.exit_code = operation_diagnostic.exit_code
    return parsed


def _is_missing_rootline(error: BaseException) -> bool:
    return isinstance(error, RootlineError) and error.kind == ErrorKind.MISSING_BINARY


def ensure_dir_path(path: str) -> str:
    """Append a trailing separator unless the path already ends with one."""
    if path.endswith("/") or path.endswith("\\"):
        return path
    return path + "/"