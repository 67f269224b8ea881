"""Checks of lifecycle statuses and record types against the Rootline schema."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from roadmapctl.diagnostic import Diagnostic, Severity

DIAGNOSTIC_STATUS_UNKNOWN = "RMC_STATUS_UNKNOWN"
DIAGNOSTIC_TYPE_UNKNOWN = "RMC_STATUS_TYPE_UNKNOWN"
DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH = "RMC_CONFIG_STATUS_SCHEMA_MISMATCH"

_DEFAULT_OPERATIONAL_STATUS_PATH = ".claude/roadmap.local.md"


@dataclass(frozen=True)
class FieldConfig:
    """Names of the frontmatter fields and values a roadmap uses."""

    lifecycle: str = "estado"
    record_type: str = "tipo"
    task_value: str = "task"
    outcome_value: str = "outcome"
    display_name: str = "titulo"
    dependency_link: str = "blocked_by"


@dataclass(frozen=True)
class OperationalStatus:
    """A status value named by configuration, with where it came from."""

    source: str
    value: str
    path: str = ""


def _array_value(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _strings_from_array(value: Any) -> list[str]:
    return [item for item in _array_value(value) if isinstance(item, str)]


def _string_field(fields: Any, key: str) -> str:
    if not isinstance(fields, Mapping):
        return ""
    value = fields.get(key)
    return value if isinstance(value, str) else ""


def _dict_value(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def status_diagnostics(
    decoded: Mapping[str, Any],
    fields: FieldConfig,
    configured: Iterable[str],
    schema_statuses: Iterable[str] | None,
    schema_types: Iterable[str] | None,
) -> list[Diagnostic]:
    """Report query rows whose status or type the schema does not allow."""
    schema_statuses = list(schema_statuses or [])
    schema_types = list(schema_types or [])
    allowed_statuses = set(schema_statuses) if schema_statuses else set(configured)
    allowed_types = (
        set(schema_types) if schema_types else {fields.task_value, fields.outcome_value}
    )

    found: list[Diagnostic] = []
    for row in _array_value(decoded.get("rows")):
        if not isinstance(row, dict):
            continue
        path = _string_field(row, "path")
        frontmatter = row.get("frontmatter")
        status = _string_field(frontmatter, fields.lifecycle)
        if not status or status not in allowed_statuses:
            found.append(
                Diagnostic(
                    id=DIAGNOSTIC_STATUS_UNKNOWN,
                    severity=Severity.ERROR,
                    message=f"task {fields.lifecycle} is not allowed by Rootline schema",
                    path=path,
                    details={fields.lifecycle: status},
                )
            )
        record_type = _string_field(frontmatter, fields.record_type)
        if not record_type or record_type not in allowed_types:
            found.append(
                Diagnostic(
                    id=DIAGNOSTIC_TYPE_UNKNOWN,
                    severity=Severity.ERROR,
                    message=f"record {fields.record_type} is not allowed by Rootline schema",
                    path=path,
                    details={fields.record_type: record_type},
                )
            )
    return found


def operational_status_diagnostics(
    statuses: Iterable[OperationalStatus],
    schema_statuses: Iterable[str] | None,
) -> list[Diagnostic]:
    """Report configured statuses the schema does not allow, once per source and value."""
    statuses = list(statuses or [])
    allowed = set(schema_statuses or [])
    if not statuses or not allowed:
        return []
    seen: set[tuple[str, str]] = set()
    found: list[Diagnostic] = []
    for status in statuses:
        if not status.value or status.value in allowed:
            continue
        key = (status.source, status.value)
        if key in seen:
            continue
        seen.add(key)
        found.append(
            Diagnostic(
                id=DIAGNOSTIC_CONFIG_STATUS_SCHEMA_MISMATCH,
                severity=Severity.ERROR,
                message="configured operational status is not allowed by Rootline schema",
                path=status.path or _DEFAULT_OPERATIONAL_STATUS_PATH,
                details={"source": status.source, "status": status.value},
            )
        )
    return found


def extract_schema_enum_values(decoded: Mapping[str, Any], field: str) -> list[str]:
    """Return the enum values the describe output gives for a schema field."""
    schema = _dict_value(decoded.get("schema"))
    field_schema = _dict_value(schema.get(field))
    return _strings_from_array(field_schema.get("values"))


def extract_status_values(decoded: Mapping[str, Any], fields: FieldConfig) -> list[str]:
    """Return allowed lifecycle values from describe output."""
    values = _strings_from_array(decoded.get("values"))
    if values:
        return values
    return extract_schema_enum_values(decoded, fields.lifecycle)


def extract_type_values(decoded: Mapping[str, Any], fields: FieldConfig) -> list[str]:
    """Return allowed record type values from describe output."""
    return extract_schema_enum_values(decoded, fields.record_type)


def intersect_string_sets(left: set[str], right: set[str]) -> set[str]:
    """Intersect two sets, treating an empty left side as no restriction."""
    if not left:
        return right
    return {value for value in left if value in right}