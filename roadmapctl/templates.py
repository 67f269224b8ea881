"""Bootstrap templates for new roadmaps."""

_RECORD_PATTERNS = ("O*", "T*")
_LIFECYCLE_VALUES = (
    "Pending",
    "Specified",
    "In Progress",
    "Completed",
    "Blocked",
    "On Hold",
    "Obsolete",
)
_RECORD_TYPES = ("outcome", "task")
_ID_PREFIXES = (("O", 2), ("T", 3))
_TASK_LINK_TARGET = r"^(\./|\.\./|.*/)T[0-9]{3}-[^/]+\.md$"

_ROADMAPCTL_DEFAULTS = (
    ("done_statuses", ("Completed", "Obsolete")),
    ("active_statuses", ("Pending", "Specified", "In Progress")),
    ("leaf_filter", "isIndex == false"),
    ("outcome_close_verify", ()),
    ("pr_merge_strategy", "squash"),
    ("commit_style", "conventional"),
    ("auto_push", True),
    ("required_code_coverage", 85.0),
    ("loop_max_tasks", 0),
    ("parallel", True),
    ("autonomy", "until_done"),
    ("compact_after_task_commit", True),
    ("pr_mode", False),
)
_STATUS_VALUES = (
    ("pending", "Pending"),
    ("specified", "Specified"),
    ("in_progress", "In Progress"),
    ("completed", "Completed"),
    ("blocked", "Blocked"),
    ("obsolete", "Obsolete"),
)


def _indent(depth: int, text: str) -> str:
    return "  " * depth + text


def _flow(items, quoted: bool = False) -> str:
    rendered = (f'"{item}"' if quoted else item for item in items)
    return "[" + ", ".join(rendered) + "]"


def _enum_field(name: str, required, values) -> list[str]:
    return [
        _indent(1, f"{name}:"),
        _indent(2, "type: enum"),
        _indent(2, "required:"),
        _indent(3, "match: " + _flow(required, quoted=True)),
        _indent(2, "match: " + _flow(_RECORD_PATTERNS, quoted=True)),
        _indent(2, "values: " + _flow(values)),
    ]


def _sequence_field(name: str) -> list[str]:
    lines = [_indent(1, f"{name}:"), _indent(2, "type: sequence"), _indent(2, "match:")]
    for prefix, digits in _ID_PREFIXES:
        lines.append(_indent(3, f'"{prefix}*": {{ prefix: {prefix}, digits: {digits} }}'))
    return lines


def _toml_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return repr(value)


def _render_toml() -> str:
    lines = [f"{key} = {_toml_value(value)}" for key, value in _ROADMAPCTL_DEFAULTS]
    lines += ["", "[status_values]"]
    lines += [f"{key} = {_toml_value(value)}" for key, value in _STATUS_VALUES]
    return "\n".join(lines) + "\n"


DEFAULT_ROADMAPCTL_TOML = _render_toml()


def generate_stem_content(dependency_link: str) -> str:
    """Return the canonical .stem template using the given dependency link name."""
    header = ["version: 2", "scope:", _indent(1, 'match: "*.md"')]
    schema = (
        ["schema:"]
        + _enum_field("estado", ("T*",), _LIFECYCLE_VALUES)
        + [""]
        + _enum_field("tipo", _RECORD_PATTERNS, _RECORD_TYPES)
        + [""]
        + _sequence_field("id")
    )
    links = [
        "links:",
        _indent(1, f"{dependency_link}:"),
        _indent(2, f"target: '{_TASK_LINK_TARGET}'"),
        _indent(1, "reference:"),
        _indent(2, 'target: ".*"'),
    ]
    validate = ["validate:", _indent(1, "- field: tipo"), _indent(2, "rule: non_empty")]
    sections = (header, schema, links, validate)
    return "\n\n".join("\n".join(section) for section in sections) + "\n"