import json

from roadmapctl.templates import DEFAULT_ROADMAPCTL_TOML, generate_stem_content


def _configured_statuses(text):
    statuses = set()
    section = ""
    for line in text.splitlines():
        if line.startswith("["):
            section = line
            continue
        key, sep, raw = line.partition(" = ")
        if not sep:
            continue
        value = json.loads(raw)
        if section == "[status_values]":
            statuses.add(value)
        elif key in ("done_statuses", "active_statuses"):
            statuses.update(value)
    return statuses


def _schema_statuses(stem):
    lines = stem.splitlines()
    start = lines.index("  estado:")
    values_line = next(line for line in lines[start:] if line.strip().startswith("values:"))
    return values_line.strip()[len("values: ["):-1].split(", ")


def test_default_config_statuses_are_allowed_by_stem_schema():
    assert "required_code_coverage = 85.0" in DEFAULT_ROADMAPCTL_TOML.splitlines()
    configured = _configured_statuses(DEFAULT_ROADMAPCTL_TOML)
    assert configured == {"Pending", "Specified", "In Progress", "Completed", "Blocked", "Obsolete"}
    schema = _schema_statuses(generate_stem_content("blocked_by"))
    assert schema == ["Pending", "Specified", "In Progress", "Completed", "Blocked", "On Hold", "Obsolete"]
    assert configured <= set(schema)


def test_stem_content_uses_dependency_link_name():
    content = generate_stem_content("blocked_by")
    assert "  blocked_by:\n    target: '^(\\./|\\.\\./|.*/)T[0-9]{3}-[^/]+\\.md$'" in content
    assert "%s" not in content


def test_stem_content_differs_only_in_link_name():
    first = generate_stem_content("blocked_by")
    second = generate_stem_content("depends_on")
    assert first.replace("  blocked_by:\n", "  depends_on:\n") == second


def test_stem_content_starts_with_version():
    assert generate_stem_content("blocked_by").startswith("version: 2\n")