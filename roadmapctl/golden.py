"""Helpers for comparing JSON reports against golden files."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

_ROOTLINE_VERSION_KEY = "rootline_version"
_ROOTLINE_VERSION_PLACEHOLDER = "<rootline-version>"


def _to_slash(value: str) -> str:
    if os.sep == "/":
        return value
    return value.replace(os.sep, "/")


def normalize_path_string(value: str, replacements: Mapping[str, str] | None) -> str:
    """Use slash separators and apply replacements, longest match first."""
    value = _to_slash(value)
    pairs = [(_to_slash(source), target) for source, target in (replacements or {}).items()]
    pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
    for source, target in pairs:
        value = value.replace(source, target)
    return value


def _normalize_value(value: Any, replacements: Mapping[str, str] | None) -> Any:
    if isinstance(value, dict):
        return {
            key: (
                _ROOTLINE_VERSION_PLACEHOLDER
                if key == _ROOTLINE_VERSION_KEY
                else _normalize_value(item, replacements)
            )
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_normalize_value(item, replacements) for item in value]
    if isinstance(value, str):
        return normalize_path_string(value, replacements)
    return value


def normalize_json(data: bytes | str, replacements: Mapping[str, str] | None) -> bytes:
    """Decode JSON, normalise paths and versions, and re-encode it indented."""
    value = json.loads(data)
    value = _normalize_value(value, replacements)
    text = json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def assert_golden_json(
    golden_path: str | os.PathLike[str],
    data: bytes | str,
    replacements: Mapping[str, str] | None,
) -> bytes:
    """Raise AssertionError unless the normalised data matches the golden file."""
    normalized = normalize_json(data, replacements)
    try:
        with open(golden_path, "rb") as handle:
            want = handle.read()
    except OSError as exc:
        raise AssertionError(
            f"read golden {golden_path}: {exc}\nactual:\n{normalized.decode('utf-8')}"
        ) from exc
    want = want.strip()
    got = normalized.strip()
    if want != got:
        raise AssertionError(
            f"golden mismatch {golden_path}\nwant:\n{want.decode('utf-8')}\ngot:\n{got.decode('utf-8')}"
        )
    return normalized


def decode_json(data: bytes | str) -> dict[str, Any]:
    """Decode a JSON object; raise ValueError for anything else."""
    value = json.loads(data)
    if not isinstance(value, dict):
        raise ValueError("JSON value is not an object")
    return value


def contains_backslash(value: Any) -> bool:
    """Report whether any string nested in value holds a backslash."""
    if isinstance(value, str):
        return "\\" in value
    if isinstance(value, dict):
        return any(contains_backslash(item) for item in value.values())
    if isinstance(value, list):
        return any(contains_backslash(item) for item in value)
    return False


def has_diagnostic_id(report: Mapping[str, Any], diagnostic_id: str) -> bool:
    """Report whether the report lists a diagnostic with the given id."""
    items = report.get("diagnostics")
    if not isinstance(items, list):
        return False
    return any(isinstance(item, dict) and item.get("id") == diagnostic_id for item in items)


def golden_path(*args: str) -> str:
    """Path of a golden file under testdata/golden."""
    return os.path.join("testdata", "golden", *args)


def fixture_path(name: str) -> str:
    """Path of a fixture directory under testdata/fixtures."""
    return os.path.join("testdata", "fixtures", name)