"""Checks of the on-disk layout of a roadmap: outcomes, tasks and raw links."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator

from roadmapctl.diagnostic import DIAGNOSTIC_INVALID_BLOCKED_BY, Diagnostic, Severity
from roadmapctl.status import FieldConfig

DIAGNOSTIC_SINGLE_FILE_FALLBACK = "RMC_STRUCTURE_SINGLE_FILE_FALLBACK"
DIAGNOSTIC_MISSING_OUTCOME_README = "RMC_STRUCTURE_MISSING_OUTCOME_README"
DIAGNOSTIC_DUPLICATE_ID = "RMC_STRUCTURE_DUPLICATE_ID"
DIAGNOSTIC_EXTRA_NESTING = "RMC_STRUCTURE_EXTRA_NESTING"
DIAGNOSTIC_INVALID_TASK_FILENAME = "RMC_STRUCTURE_INVALID_TASK_FILENAME"
DIAGNOSTIC_INVALID_OUTCOME_DIR = "RMC_STRUCTURE_INVALID_OUTCOME_DIR"

_OUTCOME_NAME = re.compile(r"(O[0-9]{2})-.+")
_TASK_NAME = re.compile(r"(T[0-9]{3})-.+\.md")

_README = "README.md"
_SUMMARY_MESSAGE = (
    "multiple tasks must be materialized as canonical TXXX files, not a summary file"
)


def outcome_id(name: str) -> str | None:
    """Return the id of an outcome directory name ("O01-slug" -> "O01"), or None."""
    match = _OUTCOME_NAME.match(name)
    return match.group(1) if match else None


def task_id(name: str) -> str | None:
    """Return the id of a task file name ("T001-slug.md" -> "T001"), or None."""
    match = _TASK_NAME.fullmatch(name)
    return match.group(1) if match else None


def _blocked_by_pattern(link_name: str) -> re.Pattern[str]:
    return re.compile(r"\[\[" + re.escape(link_name) + r":([^\]]+)\]\]")


def _ignored_entry(name: str) -> bool:
    return name.startswith(".")


def _is_single_file_fallback(name: str) -> bool:
    return name.endswith("-tasks.md")


def _to_slash(path: str) -> str:
    return path if os.sep == "/" else path.replace(os.sep, "/")


def _rel_path(root: str, path: str) -> str:
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        return _to_slash(os.path.normpath(path))
    return _to_slash(rel)


def _sorted_entries(directory: str) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as iterator:
        return sorted(iterator, key=lambda entry: entry.name)


def _structure_diagnostic(diagnostic_id: str, path: str, message: str) -> Diagnostic:
    return Diagnostic(id=diagnostic_id, severity=Severity.ERROR, message=message, path=path)


def _duplicate_diagnostic(root: str, path: str, record_id: str, first: str) -> Diagnostic:
    return Diagnostic(
        id=DIAGNOSTIC_DUPLICATE_ID,
        severity=Severity.ERROR,
        message="duplicate roadmap id in the same scope",
        path=_rel_path(root, path),
        details={"id": record_id, "first": first},
    )


def _blocked_by_diagnostic(root: str, source_path: str, target: str, message: str) -> Diagnostic:
    return Diagnostic(
        id=DIAGNOSTIC_INVALID_BLOCKED_BY,
        severity=Severity.ERROR,
        message=message,
        path=_rel_path(root, source_path),
        details={"target": target, "source": "raw-scan"},
    )


def _is_explicit_blocked_by_target(target: str) -> bool:
    if not (target.startswith("./") or target.startswith("../") or "/" in target):
        return False
    base = target.rsplit("/", 1)[-1]
    return base.startswith("T") and target.endswith(".md")


def invalid_blocked_by_diagnostic(
    root: str, source_path: str, target: str, link_name: str
) -> Diagnostic | None:
    """Return a diagnostic when a raw dependency link target is invalid.

    Targets that do not exist are left for the graph check and give None.
    """
    if not _is_explicit_blocked_by_target(target):
        return _blocked_by_diagnostic(
            root,
            source_path,
            target,
            f"{link_name} target must use explicit relative path to a task file",
        )
    resolved = os.path.normpath(
        os.path.join(os.path.dirname(source_path), target.replace("/", os.sep))
    )
    if not resolved.startswith(root + os.sep) and resolved != root:
        return _blocked_by_diagnostic(
            root, source_path, target, f"{link_name} target must stay inside roadmap root"
        )
    try:
        os.stat(resolved)
    except OSError:
        return None
    if os.path.isdir(resolved):
        return _blocked_by_diagnostic(
            root, source_path, target, f"{link_name} target must point to a task file"
        )
    if task_id(os.path.basename(resolved)) is None:
        return _blocked_by_diagnostic(
            root, source_path, target, f"{link_name} target must point to a TXXX task file"
        )
    return None


def _markdown_files(directory: str) -> Iterator[str]:
    """Yield markdown files below directory in lexical order, skipping hidden directories."""
    for entry in _sorted_entries(directory):
        if entry.is_dir(follow_symlinks=False):
            if _ignored_entry(entry.name):
                continue
            yield from _markdown_files(entry.path)
        elif entry.name.endswith(".md"):
            yield entry.path


def _check_raw_blocked_by_links(root: str, fields: FieldConfig) -> list[Diagnostic]:
    pattern = _blocked_by_pattern(fields.dependency_link)
    found: list[Diagnostic] = []
    for path in _markdown_files(root):
        try:
            with open(path, "rb") as handle:
                text = handle.read().decode("utf-8", errors="replace")
        except OSError as exc:
            raise OSError(f"read roadmap record {_rel_path(root, path)}: {exc}") from exc
        for match in pattern.finditer(text):
            diagnostic = invalid_blocked_by_diagnostic(
                root, path, match.group(1).strip(), fields.dependency_link
            )
            if diagnostic is not None:
                found.append(diagnostic)
    return found


def _check_outcome_structure(root: str, outcome_path: str) -> list[Diagnostic]:
    try:
        entries = _sorted_entries(outcome_path)
    except OSError as exc:
        raise OSError(f"read outcome {_rel_path(root, outcome_path)}: {exc}") from exc

    found: list[Diagnostic] = []
    readme_path = os.path.join(outcome_path, _README)
    try:
        os.stat(readme_path)
    except FileNotFoundError:
        found.append(
            _structure_diagnostic(
                DIAGNOSTIC_MISSING_OUTCOME_README,
                _rel_path(root, readme_path),
                "outcomes must contain README.md",
            )
        )
    except OSError as exc:
        raise OSError(
            f"inspect outcome README {_rel_path(root, readme_path)}: {exc}"
        ) from exc

    task_ids: dict[str, str] = {}
    for entry in entries:
        name = entry.name
        if _ignored_entry(name):
            continue
        path = os.path.join(outcome_path, name)
        if entry.is_dir(follow_symlinks=False):
            found.append(
                _structure_diagnostic(
                    DIAGNOSTIC_EXTRA_NESTING,
                    _rel_path(root, path),
                    "outcomes cannot contain nested directories",
                )
            )
            continue
        if name == _README or not name.endswith(".md"):
            continue
        if _is_single_file_fallback(name):
            found.append(
                _structure_diagnostic(
                    DIAGNOSTIC_SINGLE_FILE_FALLBACK, _rel_path(root, path), _SUMMARY_MESSAGE
                )
            )
            continue
        record_id = task_id(name)
        if record_id is None:
            found.append(
                _structure_diagnostic(
                    DIAGNOSTIC_INVALID_TASK_FILENAME,
                    _rel_path(root, path),
                    "outcome tasks must be named TXXX-slug.md",
                )
            )
            continue
        if record_id in task_ids:
            found.append(_duplicate_diagnostic(root, path, record_id, task_ids[record_id]))
        else:
            task_ids[record_id] = _rel_path(root, path)
    return found


def check_structure(fields: FieldConfig, roadmap_root: str | os.PathLike[str]) -> list[Diagnostic]:
    """Check the layout of the roadmap at roadmap_root.

    Raises OSError when the roadmap cannot be read.
    """
    root = os.path.normpath(os.fspath(roadmap_root))
    try:
        entries = _sorted_entries(root)
    except OSError as exc:
        raise OSError(f"read roadmap root: {exc}") from exc

    found = _check_raw_blocked_by_links(root, fields)
    outcome_ids: dict[str, str] = {}
    direct_task_ids: dict[str, str] = {}

    for entry in entries:
        name = entry.name
        if _ignored_entry(name):
            continue
        path = os.path.join(root, name)

        if entry.is_dir(follow_symlinks=False):
            record_id = outcome_id(name)
            if record_id is None:
                found.append(
                    _structure_diagnostic(
                        DIAGNOSTIC_INVALID_OUTCOME_DIR,
                        _rel_path(root, path),
                        "outcome directories must be named OXX-slug",
                    )
                )
                continue
            if record_id in outcome_ids:
                found.append(
                    _duplicate_diagnostic(
                        root, os.path.join(path, _README), record_id, outcome_ids[record_id]
                    )
                )
            else:
                outcome_ids[record_id] = _rel_path(root, path)
            found.extend(_check_outcome_structure(root, path))
            continue

        if not name.endswith(".md"):
            continue
        if _is_single_file_fallback(name):
            found.append(
                _structure_diagnostic(
                    DIAGNOSTIC_SINGLE_FILE_FALLBACK, _rel_path(root, path), _SUMMARY_MESSAGE
                )
            )
            continue
        record_id = task_id(name)
        if record_id is None:
            found.append(
                _structure_diagnostic(
                    DIAGNOSTIC_INVALID_TASK_FILENAME,
                    _rel_path(root, path),
                    "direct tasks must be named TXXX-slug.md",
                )
            )
            continue
        if record_id in direct_task_ids:
            found.append(
                _duplicate_diagnostic(root, path, record_id, direct_task_ids[record_id])
            )
        else:
            direct_task_ids[record_id] = _rel_path(root, path)

    return found