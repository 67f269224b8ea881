"""Policy for moving roadmap tasks between lifecycle statuses."""

from __future__ import annotations

from dataclasses import dataclass, field

from roadmapctl.diagnostic import (
    DIAGNOSTIC_TRANSITION_ALREADY_DONE,
    DIAGNOSTIC_TRANSITION_DEPENDENCY_BLOCKED,
    DIAGNOSTIC_TRANSITION_NOT_ACTIVE,
    DIAGNOSTIC_TRANSITION_TASK_NOT_FOUND,
    Diagnostic,
    Severity,
)
from roadmapctl.model import ReadModel

_STATUS_FIELD = "estado"


@dataclass
class TransitionRoles:
    """Statuses that play each role in a transition."""

    done_statuses: list[str] = field(default_factory=list)
    active_statuses: list[str] = field(default_factory=list)
    in_progress_status: str = ""
    completed_status: str = ""


@dataclass
class BlockingDependency:
    """A dependency that keeps a task from starting."""

    path: str
    status: str


@dataclass
class TransitionChange:
    """A planned field change."""

    path: str
    field: str
    before: str
    after: str
    applied: bool = False


@dataclass
class TransitionResult:
    """Whether a transition is allowed, why, and what it would change."""

    allowed: bool = False
    reasons: list[str] = field(default_factory=list)
    blocking_dependencies: list[BlockingDependency] = field(default_factory=list)
    changes: list[TransitionChange] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    current_status: str = ""
    target_status: str = ""
    role: str = ""


def _warning(diagnostic_id: str, message: str, path: str) -> Diagnostic:
    return Diagnostic(id=diagnostic_id, severity=Severity.WARNING, message=message, path=path)


def _task_not_found(path: str) -> TransitionResult:
    return TransitionResult(
        reasons=["task not found"],
        diagnostics=[
            Diagnostic(
                id=DIAGNOSTIC_TRANSITION_TASK_NOT_FOUND,
                severity=Severity.ERROR,
                message="task not found in roadmap read model",
                path=path,
            )
        ],
    )


def can_start(model: ReadModel, roles: TransitionRoles, path: str) -> TransitionResult:
    """Plan moving a task to the in-progress status."""
    task = model.task_by_path.get(path)
    if task is None:
        return _task_not_found(path)
    result = TransitionResult(
        current_status=task.status, target_status=roles.in_progress_status, role="in_progress"
    )
    done = set(roles.done_statuses)
    if task.status in done:
        result.diagnostics.append(
            _warning(DIAGNOSTIC_TRANSITION_ALREADY_DONE, "task is already done", path)
        )
        result.reasons.append("task is already done")
        return result
    if task.status not in set(roles.active_statuses):
        result.diagnostics.append(
            _warning(DIAGNOSTIC_TRANSITION_NOT_ACTIVE, "task status is not active", path)
        )
        result.reasons.append("task status is not active")
        return result
    for dependency_path in task.dependencies:
        dependency = model.task_by_path.get(dependency_path)
        if dependency is None or dependency.status not in done:
            result.blocking_dependencies.append(
                BlockingDependency(
                    path=dependency_path,
                    status=dependency.status if dependency is not None else "",
                )
            )
    if result.blocking_dependencies:
        result.diagnostics.append(
            _warning(
                DIAGNOSTIC_TRANSITION_DEPENDENCY_BLOCKED,
                "task has dependencies outside done statuses",
                path,
            )
        )
        result.reasons.append("dependencies are not done")
        return result
    result.allowed = True
    result.reasons.append("all dependencies are done")
    result.changes.append(
        TransitionChange(
            path=path, field=_STATUS_FIELD, before=task.status, after=roles.in_progress_status
        )
    )
    return result


def can_complete(model: ReadModel, roles: TransitionRoles, path: str) -> TransitionResult:
    """Plan moving a task to the completed status."""
    task = model.task_by_path.get(path)
    if task is None:
        return _task_not_found(path)
    result = TransitionResult(
        current_status=task.status, target_status=roles.completed_status, role="completed"
    )
    if task.status in set(roles.done_statuses):
        result.diagnostics.append(
            _warning(DIAGNOSTIC_TRANSITION_ALREADY_DONE, "task is already done", path)
        )
        result.reasons.append("task is already done")
        return result
    result.allowed = True
    result.reasons.append("task can be completed after caller verification")
    result.changes.append(
        TransitionChange(
            path=path, field=_STATUS_FIELD, before=task.status, after=roles.completed_status
        )
    )
    return result


def set_status(
    model: ReadModel, roles: TransitionRoles, path: str, target_status: str
) -> TransitionResult:
    """Plan an explicit status change; in-progress goes through the start policy."""
    if target_status == roles.in_progress_status:
        return can_start(model, roles, path)
    task = model.task_by_path.get(path)
    if task is None:
        return _task_not_found(path)
    role = "completed" if target_status == roles.completed_status else "custom"
    return TransitionResult(
        allowed=True,
        current_status=task.status,
        target_status=target_status,
        role=role,
        reasons=["explicit status change planned"],
        changes=[
            TransitionChange(
                path=path, field=_STATUS_FIELD, before=task.status, after=target_status
            )
        ],
    )