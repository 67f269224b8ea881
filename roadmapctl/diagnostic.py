"""Diagnostic records produced by roadmap checks."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_ENVIRONMENT = 3

DIAGNOSTIC_ROOTLINE_MISSING = "RMC_ROOTLINE_MISSING"
DIAGNOSTIC_INVALID_BLOCKED_BY = "RMC_INVALID_BLOCKED_BY"
DIAGNOSTIC_TRANSITION_ALREADY_DONE = "RMC_TRANSITION_ALREADY_DONE"
DIAGNOSTIC_TRANSITION_NOT_ACTIVE = "RMC_TRANSITION_NOT_ACTIVE"
DIAGNOSTIC_TRANSITION_DEPENDENCY_BLOCKED = "RMC_TRANSITION_DEPENDENCY_BLOCKED"
DIAGNOSTIC_TRANSITION_TASK_NOT_FOUND = "RMC_TRANSITION_TASK_NOT_FOUND"


class Severity(str, enum.Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single finding about a roadmap."""

    id: str
    severity: Severity
    message: str
    path: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    exit_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping, leaving out empty optional fields."""
        out: dict[str, Any] = {
            "id": self.id,
            "severity": Severity(self.severity).value,
            "message": self.message,
        }
        if self.path:
            out["path"] = self.path
        if self.details:
            out["details"] = dict(self.details)
        if self.exit_code:
            out["exit_code"] = self.exit_code
        return out