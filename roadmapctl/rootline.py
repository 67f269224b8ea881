"""Client for the rootline command-line tool."""

from __future__ import annotations

import enum
import json
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from roadmapctl.diagnostic import (
    DIAGNOSTIC_ROOTLINE_MISSING,
    EXIT_ENVIRONMENT,
    Diagnostic,
    Severity,
)

DIAGNOSTIC_ROOTLINE_ERROR = "RMC_ROOTLINE_ERROR"


class ErrorKind(str, enum.Enum):
    """Category of a rootline failure."""

    MISSING_BINARY = "missing_binary"
    TIMEOUT = "timeout"
    EXECUTION = "execution"
    INCOMPATIBLE_COMMAND = "incompatible_command"
    INVALID_JSON = "invalid_json"
    INVALID_SHAPE = "invalid_shape"


@dataclass
class Command:
    """A command line to run, without any shell."""

    path: str
    args: list[str] = field(default_factory=list)
    dir: str = ""
    env: dict[str, str] | None = None


@dataclass
class Result:
    """Raw output of a finished command."""

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0


@dataclass
class JSONResult:
    """Output of a command whose stdout was decoded as a JSON object."""

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0
    decoded: dict[str, Any] = field(default_factory=dict)


class RootlineError(Exception):
    """A rootline invocation failed; ``result`` holds any output it produced."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        path: str = "",
        stderr: str = "",
        exit_code: int = 0,
        cause: BaseException | None = None,
        result: Result | JSONResult | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path
        self.stderr = stderr
        self.exit_code = exit_code
        self.result = result
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if not self.path:
            return self.message
        return f"{self.path}: {self.message}"

    def diagnostic(self) -> Diagnostic:
        """Describe this failure as a diagnostic."""
        diagnostic_id = (
            DIAGNOSTIC_ROOTLINE_MISSING
            if self.kind == ErrorKind.MISSING_BINARY
            else DIAGNOSTIC_ROOTLINE_ERROR
        )
        details: dict[str, Any] = {"kind": ErrorKind(self.kind).value}
        if self.stderr:
            details["stderr"] = self.stderr
        return Diagnostic(
            id=diagnostic_id,
            severity=Severity.ERROR,
            message=self.message,
            path=self.path,
            details=details,
            exit_code=self.exit_code,
        )


class _Executor(Protocol):
    def run(self, command: Command, timeout: float | None) -> Result: ...


class OSExecutor:
    """Runs commands as child processes."""

    def run(self, command: Command, timeout: float | None) -> Result:
        """Run the command; a non-zero exit is reported in the result."""
        completed = subprocess.run(
            [command.path, *command.args],
            cwd=command.dir or None,
            env=dict(command.env) if command.env is not None else None,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
        return Result(
            stdout=completed.stdout or b"",
            stderr=completed.stderr or b"",
            exit_code=completed.returncode,
        )


def _text(data: bytes | str | None) -> str:
    if not data:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def _bytes(data: bytes | str | None) -> bytes:
    if not data:
        return b""
    if isinstance(data, str):
        return data.encode()
    return data


def _classify_execution_kind(stderr: bytes) -> ErrorKind:
    text = _text(stderr).lower()
    if any(marker in text for marker in ("unknown command", "unknown flag", "unknown shorthand flag")):
        return ErrorKind.INCOMPATIBLE_COMMAND
    return ErrorKind.EXECUTION


def _decode_object(stdout: bytes) -> dict[str, Any]:
    decoded = json.loads(stdout)
    if decoded is None:
        return {}
    if not isinstance(decoded, dict):
        raise ValueError("JSON output is not an object")
    return decoded


def _is_executable(path: str) -> bool:
    try:
        info = os.stat(path)
    except OSError:
        return False
    if os.path.isdir(path):
        return False
    if os.name == "nt":
        return True
    return bool(info.st_mode & 0o111)


def _executable_candidates(name: str) -> list[str]:
    if os.name != "nt" or "." in os.path.basename(name):
        return [name]
    return [name + ".exe", name + ".bat", name + ".cmd", name]


def _look_path(name: str, env: Mapping[str, str]) -> str | None:
    path_value = env.get("PATH", "")
    if not path_value:
        return None
    for directory in path_value.split(os.pathsep):
        if not directory:
            continue
        for candidate in _executable_candidates(name):
            path = os.path.join(directory, candidate)
            if _is_executable(path):
                return path
    return None


def _resolve_executable(path: str, env: Mapping[str, str]) -> str:
    if "/" in path or "\\" in path or os.path.isabs(path):
        if _is_executable(path):
            return path
    else:
        resolved = _look_path(path, env)
        if resolved is not None:
            return resolved
    raise RootlineError(
        ErrorKind.MISSING_BINARY,
        "rootline executable not found or not executable",
        path=path,
        exit_code=EXIT_ENVIRONMENT,
    )


def resolve_binary(explicit: str = "", env: Mapping[str, str] | None = None) -> str:
    """Find rootline: the explicit path, then ROOTLINE_BIN, then PATH."""
    if env is None:
        env = os.environ
    if explicit:
        return _resolve_executable(explicit, env)
    rootline_bin = env.get("ROOTLINE_BIN", "")
    if rootline_bin:
        return _resolve_executable(rootline_bin, env)
    found = _look_path("rootline", env)
    if found is not None:
        return found
    raise RootlineError(
        ErrorKind.MISSING_BINARY,
        "rootline executable not found via --rootline, ROOTLINE_BIN, or PATH",
        exit_code=EXIT_ENVIRONMENT,
    )


class RootlineClient:
    """Runs rootline subcommands and decodes their JSON output."""

    def __init__(
        self,
        binary: str = "",
        dir: str = "",
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        executor: _Executor | None = None,
    ) -> None:
        self._binary = binary
        self._dir = dir
        self._env = dict(os.environ if env is None else env)
        self._timeout = timeout
        self._executor = executor if executor is not None else OSExecutor()

    def version(self) -> Result:
        """Run ``rootline --version``."""
        return self._run(["--version"])

    def validate(self, *args: str) -> JSONResult:
        """Validate the given paths."""
        return self._run_json(["validate", *args, "--output", "json"])

    def validate_one(self, path: str) -> JSONResult:
        """Validate a single path."""
        return self.validate(path)

    def describe(self, target: str, *args: str) -> JSONResult:
        """Describe a target, optionally limited to the given fields."""
        command = ["describe", target]
        for field_name in args:
            command += ["--field", field_name]
        return self._run_json([*command, "--output", "json"])

    def query(self, root: str, *args: str) -> JSONResult:
        """Query records under root matching every where-expression."""
        return self._run_json(self._filtered("query", root, args))

    def graph(self, root: str, *args: str) -> JSONResult:
        """Return the link graph under root."""
        return self._run_json(self._filtered("graph", root, args))

    def tree(self, root: str, *args: str) -> JSONResult:
        """Return the record tree under root."""
        return self._run_json(self._filtered("tree", root, args))

    def set(self, file: str, *args: str) -> Result:
        """Apply field assignments to a file."""
        return self._run(["set", file, *args])

    def new_file(self, path: str) -> Result:
        """Create a new record file."""
        return self._run(["new", path])

    def new(self, path: str) -> Result:
        """Create a new record file."""
        return self.new_file(path)

    @staticmethod
    def _filtered(subcommand: str, root: str, wheres: tuple[str, ...]) -> list[str]:
        command = [subcommand, root]
        for where in wheres:
            command += ["--where", where]
        return [*command, "--output", "json"]

    def _run(self, args: list[str]) -> Result:
        binary = resolve_binary(self._binary, self._env)
        command = Command(path=binary, args=list(args), dir=self._dir, env=dict(self._env))
        timeout = self._timeout if self._timeout and self._timeout > 0 else None
        try:
            result = self._executor.run(command, timeout)
        except (TimeoutError, subprocess.TimeoutExpired) as exc:
            stderr = _bytes(getattr(exc, "stderr", None))
            partial = Result(stdout=_bytes(getattr(exc, "stdout", None)), stderr=stderr)
            raise RootlineError(
                ErrorKind.TIMEOUT,
                "rootline command timed out",
                stderr=_text(stderr),
                exit_code=EXIT_ENVIRONMENT,
                result=partial,
            ) from exc
        except OSError as exc:
            raise RootlineError(
                ErrorKind.EXECUTION,
                "rootline command failed",
                exit_code=EXIT_ENVIRONMENT,
                result=Result(),
            ) from exc
        if result.exit_code != 0:
            raise RootlineError(
                _classify_execution_kind(result.stderr),
                "rootline command failed",
                stderr=_text(result.stderr),
                exit_code=result.exit_code,
                result=result,
            )
        return result

    def _run_json(self, args: list[str]) -> JSONResult:
        run_error: RootlineError | None = None
        try:
            result = self._run(args)
        except RootlineError as exc:
            if exc.result is None:
                raise
            run_error = exc
            result = exc.result

        decode_error: ValueError | None = None
        decoded: dict[str, Any] = {}
        try:
            decoded = _decode_object(result.stdout)
        except ValueError as exc:
            decode_error = exc

        if decode_error is not None:
            if run_error is not None:
                raise run_error
            raise RootlineError(
                ErrorKind.INVALID_JSON,
                "rootline returned invalid JSON",
                stderr=_text(result.stderr),
                exit_code=EXIT_ENVIRONMENT,
            ) from decode_error

        json_result = JSONResult(
            stdout=bytes(result.stdout),
            stderr=bytes(result.stderr),
            exit_code=result.exit_code,
            decoded=decoded,
        )
        if run_error is not None:
            run_error.result = json_result
            raise run_error
        return json_result