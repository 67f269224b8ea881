# roadmapctl

A library of checks and read models for markdown roadmaps laid out as outcome
directories (`O01-slug/`) holding task files (`T001-slug.md`). Record metadata
(status, type, title, `blocked_by` links) is read through the external
`rootline` command-line tool, which must be installed separately.

## Install

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

No third-party libraries are needed at run time.

## Modules

### `roadmapctl.diagnostic`

`Diagnostic` is a dataclass with `id`, `severity` (`Severity.ERROR` or
`Severity.WARNING`), `message`, `path`, `details` and `exit_code`.
`Diagnostic.to_dict()` returns a JSON-ready mapping that leaves out an empty
path, empty details and a zero exit code. The module also defines the exit
codes `EXIT_OK` (0), `EXIT_VALIDATION` (1) and `EXIT_ENVIRONMENT` (3) and the
shared diagnostic ids.

### `roadmapctl.status`

`FieldConfig` names the frontmatter fields a roadmap uses; its defaults are
`estado`, `tipo`, `task`, `outcome`, `titulo` and `blocked_by`.

- `status_diagnostics(decoded, fields, configured, schema_statuses, schema_types)`
  reports query rows whose status or type is not allowed. Schema values win
  over configured statuses; without schema types, the task and outcome values
  are allowed.
- `operational_status_diagnostics(statuses, schema_statuses)` reports
  `OperationalStatus` values (configured statuses with their source) that the
  schema does not list, once per source and value.
- `extract_status_values`, `extract_type_values` and
  `extract_schema_enum_values` pull enum values from `rootline describe` output.
- `intersect_string_sets(left, right)` intersects two sets, treating an empty
  left side as no restriction.

### `roadmapctl.structure`

- `check_structure(fields, roadmap_root)` walks a roadmap directory and
  returns diagnostics for misnamed outcome directories and task files, outcomes
  without `README.md`, duplicate ids in the same scope, directories nested
  inside outcomes, `*-tasks.md` summary files, and raw `[[blocked_by:...]]`
  links that are bare, leave the roadmap root, or point at a directory or a
  non-task file. Entries starting with `.` are skipped. Paths are relative to
  the root and slash-separated. Raises `OSError` when the roadmap cannot be read.
- `invalid_blocked_by_diagnostic(root, source_path, target, link_name)` checks
  one link target; missing targets give `None` and are left to the graph check.
- `outcome_id(name)` and `task_id(name)` return `"O01"` / `"T001"` style ids,
  or `None` when the name does not match.

### `roadmapctl.rootline`

- `resolve_binary(explicit, env)` finds `rootline` from an explicit path, then
  `ROOTLINE_BIN`, then `PATH`, and raises `RootlineError` with kind
  `ErrorKind.MISSING_BINARY` when none is found.
- `RootlineClient(binary, dir, env, timeout, executor)` runs subcommands as
  argument lists, never through a shell: `version()`, `validate(*paths)`,
  `validate_one(path)`, `describe(target, *fields)`, `query(root, *wheres)`,
  `graph(root, *wheres)`, `tree(root, *wheres)`, `set(file, *assignments)`,
  `new_file(path)` and `new(path)`. JSON commands return a `JSONResult` with the
  decoded object; others return a `Result`.
- Failures raise `RootlineError` with an `ErrorKind` (missing binary, timeout,
  execution, incompatible command, invalid JSON). When a failing command still
  printed valid JSON, the error's `result` holds the decoded output.
  `RootlineError.diagnostic()` turns it into a `Diagnostic`.
- `OSExecutor` runs a `Command` as a child process; any object with a
  `run(command, timeout)` method can stand in for it.

### `roadmapctl.dependencies`

`check_rootline(fields, client, options)` runs validate, describe, query and
graph through a client and collects diagnostics: invalid records, statuses and
types outside the schema, configured statuses outside the schema, dependency
cycles and broken `blocked_by` links. A failing operation becomes a diagnostic
rather than an exception; a missing `rootline` stops the checks after
validation. `RootlineCheckOptions` holds the roadmap root, leaf filter,
allowed statuses and operational statuses. `validate_diagnostics`,
`graph_diagnostics`, `rootline_operation_diagnostic` and `ensure_dir_path` are
available on their own.

### `roadmapctl.model`

`read_model_from_rootline(tree, query, graph, fields, roles)` returns a
`ReadModel` and the graph diagnostics. Tasks come from `tree` output, or from
query rows when the tree lists none; statuses, types and titles come from query
rows (derived fields over frontmatter); `blocked_by` edges fill each task's
`dependencies` and `blocks`. `StatusRoleConfig` says which statuses mark a task
`done` or `active`. `roadmap_context_from_tree(decoded)` reads just the tree and
raises `ValueError` when it has no root object. `ReadModel.from_tasks(tasks)`
builds a model from a list of `Task` objects.

### `roadmapctl.transition`

`can_start`, `can_complete` and `set_status` plan status changes on a
`ReadModel` against `TransitionRoles` and return a `TransitionResult` with
`allowed`, `reasons`, `blocking_dependencies`, planned `changes` and
`diagnostics`. Starting needs an active status and every dependency in a done
status; `set_status` to the in-progress status goes through the same policy.
Nothing is written to disk.

### `roadmapctl.templates`

`generate_stem_content(dependency_link)` returns a default `.stem` schema, and
`DEFAULT_ROADMAPCTL_TOML` holds default roadmap settings as TOML text.

### `roadmapctl.golden`

Helpers for comparing JSON reports with golden files: `normalize_json`,
`normalize_path_string` (longest replacement first), `assert_golden_json`,
`decode_json`, `contains_backslash`, `has_diagnostic_id`, `golden_path` and
`fixture_path`.

### `roadmapctl.updater`

- `fetch_and_stage(current_version, api_url, download_base, cache_dir)`
  downloads the latest release when it is newer, checks it against the listed
  SHA-256 and unpacks the binary into `<cache>/roadmapctl/staged/<tag>/`.
  The endpoints default to the `ROADMAPCTL_RELEASE_API` and
  `ROADMAPCTL_DOWNLOAD_BASE` environment variables; without them nothing is
  fetched. `ROADMAPCTL_NO_UPDATE=1` or version `dev` turn it off. Network
  problems are ignored; a checksum mismatch raises `ChecksumMismatchError`.
- `apply_staged_if_available(current_version, cache_dir, executable, exec_fn)`
  swaps in the newest staged binary when it is newer and restarts through
  `exec_fn` (by default `platform_exec`). Failures are ignored.
- `is_newer` and `parse_semver` compare `vMAJOR.MINOR.PATCH` tags;
  `find_newest`, `stage_release`, `extract_from_tar_gz`, `extract_from_zip`,
  `write_atomic`, `copy_file` and `atomic_replace` are the building blocks.

## Example

```python
from roadmapctl.status import FieldConfig
from roadmapctl.structure import check_structure

fields = FieldConfig()
for diagnostic in check_structure(fields, "docs/roadmap"):
    print(diagnostic.id, diagnostic.path, diagnostic.message)
```

## What it does not do

This is a library only: it has no command-line program of its own and no
configuration-file loader, so field names and status roles are passed in as
`FieldConfig`, `StatusRoleConfig` and `TransitionRoles`. Transitions are
planned but not applied; writing a status change is up to the caller, for
example through `RootlineClient.set`. All record metadata checks depend on an
installed `rootline` executable.