"""Typer CLI application — top-level commands and subcommand groups."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Callable, Optional

import portalocker
import typer

import gridpilot
from gridpilot.config import Settings
from gridpilot.contracts.common import GridCorruptError, Target, WarningDetail
from gridpilot.contracts.grid import Cell, CellPosition, Grid
from gridpilot.contracts.proposals import (
    ProposalDocument,
    ProposalKind,
    ProposalStatus,
    ProposalTarget,
)
from gridpilot.contracts.responses import CommitResult, GridMeta
from gridpilot.diff.differ import diff_grids, summarize_diff
from gridpilot.engine.canonical import canonicalize
from gridpilot.engine.dispatcher import (
    error_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from gridpilot.engine.proposal import proposal_from_document
from gridpilot.engine.session import Session
from gridpilot.engine.store import GridStore
from gridpilot.engine.suggestions import context_key, is_enabled
from gridpilot.io.fileops import (
    GridLock,
    grid_fingerprint,
    load_grid,
    load_json,
    read_text_safe,
    save_grid,
)
from gridpilot.observe.events import Timer

# ---------------------------------------------------------------------------
# App & subcommand groups
# ---------------------------------------------------------------------------

_MAIN_HELP = """\
Reconcile assistant-proposed changes into a spreadsheet grid.

**Recommended workflow:**  propose → show → commit

1. `gridpilot grid new -f grid.json --title Budget --rows 3 --cols 2`
2. `gridpilot propose append -f grid.json --data '[{"cells":[{"value":"Rent"},{"value":"900"}]}]' --out p.json`
3. `gridpilot proposal show --proposal p.json -f grid.json`  — preview the change
4. `gridpilot commit -f grid.json --proposal p.json`

**Every command** returns a JSON `ResponseEnvelope`:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "warnings": [...], "metrics": {"duration_ms": N}}`

**Exit codes:** 0=success, 10=validation, 40=conflict, 50=io, 90=internal
"""

_GRID_EPILOG = """\
**Examples:**

`gridpilot grid show -f grid.json`

`gridpilot grid edit -f grid.json --ref B2 --value 42`

`gridpilot grid import --xlsx book.xlsx --sheet Budget -f grid.json`

Grid files are JSON: `{"title": "...", "rows": [[{"value": "..."}]]}`.
"""

_PROPOSE_EPILOG = """\
**Examples:**

`gridpilot propose override -f grid.json --data-file rows.json --out p.json`

`gridpilot propose append -f grid.json --data '[[{"value":"a"},{"value":"b"}]]' --out p.json`

Proposals record the grid's **fingerprint**; `commit` refuses them if the grid changed since.
"""

_SUGGEST_EPILOG = """\
**Examples:**

`gridpilot suggest context -f grid.json --ref A2`  — request context, enabled flag and key

`gridpilot suggest accept -f grid.json --ref A2 --suggestion s.json --key sha256:...`

A suggestion whose key no longer matches the grid's current context is rejected as stale.
"""


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(gridpilot.__version__)
        raise typer.Exit()


app = typer.Typer(
    name="gridpilot",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

grid_app = typer.Typer(
    name="grid", help="Create, inspect, edit, import and export grid files.",
    epilog=_GRID_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
propose_app = typer.Typer(
    name="propose", help="Stage override or append proposals as proposal files.",
    epilog=_PROPOSE_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
proposal_app = typer.Typer(
    name="proposal", help="Preview and validate proposal files.",
    no_args_is_help=True, rich_markup_mode="markdown",
)
suggest_app = typer.Typer(
    name="suggest", help="Inspect suggestion contexts and accept suggestions.",
    epilog=_SUGGEST_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)

app.add_typer(grid_app)
app.add_typer(propose_app)
app.add_typer(proposal_app)
app.add_typer(suggest_app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
) -> None:
    if version:
        _version_callback(True)


# Type aliases for common options
FilePath = Annotated[str, typer.Option("--file", "-f", help="Path to grid JSON file")]
DataOpt = Annotated[Optional[str], typer.Option("--data", help="Inline JSON array of rows")]
DataFileOpt = Annotated[Optional[str], typer.Option("--data-file", help="Path to JSON file with an array of rows (or {\"rows\": [...]})")]
RefOpt = Annotated[str, typer.Option("--ref", help="Cell reference in A1 notation (e.g. B2)")]

LOCK_TIMEOUT = 5.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None):
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _load_grid_or_emit(file: str, cmd: str) -> Grid:
    """Load a grid file, or emit an error envelope."""
    try:
        return load_grid(file)
    except FileNotFoundError:
        _emit(error_envelope(cmd, "ERR_GRID_NOT_FOUND", f"File not found: {file}", target=Target(file=file)))
    except GridCorruptError as e:
        _emit(error_envelope(cmd, "ERR_GRID_CORRUPT", str(e), target=Target(file=file)))


def _load_settings_or_emit(file: str, cmd: str) -> Settings:
    try:
        return Settings.load_from_dir(Path(file).resolve().parent)
    except Exception as e:
        _emit(error_envelope(cmd, "ERR_SETTINGS_INVALID", f"Cannot load settings: {e}", target=Target(file=file)))


def _parse_position_or_emit(ref: str, cmd: str, file: str) -> CellPosition:
    try:
        return CellPosition.from_ref(ref)
    except ValueError as e:
        _emit(error_envelope(cmd, "ERR_INVALID_ARGUMENT", str(e), target=Target(file=file, ref=ref)))


def _read_rows(data: Optional[str], data_file: Optional[str]) -> Any:
    """Parse raw rows from --data or --data-file. Accepts a bare array or {"rows": [...]}."""
    if (data is None) == (data_file is None):
        raise ValueError("Provide exactly one of --data or --data-file")
    try:
        parsed = json.loads(data) if data is not None else load_json(data_file)
    except Exception as e:
        raise ValueError(f"Cannot parse rows: {e}") from e
    if isinstance(parsed, dict) and "rows" in parsed:
        parsed = parsed["rows"]
    return parsed


def _load_proposal(path: str) -> ProposalDocument:
    try:
        data = json.loads(read_text_safe(path))
    except Exception as e:
        raise ValueError(f"Cannot parse proposal: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Proposal file must contain a JSON object.")
    if {"ok", "command", "result"}.issubset(data):
        # Auto-extract the proposal body from a ResponseEnvelope.
        inner = data.get("result")
        if isinstance(inner, dict) and "kind" in inner:
            data = inner
        else:
            raise ValueError("Proposal file contains a ResponseEnvelope without a proposal body.")
    try:
        return ProposalDocument(**data)
    except Exception as e:
        raise ValueError(f"Cannot parse proposal: {e}") from e


def _write_proposal(path: str, document: ProposalDocument) -> None:
    Path(path).write_text(json.dumps(document.model_dump(mode="json"), indent=2))


def _mutate_grid(
    file: str,
    command: str,
    mutate: Callable[[GridStore], Grid],
    *,
    ref: str | None = None,
) -> None:
    """Load, mutate and save a grid file under its sidecar lock."""
    with Timer() as t:
        try:
            with GridLock(file, timeout=LOCK_TIMEOUT):
                before = _load_grid_or_emit(file, command)
                store = GridStore(before)
                try:
                    after = mutate(store)
                except (IndexError, ValueError) as e:
                    _emit(error_envelope(command, "ERR_RANGE_INVALID", str(e), target=Target(file=file, ref=ref)))
                save_grid(file, after)
        except portalocker.LockException:
            _emit(error_envelope(command, "ERR_LOCK_TIMEOUT", f"Grid is locked by another process: {file}",
                                 target=Target(file=file)))

    env = success_envelope(
        command,
        after.model_dump(mode="json"),
        target=Target(file=file, ref=ref),
        changes=diff_grids(before, after),
        duration_ms=t.elapsed_ms,
    )
    _emit(env)


# ---------------------------------------------------------------------------
# gridpilot version
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the gridpilot version."""
    env = success_envelope("version", {"version": gridpilot.__version__})
    _emit(env)


# ---------------------------------------------------------------------------
# gridpilot grid ...
# ---------------------------------------------------------------------------
@grid_app.command("new")
def grid_new(
    file: FilePath,
    title: Annotated[str, typer.Option("--title", help="Grid title")] = "",
    rows: Annotated[int, typer.Option("--rows", min=0, help="Number of empty rows")] = 1,
    cols: Annotated[int, typer.Option("--cols", min=0, help="Number of empty columns")] = 1,
    force: Annotated[bool, typer.Option("--force", help="Overwrite file if it already exists")] = False,
):
    """Create a new grid file filled with empty cells.

    Example: `gridpilot grid new -f grid.json --title Budget --rows 3 --cols 2`
    """
    p = Path(file)
    if p.exists() and not force:
        _emit(error_envelope(
            "grid.new", "ERR_FILE_EXISTS",
            f"File already exists: {p}. Use --force to overwrite.",
            target=Target(file=file),
        ))
    grid = Grid(title=title, rows=tuple(tuple(Cell() for _ in range(cols)) for _ in range(rows)))
    save_grid(p, grid)
    env = success_envelope("grid.new", grid.model_dump(mode="json"), target=Target(file=file))
    _emit(env)


@grid_app.command("show")
def grid_show(file: FilePath):
    """Show grid metadata, fingerprint and values.

    Example: `gridpilot grid show -f grid.json`
    """
    from gridpilot.validation.validators import validate_grid

    with Timer() as t:
        grid = _load_grid_or_emit(file, "grid.show")
        meta = GridMeta(
            path=str(Path(file).resolve()),
            title=grid.title,
            fingerprint=grid_fingerprint(grid),
            height=grid.height,
            width=grid.width,
            rectangular=grid.is_rectangular(),
            blank=grid.is_blank(),
        )
        hygiene = validate_grid(grid)

    result = {**meta.model_dump(), "values": grid.to_values()}
    env = success_envelope("grid.show", result, target=Target(file=file), duration_ms=t.elapsed_ms)
    env.warnings = [
        WarningDetail(code="GRID_WARNING", message=c["message"])
        for c in hygiene.checks if c.get("severity") == "warning"
    ]
    _emit(env)


@grid_app.command("canonicalize")
def grid_canonicalize(data: DataOpt = None, data_file: DataFileOpt = None):
    """Normalize raw rows into a rectangular grid of text cells. Non-mutating.

    Example: `gridpilot grid canonicalize --data '[[{"value":1}],[{"value":"a"},{}]]'`
    """
    try:
        raw = _read_rows(data, data_file)
    except ValueError as e:
        _emit(error_envelope("grid.canonicalize", "ERR_INVALID_ARGUMENT", str(e)))
    rows = canonicalize(raw)
    result = {"rows": [[c.model_dump() for c in row] for row in rows], "height": len(rows),
              "width": max((len(r) for r in rows), default=0)}
    _emit(success_envelope("grid.canonicalize", result))


@grid_app.command("import")
def grid_import(
    file: FilePath,
    xlsx: Annotated[str, typer.Option("--xlsx", help="Source .xlsx workbook")],
    sheet: Annotated[Optional[str], typer.Option("--sheet", "-s", help="Sheet name (default: first sheet)")] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Grid title (default: sheet name)")] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite grid file if it already exists")] = False,
):
    """Import a worksheet's values into a new grid file.

    Example: `gridpilot grid import --xlsx book.xlsx --sheet Budget -f grid.json`
    """
    from gridpilot.io.workbook import import_grid

    if Path(file).exists() and not force:
        _emit(error_envelope("grid.import", "ERR_FILE_EXISTS",
                             f"File already exists: {file}. Use --force to overwrite.", target=Target(file=file)))
    with Timer() as t:
        try:
            grid = import_grid(xlsx, sheet, title=title)
        except FileNotFoundError as e:
            _emit(error_envelope("grid.import", "ERR_WORKBOOK_NOT_FOUND", str(e), target=Target(file=xlsx)))
        except KeyError as e:
            _emit(error_envelope("grid.import", "ERR_SHEET_NOT_FOUND", str(e.args[0]), target=Target(file=xlsx)))
        except GridCorruptError as e:
            _emit(error_envelope("grid.import", "ERR_WORKBOOK_CORRUPT", str(e), target=Target(file=xlsx)))
        save_grid(file, grid)

    _emit(success_envelope("grid.import", grid.model_dump(mode="json"), target=Target(file=file),
                           duration_ms=t.elapsed_ms))


@grid_app.command("export")
def grid_export(
    file: FilePath,
    xlsx: Annotated[str, typer.Option("--xlsx", help="Destination .xlsx workbook")],
):
    """Export a grid file to a single-sheet workbook.

    Example: `gridpilot grid export -f grid.json --xlsx out.xlsx`
    """
    from gridpilot.io.workbook import export_grid

    grid = _load_grid_or_emit(file, "grid.export")
    export_grid(grid, xlsx)
    result = {"path": str(Path(xlsx).resolve()), "height": grid.height, "width": grid.width}
    _emit(success_envelope("grid.export", result, target=Target(file=file)))


@grid_app.command("edit")
def grid_edit(
    file: FilePath,
    ref: RefOpt,
    value: Annotated[str, typer.Option("--value", help="New cell text")],
):
    """Set a single cell's value. Mutating.

    Example: `gridpilot grid edit -f grid.json --ref B2 --value 42`
    """
    pos = _parse_position_or_emit(ref, "grid.edit", file)
    _mutate_grid(file, "grid.edit", lambda store: store.set_cell(pos, value), ref=ref)


@grid_app.command("title")
def grid_title(
    file: FilePath,
    title: Annotated[str, typer.Option("--title", help="New grid title")],
):
    """Rename the grid. Mutating."""
    _mutate_grid(file, "grid.title", lambda store: store.set_title(title))


@grid_app.command("add-row")
def grid_add_row(file: FilePath):
    """Append an empty row as wide as the grid. Mutating."""
    _mutate_grid(file, "grid.add_row", lambda store: store.add_row())


@grid_app.command("add-column")
def grid_add_column(file: FilePath):
    """Append an empty cell to every row. Mutating."""
    _mutate_grid(file, "grid.add_column", lambda store: store.add_column())


# ---------------------------------------------------------------------------
# gridpilot propose ...
# ---------------------------------------------------------------------------
def _propose(
    kind: ProposalKind,
    file: str,
    data: Optional[str],
    data_file: Optional[str],
    status: str,
    title: Optional[str],
    out: Optional[str],
) -> None:
    command = f"propose.{kind.value}"
    try:
        raw = _read_rows(data, data_file)
        proposal_status = ProposalStatus(status)
    except ValueError as e:
        _emit(error_envelope(command, "ERR_INVALID_ARGUMENT", str(e), target=Target(file=file)))

    grid = _load_grid_or_emit(file, command)
    proposal_id = f"prp_{datetime.now(timezone.utc).strftime('%Y%m%d')}_{uuid.uuid4().hex[:8]}"
    document = ProposalDocument(
        proposal_id=proposal_id,
        kind=kind,
        status=proposal_status,
        title=title,
        target=ProposalTarget(file=file, fingerprint=grid_fingerprint(grid)),
        rows=raw if isinstance(raw, list) else [],
    )
    if out:
        _write_proposal(out, document)
    env = success_envelope(command, document.model_dump(mode="json"),
                           target=Target(file=file, proposal=proposal_id))
    if not isinstance(raw, list):
        env.warnings.append(WarningDetail(code="ROWS_NOT_ARRAY", message="Rows payload was not an array; proposal is empty."))
    _emit(env)


@propose_app.command("override")
def propose_override(
    file: FilePath,
    data: DataOpt = None,
    data_file: DataFileOpt = None,
    status: Annotated[str, typer.Option("--status", help="'complete' or 'in_progress'")] = "complete",
    title: Annotated[Optional[str], typer.Option("--title", help="Title suggested by the assistant (display only)")] = None,
    out: Annotated[Optional[str], typer.Option("--out", "-o", help="Write the proposal JSON to this file")] = None,
):
    """Stage a full replacement of the grid's rows. Non-mutating.

    Example: `gridpilot propose override -f grid.json --data-file rows.json --out p.json`
    """
    _propose(ProposalKind.OVERRIDE, file, data, data_file, status, title, out)


@propose_app.command("append")
def propose_append(
    file: FilePath,
    data: DataOpt = None,
    data_file: DataFileOpt = None,
    status: Annotated[str, typer.Option("--status", help="'complete' or 'in_progress'")] = "complete",
    out: Annotated[Optional[str], typer.Option("--out", "-o", help="Write the proposal JSON to this file")] = None,
):
    """Stage rows to append after the grid's existing rows. Non-mutating.

    Example: `gridpilot propose append -f grid.json --data '[[{"value":"x"}]]' --out p.json`
    """
    _propose(ProposalKind.APPEND, file, data, data_file, status, None, out)


# ---------------------------------------------------------------------------
# gridpilot proposal ...
# ---------------------------------------------------------------------------
ProposalOpt = Annotated[str, typer.Option("--proposal", help="Path to proposal JSON file")]


def _load_proposal_or_emit(path: str, command: str) -> ProposalDocument:
    try:
        return _load_proposal(path)
    except ValueError as e:
        _emit(error_envelope(command, "ERR_PROPOSAL_INVALID", str(e), target=Target(proposal=path)))


@proposal_app.command("show")
def proposal_show(
    proposal_path: ProposalOpt,
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Grid file to preview against")] = None,
):
    """Preview a proposal: canonical rows, labels and (with -f) cell changes.

    Example: `gridpilot proposal show --proposal p.json -f grid.json`
    """
    document = _load_proposal_or_emit(proposal_path, "proposal.show")
    grid_file = file or document.target.file
    base = _load_grid_or_emit(grid_file, "proposal.show") if grid_file else None
    settings = _load_settings_or_emit(grid_file, "proposal.show") if grid_file else Settings()
    proposal = proposal_from_document(GridStore(base), document, settings=settings)
    preview = proposal.preview(base)
    result = preview.model_dump(mode="json")
    result["proposal_id"] = proposal.proposal_id
    if base is not None:
        result["summary"] = summarize_diff(base, proposal.project(base), preview.changes).model_dump()
    _emit(success_envelope("proposal.show", result, target=Target(file=grid_file, proposal=proposal_path)))


@proposal_app.command("validate")
def proposal_validate(file: FilePath, proposal_path: ProposalOpt):
    """Validate a proposal against a grid (fingerprint, status, thresholds).

    Example: `gridpilot proposal validate -f grid.json --proposal p.json`
    """
    from gridpilot.validation.validators import validate_proposal

    document = _load_proposal_or_emit(proposal_path, "proposal.validate")
    grid = _load_grid_or_emit(file, "proposal.validate")
    settings = _load_settings_or_emit(file, "proposal.validate")
    result = validate_proposal(grid, document, settings)
    _emit(success_envelope("proposal.validate", result.model_dump(), target=Target(file=file, proposal=proposal_path)))


# ---------------------------------------------------------------------------
# gridpilot commit
# ---------------------------------------------------------------------------
@app.command("commit")
def commit_cmd(
    file: FilePath,
    proposal_path: ProposalOpt,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview changes without writing to disk")] = False,
    do_backup: Annotated[bool, typer.Option("--backup/--no-backup", help="Create timestamped .bak copy before writing")] = False,
):
    """Accept a proposal and write the result to the grid file. Mutating.

    Validates the proposal first: the grid must not have changed since the
    proposal was created, and the proposal must be complete.

    Example (preview): `gridpilot commit -f grid.json --proposal p.json --dry-run`

    Example (commit): `gridpilot commit -f grid.json --proposal p.json --backup`
    """
    from gridpilot.io.fileops import backup as make_backup
    from gridpilot.validation.validators import validate_proposal

    document = _load_proposal_or_emit(proposal_path, "commit")
    target = Target(file=file, proposal=proposal_path)

    with Timer() as t:
        try:
            with GridLock(file, timeout=LOCK_TIMEOUT):
                before = _load_grid_or_emit(file, "commit")
                settings = _load_settings_or_emit(file, "commit")
                fp_before = grid_fingerprint(before)

                if document.target.fingerprint and document.target.fingerprint != fp_before:
                    _emit(error_envelope(
                        "commit", "ERR_PROPOSAL_FINGERPRINT_CONFLICT",
                        "Grid changed since the proposal was created",
                        target=target,
                        details={"expected": document.target.fingerprint, "actual": fp_before},
                    ))

                validation = validate_proposal(before, document, settings)
                if not validation.valid:
                    _emit(error_envelope(
                        "commit", "ERR_VALIDATION_FAILED", "Proposal validation failed",
                        target=target, details={"checks": validation.checks},
                    ))

                store = GridStore(before, reconcile=settings.reconcile_on_commit)
                proposal = proposal_from_document(store, document, settings=settings)
                if dry_run:
                    after = proposal.project(before)
                else:
                    proposal.accept()
                    after = store.grid

                backup_path = None
                fp_after = None
                if not dry_run:
                    if do_backup:
                        backup_path = make_backup(file)
                    save_grid(file, after)
                    fp_after = grid_fingerprint(after)
        except portalocker.LockException:
            _emit(error_envelope("commit", "ERR_LOCK_TIMEOUT", f"Grid is locked by another process: {file}",
                                 target=target))

    changes = diff_grids(before, after)
    result_data = CommitResult(
        committed=not dry_run,
        dry_run=dry_run,
        kind=document.kind.value,
        backup_path=backup_path,
        rows_committed=len(proposal.candidate_rows),
        fingerprint_before=fp_before,
        fingerprint_after=fp_after,
    ).model_dump()
    result_data["label"] = proposal.label
    if dry_run:
        result_data["dry_run_summary"] = summarize_diff(before, after, changes).model_dump()

    _emit(success_envelope("commit", result_data, target=target, changes=changes, duration_ms=t.elapsed_ms))


# ---------------------------------------------------------------------------
# gridpilot suggest ...
# ---------------------------------------------------------------------------
@suggest_app.command("context")
def suggest_context(
    file: FilePath,
    ref: Annotated[Optional[str], typer.Option("--ref", help="Active cell in A1 notation (omit for no focus)")] = None,
):
    """Show the suggestion request context for a grid and active cell. Non-mutating.

    Example: `gridpilot suggest context -f grid.json --ref A2`
    """
    grid = _load_grid_or_emit(file, "suggest.context")
    settings = _load_settings_or_emit(file, "suggest.context")
    session = Session(grid, settings=settings)
    if ref:
        session.focus(_parse_position_or_emit(ref, "suggest.context", file))
    context = session.context()
    result = {
        "enabled": is_enabled(context),
        "key": context_key(context),
        "active_cell": context.active_cell.model_dump() if context.active_cell else None,
        "active_cell_value": context.active_cell_value,
        "status": session.suggestion.status.value,
        "request": session.last_request.model_dump(mode="json") if session.last_request else None,
    }
    _emit(success_envelope("suggest.context", result, target=Target(file=file, ref=ref)))


@suggest_app.command("accept")
def suggest_accept(
    file: FilePath,
    ref: RefOpt,
    suggestion: Annotated[str, typer.Option("--suggestion", help="Path to JSON file with the supplier result {\"rows\": [...]}")],
    key: Annotated[Optional[str], typer.Option("--key", help="Context key the suggestion was requested for")] = None,
):
    """Accept a supplier suggestion for the current context. Mutating.

    The suggestion replaces every row of the grid (the title is kept). With
    `--key`, a suggestion requested for an older context is rejected as stale.

    Example: `gridpilot suggest accept -f grid.json --ref A2 --suggestion s.json --key sha256:...`
    """
    target = Target(file=file, ref=ref)
    pos = _parse_position_or_emit(ref, "suggest.accept", file)
    try:
        payload = load_json(suggestion)
    except Exception as e:
        _emit(error_envelope("suggest.accept", "ERR_INVALID_ARGUMENT", f"Cannot parse suggestion: {e}", target=target))

    with Timer() as t:
        try:
            with GridLock(file, timeout=LOCK_TIMEOUT):
                before = _load_grid_or_emit(file, "suggest.accept")
                settings = _load_settings_or_emit(file, "suggest.accept")
                session = Session(before, settings=settings)
                session.focus(pos)
                current = session.suggestion.key
                if current is None:
                    _emit(error_envelope("suggest.accept", "ERR_VALIDATION_FAILED",
                                         "Suggestions are disabled for this context (blank grid or no cell)",
                                         target=target))
                if key is not None and key != current:
                    _emit(error_envelope("suggest.accept", "ERR_SUGGESTION_CONFLICT",
                                         "Suggestion was requested for a different context",
                                         target=target, details={"expected": current, "actual": key}))
                if not session.deliver_suggestion(current, payload) or not session.accept_suggestion():
                    _emit(error_envelope("suggest.accept", "ERR_VALIDATION_FAILED",
                                         "Suggestion payload has no usable rows", target=target))
                after = session.grid
                save_grid(file, after)
        except portalocker.LockException:
            _emit(error_envelope("suggest.accept", "ERR_LOCK_TIMEOUT", f"Grid is locked by another process: {file}",
                                 target=target))

    _emit(success_envelope("suggest.accept", after.model_dump(mode="json"), target=target,
                           changes=diff_grids(before, after), duration_ms=t.elapsed_ms))


# ---------------------------------------------------------------------------
# gridpilot serve
# ---------------------------------------------------------------------------
@app.command("serve")
def serve_cmd(
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Grid file to load and keep in sync")] = None,
):
    """Run the JSON-lines session server over stdin/stdout.

    Example: `gridpilot serve -f grid.json`
    """
    from gridpilot.server.stdio import StdioServer

    grid = _load_grid_or_emit(file, "serve") if file else None
    settings = _load_settings_or_emit(file, "serve") if file else Settings()
    StdioServer(grid, settings=settings, file=file).run()
