from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Optional

import typer

from workgraph.core.errors import (
    DependencyRejected,
    GraphError,
    GraphLoadError,
    GraphValidationError,
    SettingsError,
)
from workgraph.core.graph.build_graph import build_graph
from workgraph.core.graph.find_cycles import format_cycle
from workgraph.core.io.load_items import dump_items, load_items
from workgraph.core.lint.lint_items import lint_items
from workgraph.core.model import GraphView, WorkItemRecord
from workgraph.core.service.dependency_service import DependencyService, InMemoryWorkItemRepository
from workgraph.core.settings import EngineSettings, resolve_settings
from workgraph.core.validate.validate_items import summarize_items, validate_items

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="Optional YAML settings file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
) -> None:
    """Work-item dependency graph CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = resolve_settings(config)
    except FileNotFoundError:
        _print_errors(
            [
                GraphLoadError(
                    code="E_SETTINGS_FILE_NOT_FOUND",
                    message=f"settings file not found: {config}",
                    file=None,
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except SettingsError as e:
        _print_errors(
            [
                GraphValidationError(
                    code="E_SETTINGS_INVALID",
                    message=str(e),
                    file=config,
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=2)


@app.command("validate")
def validate(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a work-item file."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")
    settings = _settings(ctx)

    def _emit_json(ok: bool, *, exit_code: int, errors: list[GraphError], summary: dict | None) -> None:
        _echo_json(
            {
                "tool": "workgraph",
                "command": "validate",
                "ok": ok,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in errors],
                "summary": summary,
            }
        )
        raise typer.Exit(code=exit_code)

    try:
        doc = load_items(path)
    except GraphLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    records, errors = validate_items(doc, unresolved_references=settings.unresolved_references)
    if errors or records is None:
        if format == "json":
            _emit_json(False, exit_code=2, errors=list(errors), summary=None)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(summarize_items(records))
        return

    counts = Counter([r.type for r in records])
    summary = {
        "item_count": len(records),
        "type_counts": {k: int(v) for k, v in counts.items()},
        "scopes": sorted({r.scope for r in records if r.scope is not None}),
    }
    _emit_json(True, exit_code=0, errors=[], summary=summary)


@app.command("lint")
def lint(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a work-item file (references, self/duplicate dependencies, cycles)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")
    settings = _settings(ctx)

    def _emit_json(ok: bool, errors: list[GraphError], exit_code: int) -> None:
        _echo_json(
            {
                "tool": "workgraph",
                "command": "lint",
                "ok": ok,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in errors],
            }
        )
        raise typer.Exit(code=exit_code)

    try:
        doc = load_items(path)
    except GraphLoadError as e:
        if format == "json":
            _emit_json(False, [e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    lint_errors = lint_items(doc)
    _, validation_errors = validate_items(doc, unresolved_references=settings.unresolved_references)
    errors: list[GraphError] = [*lint_errors, *validation_errors]

    if format == "text":
        if errors:
            _print_errors(errors)
            raise typer.Exit(code=2)
        typer.echo("OK: lint passed")
        return

    if errors:
        _emit_json(False, errors, 2)
    _emit_json(True, [], 0)


@app.command("graph")
def graph(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    scope: Optional[str] = typer.Option(None, "--scope", help="Scope to build the graph for"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Show nodes, edges, critical path and cycles for one scope."""
    _check_format(format, "E_GRAPH_UNKNOWN_FORMAT")
    view = _graph_view(ctx, path, scope)

    if format == "json":
        _echo_json({"tool": "workgraph", "command": "graph", "ok": True, "graph": view.to_dict()})
        return

    typer.echo(f"Scope: {view.scope if view.scope is not None else '<none>'}")
    typer.echo(f"Nodes: {len(view.nodes)}, Edges: {len(view.edges)}")
    for e in view.edges:
        marker = "*" if e.is_critical else " "
        typer.echo(f"{marker} {e.from_id} -> {e.to_id}")
    typer.echo("Critical path: " + (" -> ".join(view.critical_path) or "<none>"))
    if view.cycles:
        typer.echo(f"Cycles: {len(view.cycles)}")
        for c in view.cycles:
            typer.echo(f"- {format_cycle(c)}")
    else:
        typer.echo("Cycles: none")


@app.command("cycles")
def cycles(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    scope: Optional[str] = typer.Option(None, "--scope", help="Scope to check"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List dependency cycles. Exit code 2 when any exist."""
    _check_format(format, "E_CYCLES_UNKNOWN_FORMAT")
    view = _graph_view(ctx, path, scope)
    ok = not view.cycles

    if format == "json":
        _echo_json(
            {
                "tool": "workgraph",
                "command": "cycles",
                "scope": view.scope,
                "ok": ok,
                "cycle_count": len(view.cycles),
                "cycles": [list(c) for c in view.cycles],
            }
        )
    elif ok:
        typer.echo("OK: no cycles")
    else:
        for c in view.cycles:
            typer.echo(f"cycle: {format_cycle(c)}")

    if not ok:
        raise typer.Exit(code=2)


@app.command("critical-path")
def critical_path_cmd(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    scope: Optional[str] = typer.Option(None, "--scope", help="Scope to analyze"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Longest dependency chain. Exit code 2 when the graph is cyclic."""
    _check_format(format, "E_CRITICAL_PATH_UNKNOWN_FORMAT")
    view = _graph_view(ctx, path, scope)

    if view.cycles:
        err = GraphValidationError(
            code="E_GRAPH_HAS_CYCLE",
            message="critical path is undefined for a cyclic graph: "
            + "; ".join(format_cycle(c) for c in view.cycles),
            file=path,
            path="items",
        )
        if format == "json":
            _echo_json(
                {
                    "tool": "workgraph",
                    "command": "critical-path",
                    "scope": view.scope,
                    "ok": False,
                    "critical_path": [],
                    "errors": [_to_item(err)],
                }
            )
        else:
            _print_errors([err])
        raise typer.Exit(code=2)

    if format == "json":
        _echo_json(
            {
                "tool": "workgraph",
                "command": "critical-path",
                "scope": view.scope,
                "ok": True,
                "critical_path": list(view.critical_path),
                "critical_edges": [e.to_dict() for e in view.edges if e.is_critical],
                "errors": [],
            }
        )
        return

    if not view.critical_path:
        typer.echo("OK: no dependencies, no critical path")
        return
    typer.echo(f"Critical path ({len(view.critical_path)} items): " + " -> ".join(view.critical_path))


@app.command("check-edge")
def check_edge(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    item_id: str = typer.Argument(..., help="Item that would gain the dependency"),
    depends_on_id: str = typer.Argument(..., help="Item it would depend on"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Would ITEM_ID depending on DEPENDS_ON_ID create a cycle? Exit code 2 if so."""
    _check_format(format, "E_CHECK_EDGE_UNKNOWN_FORMAT")
    settings = _settings(ctx)
    _, records = _load_records(path, settings)
    by_id = {r.id: r for r in records}

    errors: list[GraphError] = []
    for name, iid in (("item_id", item_id), ("depends_on_id", depends_on_id)):
        if iid not in by_id:
            errors.append(
                GraphValidationError(
                    code="E_ITEM_NOT_FOUND",
                    message=f"work item not found: {iid}",
                    file=path,
                    path=name,
                )
            )
    if not errors and by_id[item_id].scope != by_id[depends_on_id].scope:
        errors.append(
            GraphValidationError(
                code="E_CROSS_SCOPE",
                message=(
                    f"cannot add dependency across scopes: {item_id} ({by_id[item_id].scope}) "
                    f"-> {depends_on_id} ({by_id[depends_on_id].scope})"
                ),
                file=path,
                path="depends_on_id",
            )
        )
    if not errors and item_id == depends_on_id:
        errors.append(
            GraphValidationError(
                code="E_SELF_DEPENDENCY",
                message=f"cannot add self-dependency: {item_id}",
                file=path,
                path="depends_on_id",
            )
        )
    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)

    scope = by_id[item_id].scope
    service = DependencyService(InMemoryWorkItemRepository(records), settings)
    edges = build_graph(r for r in records if r.scope == scope).edges
    creates_cycle = service.would_create_cycle(item_id, depends_on_id, edges)

    if format == "json":
        _echo_json(
            {
                "tool": "workgraph",
                "command": "check-edge",
                "from": item_id,
                "to": depends_on_id,
                "would_create_cycle": creates_cycle,
            }
        )
    elif creates_cycle:
        typer.echo(f"CYCLE: {item_id} -> {depends_on_id} would create a circular dependency")
    else:
        typer.echo(f"OK: {item_id} -> {depends_on_id} keeps the graph acyclic")

    if creates_cycle:
        raise typer.Exit(code=2)


@app.command("add-dep")
def add_dep(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    item_id: str = typer.Argument(..., help="Item that gains the dependency"),
    depends_on_id: str = typer.Argument(..., help="Item it depends on"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of in place"),
) -> None:
    """Add a dependency after the self/duplicate/scope/cycle checks pass."""
    settings = _settings(ctx)
    doc, records = _load_records(path, settings)
    service = DependencyService(InMemoryWorkItemRepository(records), settings)

    try:
        service.add_dependency(item_id, depends_on_id)
    except DependencyRejected as e:
        _print_errors([_located(e, path)])
        raise typer.Exit(code=2)

    target = out or path
    _write_back(doc, service, item_id, target)
    typer.echo(f"OK: {item_id} now depends on {depends_on_id} (wrote {target})")


@app.command("remove-dep")
def remove_dep(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    item_id: str = typer.Argument(..., help="Item that loses the dependency"),
    depends_on_id: str = typer.Argument(..., help="Dependency to remove"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of in place"),
) -> None:
    """Remove a dependency."""
    settings = _settings(ctx)
    doc, records = _load_records(path, settings)
    service = DependencyService(InMemoryWorkItemRepository(records), settings)

    try:
        service.remove_dependency(item_id, depends_on_id)
    except DependencyRejected as e:
        _print_errors([_located(e, path)])
        raise typer.Exit(code=2)

    target = out or path
    _write_back(doc, service, item_id, target)
    typer.echo(f"OK: {item_id} no longer depends on {depends_on_id} (wrote {target})")


def _settings(ctx: typer.Context) -> EngineSettings:
    if isinstance(ctx.obj, EngineSettings):
        return ctx.obj
    return resolve_settings()


def _load_records(path: str, settings: EngineSettings) -> tuple[dict[str, Any], list[WorkItemRecord]]:
    try:
        doc = load_items(path)
    except GraphLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    records, errors = validate_items(doc, unresolved_references=settings.unresolved_references)
    if errors or records is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    return doc, records


def _graph_view(ctx: typer.Context, path: str, scope: Optional[str]) -> GraphView:
    settings = _settings(ctx)
    _, records = _load_records(path, settings)

    scopes = sorted({r.scope for r in records}, key=lambda s: (s is not None, s or ""))
    if scope is None:
        if len(scopes) > 1:
            _print_errors(
                [
                    GraphValidationError(
                        code="E_SCOPE_REQUIRED",
                        message=f"file has several scopes, choose one with --scope: {', '.join(str(s) for s in scopes)}",
                        file=path,
                        path="scope",
                    )
                ]
            )
            raise typer.Exit(code=2)
        scope = scopes[0] if scopes else None
    elif scope not in scopes:
        _print_errors(
            [
                GraphValidationError(
                    code="E_UNKNOWN_SCOPE",
                    message=f"--scope references unknown scope: {scope}",
                    file=path,
                    path="scope",
                )
            ]
        )
        raise typer.Exit(code=2)

    service = DependencyService(InMemoryWorkItemRepository(records), settings)
    return service.get_graph(scope)


def _write_back(doc: dict[str, Any], service: DependencyService, item_id: str, target: str) -> None:
    updated = service.repository.get(item_id)
    assert updated is not None
    for raw in doc.get("items") or []:
        if isinstance(raw, dict) and raw.get("id") == item_id:
            raw["depends_on"] = list(updated.depends_on)
            break
    dump_items(doc, target)


def _located(e: GraphError, file: str) -> GraphError:
    return type(e)(code=e.code, message=e.message, file=file, path=e.path)


def _check_format(format: str, code: str) -> None:
    if format in ("text", "json"):
        return
    _print_errors(
        [
            GraphValidationError(
                code=code,
                message=f"unknown format: {format} (choose one of: text, json)",
                file=None,
                path="format",
            )
        ]
    )
    raise typer.Exit(code=2)


def _to_item(e: GraphError) -> dict:
    if isinstance(e, GraphLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _echo_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _print_errors(errors: list[GraphError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="workgraph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
