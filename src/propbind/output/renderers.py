"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from propbind.output.console import create_console, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from propbind.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    d = result.data
    if result.op == "list_properties":
        return "\n".join(f"{i['key']}={_plain(i['value'])}" for i in d.get("items", []))
    if result.op == "get_property":
        return _plain(d.get("value", ""))
    if result.op == "bind":
        return _json.dumps(d.get("value"), separators=(",", ":"))
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _plain(value: Any) -> str:
    """Single-line text for a property value."""
    if isinstance(value, (dict, list)):
        return _json.dumps(value, separators=(",", ":"))
    return str(value)


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK/ERROR status line."""
    label = Text("OK", style="pb.ok")
    op = Text(f"  {result.op}", style="pb.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any, *, style: str = "pb.value") -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="pb.key")
    v = Text(_plain(value), style=style)
    console.print(k, v, end="")
    console.print()


def _add_nodes(tree: Tree, value: Any) -> None:
    """Attach *value* (nested dicts/lists) below *tree*."""
    if isinstance(value, dict):
        for key, item in value.items():
            if isinstance(item, (dict, list)):
                _add_nodes(tree.add(Text(str(key), style="pb.prop")), item)
            else:
                tree.add(Text.assemble((f"{key}: ", "pb.key"), _plain(item)))
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            if isinstance(item, (dict, list)):
                _add_nodes(tree.add(Text(f"[{idx}]", style="pb.key")), item)
            else:
                tree.add(Text.assemble((f"[{idx}] ", "pb.key"), _plain(item)))
    else:
        tree.add(Text(_plain(value)))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="pb.error")
    op = Text(f"  {result.op}", style="pb.op")
    sep = Text(": ")
    console.print(label, op, sep, Text(msg))

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(Text(f"    {k}: {v}"))


# ── Property renderers ────────────────────────────────────────────────


def _render_properties(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render list_properties as a key/value table."""
    items = result.data.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Key", style="pb.prop", no_wrap=True)
    table.add_column("Value")
    if verbose:
        table.add_column("Kind", style="pb.type")
    for item in items:
        value = item.get("value")
        row = [Text(str(item.get("key", ""))), Text(_plain(value))]
        if verbose:
            row.append(Text(type(value).__name__ if isinstance(value, (dict, list)) else "scalar"))
        table.add_row(*row)
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} properties")


def _render_property(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render get_property results."""
    d = result.data
    _status_line(console, result)
    _field(console, "key", d.get("key", ""), style="pb.prop")
    style = "pb.value" if d.get("found", True) else "pb.default"
    _field(console, "value", d.get("value", ""), style=style)
    if verbose or not d.get("found", True):
        _field(console, "found", d.get("found", True))


def _render_bind(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render bind results as a tree of bound field values."""
    d = result.data
    _status_line(console, result)
    label = d.get("target", "?")
    if d.get("key"):
        label = f"{label} <- {d['key']}"
    tree = Tree(Text(label, style="pb.type"))
    _add_nodes(tree, d.get("value"))
    console.print(tree)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose and result.meta:
        console.print()
        console.print(Text("  meta:", style="dim"))
        for k, v in result.meta.items():
            console.print(Text(f"    {k}: {v}"))


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "list_properties": _render_properties,
    "get_property": _render_property,
    "bind": _render_bind,
}
