"""Shared utility functions for Architech.

Provides async command execution, structured-data merging and lookup,
document loading, and Rich-based progress reporting.  Every public function
except the console helpers is free of side effects on the project being
generated; writes to a generated project always go through the virtual file
system.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

console = Console()

_MISSING = object()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously.

    A list is executed directly as an argument vector; a string goes through
    the shell.

    Args:
        cmd: Argument vector or shell command string.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        capture: Whether to capture stdout/stderr (if ``False`` they inherit
            the parent's streams).
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed-out process yields
        a return code of ``-1``.

    Raises:
        OSError: If the executable cannot be started (e.g. not installed).
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    stdout_pipe = asyncio.subprocess.PIPE if capture else None
    stderr_pipe = asyncio.subprocess.PIPE if capture else None

    if isinstance(cmd, list):
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=stdout_pipe,
            stderr=stderr_pipe,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )
    else:
        process = await asyncio.create_subprocess_shell(
            cmd,
            stdout=stdout_pipe,
            stderr=stderr_pipe,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (
            -1,
            "",
            f"Command timed out after {timeout}s: {format_command(cmd)}",
        )

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


def format_command(cmd: str | list[str]) -> str:
    """Render a command for display."""
    return cmd if isinstance(cmd, str) else " ".join(cmd)


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary project name to a safe directory name.

    Examples::

        sanitize_name("My Shop") -> "my-shop"
        sanitize_name("  Acme (v2)  ") -> "acme-v2"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


# ---------------------------------------------------------------------------
# Structured data
# ---------------------------------------------------------------------------


def deep_merge(
    base: Mapping[str, Any],
    patch: Mapping[str, Any],
    concat_arrays: bool = False,
) -> dict[str, Any]:
    """Structurally merge *patch* into *base* and return a new dict.

    * Objects merge recursively, key by key.
    * Arrays are replaced by the patch's array, or concatenated (base first)
      when *concat_arrays* is set.
    * Scalars, and values whose types differ, are replaced by the patch.

    Neither input is mutated.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in patch.items():
        current = merged.get(key, _MISSING)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value, concat_arrays)
        elif concat_arrays and isinstance(current, list) and isinstance(value, list):
            merged[key] = current + copy.deepcopy(value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def lookup(data: Any, dotted: str, default: Any = None) -> Any:
    """Resolve a dotted path (``"module.parameters.name"``) inside nested data.

    Mapping keys and integer list indices are both supported.  Returns
    *default* when any segment is missing.
    """
    current = data
    for part in dotted.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return default
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def has_path(data: Any, dotted: str) -> bool:
    """Return ``True`` if *dotted* resolves inside *data*."""
    return lookup(data, dotted, _MISSING) is not _MISSING


def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ``ValidationError`` into one readable line."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    )


def dump_json(data: Any) -> str:
    """Serialise data the way generated JSON files are written."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def load_document(path: str | Path) -> Any:
    """Load a YAML or JSON document from disk, chosen by file suffix.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content cannot be parsed.
    """
    file_path = Path(path)
    raw = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            return json.loads(raw)
        return yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Cannot parse {file_path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


CATEGORY_COLORS: dict[str, str] = {
    "framework": "bright_cyan",
    "database": "bright_green",
    "auth": "bright_yellow",
    "ui": "bright_magenta",
    "testing": "bright_red",
    "deployment": "bright_blue",
}


def print_module_header(index: int, total: int, module_id: str, category: str) -> None:
    """Print a full-width rule announcing the module about to run.

    Args:
        index: 1-based position of the module in the recipe.
        total: Number of modules in the recipe.
        module_id: Module identifier.
        category: Module category, used to pick the colour.
    """
    color = CATEGORY_COLORS.get(category, "white")
    console.print()
    console.print(
        Rule(
            f"[bold {color}] Module {index}/{total}: {module_id} ({category}) [/bold {color}]",
            style=color,
        )
    )


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
