"""``env-merger``: line-level merge of ``KEY=value`` environment files.

Existing keys have their line replaced in place (keeping an ``export ``
prefix), new keys are appended, and every other line (comments, blank
lines, unrelated keys) is kept verbatim.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Optional

from pydantic import Field

from architech.engine import FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierParams

_ENV_LINE_RE = re.compile(r"^(\s*(?:export\s+)?)([A-Za-z_][A-Za-z0-9_.]*)\s*=")


def format_env_value(value: str) -> str:
    """Quote values that would otherwise be cut at whitespace or ``#``."""
    if value[:1] in ("'", '"'):
        return value
    if re.search(r"\s|#", value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def parse_env_keys(content: str) -> dict[str, int]:
    """Map each defined key to the index of the line that defines it last."""
    keys: dict[str, int] = {}
    for index, line in enumerate(content.splitlines()):
        match = _ENV_LINE_RE.match(line)
        if match:
            keys[match.group(2)] = index
    return keys


def merge_env_content(
    existing: str,
    variables: Mapping[str, str],
    descriptions: Optional[Mapping[str, str]] = None,
    overwrite: bool = True,
) -> str:
    """Return *existing* with *variables* merged in.

    Args:
        existing: Current file content (may be empty).
        variables: ``KEY -> value`` pairs to set.
        descriptions: Optional ``KEY -> text`` written as a ``# text``
            comment above newly appended keys.
        overwrite: When ``False`` keys that already exist are left alone.
    """
    descriptions = descriptions or {}
    lines = existing.splitlines()
    defined = parse_env_keys(existing)

    for key, value in variables.items():
        rendered = f"{key}={format_env_value(str(value))}"
        if key in defined:
            if overwrite:
                index = defined[key]
                prefix = _ENV_LINE_RE.match(lines[index]).group(1)  # type: ignore[union-attr]
                lines[index] = f"{prefix}{rendered}"
            continue
        if descriptions.get(key):
            lines.append(f"# {descriptions[key]}")
        lines.append(rendered)
        defined[key] = len(lines) - 1

    if not lines:
        return ""
    return "\n".join(lines) + "\n"


class EnvMergerParams(ModifierParams):
    variables: dict[str, str] = Field(..., min_length=1)
    descriptions: dict[str, str] = Field(default_factory=dict)
    overwrite: bool = True


class EnvMerger(Modifier):
    name = "env-merger"
    description = "Replace-or-append KEY=value lines in an environment file, keeping comments"
    params_model = EnvMergerParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: EnvMergerParams,
        context: ProjectContext,
    ) -> OperationResult:
        existing = await engine.read_file(path) or ""
        merged = merge_env_content(existing, params.variables, params.descriptions, params.overwrite)
        if merged == existing:
            return OperationResult.ok(path, modified=False)
        return await engine.overwrite_file(path, merged)
