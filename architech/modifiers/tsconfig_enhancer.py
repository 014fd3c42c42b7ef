"""``tsconfig-enhancer``: add compiler options, path aliases and globs to tsconfig.json."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import Field

from architech.engine import FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierError, ModifierParams


class TsconfigParams(ModifierParams):
    compiler_options: dict[str, Any] = Field(default_factory=dict, alias="compilerOptions")
    paths: dict[str, list[str]] = Field(default_factory=dict)
    include: Optional[list[str]] = None
    exclude: Optional[list[str]] = None
    extends: Optional[str] = None
    merge_strategy: Literal["merge", "replace"] = Field(default="merge", alias="mergeStrategy")


def enhance_tsconfig(config: dict[str, Any], params: TsconfigParams) -> dict[str, Any]:
    """Return a copy of *config* with *params* applied.

    ``merge`` overlays compiler options and paths key by key and unions the
    include/exclude lists in order; ``replace`` swaps each given section
    wholesale.

    Raises:
        ModifierError: If ``compilerOptions`` or ``compilerOptions.paths``
            is not an object.
    """
    replace = params.merge_strategy == "replace"
    updated = dict(config)
    if params.extends:
        updated["extends"] = params.extends

    if params.compiler_options or params.paths:
        options = updated.get("compilerOptions", {})
        if not isinstance(options, dict):
            raise ModifierError("'compilerOptions' is not an object")
        if params.compiler_options:
            options = dict(params.compiler_options) if replace else {**options, **params.compiler_options}
        if params.paths:
            paths = options.get("paths", {})
            if not isinstance(paths, dict):
                raise ModifierError("'compilerOptions.paths' is not an object")
            options = {**options, "paths": dict(params.paths) if replace else {**paths, **params.paths}}
        updated["compilerOptions"] = options

    for key in ("include", "exclude"):
        values = getattr(params, key)
        if values is None:
            continue
        current = updated.get(key) or []
        if replace or not isinstance(current, list):
            updated[key] = list(values)
        else:
            updated[key] = list(dict.fromkeys([*current, *values]))
    return updated


class TsconfigEnhancer(Modifier):
    name = "tsconfig-enhancer"
    description = "Adds compiler options, path aliases and include/exclude globs to tsconfig.json"
    supported_file_types = (".json",)
    params_model = TsconfigParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: TsconfigParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.transform_data_file(path, lambda data: enhance_tsconfig(data, params))
