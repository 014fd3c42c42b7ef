"""``json-object-merger``: merge properties into a JSON or YAML document."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from architech.engine import FileModificationEngine
from architech.models import MergeStrategy, OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierError, ModifierParams
from architech.utils import deep_merge


class JsonMergerParams(ModifierParams):
    target_path: Optional[str] = Field(
        default=None,
        alias="targetPath",
        description="Dotted path of the object to merge into; the document root when empty",
    )
    properties_to_merge: dict[str, Any] = Field(..., alias="propertiesToMerge")
    merge_strategy: MergeStrategy = Field(default=MergeStrategy.DEEP, alias="mergeStrategy")
    concat_arrays: bool = Field(default=False, alias="concatArrays")


def merge_at_path(
    data: dict[str, Any],
    target_path: Optional[str],
    properties: dict[str, Any],
    strategy: MergeStrategy,
    concat_arrays: bool = False,
) -> dict[str, Any]:
    """Return a copy of *data* with *properties* merged at *target_path*.

    Intermediate objects are created as needed.

    Raises:
        ModifierError: If a segment of *target_path* is not an object.
    """
    if not target_path:
        return _merge(data, properties, strategy, concat_arrays)

    head, _, rest = target_path.partition(".")
    current = data.get(head, {})
    if not isinstance(current, dict):
        raise ModifierError(f"'{head}' is not an object and cannot be merged into")
    updated = dict(data)
    updated[head] = merge_at_path(current, rest or None, properties, strategy, concat_arrays)
    return updated


def _merge(
    base: dict[str, Any],
    properties: dict[str, Any],
    strategy: MergeStrategy,
    concat_arrays: bool,
) -> dict[str, Any]:
    if strategy is MergeStrategy.REPLACE:
        return dict(properties)
    if strategy is MergeStrategy.SHALLOW:
        return {**base, **properties}
    return deep_merge(base, properties, concat_arrays)


class JsonObjectMerger(Modifier):
    name = "json-object-merger"
    description = "Deep, shallow or replace merge of properties into a JSON/YAML object"
    supported_file_types = (".json", ".yaml", ".yml")
    params_model = JsonMergerParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: JsonMergerParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.transform_data_file(
            path,
            lambda data: merge_at_path(
                data,
                params.target_path,
                params.properties_to_merge,
                params.merge_strategy,
                params.concat_arrays,
            ),
        )
