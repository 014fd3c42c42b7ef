"""``js-config-merger``: merge properties into a JS/TS config object literal.

Finds the object a config module exports (``export default {...}``,
``module.exports = {...}``, ``export default defineConfig({...})`` or a
named ``const`` exported later) and edits it in place.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from architech.engine import MODULE_SUFFIXES, FileModificationEngine
from architech.models import MergeStrategy, OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierParams


class ConfigMergerParams(ModifierParams):
    target_properties: dict[str, Any] = Field(..., alias="targetProperties")
    merge_strategy: MergeStrategy = Field(default=MergeStrategy.DEEP, alias="mergeStrategy")
    export_name: str = Field(
        default="default",
        alias="exportName",
        description="'default' or the name of the const holding the config object",
    )


class JsConfigMerger(Modifier):
    name = "js-config-merger"
    description = "Merges properties into the exported config object of a JS/TS module"
    supported_file_types = tuple(sorted(MODULE_SUFFIXES))
    params_model = ConfigMergerParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: ConfigMergerParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.modify_module_file(
            path,
            lambda module: module.merge_config_object(
                params.target_properties,
                params.merge_strategy.value,
                params.export_name,
            ),
        )
