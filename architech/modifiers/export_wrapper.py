"""``js-export-wrapper``: wrap a module's default export in a function call.

Turns ``export default nextConfig`` into
``export default withSentryConfig(nextConfig, {...})`` and imports the
wrapper function.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from architech.engine import MODULE_SUFFIXES, FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierError, ModifierParams
from architech.source_module import ImportSpec, ParsedModule, compose


class WrapperFunction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    import_from: Optional[str] = Field(default=None, alias="importFrom")
    is_default_import: bool = Field(default=False, alias="isDefaultImport")


class ExportWrapperParams(ModifierParams):
    export_to_wrap: str = Field(default="default", alias="exportToWrap")
    wrapper_function: WrapperFunction = Field(..., alias="wrapperFunction")
    wrapper_options: dict[str, Any] = Field(default_factory=dict, alias="wrapperOptions")


def wrap_export(module: ParsedModule, params: ExportWrapperParams) -> ParsedModule:
    """Pure transform: import the wrapper (if needed) and wrap the default export."""
    if params.export_to_wrap != "default":
        raise ModifierError("Only the default export can be wrapped")
    wrapper = params.wrapper_function
    steps = []
    if wrapper.import_from:
        if wrapper.is_default_import:
            spec = ImportSpec(wrapper.import_from, default=wrapper.name)
        else:
            spec = ImportSpec(wrapper.import_from, named=(wrapper.name,))
        steps.append(lambda m: m.add_import(spec))
    steps.append(lambda m: m.wrap_default_export(wrapper.name, params.wrapper_options))
    return compose(*steps)(module)


class JsExportWrapper(Modifier):
    name = "js-export-wrapper"
    description = "Wraps the default export of a JS/TS module in a wrapper function"
    supported_file_types = tuple(sorted(MODULE_SUFFIXES))
    params_model = ExportWrapperParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: ExportWrapperParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.modify_module_file(path, lambda module: wrap_export(module, params))
