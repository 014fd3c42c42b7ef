"""``ts-module-enhancer``: add imports, statements and exports to a TS/JS module.

Everything the params do not mention is preserved exactly; imports are
merged into existing declarations from the same module, and statements or
exports that are already present are not added twice.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from architech.engine import MODULE_SUFFIXES, FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierParams
from architech.source_module import ImportSpec, ParsedModule


class ImportToAdd(BaseModel):
    """``name`` as a string is a default (or namespace) import, as a list named imports."""

    model_config = ConfigDict(populate_by_name=True)

    name: Union[str, list[str]]
    from_: str = Field(..., alias="from")
    type: Literal["import", "import type", "import * as"] = "import"

    @model_validator(mode="after")
    def _namespace_needs_single_name(self) -> "ImportToAdd":
        if self.type == "import * as" and not isinstance(self.name, str):
            raise ValueError("'import * as' takes a single name")
        return self

    def to_spec(self) -> ImportSpec:
        type_only = self.type == "import type"
        if self.type == "import * as":
            return ImportSpec(self.from_, namespace=str(self.name))
        if isinstance(self.name, str):
            return ImportSpec(self.from_, default=self.name, type_only=type_only)
        return ImportSpec(self.from_, named=tuple(self.name), type_only=type_only)


class StatementToAppend(BaseModel):
    type: str = "raw"
    content: str


class ExportToAdd(BaseModel):
    name: str
    content: str


class ModuleEnhancerParams(ModifierParams):
    imports_to_add: list[ImportToAdd] = Field(default_factory=list, alias="importsToAdd")
    statements_to_append: list[StatementToAppend] = Field(
        default_factory=list, alias="statementsToAppend"
    )
    exports_to_add: list[ExportToAdd] = Field(default_factory=list, alias="exportsToAdd")


def enhance_module(module: ParsedModule, params: ModuleEnhancerParams) -> ParsedModule:
    """Pure transform applying *params* to *module*."""
    for item in params.imports_to_add:
        module = module.add_import(item.to_spec())
    module = module.append_statements(s.content for s in params.statements_to_append)
    for export in params.exports_to_add:
        module = module.add_export(export.name, export.content)
    return module


class TsModuleEnhancer(Modifier):
    name = "ts-module-enhancer"
    description = "Adds imports, statements and exports to a TypeScript/JavaScript module"
    supported_file_types = tuple(sorted(MODULE_SUFFIXES))
    params_model = ModuleEnhancerParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: ModuleEnhancerParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.modify_module_file(path, lambda module: enhance_module(module, params))
