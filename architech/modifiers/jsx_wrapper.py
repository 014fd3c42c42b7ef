"""``jsx-wrapper``: wrap a JSX element in a provider component.

Turns ``<App />`` into::

    <Sentry.ErrorBoundary fallback="Oops">
      <App />
    </Sentry.ErrorBoundary>

and imports the wrapper's base name (``Sentry``) as a named import.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from architech.engine import FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierParams
from architech.source_module import ImportSpec, ParsedModule, compose


class WrapperComponent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., pattern=r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")
    import_from: str = Field(..., min_length=1, alias="importFrom")
    props: dict[str, Any] = Field(default_factory=dict)


class JsxWrapperParams(ModifierParams):
    target_component: str = Field(..., min_length=1, alias="targetComponent")
    wrapper_component: WrapperComponent = Field(..., alias="wrapperComponent")
    # Every strategy currently renders the same enclosing element.
    wrap_strategy: Literal["provider", "hoc", "wrapper"] = Field(default="provider", alias="wrapStrategy")


def jsx_props(props: dict[str, Any]) -> str:
    """Serialise *props* as JSX attributes: ``a="x" b={1} c={{"k":true}}``."""
    parts = []
    for key, value in props.items():
        if isinstance(value, str):
            parts.append(f'{key}="{value}"')
        elif isinstance(value, bool):
            parts.append(f"{key}={{{'true' if value else 'false'}}}")
        else:
            parts.append(f"{key}={{{json.dumps(value)}}}")
    return " ".join(parts)


def wrap_jsx(module: ParsedModule, params: JsxWrapperParams) -> ParsedModule:
    """Pure transform: import the wrapper and wrap the target element."""
    wrapper = params.wrapper_component
    spec = ImportSpec(wrapper.import_from, named=(wrapper.name.split(".")[0],))
    return compose(
        lambda m: m.wrap_jsx_element(params.target_component, wrapper.name, jsx_props(wrapper.props)),
        lambda m: m.add_import(spec),
    )(module)


class JsxWrapper(Modifier):
    name = "jsx-wrapper"
    description = "Wraps a JSX element in a provider or other wrapper component"
    supported_file_types = (".js", ".jsx", ".tsx")
    params_model = JsxWrapperParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: JsxWrapperParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.modify_module_file(path, lambda module: wrap_jsx(module, params))
