"""Architech modifiers -- named structured-rewrite strategies for ENHANCE_FILE.

Quick usage::

    from architech.modifiers import default_registry

    registry = default_registry()
    merger = registry.get("json-object-merger")
    result = await merger.execute(engine, "tsconfig.json", params, context)
"""

from architech.modifiers.config_merger import JsConfigMerger
from architech.modifiers.env_merger import EnvMerger, merge_env_content
from architech.modifiers.export_wrapper import JsExportWrapper
from architech.modifiers.json_merger import JsonObjectMerger
from architech.modifiers.jsx_wrapper import JsxWrapper
from architech.modifiers.module_enhancer import TsModuleEnhancer
from architech.modifiers.package_json import PackageJsonMerger
from architech.modifiers.registry import (
    Modifier,
    ModifierError,
    ModifierParams,
    ModifierRegistry,
)
from architech.modifiers.tsconfig_enhancer import TsconfigEnhancer


def default_registry() -> ModifierRegistry:
    """A registry holding every built-in modifier."""
    return ModifierRegistry(
        [
            JsonObjectMerger(),
            PackageJsonMerger(),
            TsModuleEnhancer(),
            JsConfigMerger(),
            JsExportWrapper(),
            EnvMerger(),
            TsconfigEnhancer(),
            JsxWrapper(),
        ]
    )


__all__ = [
    # Registry
    "Modifier",
    "ModifierError",
    "ModifierParams",
    "ModifierRegistry",
    "default_registry",
    # Built-in modifiers
    "EnvMerger",
    "JsConfigMerger",
    "JsExportWrapper",
    "JsonObjectMerger",
    "JsxWrapper",
    "PackageJsonMerger",
    "TsModuleEnhancer",
    "TsconfigEnhancer",
    # Helpers
    "merge_env_content",
]
