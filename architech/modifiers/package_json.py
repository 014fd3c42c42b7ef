"""``package-json-merger``: merge dependency and script sections into a manifest."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from architech.engine import FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers.registry import Modifier, ModifierParams


class PackageJsonParams(ModifierParams):
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: dict[str, str] = Field(default_factory=dict, alias="peerDependencies")
    optional_dependencies: dict[str, str] = Field(default_factory=dict, alias="optionalDependencies")
    scripts: dict[str, str] = Field(default_factory=dict)
    engines: dict[str, str] = Field(default_factory=dict)
    extra_fields: dict[str, Any] = Field(
        default_factory=dict,
        alias="fields",
        description="Other top-level manifest fields, deep-merged",
    )

    def as_fragment(self) -> dict[str, Any]:
        """The manifest fragment to merge, without empty sections."""
        fragment: dict[str, Any] = dict(self.extra_fields)
        sections = {
            "dependencies": self.dependencies,
            "devDependencies": self.dev_dependencies,
            "peerDependencies": self.peer_dependencies,
            "optionalDependencies": self.optional_dependencies,
            "scripts": self.scripts,
            "engines": self.engines,
        }
        for key, value in sections.items():
            if value:
                fragment[key] = dict(value)
        return fragment


class PackageJsonMerger(Modifier):
    name = "package-json-merger"
    description = "Merges dependencies, scripts and engines into package.json"
    supported_file_types = (".json",)
    params_model = PackageJsonParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: PackageJsonParams,
        context: ProjectContext,
    ) -> OperationResult:
        return await engine.merge_json_file(path, params.as_fragment())
