"""Unit tests for json-object-merger and package-json-merger."""

from __future__ import annotations

import json

import pytest
import yaml

from architech.engine import FileModificationEngine
from architech.models import MergeStrategy, ProjectContext
from architech.modifiers import JsonObjectMerger, ModifierError, PackageJsonMerger
from architech.modifiers.json_merger import merge_at_path
from architech.modifiers.package_json import PackageJsonParams

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# merge_at_path
# ---------------------------------------------------------------------------


class TestMergeAtPath:
    @pytest.mark.unit
    async def test_root_deep(self):
        data = {"a": {"x": 1}}
        assert merge_at_path(data, None, {"a": {"y": 2}}, MergeStrategy.DEEP) == {"a": {"x": 1, "y": 2}}

    @pytest.mark.unit
    async def test_nested_path_creates_objects(self):
        merged = merge_at_path({}, "compilerOptions.paths", {"@/*": ["./src/*"]}, MergeStrategy.DEEP)
        assert merged == {"compilerOptions": {"paths": {"@/*": ["./src/*"]}}}

    @pytest.mark.unit
    async def test_shallow_and_replace(self):
        data = {"a": {"x": 1}, "b": 1}
        assert merge_at_path(data, None, {"a": {"y": 2}}, MergeStrategy.SHALLOW) == {"a": {"y": 2}, "b": 1}
        assert merge_at_path(data, None, {"c": 3}, MergeStrategy.REPLACE) == {"c": 3}

    @pytest.mark.unit
    async def test_non_object_segment(self):
        with pytest.raises(ModifierError, match="'name' is not an object"):
            merge_at_path({"name": "shop"}, "name.first", {"a": 1}, MergeStrategy.DEEP)


# ---------------------------------------------------------------------------
# json-object-merger
# ---------------------------------------------------------------------------


class TestJsonObjectMerger:
    @pytest.mark.unit
    async def test_merges_at_target_path(self, engine: FileModificationEngine, context: ProjectContext):
        await engine.create_file("tsconfig.json", '{"compilerOptions": {"strict": true}}')
        result = await JsonObjectMerger().execute(
            engine,
            "tsconfig.json",
            {"targetPath": "compilerOptions", "propertiesToMerge": {"baseUrl": "."}},
            context,
        )
        assert result.success
        data = json.loads(await engine.read_file("tsconfig.json"))
        assert data == {"compilerOptions": {"strict": True, "baseUrl": "."}}

    @pytest.mark.unit
    async def test_yaml_target(self, engine: FileModificationEngine, context: ProjectContext):
        result = await JsonObjectMerger().execute(
            engine,
            "compose.yaml",
            {"propertiesToMerge": {"services": {"db": {"image": "postgres:16"}}}},
            context,
        )
        assert result.success
        assert yaml.safe_load(await engine.read_file("compose.yaml")) == {
            "services": {"db": {"image": "postgres:16"}}
        }

    @pytest.mark.unit
    async def test_bad_path_segment_is_failure(self, engine: FileModificationEngine, context: ProjectContext):
        await engine.create_file("package.json", '{"name": "shop"}')
        result = await JsonObjectMerger().execute(
            engine,
            "package.json",
            {"targetPath": "name", "propertiesToMerge": {"a": 1}},
            context,
        )
        assert not result.success
        assert result.error.startswith("json-object-merger: ")

    @pytest.mark.unit
    async def test_rejects_module_files(self, engine: FileModificationEngine, context: ProjectContext):
        result = await JsonObjectMerger().execute(
            engine, "next.config.ts", {"propertiesToMerge": {}}, context
        )
        assert not result.success
        assert "does not support '.ts' files" in result.error


# ---------------------------------------------------------------------------
# package-json-merger
# ---------------------------------------------------------------------------


class TestPackageJsonMerger:
    @pytest.mark.unit
    async def test_fragment_skips_empty_sections(self):
        params = PackageJsonParams.model_validate(
            {"devDependencies": {"vitest": "^1.0.0"}, "fields": {"type": "module"}}
        )
        assert params.as_fragment() == {"type": "module", "devDependencies": {"vitest": "^1.0.0"}}

    @pytest.mark.unit
    async def test_merges_sections(self, engine: FileModificationEngine, context: ProjectContext):
        await engine.create_file(
            "package.json",
            '{"name": "shop", "scripts": {"dev": "next dev"}, "dependencies": {"next": "14.2.0"}}',
        )
        result = await PackageJsonMerger().execute(
            engine,
            "package.json",
            {
                "dependencies": {"drizzle-orm": "^0.30.0"},
                "scripts": {"db:push": "drizzle-kit push"},
            },
            context,
        )
        assert result.success
        data = json.loads(await engine.read_file("package.json"))
        assert data["dependencies"] == {"next": "14.2.0", "drizzle-orm": "^0.30.0"}
        assert data["scripts"] == {"dev": "next dev", "db:push": "drizzle-kit push"}
        assert data["name"] == "shop"

    @pytest.mark.unit
    async def test_unknown_section_rejected(self, engine: FileModificationEngine, context: ProjectContext):
        result = await PackageJsonMerger().execute(
            engine, "package.json", {"dependencys": {"a": "1"}}, context
        )
        assert not result.success
        assert "Invalid params for modifier 'package-json-merger'" in result.error
