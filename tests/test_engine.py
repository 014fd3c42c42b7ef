"""Unit tests for FileModificationEngine (architech.engine).

Tests cover:
- create / overwrite (idempotent create, invalid paths)
- append / prepend newline handling
- JSON and YAML merges (missing, empty, invalid, non-object documents)
- modify_module_file (missing file, failed transform, unchanged text)
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from architech.engine import FileModificationEngine
from architech.source_module import ImportSpec, ModuleTransformError, ParsedModule
from architech.vfs import VFSError

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Plain-text primitives
# ---------------------------------------------------------------------------


class TestCreateAndOverwrite:
    @pytest.mark.unit
    async def test_create_new_file(self, engine: FileModificationEngine):
        result = await engine.create_file("src/index.ts", "export {};\n")
        assert result.success
        assert result.modified
        assert await engine.read_file("src/index.ts") == "export {};\n"

    @pytest.mark.unit
    async def test_create_existing_is_successful_noop(self, engine: FileModificationEngine):
        await engine.create_file("a.txt", "first")
        result = await engine.create_file("a.txt", "second")
        assert result.success
        assert result.modified is False
        assert await engine.read_file("a.txt") == "first"

    @pytest.mark.unit
    async def test_create_with_overwrite(self, engine: FileModificationEngine):
        await engine.create_file("a.txt", "first")
        await engine.create_file("a.txt", "second", overwrite=True)
        assert await engine.read_file("a.txt") == "second"

    @pytest.mark.unit
    async def test_invalid_path_is_failure(self, engine: FileModificationEngine):
        result = await engine.create_file("../escape.txt", "x")
        assert not result.success
        assert "escapes the project root" in result.error

    @pytest.mark.unit
    async def test_read_missing_file(self, engine: FileModificationEngine):
        assert await engine.read_file("missing.txt") is None
        assert engine.file_exists("missing.txt") is False

    @pytest.mark.unit
    async def test_file_exists_rejects_invalid_path(self, engine: FileModificationEngine):
        with pytest.raises(VFSError, match="escapes the project root"):
            engine.file_exists("../bad")


class TestAppendPrepend:
    @pytest.mark.unit
    async def test_append_adds_separating_newline(self, engine: FileModificationEngine):
        await engine.create_file(".gitignore", "node_modules")
        await engine.append_to_file(".gitignore", ".env\n")
        assert await engine.read_file(".gitignore") == "node_modules\n.env\n"

    @pytest.mark.unit
    async def test_append_after_trailing_newline(self, engine: FileModificationEngine):
        await engine.create_file(".gitignore", "node_modules\n")
        await engine.append_to_file(".gitignore", ".env\n")
        assert await engine.read_file(".gitignore") == "node_modules\n.env\n"

    @pytest.mark.unit
    async def test_append_creates_missing_file(self, engine: FileModificationEngine):
        result = await engine.append_to_file("notes.md", "hello")
        assert result.success
        assert await engine.read_file("notes.md") == "hello"

    @pytest.mark.unit
    async def test_prepend(self, engine: FileModificationEngine):
        await engine.create_file("app.ts", "main();\n")
        await engine.prepend_to_file("app.ts", "import './polyfills';")
        assert await engine.read_file("app.ts") == "import './polyfills';\nmain();\n"

    @pytest.mark.unit
    async def test_prepend_to_missing_file(self, engine: FileModificationEngine):
        await engine.prepend_to_file("banner.txt", "top")
        assert await engine.read_file("banner.txt") == "top"


# ---------------------------------------------------------------------------
# Structured primitives
# ---------------------------------------------------------------------------


class TestJsonMerge:
    @pytest.mark.unit
    async def test_merge_into_existing(self, engine: FileModificationEngine):
        await engine.create_file("package.json", '{"name": "shop", "dependencies": {"a": "1"}}')
        result = await engine.merge_json_file("package.json", {"dependencies": {"b": "2"}})
        assert result.success
        data = json.loads(await engine.read_file("package.json"))
        assert data == {"name": "shop", "dependencies": {"a": "1", "b": "2"}}

    @pytest.mark.unit
    async def test_output_is_two_space_indented(self, engine: FileModificationEngine):
        await engine.merge_json_file("tsconfig.json", {"compilerOptions": {"strict": True}})
        assert await engine.read_file("tsconfig.json") == (
            '{\n  "compilerOptions": {\n    "strict": true\n  }\n}\n'
        )

    @pytest.mark.unit
    async def test_missing_or_empty_file_is_empty_object(self, engine: FileModificationEngine):
        await engine.create_file("empty.json", "   \n")
        await engine.merge_json_file("empty.json", {"a": 1})
        await engine.merge_json_file("new.json", {"b": 2})
        assert json.loads(await engine.read_file("empty.json")) == {"a": 1}
        assert json.loads(await engine.read_file("new.json")) == {"b": 2}

    @pytest.mark.unit
    async def test_concat_arrays(self, engine: FileModificationEngine):
        await engine.create_file("tsconfig.json", '{"include": ["src"]}')
        await engine.merge_json_file("tsconfig.json", {"include": ["types"]}, concat_arrays=True)
        assert json.loads(await engine.read_file("tsconfig.json")) == {"include": ["src", "types"]}

    @pytest.mark.unit
    async def test_invalid_json_is_failure_and_untouched(self, engine: FileModificationEngine):
        await engine.create_file("broken.json", "{not json")
        result = await engine.merge_json_file("broken.json", {"a": 1})
        assert not result.success
        assert result.error.startswith("Invalid JSON in broken.json")
        assert await engine.read_file("broken.json") == "{not json"

    @pytest.mark.unit
    async def test_non_object_root_is_failure(self, engine: FileModificationEngine):
        await engine.create_file("list.json", "[1, 2]")
        result = await engine.merge_json_file("list.json", {"a": 1})
        assert not result.success
        assert "not an object" in result.error

    @pytest.mark.unit
    async def test_reads_existing_disk_file(self, engine: FileModificationEngine, project_root: Path):
        (project_root / "package.json").write_text('{"name": "disk"}', encoding="utf-8")
        await engine.merge_json_file("package.json", {"private": True})
        data = json.loads(await engine.read_file("package.json"))
        assert data == {"name": "disk", "private": True}
        assert json.loads((project_root / "package.json").read_text(encoding="utf-8")) == {"name": "disk"}


class TestYamlMerge:
    @pytest.mark.unit
    async def test_merge_data_file_routes_yaml(self, engine: FileModificationEngine):
        await engine.create_file("docker-compose.yml", "services:\n  web:\n    image: node\n")
        result = await engine.merge_data_file(
            "docker-compose.yml", {"services": {"db": {"image": "postgres"}}}
        )
        assert result.success
        data = yaml.safe_load(await engine.read_file("docker-compose.yml"))
        assert data == {"services": {"web": {"image": "node"}, "db": {"image": "postgres"}}}

    @pytest.mark.unit
    async def test_invalid_yaml(self, engine: FileModificationEngine):
        await engine.create_file("bad.yaml", "a: [unclosed\n")
        result = await engine.merge_yaml_file("bad.yaml", {"b": 1})
        assert not result.success
        assert "Invalid YAML" in result.error

    @pytest.mark.unit
    async def test_transform_data_file(self, engine: FileModificationEngine):
        await engine.create_file("config.json", '{"count": 1}')
        await engine.transform_data_file("config.json", lambda d: {**d, "count": d["count"] + 1})
        assert json.loads(await engine.read_file("config.json")) == {"count": 2}


# ---------------------------------------------------------------------------
# Module files
# ---------------------------------------------------------------------------


class TestModifyModuleFile:
    @pytest.mark.unit
    async def test_missing_file(self, engine: FileModificationEngine):
        result = await engine.modify_module_file("src/app.ts", lambda m: m)
        assert not result.success
        assert result.error == "File not found: src/app.ts"

    @pytest.mark.unit
    async def test_applies_transform(self, engine: FileModificationEngine):
        await engine.create_file("src/app.ts", "export const x = 1;\n")
        result = await engine.modify_module_file(
            "src/app.ts", lambda m: m.add_import(ImportSpec("react", named=("useState",)))
        )
        assert result.success
        assert result.modified
        assert await engine.read_file("src/app.ts") == (
            "import { useState } from 'react';\nexport const x = 1;\n"
        )

    @pytest.mark.unit
    async def test_unchanged_text_is_not_written(self, engine: FileModificationEngine):
        await engine.create_file("src/app.ts", "export const x = 1;\n")
        before = len(engine.vfs.operations)
        result = await engine.modify_module_file("src/app.ts", lambda m: m)
        assert result.success
        assert result.modified is False
        assert len(engine.vfs.operations) == before

    @pytest.mark.unit
    async def test_transform_error_is_failure(self, engine: FileModificationEngine):
        await engine.create_file("next.config.mjs", "export const x = 1;\n")

        def failing(module: ParsedModule) -> ParsedModule:
            raise ModuleTransformError("no config object")

        result = await engine.modify_module_file("next.config.mjs", failing)
        assert not result.success
        assert result.error == "Cannot modify next.config.mjs: no config object"
