"""Unit tests for the modifier base class and registry (architech.modifiers.registry)."""

from __future__ import annotations

from typing import Any

import pytest

from architech.engine import FileModificationEngine
from architech.models import OperationResult, ProjectContext
from architech.modifiers import ModifierError, ModifierParams, ModifierRegistry, default_registry
from architech.modifiers.registry import Modifier


class _UpperParams(ModifierParams):
    suffix: str = ""


class _Upper(Modifier):
    name = "upper"
    supported_file_types = (".txt",)
    params_model = _UpperParams

    async def apply(
        self,
        engine: FileModificationEngine,
        path: str,
        params: Any,
        context: ProjectContext,
    ) -> OperationResult:
        content = await engine.read_file(path)
        if content is None:
            raise ModifierError("nothing to shout")
        return await engine.overwrite_file(path, content.upper() + params.suffix)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestModifierRegistry:
    @pytest.mark.unit
    def test_default_registry_names(self):
        registry = default_registry()
        assert registry.names() == [
            "env-merger",
            "js-config-merger",
            "js-export-wrapper",
            "json-object-merger",
            "jsx-wrapper",
            "package-json-merger",
            "ts-module-enhancer",
            "tsconfig-enhancer",
        ]
        assert len(registry) == 8
        assert "env-merger" in registry

    @pytest.mark.unit
    def test_get_unknown(self):
        assert ModifierRegistry().get("nope") is None

    @pytest.mark.unit
    def test_duplicate_rejected_unless_replace(self):
        registry = ModifierRegistry([_Upper()])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(_Upper())
        replacement = _Upper()
        registry.register(replacement, replace=True)
        assert registry.get("upper") is replacement

    @pytest.mark.unit
    def test_nameless_modifier_rejected(self):
        with pytest.raises(ValueError, match="has no name"):
            ModifierRegistry([Modifier()])

    @pytest.mark.unit
    def test_iteration(self):
        registry = ModifierRegistry([_Upper()])
        assert [m.name for m in registry] == ["upper"]


# ---------------------------------------------------------------------------
# Modifier.execute
# ---------------------------------------------------------------------------


class TestModifierExecute:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_applies(self, engine: FileModificationEngine, context: ProjectContext):
        await engine.create_file("note.txt", "hi")
        result = await _Upper().execute(engine, "note.txt", {"suffix": "!"}, context)
        assert result.success
        assert await engine.read_file("note.txt") == "HI!"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_params(self, engine: FileModificationEngine, context: ProjectContext):
        result = await _Upper().execute(engine, "note.txt", {"unknown": 1}, context)
        assert not result.success
        assert result.error.startswith("Invalid params for modifier 'upper': unknown")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_file_type(self, engine: FileModificationEngine, context: ProjectContext):
        result = await _Upper().execute(engine, "data.json", {}, context)
        assert not result.success
        assert result.error == "Modifier 'upper' does not support '.json' files (supported: .txt)"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_modifier_error_becomes_failure(
        self, engine: FileModificationEngine, context: ProjectContext
    ):
        result = await _Upper().execute(engine, "missing.txt", {}, context)
        assert not result.success
        assert result.error == "upper: nothing to shout"
