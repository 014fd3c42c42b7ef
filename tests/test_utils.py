"""Unit tests for utility functions (architech.utils).

Tests cover:
- run_command (success, failure, timeout, list vs string, env vars)
- sanitize_name
- deep_merge (objects, arrays, scalars, immutability, associativity)
- lookup / has_path
- load_document / dump_json
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from architech.utils import (
    deep_merge,
    dump_json,
    format_command,
    format_duration,
    has_path,
    load_document,
    lookup,
    print_error,
    print_module_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
    sanitize_name,
)


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_command_uses_exec(self, mock_subprocess):
        proc = mock_subprocess(stdout="hello\n", returncode=0)
        with patch("asyncio.create_subprocess_exec", return_value=proc) as exec_mock:
            returncode, stdout, stderr = await run_command(["echo", "hello"])
        assert returncode == 0
        assert stdout == "hello"
        assert stderr == ""
        assert exec_mock.call_args.args == ("echo", "hello")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_string_command_uses_shell(self, mock_subprocess):
        proc = mock_subprocess(stdout="ok")
        with patch("asyncio.create_subprocess_shell", return_value=proc) as shell_mock:
            returncode, stdout, _ = await run_command("echo ok")
        assert returncode == 0
        assert stdout == "ok"
        assert shell_mock.call_args.args == ("echo ok",)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_zero_exit(self, mock_subprocess):
        proc = mock_subprocess(stderr="boom", returncode=2)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            returncode, _, stderr = await run_command(["false"])
        assert returncode == 2
        assert stderr == "boom"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, mock_subprocess):
        proc = mock_subprocess()
        proc.communicate.side_effect = asyncio.TimeoutError
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            returncode, stdout, stderr = await run_command(["sleep", "10"], timeout=1)
        assert returncode == -1
        assert stdout == ""
        assert "timed out after 1s" in stderr
        proc.kill.assert_called_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_env_is_merged_and_cwd_passed(self, mock_subprocess, tmp_path: Path):
        proc = mock_subprocess()
        with patch("asyncio.create_subprocess_exec", return_value=proc) as exec_mock:
            await run_command(["env"], cwd=tmp_path, env={"ARCHITECH_TEST": "1"})
        kwargs = exec_mock.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["env"]["ARCHITECH_TEST"] == "1"
        assert "PATH" in kwargs["env"]

    @pytest.mark.unit
    def test_format_command(self):
        assert format_command(["npm", "install"]) == "npm install"
        assert format_command("npm ci") == "npm ci"


# ---------------------------------------------------------------------------
# sanitize_name
# ---------------------------------------------------------------------------


class TestSanitizeName:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("My Shop", "my-shop"),
            ("  Acme (v2)  ", "acme-v2"),
            ("already-clean", "already-clean"),
            ("snake_case_ok", "snake_case_ok"),
            ("---", ""),
        ],
    )
    def test_sanitize(self, raw: str, expected: str):
        assert sanitize_name(raw) == expected


# ---------------------------------------------------------------------------
# deep_merge
# ---------------------------------------------------------------------------


class TestDeepMerge:
    @pytest.mark.unit
    def test_objects_merge_recursively(self):
        base = {"compilerOptions": {"strict": True, "paths": {"@/*": ["./src/*"]}}}
        patch_ = {"compilerOptions": {"paths": {"~/*": ["./app/*"]}}}
        merged = deep_merge(base, patch_)
        assert merged == {
            "compilerOptions": {
                "strict": True,
                "paths": {"@/*": ["./src/*"], "~/*": ["./app/*"]},
            }
        }

    @pytest.mark.unit
    def test_arrays_replaced_by_default(self):
        assert deep_merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}

    @pytest.mark.unit
    def test_arrays_concatenated_on_request(self):
        assert deep_merge({"a": [1, 2]}, {"a": [3]}, concat_arrays=True) == {"a": [1, 2, 3]}

    @pytest.mark.unit
    def test_scalars_and_type_changes_replaced(self):
        assert deep_merge({"a": 1, "b": {"c": 1}}, {"a": 2, "b": "flat"}) == {"a": 2, "b": "flat"}

    @pytest.mark.unit
    def test_inputs_not_mutated(self):
        base = {"a": {"b": [1]}}
        patch_ = {"a": {"c": 2}}
        deep_merge(base, patch_, concat_arrays=True)
        assert base == {"a": {"b": [1]}}
        assert patch_ == {"a": {"c": 2}}

    @pytest.mark.unit
    def test_sequential_merges_equal_merged_patch(self):
        base = {"dependencies": {"core-lib": "1.0.0"}}
        a = {"dependencies": {"db-driver": "2.0.0"}, "scripts": {"dev": "next dev"}}
        b = {"dependencies": {"auth": "3.0.0"}, "scripts": {"db": "drizzle-kit"}}
        assert deep_merge(deep_merge(base, a), b) == deep_merge(base, deep_merge(a, b))


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


class TestLookup:
    @pytest.mark.unit
    def test_nested_mapping(self):
        data = {"module": {"parameters": {"provider": "postgres"}}}
        assert lookup(data, "module.parameters.provider") == "postgres"

    @pytest.mark.unit
    def test_list_index(self):
        assert lookup({"items": ["a", "b"]}, "items.1") == "b"

    @pytest.mark.unit
    def test_missing_returns_default(self):
        assert lookup({"a": {}}, "a.b.c") is None
        assert lookup({"a": {}}, "a.b", default="x") == "x"

    @pytest.mark.unit
    def test_has_path_distinguishes_none_values(self):
        data = {"a": None}
        assert has_path(data, "a") is True
        assert has_path(data, "b") is False


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    @pytest.mark.unit
    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "recipe.yaml"
        path.write_text("project:\n  name: shop\n", encoding="utf-8")
        assert load_document(path) == {"project": {"name": "shop"}}

    @pytest.mark.unit
    def test_load_json(self, tmp_path: Path):
        path = tmp_path / "recipe.json"
        path.write_text('{"project": {"name": "shop"}}', encoding="utf-8")
        assert load_document(path) == {"project": {"name": "shop"}}

    @pytest.mark.unit
    def test_invalid_document_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ValueError, match="Cannot parse"):
            load_document(path)

    @pytest.mark.unit
    def test_missing_document(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_document(tmp_path / "absent.yaml")

    @pytest.mark.unit
    def test_dump_json_format(self):
        text = dump_json({"name": "café"})
        assert text.endswith("\n")
        assert json.loads(text) == {"name": "café"}
        assert "café" in text


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(3.7, "3.7s"), (65.2, "1m 5s"), (3661.0, "1h 1m 1s"), (-1, "0.0s")],
    )
    def test_format(self, seconds: float, expected: str):
        assert format_duration(seconds) == expected


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


class TestRichHelpers:
    @pytest.mark.unit
    def test_helpers_print_without_error(self, capsys):
        print_module_header(1, 3, "nextjs", "framework")
        print_module_header(2, 3, "custom", "unknown-category")
        print_summary_table({"Status": "SUCCESS"}, title="Test")
        print_success("done")
        print_warning("careful")
        print_error("broken")
        out = capsys.readouterr().out
        assert "nextjs" in out
        assert "done" in out
        assert "broken" in out
