"""File modification primitives on top of the virtual file system.

Every primitive returns an ``OperationResult`` instead of raising for
expected conditions (missing files, unparsable documents, failed module
transforms), so callers can aggregate outcomes.  Appending or prepending to
a missing file creates it.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Optional

import yaml

from architech.models import OperationResult
from architech.source_module import ModuleTransform, ModuleTransformError, ParsedModule
from architech.utils import deep_merge, dump_json
from architech.vfs import VFSError, VirtualFileSystem, WriteMode

DataTransform = Callable[[dict[str, Any]], dict[str, Any]]

JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}
MODULE_SUFFIXES = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts"}


class FileModificationEngine:
    """Typed file primitives, all operating against one ``VirtualFileSystem``."""

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self.vfs = vfs

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        """Whether *path* exists in the pending state or on disk.

        Raises:
            VFSError: If the path is invalid.
        """
        return self.vfs.exists(path)

    async def read_file(self, path: str) -> Optional[str]:
        """Return the file's content, or ``None`` if it does not exist.

        Raises:
            VFSError: If the path is invalid or the disk read fails.
        """
        if not self.vfs.exists(path):
            return None
        return await self.vfs.read(path)

    # ------------------------------------------------------------------
    # Plain-text primitives
    # ------------------------------------------------------------------

    async def create_file(
        self, path: str, content: str, overwrite: bool = False
    ) -> OperationResult:
        """Create *path*; an existing file is left untouched unless *overwrite*."""
        mode = WriteMode.OVERWRITE if overwrite else WriteMode.CREATE
        return await self._write(path, content, mode)

    async def overwrite_file(self, path: str, content: str) -> OperationResult:
        return await self._write(path, content, WriteMode.OVERWRITE)

    async def append_to_file(self, path: str, content: str) -> OperationResult:
        """Append *content* on a new line at the end of *path*."""
        try:
            existing = await self.read_file(path)
        except VFSError as exc:
            return OperationResult.failure(path, str(exc))
        if existing and not existing.endswith("\n"):
            content = "\n" + content
        return await self._write(path, content, WriteMode.APPEND)

    async def prepend_to_file(self, path: str, content: str) -> OperationResult:
        """Insert *content* as new lines at the start of *path*."""
        try:
            existing = await self.read_file(path)
        except VFSError as exc:
            return OperationResult.failure(path, str(exc))
        if existing and not content.endswith("\n"):
            content = content + "\n"
        return await self._write(path, content, WriteMode.PREPEND)

    # ------------------------------------------------------------------
    # Structured primitives
    # ------------------------------------------------------------------

    async def merge_json_file(
        self,
        path: str,
        partial: Mapping[str, Any],
        concat_arrays: bool = False,
    ) -> OperationResult:
        """Deep-merge *partial* into the JSON object stored at *path*.

        A missing file is treated as ``{}``.
        """
        return await self.transform_json_file(
            path, lambda data: deep_merge(data, partial, concat_arrays)
        )

    async def merge_yaml_file(
        self,
        path: str,
        partial: Mapping[str, Any],
        concat_arrays: bool = False,
    ) -> OperationResult:
        return await self.transform_yaml_file(
            path, lambda data: deep_merge(data, partial, concat_arrays)
        )

    async def merge_data_file(
        self,
        path: str,
        partial: Mapping[str, Any],
        concat_arrays: bool = False,
    ) -> OperationResult:
        """Merge into a JSON or YAML file, chosen by suffix."""
        if Path(path).suffix.lower() in YAML_SUFFIXES:
            return await self.merge_yaml_file(path, partial, concat_arrays)
        return await self.merge_json_file(path, partial, concat_arrays)

    async def transform_json_file(self, path: str, transform: DataTransform) -> OperationResult:
        return await self._transform_document(
            path, transform, json.loads, dump_json, "JSON"
        )

    async def transform_yaml_file(self, path: str, transform: DataTransform) -> OperationResult:
        return await self._transform_document(
            path,
            transform,
            yaml.safe_load,
            lambda data: yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
            "YAML",
        )

    async def transform_data_file(self, path: str, transform: DataTransform) -> OperationResult:
        if Path(path).suffix.lower() in YAML_SUFFIXES:
            return await self.transform_yaml_file(path, transform)
        return await self.transform_json_file(path, transform)

    async def modify_module_file(self, path: str, transform: ModuleTransform) -> OperationResult:
        """Parse *path* as a TypeScript/JavaScript module and apply *transform*.

        The transform is a pure ``ParsedModule -> ParsedModule`` function; the
        engine serialises the result and only writes when the text changed.
        """
        try:
            source = await self.read_file(path)
        except VFSError as exc:
            return OperationResult.failure(path, str(exc))
        if source is None:
            return OperationResult.failure(path, f"File not found: {path}")

        try:
            updated = transform(ParsedModule.for_path(path, source))
        except ModuleTransformError as exc:
            return OperationResult.failure(path, f"Cannot modify {path}: {exc}")

        if updated.text == source:
            return OperationResult.ok(path, modified=False)
        return await self.overwrite_file(path, updated.text)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _write(self, path: str, content: str, mode: WriteMode) -> OperationResult:
        try:
            modified = await self.vfs.write(path, content, mode)
        except VFSError as exc:
            return OperationResult.failure(path, str(exc))
        return OperationResult.ok(path, modified=modified)

    async def _transform_document(
        self,
        path: str,
        transform: DataTransform,
        loads: Callable[[str], Any],
        dumps: Callable[[Any], str],
        kind: str,
    ) -> OperationResult:
        try:
            raw = await self.read_file(path)
        except VFSError as exc:
            return OperationResult.failure(path, str(exc))

        data: Any = {}
        if raw is not None and raw.strip():
            try:
                data = loads(raw)
            except (json.JSONDecodeError, yaml.YAMLError) as exc:
                return OperationResult.failure(path, f"Invalid {kind} in {path}: {exc}")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return OperationResult.failure(path, f"{kind} root of {path} is not an object")

        return await self.overwrite_file(path, dumps(transform(data)))
