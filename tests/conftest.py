"""Shared pytest fixtures for the Architech test suite.

Provides reusable fixtures for:
- Temporary project directories
- A virtual file system, engine and interpreter bound to them
- Sample recipes, blueprints and project contexts
- Mock subprocess helpers and an injectable command runner
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from architech.config import Config, InstallConfig
from architech.engine import FileModificationEngine
from architech.interpreter import BlueprintInterpreter
from architech.models import ProjectContext, ProjectInfo, RecipeModule
from architech.modifiers import default_registry
from architech.vfs import VirtualFileSystem


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Existing, empty project directory (auto-cleanup)."""
    root = tmp_path / "my-app"
    root.mkdir()
    yield root


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config writing into ``tmp_path`` with installation disabled."""
    return Config(
        output_dir=tmp_path,
        blueprints_dir=tmp_path / "blueprints",
        install=InstallConfig(enabled=False),
    )


# ---------------------------------------------------------------------------
# File layer
# ---------------------------------------------------------------------------

@pytest.fixture
def vfs(project_root: Path) -> VirtualFileSystem:
    return VirtualFileSystem(project_root)


@pytest.fixture
def engine(vfs: VirtualFileSystem) -> FileModificationEngine:
    return FileModificationEngine(vfs)


# ---------------------------------------------------------------------------
# Command runner
# ---------------------------------------------------------------------------

@pytest.fixture
def command_runner() -> AsyncMock:
    """Injectable replacement for ``run_command`` that always succeeds.

    Set ``command_runner.return_value`` to simulate other outcomes.
    """
    return AsyncMock(return_value=(0, "", ""))


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Context & interpreter
# ---------------------------------------------------------------------------

@pytest.fixture
def context(project_root: Path) -> ProjectContext:
    """Context for a Next.js project with a database module scheduled."""
    framework = RecipeModule(
        id="nextjs",
        category="framework",
        version="14.2.0",
        parameters={"typescript": True, "appRouter": True},
    )
    database = RecipeModule(
        id="drizzle",
        category="database",
        version="0.30.0",
        parameters={"provider": "postgres", "tables": ["users", "posts"]},
    )
    return ProjectContext(
        project=ProjectInfo(name="my-app", framework="nextjs", description="Demo app"),
        root=project_root,
        module=framework,
        paths={"lib": "src/lib", "database": "src/lib/db"},
        modules={"nextjs": framework, "drizzle": database},
    )


@pytest.fixture
def interpreter(engine: FileModificationEngine, config: Config, command_runner: AsyncMock) -> BlueprintInterpreter:
    return BlueprintInterpreter(
        engine,
        modifiers=default_registry(),
        config=config,
        command_runner=command_runner,
    )


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

@pytest.fixture
def framework_blueprint() -> dict[str, Any]:
    """Blueprint creating a manifest and a config module."""
    return {
        "id": "framework",
        "name": "Framework",
        "paths": {"app_root": "app"},
        "actions": [
            {
                "type": "CREATE_FILE",
                "path": "package.json",
                "content": '{\n  "name": "{{project.name}}",\n  "dependencies": {"core-lib": "1.0.0"}\n}\n',
            },
            {
                "type": "CREATE_FILE",
                "path": "{{paths.app_root}}/page.tsx",
                "content": "export default function Page() {\n  return <main>{{project.name}}</main>;\n}\n",
            },
        ],
    }


@pytest.fixture
def database_blueprint() -> dict[str, Any]:
    """Blueprint that declares a driver package and reads the manifest."""
    return {
        "id": "database",
        "name": "Database",
        "actions": [
            {"type": "INSTALL_PACKAGES", "packages": ["db-driver@2.0.0"]},
            {"type": "ADD_ENV_VAR", "key": "DATABASE_URL", "value": "postgres://localhost/app"},
        ],
    }


@pytest.fixture
def sample_recipe() -> dict[str, Any]:
    return {
        "version": "1.0",
        "project": {"name": "shop", "framework": "nextjs"},
        "modules": [
            {"id": "framework", "category": "framework", "version": "14.2.0"},
            {"id": "database", "category": "database", "version": "1.0.0"},
        ],
    }
