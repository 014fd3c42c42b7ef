"""Architech run configuration.

Centralised, typed configuration for a recipe run. All settings use Pydantic
v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from architech.utils import sanitize_name

if TYPE_CHECKING:
    from architech.models import ProjectInfo


class InstallConfig(BaseModel):
    """Post-flush dependency installation.

    Installation is best-effort: a failing package manager is reported as a
    warning and never fails the run.
    """

    enabled: bool = Field(default=True)
    package_manager: str = Field(default="npm")
    args: list[str] = Field(default_factory=lambda: ["install"])
    timeout: int = Field(default=600, ge=10, description="Install timeout in seconds")

    def argv(self) -> list[str]:
        """Return the full install command as an argument vector."""
        return [self.package_manager, *self.args]


class Config(BaseModel):
    """Global Architech configuration.

    Instances are typically created once by the CLI entry point (or by a test)
    and handed to ``ModuleOrchestrator``, which passes them on to every
    interpreter it creates.
    """

    output_dir: Path = Field(default=Path("."))
    blueprints_dir: Path = Field(default=Path("./blueprints"))
    templates_dir: Path | None = Field(default=None)

    # Well-known files inside a generated project.
    manifest_name: str = Field(default="package.json")
    env_file: str = Field(default=".env")
    env_example_file: str = Field(default=".env.example")
    record_name: str = Field(default="architech.json")

    command_timeout: int = Field(
        default=300, ge=1, description="RUN_COMMAND timeout in seconds"
    )
    verbose: bool = Field(default=False)
    install: InstallConfig = Field(default_factory=InstallConfig)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def project_root_for(self, project: "ProjectInfo") -> Path:
        """Resolve the directory a project is generated into.

        An explicit ``project.path`` wins (relative paths are taken relative
        to ``output_dir``); otherwise the sanitised project name is used.
        """
        if project.path:
            explicit = Path(project.path)
            return explicit if explicit.is_absolute() else self.output_dir / explicit
        return self.output_dir / (sanitize_name(project.name) or "project")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            ARCHITECH_OUTPUT_DIR, ARCHITECH_BLUEPRINTS_DIR,
            ARCHITECH_TEMPLATES_DIR, ARCHITECH_COMMAND_TIMEOUT,
            ARCHITECH_VERBOSE, ARCHITECH_PACKAGE_MANAGER,
            ARCHITECH_SKIP_INSTALL, ARCHITECH_INSTALL_TIMEOUT.
        """
        install_kwargs: dict[str, Any] = {}
        if os.environ.get("ARCHITECH_PACKAGE_MANAGER"):
            install_kwargs["package_manager"] = os.environ["ARCHITECH_PACKAGE_MANAGER"]
        if os.environ.get("ARCHITECH_INSTALL_TIMEOUT"):
            install_kwargs["timeout"] = int(os.environ["ARCHITECH_INSTALL_TIMEOUT"])
        if _env_flag("ARCHITECH_SKIP_INSTALL"):
            install_kwargs["enabled"] = False

        kwargs: dict[str, Any] = {"install": InstallConfig(**install_kwargs)}
        if os.environ.get("ARCHITECH_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["ARCHITECH_OUTPUT_DIR"])
        if os.environ.get("ARCHITECH_BLUEPRINTS_DIR"):
            kwargs["blueprints_dir"] = Path(os.environ["ARCHITECH_BLUEPRINTS_DIR"])
        if os.environ.get("ARCHITECH_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["ARCHITECH_TEMPLATES_DIR"])
        if os.environ.get("ARCHITECH_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["ARCHITECH_COMMAND_TIMEOUT"])
        if os.environ.get("ARCHITECH_VERBOSE"):
            kwargs["verbose"] = _env_flag("ARCHITECH_VERBOSE")

        return cls(**kwargs)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}
