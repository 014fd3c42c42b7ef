"""Architech module orchestrator.

Runs a recipe's modules strictly in order against a single virtual file
system, then commits the result in one flush:

    PENDING -> RUNNING -> SUCCEEDED | FAILED   (per module, recipe order)

The first failing module halts the run and the virtual file system is
discarded, so a failed run leaves real storage untouched.  After a
successful flush, dependency installation runs as a best-effort step whose
failure is only a warning.

Usage::

    architech recipe.yaml --output ./projects --blueprints ./blueprints
    python -m architech.orchestrator recipe.yaml --no-install
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from rich.panel import Panel

from architech.blueprints import (
    BlueprintNotFoundError,
    BlueprintRegistry,
    DirectoryBlueprintRegistry,
    InvalidBlueprintError,
)
from architech.config import Config
from architech.engine import FileModificationEngine
from architech.interpreter import BlueprintInterpreter, CommandRunner
from architech.models import (
    Blueprint,
    ModuleRun,
    ModuleStatus,
    ProjectContext,
    Recipe,
    RecipeModule,
    RunResult,
)
from architech.modifiers import ModifierRegistry, default_registry
from architech.templates import TemplateRenderer
from architech.utils import (
    console,
    dump_json,
    format_command,
    format_duration,
    format_validation_error,
    load_document,
    print_error,
    print_module_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
)
from architech.vfs import VFSError, VirtualFileSystem

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PATHS: dict[str, str] = {
    "source_root": "src",
    "app_root": "src/app",
    "components": "src/components",
    "ui_components": "src/components/ui",
    "layouts": "src/components/layouts",
    "providers": "src/components/providers",
    "lib": "src/lib",
    "utils": "src/lib/utils",
    "hooks": "src/hooks",
    "types": "src/types",
    "stores": "src/stores",
    "database": "src/lib/db",
    "auth": "src/lib/auth",
    "auth_config": "src/lib/auth/config",
    "payment_config": "src/lib/payment",
    "email_config": "src/lib/email",
    "observability_config": "src/lib/observability",
    "middleware": "src/middleware",
    "api_routes": "src/app/api",
    "tests": "tests",
    "scripts": "scripts",
    "public": "public",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RecipeError(Exception):
    """Raised when a recipe document cannot be loaded or validated."""


def load_recipe(path: str | Path) -> Recipe:
    """Load and validate a YAML or JSON recipe file.

    Raises:
        RecipeError: If the file is missing, unparsable or invalid.
    """
    try:
        data = load_document(path)
    except (OSError, ValueError) as exc:
        raise RecipeError(f"Cannot read recipe {path}: {exc}") from exc
    return validate_recipe(data)


def validate_recipe(data: Recipe | Mapping[str, Any]) -> Recipe:
    if isinstance(data, Recipe):
        return data
    try:
        return Recipe.model_validate(data)
    except ValidationError as exc:
        raise RecipeError(f"Invalid recipe: {format_validation_error(exc)}") from exc


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ModuleOrchestrator:
    """Sequences a recipe's modules and owns the run's virtual file system.

    Attributes:
        config: Global run configuration.
        blueprints: Where module blueprints are looked up by identifier.
        modifiers: Modifier registry shared by every interpreter.
    """

    def __init__(
        self,
        config: Config,
        blueprints: Optional[BlueprintRegistry] = None,
        modifiers: Optional[ModifierRegistry] = None,
        command_runner: CommandRunner = run_command,
    ) -> None:
        self.config = config
        self.blueprints = blueprints or DirectoryBlueprintRegistry(config.blueprints_dir)
        self.modifiers = modifiers if modifiers is not None else default_registry()
        self._run_command = command_runner
        self.renderer = (
            TemplateRenderer(config.templates_dir) if config.templates_dir is not None else None
        )

    async def run(self, recipe: Recipe | Mapping[str, Any]) -> RunResult:
        """Execute *recipe* and commit the generated project.

        Never raises: every failure is reported in the returned
        ``RunResult``.
        """
        run_start = time.monotonic()

        try:
            recipe = validate_recipe(recipe)
        except RecipeError as exc:
            print_error(str(exc))
            return RunResult(success=False, errors=[str(exc)])

        root = self.config.project_root_for(recipe.project).resolve()
        runs = [ModuleRun(module_id=m.id, category=m.category) for m in recipe.modules]

        # Banner
        console.print(
            Panel(
                f"[bold bright_cyan]Architech[/bold bright_cyan]\n"
                f"Project : {recipe.project.name}\n"
                f"Output  : {root}\n"
                f"Modules : {', '.join(m.id for m in recipe.modules)}",
                title="[bold]Generation Start[/bold]",
                border_style="bright_cyan",
            )
        )

        # 1. Resolve every blueprint before touching anything.
        blueprints: dict[str, Blueprint] = {}
        for module, module_run in zip(recipe.modules, runs):
            try:
                blueprints[module.id] = self.blueprints.get(module.id)
            except (BlueprintNotFoundError, InvalidBlueprintError) as exc:
                module_run.status = ModuleStatus.FAILED
                module_run.errors.append(str(exc))
                print_error(str(exc))
                return self._finish(
                    RunResult(
                        success=False,
                        failed_module=module.id,
                        errors=[str(exc)],
                        modules=runs,
                        project_root=root,
                    ),
                    run_start,
                )

        # 2. One file system, engine and interpreter for the whole run.
        vfs = VirtualFileSystem(root)
        engine = FileModificationEngine(vfs)
        interpreter = BlueprintInterpreter(
            engine,
            modifiers=self.modifiers,
            config=self.config,
            renderer=self.renderer,
            command_runner=self._run_command,
        )
        base_context = ProjectContext(
            project=recipe.project,
            root=root,
            module=recipe.modules[0],
            paths=self._resolve_paths(recipe, blueprints),
            modules={m.id: m for m in recipe.modules},
        )

        # 3. Modules, strictly in recipe order.
        result = RunResult(success=True, modules=runs, project_root=root)
        total = len(recipe.modules)
        for index, (module, module_run) in enumerate(zip(recipe.modules, runs), 1):
            print_module_header(index, total, module.id, module.category)
            module_run.status = ModuleStatus.RUNNING
            module_start = time.monotonic()
            try:
                outcome = await interpreter.execute_blueprint(
                    blueprints[module.id], base_context.for_module(module)
                )
                module_run.files = list(outcome.files)
                module_run.warnings = list(outcome.warnings)
                module_run.errors = list(outcome.errors)
            except Exception as exc:
                tb = traceback.format_exc()
                module_run.errors.append(f"Unexpected error in module '{module.id}': {exc}")
                console.print(f"[dim]{tb}[/dim]")
            module_run.duration_seconds = time.monotonic() - module_start

            result.warnings.extend(f"{module.id}: {w}" for w in module_run.warnings)
            for warning in module_run.warnings:
                print_warning(f"  {warning}")

            if module_run.errors:
                module_run.status = ModuleStatus.FAILED
                result.success = False
                result.failed_module = module.id
                result.errors.extend(f"{module.id}: {e}" for e in module_run.errors)
                print_error(
                    f"Module {module.id} FAILED after "
                    f"{format_duration(module_run.duration_seconds)}: {module_run.errors[-1]}"
                )
                # Later modules build on earlier ones; stop here.
                break

            module_run.status = ModuleStatus.SUCCEEDED
            result.modules_executed += 1
            print_success(
                f"Module {module.id} completed in {format_duration(module_run.duration_seconds)} "
                f"({len(module_run.files)} file(s))"
            )

        if not result.success:
            vfs.discard()
            print_error("Generation aborted -- no files were written.")
            return self._finish(result, run_start)

        # 4. Configuration record, then the single flush.
        record = await engine.overwrite_file(
            self.config.record_name, dump_json(self._record(recipe))
        )
        if not record.success:
            vfs.discard()
            result.success = False
            result.errors.append(record.error or "Cannot write configuration record")
            return self._finish(result, run_start)

        try:
            written = await vfs.flush()
        except VFSError as exc:
            result.success = False
            result.errors.append(f"Flush failed: {exc}")
            print_error(f"Flush failed: {exc}")
            return self._finish(result, run_start)
        result.files = [path.relative_to(root).as_posix() for path in written]
        print_success(f"Wrote {len(written)} file(s) to {root}")

        # 5. Best-effort dependency installation.
        warning = await self._install_dependencies(recipe, root, vfs)
        if warning:
            result.warnings.append(warning)
            print_warning(warning)

        return self._finish(result, run_start)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_paths(self, recipe: Recipe, blueprints: Mapping[str, Blueprint]) -> dict[str, str]:
        """Default path table, overridden by the framework blueprint and its parameters."""
        paths = dict(DEFAULT_PATHS)
        framework = recipe.framework_module()
        if framework is not None:
            paths.update(blueprints[framework.id].paths)
            declared = framework.parameters.get("paths")
            if isinstance(declared, Mapping):
                paths.update({str(k): str(v) for k, v in declared.items()})
        return paths

    def _record(self, recipe: Recipe) -> dict[str, Any]:
        """The ``architech.json`` content describing what was generated."""
        return {
            "version": recipe.version,
            "project": recipe.project.model_dump(exclude_none=True),
            "modules": [
                {
                    "id": m.id,
                    "category": m.category,
                    "version": m.version,
                    "parameters": m.parameters,
                }
                for m in recipe.modules
            ],
            "options": recipe.options,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        }

    async def _install_dependencies(
        self, recipe: Recipe, root: Path, vfs: VirtualFileSystem
    ) -> Optional[str]:
        """Run the package manager; return a warning instead of failing."""
        install = self.config.install
        if not install.enabled or recipe.options.get("skipInstall"):
            return None
        if self.config.manifest_name not in vfs.all_files() and not (root / self.config.manifest_name).is_file():
            return None

        argv = install.argv()
        console.print(f"  Installing dependencies: [bold]{format_command(argv)}[/bold]")
        try:
            returncode, _stdout, stderr = await self._run_command(
                argv, cwd=root, timeout=install.timeout
            )
        except OSError as exc:
            return f"Dependency installation could not start ({format_command(argv)}): {exc}"
        if returncode != 0:
            return (
                f"Dependency installation failed ({format_command(argv)}, exit {returncode}): "
                f"{stderr or 'no output'}"
            )
        print_success("Dependencies installed")
        return None

    def _finish(self, result: RunResult, run_start: float) -> RunResult:
        result.duration_seconds = time.monotonic() - run_start
        summary = {
            "Status": "SUCCESS" if result.success else "FAILED",
            "Modules executed": f"{result.modules_executed}/{len(result.modules)}",
            "Files written": str(len(result.files)),
            "Warnings": str(len(result.warnings)),
            "Errors": str(len(result.errors)),
            "Duration": format_duration(result.duration_seconds),
        }
        if result.failed_module:
            summary["Failed module"] = result.failed_module
        print_summary_table(summary, title="Generation Summary")
        return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point for ``architech``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Architech -- generate a project from a recipe of modules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  architech recipe.yaml\n"
            "  architech recipe.yaml -o ./projects -b ./blueprints\n"
            "  architech recipe.json --no-install --verbose\n"
        ),
    )
    parser.add_argument("recipe", help="Path to the recipe (YAML or JSON)")
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Parent directory for the generated project (default: current directory)",
    )
    parser.add_argument(
        "--blueprints", "-b",
        default=None,
        help="Blueprint directory (default: ./blueprints)",
    )
    parser.add_argument(
        "--templates", "-t",
        default=None,
        help="Jinja2 template directory for CREATE_FILE templates",
    )
    parser.add_argument("--no-install", action="store_true", help="Skip dependency installation")
    parser.add_argument("--verbose", "-v", action="store_true", help="Trace every action")

    args = parser.parse_args()

    try:
        recipe = load_recipe(args.recipe)
    except RecipeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    config = Config.from_env()
    if args.output:
        config.output_dir = Path(args.output)
    if args.blueprints:
        config.blueprints_dir = Path(args.blueprints)
    if args.templates:
        config.templates_dir = Path(args.templates)
    if args.no_install:
        config.install.enabled = False
    if args.verbose:
        config.verbose = True

    orchestrator = ModuleOrchestrator(config)
    result = asyncio.run(orchestrator.run(recipe))
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
