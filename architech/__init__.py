"""Architech -- blueprint execution core for project scaffolding.

A recipe lists technology modules; each module contributes a blueprint of
declarative actions.  The orchestrator interprets every blueprint in order
against one virtual file system and commits the result to disk in a single
flush.

Quick usage::

    from architech import Config, ModuleOrchestrator

    orchestrator = ModuleOrchestrator(Config(output_dir=Path("/tmp/out")))
    result = await orchestrator.run(recipe)
"""

from architech.blueprints import (
    BlueprintNotFoundError,
    DirectoryBlueprintRegistry,
    InMemoryBlueprintRegistry,
    InvalidBlueprintError,
    validate_blueprint,
)
from architech.config import Config, InstallConfig
from architech.engine import FileModificationEngine
from architech.interpreter import ActionError, BlueprintInterpreter
from architech.models import (
    ActionType,
    Blueprint,
    BlueprintResult,
    OperationResult,
    ProjectContext,
    Recipe,
    RunResult,
)
from architech.modifiers import Modifier, ModifierRegistry, default_registry
from architech.orchestrator import ModuleOrchestrator, RecipeError, load_recipe
from architech.source_module import ImportSpec, ModuleTransformError, ParsedModule
from architech.templates import TemplateProcessor, TemplateRenderer
from architech.vfs import VFSError, VirtualFileSystem, WriteMode

__all__ = [
    # Configuration
    "Config",
    "InstallConfig",
    # Models
    "ActionType",
    "Blueprint",
    "BlueprintResult",
    "OperationResult",
    "ProjectContext",
    "Recipe",
    "RunResult",
    # File layer
    "FileModificationEngine",
    "ImportSpec",
    "ModuleTransformError",
    "ParsedModule",
    "VFSError",
    "VirtualFileSystem",
    "WriteMode",
    # Templates
    "TemplateProcessor",
    "TemplateRenderer",
    # Modifiers
    "Modifier",
    "ModifierRegistry",
    "default_registry",
    # Interpretation
    "ActionError",
    "BlueprintInterpreter",
    "BlueprintNotFoundError",
    "DirectoryBlueprintRegistry",
    "InMemoryBlueprintRegistry",
    "InvalidBlueprintError",
    "validate_blueprint",
    # Orchestration
    "ModuleOrchestrator",
    "RecipeError",
    "load_recipe",
]
