"""Pydantic v2 models for recipes, blueprints, actions and run results.

Defines the declarative input documents (recipe, blueprint, the tagged
``Action`` union), the read-only ``ProjectContext`` handed to interpreters,
and the structured results every layer returns instead of raising.

Blueprint documents are authored in camelCase (``forEach``, ``isDev``,
``workingDir``); every aliased field also accepts its snake_case name.
"""

from __future__ import annotations

import shlex
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
    model_validator,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ActionType(str, Enum):
    """Every action kind a blueprint may contain."""
    CREATE_FILE = "CREATE_FILE"
    APPEND_TO_FILE = "APPEND_TO_FILE"
    PREPEND_TO_FILE = "PREPEND_TO_FILE"
    ADD_CONTENT = "ADD_CONTENT"
    INSTALL_PACKAGES = "INSTALL_PACKAGES"
    ADD_DEPENDENCY = "ADD_DEPENDENCY"
    ADD_DEV_DEPENDENCY = "ADD_DEV_DEPENDENCY"
    ADD_SCRIPT = "ADD_SCRIPT"
    ADD_ENV_VAR = "ADD_ENV_VAR"
    MERGE_JSON = "MERGE_JSON"
    ADD_TS_IMPORT = "ADD_TS_IMPORT"
    ENHANCE_FILE = "ENHANCE_FILE"
    MERGE_CONFIG = "MERGE_CONFIG"
    WRAP_CONFIG = "WRAP_CONFIG"
    EXTEND_SCHEMA = "EXTEND_SCHEMA"
    RUN_COMMAND = "RUN_COMMAND"


class FallbackStrategy(str, Enum):
    """What ENHANCE_FILE does when its modifier or target file is missing."""
    SKIP = "skip"
    CREATE = "create"
    ERROR = "error"


class MergeStrategy(str, Enum):
    """How a partial document is combined with an existing one."""
    DEEP = "deep"
    SHALLOW = "shallow"
    REPLACE = "replace"


class ModuleStatus(str, Enum):
    """Lifecycle of one module inside a recipe run."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Recipe
# ---------------------------------------------------------------------------

class ProjectInfo(BaseModel):
    """Project metadata declared at the top of a recipe."""
    name: str = Field(..., min_length=1, description="Project name")
    path: Optional[str] = Field(default=None, description="Explicit output directory")
    framework: str = Field(default="", description="Target framework identifier, e.g. 'nextjs'")
    description: str = Field(default="")
    author: str = Field(default="")
    version: str = Field(default="0.1.0")
    license: str = Field(default="MIT")


class RecipeModule(BaseModel):
    """One technology module selected in a recipe."""
    id: str = Field(..., min_length=1, description="Blueprint identifier, e.g. 'drizzle'")
    category: str = Field(default="", description="e.g. 'framework', 'database', 'auth'")
    version: str = Field(default="latest")
    parameters: dict[str, Any] = Field(default_factory=dict)


class Recipe(BaseModel):
    """A declarative description of the project to generate."""
    version: str = Field(default="1.0")
    project: ProjectInfo
    modules: list[RecipeModule] = Field(..., min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("modules")
    @classmethod
    def _unique_module_ids(cls, modules: list[RecipeModule]) -> list[RecipeModule]:
        seen: set[str] = set()
        for module in modules:
            if module.id in seen:
                raise ValueError(f"Duplicate module id '{module.id}'")
            seen.add(module.id)
        return modules

    def framework_module(self) -> Optional[RecipeModule]:
        """Return the module that provides the framework, if any."""
        for module in self.modules:
            if module.category == "framework":
                return module
        return None


# ---------------------------------------------------------------------------
# Project context
# ---------------------------------------------------------------------------

class ProjectContext(BaseModel):
    """Read-only view of the run handed to every interpreter call.

    Created once per run by the orchestrator; ``for_module`` derives the
    per-module copy without mutating the original.
    """

    model_config = ConfigDict(frozen=True)

    project: ProjectInfo
    root: Path
    module: RecipeModule
    paths: dict[str, str] = Field(default_factory=dict)
    modules: dict[str, RecipeModule] = Field(default_factory=dict)

    def for_module(self, module: RecipeModule) -> "ProjectContext":
        return self.model_copy(update={"module": module})

    def template_variables(self) -> dict[str, Any]:
        """Variables available to ``{{ ... }}`` placeholders and conditions."""
        modules = {
            module_id: module.model_dump() for module_id, module in self.modules.items()
        }
        variables: dict[str, Any] = {
            "project": {**self.project.model_dump(), "root": str(self.root)},
            "module": self.module.model_dump(),
            "paths": dict(self.paths),
            "modules": modules,
        }
        for module in self.modules.values():
            if module.category:
                variables.setdefault(f"{module.category}Module", module.model_dump())
        return variables


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class BaseAction(BaseModel):
    """Fields shared by every action kind."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    condition: Optional[str] = Field(
        default=None, description="Template condition; the action is skipped when falsy"
    )
    for_each: Optional[str] = Field(
        default=None,
        alias="forEach",
        description="Dotted path to a list; the action runs once per item as {{item}}",
    )


class CreateFileAction(BaseAction):
    type: Literal["CREATE_FILE"]
    path: str
    content: Optional[str] = None
    template: Optional[str] = Field(default=None, description="Jinja2 template path")
    overwrite: bool = False

    @model_validator(mode="after")
    def _content_or_template(self) -> "CreateFileAction":
        if self.content is None and self.template is None:
            raise ValueError("CREATE_FILE requires 'content' or 'template'")
        return self


class AppendToFileAction(BaseAction):
    type: Literal["APPEND_TO_FILE"]
    path: str
    content: str


class PrependToFileAction(BaseAction):
    type: Literal["PREPEND_TO_FILE"]
    path: str
    content: str


class AddContentAction(BaseAction):
    """Legacy write whose behaviour is chosen by the target's file name."""
    type: Literal["ADD_CONTENT"]
    target: str
    content: Union[str, dict[str, Any]]


class InstallPackagesAction(BaseAction):
    type: Literal["INSTALL_PACKAGES"]
    packages: list[str] = Field(..., min_length=1)
    is_dev: bool = Field(default=False, alias="isDev")


class AddDependencyAction(BaseAction):
    type: Literal["ADD_DEPENDENCY"]
    packages: list[str] = Field(..., min_length=1)
    is_dev: bool = Field(default=False, alias="isDev")


class AddDevDependencyAction(BaseAction):
    type: Literal["ADD_DEV_DEPENDENCY"]
    packages: list[str] = Field(..., min_length=1)


class AddScriptAction(BaseAction):
    type: Literal["ADD_SCRIPT"]
    name: str = Field(..., min_length=1)
    command: str


class AddEnvVarAction(BaseAction):
    type: Literal["ADD_ENV_VAR"]
    key: str = Field(..., pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    value: str
    description: Optional[str] = None
    path: Optional[str] = Field(default=None, description="Live env file; defaults to Config.env_file")


class MergeJsonAction(BaseAction):
    type: Literal["MERGE_JSON"]
    path: str
    content: dict[str, Any]
    concat_arrays: bool = Field(default=False, alias="concatArrays")


class ImportDeclaration(BaseModel):
    """One import declaration to ensure in a typed module."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    module_specifier: str = Field(..., alias="moduleSpecifier")
    named_imports: list[str] = Field(default_factory=list, alias="namedImports")
    default_import: Optional[str] = Field(default=None, alias="defaultImport")
    namespace_import: Optional[str] = Field(default=None, alias="namespaceImport")
    is_type_only: bool = Field(default=False, alias="isTypeOnly")


class AddTsImportAction(BaseAction):
    type: Literal["ADD_TS_IMPORT"]
    path: str
    imports: list[ImportDeclaration] = Field(..., min_length=1)


class EnhanceFileAction(BaseAction):
    type: Literal["ENHANCE_FILE"]
    path: str
    modifier: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    fallback: Optional[FallbackStrategy] = None


class MergeConfigAction(BaseAction):
    type: Literal["MERGE_CONFIG"]
    path: str
    config: dict[str, Any]
    strategy: MergeStrategy = MergeStrategy.DEEP


class WrapConfigAction(BaseAction):
    type: Literal["WRAP_CONFIG"]
    path: str
    wrapper: str = Field(..., min_length=1)
    import_from: Optional[str] = Field(default=None, alias="importFrom")
    options: dict[str, Any] = Field(default_factory=dict)


class SchemaTable(BaseModel):
    name: str = Field(..., pattern=r"^[A-Za-z_$][\w$]*$")
    definition: str


class ExtendSchemaAction(BaseAction):
    type: Literal["EXTEND_SCHEMA"]
    path: str
    tables: list[SchemaTable] = Field(..., min_length=1)
    additional_imports: list[str] = Field(default_factory=list, alias="additionalImports")


class RunCommandAction(BaseAction):
    """Runs an external process as an argument vector (never through a shell).

    A string command is accepted for convenience and split with POSIX
    quoting rules, so ``npx foo "a b"`` yields three arguments.
    """
    type: Literal["RUN_COMMAND"]
    command: list[str] = Field(..., min_length=1)
    working_dir: Optional[str] = Field(default=None, alias="workingDir")

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value


Action = Annotated[
    Union[
        CreateFileAction,
        AppendToFileAction,
        PrependToFileAction,
        AddContentAction,
        InstallPackagesAction,
        AddDependencyAction,
        AddDevDependencyAction,
        AddScriptAction,
        AddEnvVarAction,
        MergeJsonAction,
        AddTsImportAction,
        EnhanceFileAction,
        MergeConfigAction,
        WrapConfigAction,
        ExtendSchemaAction,
        RunCommandAction,
    ],
    Field(discriminator="type"),
]

ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Action)


def parse_action(data: dict[str, Any]) -> Any:
    """Validate a raw action mapping into its concrete action model."""
    return ACTION_ADAPTER.validate_python(data)


# ---------------------------------------------------------------------------
# Blueprint
# ---------------------------------------------------------------------------

class Blueprint(BaseModel):
    """A named, versioned, ordered list of actions contributed by one module."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    version: str = Field(default="1.0.0")
    description: str = Field(default="")
    paths: dict[str, str] = Field(
        default_factory=dict, description="Path aliases a framework blueprint declares"
    )
    actions: tuple[Action, ...] = Field(default=())


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class OperationResult(BaseModel):
    """Outcome of a single file primitive."""

    success: bool
    file_path: str = Field(default="")
    error: Optional[str] = Field(default=None)
    modified: bool = Field(
        default=True, description="False when the primitive left the file untouched"
    )

    @classmethod
    def ok(cls, file_path: str, modified: bool = True) -> "OperationResult":
        return cls(success=True, file_path=file_path, modified=modified)

    @classmethod
    def failure(cls, file_path: str, error: str) -> "OperationResult":
        return cls(success=False, file_path=file_path, error=error, modified=False)


class BlueprintResult(BaseModel):
    """Aggregated outcome of interpreting one blueprint (or one action)."""

    files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    actions_executed: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        return not self.errors

    def add_file(self, file_path: str) -> None:
        if file_path and file_path not in self.files:
            self.files.append(file_path)

    def extend(self, other: "BlueprintResult") -> None:
        for file_path in other.files:
            self.add_file(file_path)
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.actions_executed += other.actions_executed


class ModuleRun(BaseModel):
    """Status and outcome of one module in a recipe run."""

    module_id: str
    category: str = Field(default="")
    status: ModuleStatus = Field(default=ModuleStatus.PENDING)
    files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration_seconds: float = Field(default=0.0, ge=0.0)


class RunResult(BaseModel):
    """What a recipe run reports back to its caller."""

    success: bool
    modules_executed: int = Field(default=0, ge=0)
    failed_module: Optional[str] = Field(default=None)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    modules: list[ModuleRun] = Field(default_factory=list)
    project_root: Optional[Path] = Field(default=None)
    duration_seconds: float = Field(default=0.0, ge=0.0)
