"""Blueprint interpreter: turns declarative actions into file primitives.

The interpreter resolves template placeholders in every string field of an
action, dispatches the action to its handler, and records touched files,
warnings and errors in a ``BlueprintResult``.  It never raises past its own
boundary: malformed blueprints, failed primitives, missing modifiers and
failing commands all come back as error strings, and execution of a
blueprint stops at the first one.
"""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any, Optional

from jinja2 import TemplateError
from pydantic import ValidationError

from architech.blueprints import InvalidBlueprintError, validate_blueprint
from architech.config import Config
from architech.engine import JSON_SUFFIXES, MODULE_SUFFIXES, YAML_SUFFIXES, FileModificationEngine
from architech.models import (
    ActionType,
    AddContentAction,
    AddDependencyAction,
    AddDevDependencyAction,
    AddEnvVarAction,
    AddScriptAction,
    AddTsImportAction,
    AppendToFileAction,
    Blueprint,
    BlueprintResult,
    CreateFileAction,
    EnhanceFileAction,
    ExtendSchemaAction,
    FallbackStrategy,
    InstallPackagesAction,
    MergeConfigAction,
    MergeJsonAction,
    OperationResult,
    PrependToFileAction,
    ProjectContext,
    RunCommandAction,
    WrapConfigAction,
    parse_action,
)
from architech.modifiers import ModifierRegistry, default_registry, merge_env_content
from architech.source_module import ImportSpec, ParsedModule, compose
from architech.templates import TemplateProcessor, TemplateRenderer
from architech.utils import console, format_command, format_validation_error, lookup, run_command
from architech.vfs import VFSError

CommandRunner = Callable[..., Awaitable[tuple[int, str, str]]]


class ActionError(Exception):
    """Raised by an action handler when the action cannot be completed."""


def parse_package_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version`` (scoped names included) into its parts.

    Examples::

        parse_package_spec("zod@3.22.4")        -> ("zod", "3.22.4")
        parse_package_spec("@prisma/client")    -> ("@prisma/client", "latest")
        parse_package_spec("@auth/core@^0.18")  -> ("@auth/core", "^0.18")
    """
    spec = spec.strip()
    at = spec.find("@", 1) if spec.startswith("@") else spec.find("@")
    if at > 0:
        return spec[:at], spec[at + 1:] or "latest"
    return spec, "latest"


class BlueprintInterpreter:
    """Executes blueprints against one ``FileModificationEngine``.

    Attributes:
        engine: File primitives bound to the run's virtual file system.
        modifiers: Registry consulted by ``ENHANCE_FILE`` and the config actions.
        config: Run configuration (well-known file names, timeouts).
    """

    def __init__(
        self,
        engine: FileModificationEngine,
        modifiers: Optional[ModifierRegistry] = None,
        config: Optional[Config] = None,
        templates: Optional[TemplateProcessor] = None,
        renderer: Optional[TemplateRenderer] = None,
        command_runner: CommandRunner = run_command,
    ) -> None:
        self.engine = engine
        self.modifiers = modifiers if modifiers is not None else default_registry()
        self.config = config or Config()
        self.templates = templates or TemplateProcessor()
        if renderer is None and self.config.templates_dir is not None:
            renderer = TemplateRenderer(self.config.templates_dir)
        self.renderer = renderer
        self._run_command = command_runner

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    _ACTION_HANDLERS: dict[ActionType, str] = {
        ActionType.CREATE_FILE: "_create_file",
        ActionType.APPEND_TO_FILE: "_append_to_file",
        ActionType.PREPEND_TO_FILE: "_prepend_to_file",
        ActionType.ADD_CONTENT: "_add_content",
        ActionType.INSTALL_PACKAGES: "_install_packages",
        ActionType.ADD_DEPENDENCY: "_add_dependency",
        ActionType.ADD_DEV_DEPENDENCY: "_add_dev_dependency",
        ActionType.ADD_SCRIPT: "_add_script",
        ActionType.ADD_ENV_VAR: "_add_env_var",
        ActionType.MERGE_JSON: "_merge_json",
        ActionType.ADD_TS_IMPORT: "_add_ts_import",
        ActionType.ENHANCE_FILE: "_enhance_file",
        ActionType.MERGE_CONFIG: "_merge_config",
        ActionType.WRAP_CONFIG: "_wrap_config",
        ActionType.EXTEND_SCHEMA: "_extend_schema",
        ActionType.RUN_COMMAND: "_run_command_action",
    }

    async def execute_blueprint(
        self,
        blueprint: Blueprint | Mapping[str, Any],
        context: ProjectContext,
    ) -> BlueprintResult:
        """Validate *blueprint* and run its actions in order.

        Stops at the first action that reports an error.
        """
        result = BlueprintResult()
        try:
            validated = validate_blueprint(blueprint)
        except InvalidBlueprintError as exc:
            result.errors.append(str(exc))
            return result

        for position, action in enumerate(validated.actions, 1):
            step = await self.execute_action(action, context, position)
            result.extend(step)
            if not step.success:
                break
        return result

    async def execute_action(
        self,
        action: Any,
        context: ProjectContext,
        position: Optional[int] = None,
    ) -> BlueprintResult:
        """Run one action (a validated model or a raw mapping)."""
        result = BlueprintResult()
        raw_type = action.get("type", "?") if isinstance(action, Mapping) else action.type
        label = f"{raw_type} (action {position})" if position else str(raw_type)

        try:
            if isinstance(action, Mapping):
                action = self._validate(action)
            variables = context.template_variables()

            if action.condition and not self.templates.evaluate(action.condition, variables):
                self._trace(f"skip {label}: condition '{action.condition}' is false")
                return result

            for scope in self._iteration_scopes(action, variables):
                rendered = self._render(action, scope)
                handler = getattr(self, self._ACTION_HANDLERS[ActionType(rendered.type)])
                self._trace(f"{label} {_describe_target(rendered)}")
                await handler(rendered, context, scope, result)
                result.actions_executed += 1

        except ActionError as exc:
            result.errors.append(f"{label}: {exc}")
        except VFSError as exc:
            result.errors.append(f"{label}: file system error: {exc}")
        except Exception as exc:
            result.errors.append(f"{label}: unexpected {type(exc).__name__}: {exc}")
        return result

    # ------------------------------------------------------------------
    # Action preparation
    # ------------------------------------------------------------------

    def _validate(self, data: Mapping[str, Any]) -> Any:
        known = {member.value for member in ActionType}
        if data.get("type") not in known:
            raise ActionError(f"Unknown action type '{data.get('type')}'")
        try:
            return parse_action(dict(data))
        except ValidationError as exc:
            raise ActionError(f"Malformed action: {format_validation_error(exc)}") from exc

    def _iteration_scopes(self, action: Any, variables: dict[str, Any]) -> list[dict[str, Any]]:
        if not action.for_each:
            return [variables]
        path = re.sub(r"^\{\{\s*|\s*\}\}$", "", action.for_each.strip())
        items = lookup(variables, path)
        if not isinstance(items, list):
            raise ActionError(f"forEach '{path}' does not resolve to a list")
        return [{**variables, "item": item, "index": index} for index, item in enumerate(items)]

    def _render(self, action: Any, variables: dict[str, Any]) -> Any:
        data = action.model_dump(by_alias=True, exclude={"condition", "for_each"}, exclude_none=True)
        rendered = self.templates.render_value(data, variables)
        try:
            return parse_action(rendered)
        except ValidationError as exc:
            raise ActionError(
                f"Action is invalid after template rendering: {format_validation_error(exc)}"
            ) from exc

    # ------------------------------------------------------------------
    # File actions
    # ------------------------------------------------------------------

    async def _create_file(
        self, action: CreateFileAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        if action.template is not None:
            if self.renderer is None:
                raise ActionError(f"Template '{action.template}' requested but no templates directory is configured")
            try:
                content = self.renderer.render(action.template, variables)
            except TemplateError as exc:
                raise ActionError(f"Cannot render template '{action.template}': {exc}") from exc
        else:
            content = action.content or ""
        op = await self.engine.create_file(action.path, content, overwrite=action.overwrite)
        self._record(op, result)
        if not op.modified:
            self._trace(f"  {action.path} already exists, left unchanged")

    async def _append_to_file(
        self, action: AppendToFileAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        self._record(await self.engine.append_to_file(action.path, action.content), result)

    async def _prepend_to_file(
        self, action: PrependToFileAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        self._record(await self.engine.prepend_to_file(action.path, action.content), result)

    async def _add_content(
        self, action: AddContentAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        """Legacy write: JSON targets merge, env files merge by key, anything else appends."""
        target = action.target
        name = Path(target).name
        if Path(target).suffix.lower() in JSON_SUFFIXES:
            content = action.content
            if isinstance(content, str):
                try:
                    content = json.loads(content)
                except json.JSONDecodeError as exc:
                    raise ActionError(f"Content for {target} is not valid JSON: {exc}") from exc
            if not isinstance(content, dict):
                raise ActionError(f"Content for {target} must be a JSON object")
            self._record(await self.engine.merge_json_file(target, content), result)
        elif name.startswith(".env"):
            variables_to_set = _parse_env_assignments(str(action.content))
            await self._merge_env(target, variables_to_set, {}, result)
        else:
            if not isinstance(action.content, str):
                raise ActionError(f"Content for {target} must be text")
            self._record(await self.engine.append_to_file(target, action.content), result)

    # ------------------------------------------------------------------
    # Manifest actions
    # ------------------------------------------------------------------

    async def _install_packages(
        self, action: InstallPackagesAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        await self._declare_packages(action.packages, action.is_dev, result)

    async def _add_dependency(
        self, action: AddDependencyAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        await self._declare_packages(action.packages, action.is_dev, result)

    async def _add_dev_dependency(
        self, action: AddDevDependencyAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        await self._declare_packages(action.packages, True, result)

    async def _declare_packages(self, packages: list[str], is_dev: bool, result: BlueprintResult) -> None:
        """Record packages in the manifest; installation happens after flush."""
        section = "devDependencies" if is_dev else "dependencies"
        declared = dict(parse_package_spec(spec) for spec in packages if spec.strip())
        if not declared:
            raise ActionError("No packages to install")
        op = await self.engine.merge_json_file(self.config.manifest_name, {section: declared})
        self._record(op, result)

    async def _add_script(
        self, action: AddScriptAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        op = await self.engine.merge_json_file(
            self.config.manifest_name, {"scripts": {action.name: action.command}}
        )
        self._record(op, result)

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    async def _add_env_var(
        self, action: AddEnvVarAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        """Always update the example env file; touch the live one only if it exists.

        Values already set in the live file win over the blueprint's.
        """
        values = {action.key: action.value}
        descriptions = {action.key: action.description} if action.description else {}
        example = self.config.env_example_file
        await self._merge_env(example, values, descriptions, result)

        live = action.path or self.config.env_file
        if live != example and self.engine.file_exists(live):
            await self._merge_env(live, values, descriptions, result, overwrite=False)

    async def _merge_env(
        self,
        path: str,
        values: dict[str, str],
        descriptions: dict[str, str],
        result: BlueprintResult,
        overwrite: bool = True,
    ) -> None:
        existing = await self.engine.read_file(path) or ""
        merged = merge_env_content(existing, values, descriptions, overwrite=overwrite)
        if merged == existing:
            self._record(OperationResult.ok(path, modified=False), result)
            return
        self._record(await self.engine.overwrite_file(path, merged), result)

    # ------------------------------------------------------------------
    # Structured actions
    # ------------------------------------------------------------------

    async def _merge_json(
        self, action: MergeJsonAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        op = await self.engine.merge_json_file(action.path, action.content, action.concat_arrays)
        self._record(op, result)

    async def _add_ts_import(
        self, action: AddTsImportAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        specs = [
            ImportSpec(
                decl.module_specifier,
                named=tuple(decl.named_imports),
                default=decl.default_import,
                namespace=decl.namespace_import,
                type_only=decl.is_type_only,
            )
            for decl in action.imports
        ]
        transform = compose(*(lambda module, spec=spec: module.add_import(spec) for spec in specs))
        self._record(await self.engine.modify_module_file(action.path, transform), result)

    async def _enhance_file(
        self, action: EnhanceFileAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        """Apply a named modifier, honouring the action's fallback policy.

        The fallback covers both a modifier that is not registered and a
        target file that does not exist.
        """
        modifier = self.modifiers.get(action.modifier)
        exists = self._target_exists(action.path)
        if modifier is not None and exists:
            self._record(await modifier.execute(self.engine, action.path, action.params, context), result)
            return

        problem = (
            f"modifier '{action.modifier}' is not registered"
            if modifier is None
            else f"target file {action.path} does not exist"
        )
        fallback = action.fallback or FallbackStrategy.ERROR

        if fallback is FallbackStrategy.SKIP:
            result.warnings.append(f"ENHANCE_FILE skipped: {problem}")
            return
        if fallback is FallbackStrategy.ERROR:
            raise ActionError(problem[0].upper() + problem[1:])

        if not exists:
            self._record(await self.engine.create_file(action.path, ""), result)
        if modifier is None:
            result.warnings.append(f"ENHANCE_FILE created a stub for {action.path}: {problem}")
            return
        self._record(await modifier.execute(self.engine, action.path, action.params, context), result)

    async def _merge_config(
        self, action: MergeConfigAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        suffix = Path(action.path).suffix.lower()
        if suffix in JSON_SUFFIXES or suffix in YAML_SUFFIXES:
            name = "json-object-merger"
            params = {"propertiesToMerge": action.config, "mergeStrategy": action.strategy.value}
        elif suffix in MODULE_SUFFIXES:
            name = "js-config-merger"
            params = {"targetProperties": action.config, "mergeStrategy": action.strategy.value}
        else:
            raise ActionError(f"Cannot merge config into '{action.path}': unsupported file type")
        await self._apply_modifier(name, action.path, params, context, result)

    async def _wrap_config(
        self, action: WrapConfigAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        params = {
            "wrapperFunction": {"name": action.wrapper, "importFrom": action.import_from},
            "wrapperOptions": action.options,
        }
        await self._apply_modifier("js-export-wrapper", action.path, params, context, result)

    async def _extend_schema(
        self, action: ExtendSchemaAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        """Append table definitions to an existing schema module."""
        if not self._target_exists(action.path):
            raise ActionError(f"Schema file {action.path} does not exist")

        def _extend(module: ParsedModule) -> ParsedModule:
            module = module.insert_raw_imports(action.additional_imports)
            for table in action.tables:
                definition = table.definition.strip()
                if not definition.startswith("export"):
                    definition = f"export const {table.name} = {definition.rstrip(';')};"
                module = module.add_export(table.name, definition)
            return module

        self._record(await self.engine.modify_module_file(action.path, _extend), result)

    async def _apply_modifier(
        self,
        name: str,
        path: str,
        params: dict[str, Any],
        context: ProjectContext,
        result: BlueprintResult,
    ) -> None:
        modifier = self.modifiers.get(name)
        if modifier is None:
            raise ActionError(f"Modifier '{name}' is not registered")
        if not self._target_exists(path):
            raise ActionError(f"Target file {path} does not exist")
        self._record(await modifier.execute(self.engine, path, params, context), result)

    # ------------------------------------------------------------------
    # External process
    # ------------------------------------------------------------------

    async def _run_command_action(
        self, action: RunCommandAction, context: ProjectContext, variables: dict[str, Any], result: BlueprintResult
    ) -> None:
        """Run an argument vector; a non-zero exit fails the action.

        Commands run against real storage, so they see files that existed
        before the run but not the run's pending writes.  The working
        directory is created inside the project root when missing.
        """
        cwd = await self.engine.vfs.ensure_directory(action.working_dir)
        command = list(action.command)
        try:
            returncode, stdout, stderr = await self._run_command(
                command, cwd=cwd, timeout=self.config.command_timeout
            )
        except OSError as exc:
            raise ActionError(f"Cannot run '{format_command(command)}': {exc}") from exc
        if returncode != 0:
            detail = stderr or stdout or "no output"
            raise ActionError(
                f"Command '{format_command(command)}' exited with code {returncode}: {detail}"
            )
        self._trace(f"  ran {format_command(command)} in {cwd}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _target_exists(self, path: str) -> bool:
        try:
            return self.engine.file_exists(path)
        except VFSError as exc:
            raise ActionError(f"Invalid path '{path}': {exc}") from exc

    def _record(self, op: OperationResult, result: BlueprintResult) -> None:
        if not op.success:
            raise ActionError(op.error or f"Operation on {op.file_path} failed")
        try:
            result.add_file(self.engine.vfs.normalize(op.file_path))
        except VFSError:
            result.add_file(op.file_path)

    def _trace(self, message: str) -> None:
        if self.config.verbose:
            console.print(f"  [dim]{message}[/dim]", highlight=False)


def _describe_target(action: Any) -> str:
    return str(getattr(action, "path", None) or getattr(action, "target", None) or "")


def _parse_env_assignments(content: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        values[key.strip()] = value.strip()
    return values
