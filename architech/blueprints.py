"""Blueprint loading and lookup by module identifier.

Blueprints are static YAML/JSON documents.  ``validate_blueprint`` turns a
raw mapping into an immutable ``Blueprint`` and reports unknown or malformed
actions with their position before anything is executed.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from architech.models import ActionType, Blueprint
from architech.utils import format_validation_error, load_document

BLUEPRINT_SUFFIXES = (".yaml", ".yml", ".json")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class InvalidBlueprintError(Exception):
    """Raised when a blueprint document is malformed."""

    def __init__(self, blueprint_id: str, message: str) -> None:
        self.blueprint_id = blueprint_id
        super().__init__(f"Invalid blueprint '{blueprint_id}': {message}")


class BlueprintNotFoundError(Exception):
    """Raised when no blueprint exists for a module identifier."""

    def __init__(self, module_id: str, message: str = "") -> None:
        self.module_id = module_id
        super().__init__(message or f"No blueprint found for module '{module_id}'")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_blueprint(data: Blueprint | Mapping[str, Any]) -> Blueprint:
    """Validate a raw blueprint mapping.

    Raises:
        InvalidBlueprintError: On an unknown action type or any missing or
            invalid field.
    """
    if isinstance(data, Blueprint):
        return data
    if not isinstance(data, Mapping):
        raise InvalidBlueprintError("?", f"expected a mapping, got {type(data).__name__}")

    blueprint_id = str(data.get("id", "?"))
    actions = data.get("actions", [])
    if not isinstance(actions, list):
        raise InvalidBlueprintError(blueprint_id, "'actions' must be a list")

    known = {member.value for member in ActionType}
    for position, action in enumerate(actions, 1):
        if not isinstance(action, Mapping):
            raise InvalidBlueprintError(blueprint_id, f"action {position} is not a mapping")
        action_type = action.get("type")
        if action_type is None:
            raise InvalidBlueprintError(blueprint_id, f"action {position} has no 'type'")
        if action_type not in known:
            raise InvalidBlueprintError(
                blueprint_id, f"action {position} has unknown type '{action_type}'"
            )

    try:
        return Blueprint.model_validate(data)
    except ValidationError as exc:
        raise InvalidBlueprintError(blueprint_id, format_validation_error(exc)) from exc


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------


class BlueprintRegistry(Protocol):
    def get(self, module_id: str) -> Blueprint: ...


class InMemoryBlueprintRegistry:
    """Blueprints held in a dict; handy for tests and embedding."""

    def __init__(self, blueprints: Mapping[str, Blueprint | Mapping[str, Any]] | None = None) -> None:
        self._blueprints: dict[str, Blueprint | Mapping[str, Any]] = dict(blueprints or {})

    def get(self, module_id: str) -> Blueprint:
        if module_id not in self._blueprints:
            raise BlueprintNotFoundError(module_id)
        return validate_blueprint(self._blueprints[module_id])


class DirectoryBlueprintRegistry:
    """Loads ``<root>/<id>.yaml`` (or ``.yml``/``.json``) or
    ``<root>/<id>/blueprint.yaml`` on demand."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._cache: dict[str, Blueprint] = {}

    def candidates(self, module_id: str) -> list[Path]:
        if ".." in Path(module_id).parts:
            raise BlueprintNotFoundError(module_id, f"Invalid module id '{module_id}'")
        paths = [self.root / f"{module_id}{suffix}" for suffix in BLUEPRINT_SUFFIXES]
        paths += [self.root / module_id / f"blueprint{suffix}" for suffix in BLUEPRINT_SUFFIXES]
        return paths

    def get(self, module_id: str) -> Blueprint:
        if module_id in self._cache:
            return self._cache[module_id]
        for path in self.candidates(module_id):
            if not path.is_file():
                continue
            try:
                blueprint = validate_blueprint(load_document(path))
            except (ValueError, InvalidBlueprintError) as exc:
                raise BlueprintNotFoundError(module_id, f"Cannot load blueprint {path}: {exc}") from exc
            self._cache[module_id] = blueprint
            return blueprint
        raise BlueprintNotFoundError(module_id)

    def available(self) -> list[str]:
        """Identifiers of every blueprint found under ``root``."""
        if not self.root.is_dir():
            return []
        found: set[str] = set()
        for path in self.root.rglob("*"):
            if path.suffix not in BLUEPRINT_SUFFIXES or not path.is_file():
                continue
            rel = path.relative_to(self.root)
            if path.stem == "blueprint" and len(rel.parts) > 1:
                found.add(rel.parent.as_posix())
            else:
                found.add(rel.with_suffix("").as_posix())
        return sorted(found)
