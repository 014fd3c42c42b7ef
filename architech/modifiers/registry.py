"""Modifier base class and the name-keyed registry.

A modifier is one reusable structured-editing strategy (merge a JSON
document, add imports to a module, merge env files...).  Blueprints invoke
modifiers by name through ``ENHANCE_FILE``.  Modifiers only ever touch files
through the ``FileModificationEngine`` they are handed.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Iterator, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from architech.models import OperationResult, ProjectContext
from architech.utils import format_validation_error

if TYPE_CHECKING:
    from architech.engine import FileModificationEngine


class ModifierError(Exception):
    """Raised inside a modifier when it cannot apply its edit."""


class ModifierParams(BaseModel):
    """Base class for modifier parameter models (camelCase aliases allowed)."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class Modifier:
    """Base class for all modifiers.

    Subclasses set ``name``, ``params_model`` and optionally
    ``supported_file_types`` (lower-case suffixes), and implement ``apply``.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    supported_file_types: ClassVar[tuple[str, ...]] = ()
    params_model: ClassVar[type[ModifierParams]] = ModifierParams

    async def execute(
        self,
        engine: "FileModificationEngine",
        path: str,
        params: dict[str, Any],
        context: ProjectContext,
    ) -> OperationResult:
        """Validate *params* and apply the modifier to *path*.

        Never raises for invalid params, unsupported files or
        ``ModifierError``; those become a failed ``OperationResult``.
        """
        try:
            parsed = self.params_model.model_validate(params or {})
        except ValidationError as exc:
            return OperationResult.failure(
                path, f"Invalid params for modifier '{self.name}': {format_validation_error(exc)}"
            )

        suffix = Path(path).suffix.lower()
        if self.supported_file_types and suffix not in self.supported_file_types:
            return OperationResult.failure(
                path,
                f"Modifier '{self.name}' does not support '{suffix or Path(path).name}' files "
                f"(supported: {', '.join(self.supported_file_types)})",
            )

        try:
            return await self.apply(engine, path, parsed, context)
        except ModifierError as exc:
            return OperationResult.failure(path, f"{self.name}: {exc}")

    async def apply(
        self,
        engine: "FileModificationEngine",
        path: str,
        params: Any,
        context: ProjectContext,
    ) -> OperationResult:
        raise NotImplementedError


class ModifierRegistry:
    """Name -> modifier lookup used by the blueprint interpreter."""

    def __init__(self, modifiers: Optional[list[Modifier]] = None) -> None:
        self._modifiers: dict[str, Modifier] = {}
        for modifier in modifiers or []:
            self.register(modifier)

    def register(self, modifier: Modifier, replace: bool = False) -> None:
        """Add *modifier* under its ``name``.

        Raises:
            ValueError: If the name is empty or already taken and *replace*
                is not set.
        """
        if not modifier.name:
            raise ValueError(f"{type(modifier).__name__} has no name")
        if modifier.name in self._modifiers and not replace:
            raise ValueError(f"Modifier '{modifier.name}' is already registered")
        self._modifiers[modifier.name] = modifier

    def get(self, name: str) -> Optional[Modifier]:
        return self._modifiers.get(name)

    def names(self) -> list[str]:
        return sorted(self._modifiers)

    def __contains__(self, name: object) -> bool:
        return name in self._modifiers

    def __iter__(self) -> Iterator[Modifier]:
        return iter(self._modifiers.values())

    def __len__(self) -> int:
        return len(self._modifiers)

