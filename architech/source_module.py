"""Parsed TypeScript/JavaScript modules and pure transforms over them.

``ParsedModule`` wraps a tree-sitter syntax tree of one source file.  It is
immutable: every transform returns a new ``ParsedModule`` whose text is the
original bytes with a handful of spans spliced in or replaced, so code the
transform does not target (comments, formatting, unusual syntax) survives
byte for byte.

Transforms are plain functions ``ParsedModule -> ParsedModule`` and can be
chained with ``compose``; the file modification engine owns reading and
writing the file around them.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser

ModuleTransform = Callable[["ParsedModule"], "ParsedModule"]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_TSX_SUFFIXES = {".tsx", ".jsx", ".js"}
_WRAPPER_NODES = {"parenthesized_expression", "satisfies_expression", "as_expression", "non_null_expression"}
_JSX_ELEMENTS = {"jsx_element", "jsx_self_closing_element"}

_PARSERS: dict[str, Parser] = {}


class ModuleTransformError(Exception):
    """Raised when a transform cannot find the construct it must edit."""


def _parser_for(dialect: str) -> Parser:
    """Return a cached parser for ``"typescript"`` or ``"tsx"``."""
    if dialect not in _PARSERS:
        if dialect == "tsx":
            language = Language(tstypescript.language_tsx())
        elif dialect == "typescript":
            language = Language(tstypescript.language_typescript())
        else:
            raise ValueError(f"Unsupported module dialect: {dialect}")
        parser = Parser()
        parser.language = language
        _PARSERS[dialect] = parser
    return _PARSERS[dialect]


def dialect_for(path: str | Path) -> str:
    return "tsx" if Path(path).suffix.lower() in _TSX_SUFFIXES else "typescript"


# ---------------------------------------------------------------------------
# Import specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportSpec:
    """An import declaration a module should contain.

    ``ImportSpec("react", named=("useState",))`` ensures
    ``import { useState } from 'react'``; with no bindings at all it ensures
    a side-effect import (``import './globals.css'``).
    """

    module: str
    named: tuple[str, ...] = ()
    default: Optional[str] = None
    namespace: Optional[str] = None
    type_only: bool = False

    @property
    def is_side_effect(self) -> bool:
        return not self.named and self.default is None and self.namespace is None


@dataclass
class _ImportInfo:
    node: Node
    source: str
    type_only: bool
    clause: Optional[Node] = None
    default: Optional[Node] = None
    named_node: Optional[Node] = None
    namespace: Optional[str] = None
    names: set[str] = field(default_factory=set)


# ---------------------------------------------------------------------------
# ParsedModule
# ---------------------------------------------------------------------------


class ParsedModule:
    """An immutable, parsed TypeScript/JavaScript source file."""

    def __init__(self, source: str, dialect: str = "typescript") -> None:
        self.dialect = dialect
        self._data = source.encode("utf-8")
        self._tree = _parser_for(dialect).parse(self._data)

    @classmethod
    def for_path(cls, path: str | Path, source: str) -> "ParsedModule":
        return cls(source, dialect_for(path))

    @property
    def text(self) -> str:
        return self._data.decode("utf-8")

    @property
    def root(self) -> Node:
        return self._tree.root_node

    @property
    def has_syntax_errors(self) -> bool:
        return self.root.has_error

    def node_text(self, node: Node) -> str:
        return self._data[node.start_byte:node.end_byte].decode("utf-8")

    def splice(self, edits: Iterable[tuple[int, int, str]]) -> "ParsedModule":
        """Return a new module with byte spans ``(start, end)`` replaced.

        Edits must not overlap; they are applied back to front so earlier
        offsets stay valid.
        """
        data = self._data
        for start, end, replacement in sorted(edits, key=lambda e: (e[0], e[1]), reverse=True):
            data = data[:start] + replacement.encode("utf-8") + data[end:]
        if data == self._data:
            return self
        return ParsedModule(data.decode("utf-8"), self.dialect)

    # -- Queries ------------------------------------------------------------

    def imports(self) -> list[_ImportInfo]:
        infos = []
        for node in self.root.named_children:
            if node.type == "import_statement":
                infos.append(self._describe_import(node))
        return infos

    def exported_names(self) -> set[str]:
        """Names declared with ``export`` at the top level."""
        names: set[str] = set()
        for node in self.root.named_children:
            if node.type != "export_statement":
                continue
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                names.update(self._declared_names(declaration))
            for child in node.named_children:
                if child.type == "export_clause":
                    for spec in child.named_children:
                        alias = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                        if alias is not None:
                            names.add(self.node_text(alias))
        return names

    def find_config_object(self, export_name: str = "default") -> Node:
        """Locate the object literal a config module exports.

        Follows ``export default``/``module.exports`` through identifiers,
        wrapper calls (``defineConfig({...})``) and ``satisfies``/``as``
        expressions.

        Raises:
            ModuleTransformError: If no object literal can be found.
        """
        if export_name == "default":
            target = self._default_export_value()
        else:
            target = self._variable_value(export_name)
        found = self._resolve_object(target) if target is not None else None
        if found is None:
            raise ModuleTransformError(
                f"No exported config object found for export '{export_name}'"
            )
        return found

    # -- Transforms ---------------------------------------------------------

    def add_import(self, spec: ImportSpec) -> "ParsedModule":
        """Ensure *spec* is imported, merging into an existing declaration
        from the same module when possible."""
        infos = self.imports()
        same_source = [i for i in infos if i.source == spec.module]

        if spec.is_side_effect:
            return self if same_source else self._insert_import_text(self._import_text(spec))

        if spec.namespace is not None:
            if any(i.namespace == spec.namespace for i in same_source):
                return self
            return self._insert_import_text(self._import_text(spec))

        candidates = [
            i for i in same_source if i.type_only == spec.type_only and i.namespace is None
        ]
        have_names = set().union(*(i.names for i in candidates)) if candidates else set()
        missing = tuple(n for n in dict.fromkeys(spec.named) if n not in have_names)
        need_default = spec.default is not None and not any(
            i.default is not None and self.node_text(i.default) == spec.default
            for i in candidates
        )
        if not missing and not need_default:
            return self
        if not candidates:
            return self._insert_import_text(
                self._import_text(ImportSpec(spec.module, missing, spec.default, None, spec.type_only))
            )

        target = candidates[0]
        edits: list[tuple[int, int, str]] = []
        leftover_default = spec.default if need_default else None
        leftover_named: tuple[str, ...] = ()

        if need_default and target.default is None and target.clause is not None:
            edits.append((target.clause.start_byte, target.clause.start_byte, f"{spec.default}, "))
            leftover_default = None

        if missing:
            if target.named_node is not None:
                edits.append(self._named_import_insertion(target.named_node, missing))
            elif target.default is not None:
                names = ", ".join(missing)
                edits.append((target.default.end_byte, target.default.end_byte, f", {{ {names} }}"))
            else:
                leftover_named = missing

        module = self.splice(edits)
        if leftover_default is not None or leftover_named:
            module = module._insert_import_text(
                module._import_text(
                    ImportSpec(spec.module, leftover_named, leftover_default, None, spec.type_only)
                )
            )
        return module

    def insert_raw_imports(self, lines: Iterable[str]) -> "ParsedModule":
        """Insert verbatim import lines unless an equal import declaration exists."""
        module = self
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            present = {_normalise_code(module.node_text(i.node)) for i in module.imports()}
            if not set(self._statement_keys(stripped)) <= present:
                module = module._insert_import_text(stripped)
        return module

    def append_statements(self, statements: Iterable[str]) -> "ParsedModule":
        """Append top-level statements that the module does not already contain.

        A statement counts as present only when an equal top-level node
        exists (whitespace and trailing semicolons ignored).
        """
        present = {_normalise_code(self.node_text(node)) for node in self.root.named_children}
        text = self.text
        for statement in statements:
            stripped = statement.strip()
            if not stripped:
                continue
            keys = self._statement_keys(stripped)
            if set(keys) <= present:
                continue
            if text and not text.endswith("\n"):
                text += "\n"
            text += stripped + "\n"
            present.update(keys)
        if text == self.text:
            return self
        return ParsedModule(text, self.dialect)

    def add_export(self, name: str, content: str) -> "ParsedModule":
        """Append an export declaration unless *name* is already exported."""
        if name in self.exported_names():
            return self
        return self.append_statements([content])

    def merge_config_object(
        self,
        values: Mapping[str, Any],
        strategy: str = "deep",
        export_name: str = "default",
    ) -> "ParsedModule":
        """Merge *values* into the exported config object literal.

        ``deep`` recurses into nested object literals, ``shallow`` replaces
        top-level properties wholesale and ``replace`` swaps the entire
        object for *values*.
        """
        obj = self.find_config_object(export_name)
        if strategy == "replace":
            return self.splice([(obj.start_byte, obj.end_byte, to_js_literal(dict(values), self._line_indent(obj)))])
        if strategy not in ("deep", "shallow"):
            raise ModuleTransformError(f"Unknown merge strategy '{strategy}'")
        edits: list[tuple[int, int, str]] = []
        self._merge_object(obj, values, strategy == "deep", edits)
        return self.splice(edits)

    def wrap_default_export(
        self,
        wrapper: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "ParsedModule":
        """Turn ``export default X`` into ``export default wrapper(X)``.

        Already-wrapped exports are left alone.
        """
        target = self._default_export_value()
        if target is None:
            raise ModuleTransformError("Module has no default export to wrap")
        if target.type == "call_expression":
            function = target.child_by_field_name("function")
            if function is not None and self.node_text(function) == wrapper:
                return self
        inner = self.node_text(target)
        if options:
            replacement = f"{wrapper}({inner}, {to_js_literal(dict(options), self._line_indent(target))})"
        else:
            replacement = f"{wrapper}({inner})"
        return self.splice([(target.start_byte, target.end_byte, replacement)])

    def wrap_jsx_element(self, target: str, wrapper: str, props: str = "") -> "ParsedModule":
        """Wrap every outermost ``<target>`` element in ``<wrapper props>``.

        The wrapped element moves one level (two spaces) deeper.  Elements
        whose parent already is a ``<wrapper>`` are left alone.

        Raises:
            ModuleTransformError: If the module has no ``<target>`` element.
        """
        opening = f"<{wrapper} {props}>" if props else f"<{wrapper}>"
        found = False
        edits: list[tuple[int, int, str]] = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.type in _JSX_ELEMENTS and self._jsx_tag_name(node) == target:
                found = True
                parent = node.parent
                if parent is not None and parent.type == "jsx_element" and self._jsx_tag_name(parent) == wrapper:
                    continue
                indent = self._line_indent(node)
                lines = self.node_text(node).split("\n")
                inner = "\n".join([lines[0]] + [f"  {line}" if line.strip() else line for line in lines[1:]])
                edits.append(
                    (node.start_byte, node.end_byte, f"{opening}\n{indent}  {inner}\n{indent}</{wrapper}>")
                )
                continue
            stack.extend(node.named_children)
        if not found:
            raise ModuleTransformError(f"No <{target}> element found")
        return self.splice(edits)

    def _jsx_tag_name(self, element: Node) -> Optional[str]:
        tag = element
        if element.type == "jsx_element":
            tag = element.child_by_field_name("open_tag") or next(
                (c for c in element.named_children if c.type == "jsx_opening_element"), None
            )
            if tag is None:
                return None
        name = tag.child_by_field_name("name")
        return self.node_text(name) if name is not None else None

    def _statement_keys(self, snippet: str) -> list[str]:
        """Normalised text of each top-level node in *snippet*."""
        parsed = ParsedModule(snippet, self.dialect)
        keys = [_normalise_code(parsed.node_text(node)) for node in parsed.root.named_children]
        return keys or [_normalise_code(snippet)]

    # -- Internal: imports --------------------------------------------------

    def _describe_import(self, node: Node) -> _ImportInfo:
        source_node = node.child_by_field_name("source")
        source = self.node_text(source_node)[1:-1] if source_node is not None else ""
        info = _ImportInfo(
            node=node,
            source=source,
            type_only=any(not c.is_named and c.type == "type" for c in node.children),
        )
        for child in node.named_children:
            if child.type != "import_clause":
                continue
            info.clause = child
            for part in child.named_children:
                if part.type == "identifier":
                    info.default = part
                elif part.type == "named_imports":
                    info.named_node = part
                    for spec in part.named_children:
                        if spec.type == "import_specifier":
                            name = spec.child_by_field_name("name")
                            if name is not None:
                                info.names.add(self.node_text(name))
                elif part.type == "namespace_import":
                    idents = [c for c in part.named_children if c.type == "identifier"]
                    if idents:
                        info.namespace = self.node_text(idents[-1])
        return info

    def _named_import_insertion(self, named_node: Node, names: tuple[str, ...]) -> tuple[int, int, str]:
        specs = [c for c in named_node.named_children if c.type == "import_specifier"]
        if specs:
            anchor = specs[-1].end_byte
            return (anchor, anchor, "".join(f", {n}" for n in names))
        anchor = named_node.start_byte + 1
        return (anchor, named_node.end_byte - 1, f" {', '.join(names)} ")

    def _import_text(self, spec: ImportSpec) -> str:
        quote, semicolon = self._import_style()
        source = f"{quote}{spec.module}{quote}"
        keyword = "import type" if spec.type_only else "import"
        if spec.is_side_effect:
            return f"import {source}{semicolon}"
        if spec.namespace is not None:
            return f"{keyword} * as {spec.namespace} from {source}{semicolon}"
        bindings = []
        if spec.default:
            bindings.append(spec.default)
        if spec.named:
            bindings.append("{ " + ", ".join(spec.named) + " }")
        return f"{keyword} {', '.join(bindings)} from {source}{semicolon}"

    def _import_style(self) -> tuple[str, str]:
        infos = self.imports()
        if not infos:
            return "'", ";"
        last = infos[-1].node
        source_node = last.child_by_field_name("source")
        quote = self.node_text(source_node)[0] if source_node is not None else "'"
        semicolon = ";" if self.node_text(last).rstrip().endswith(";") else ""
        return quote, semicolon

    def _insert_import_text(self, statement: str) -> "ParsedModule":
        infos = self.imports()
        if infos:
            anchor = infos[-1].node.end_byte
            return self.splice([(anchor, anchor, "\n" + statement)])

        directives = []
        for node in self.root.named_children:
            if node.type == "comment":
                continue
            if node.type == "expression_statement" and node.named_children and node.named_children[0].type == "string":
                directives.append(node)
                continue
            break
        if directives:
            anchor = directives[-1].end_byte
            return self.splice([(anchor, anchor, "\n" + statement)])
        return self.splice([(0, 0, statement + "\n")])

    # -- Internal: declarations and config objects --------------------------

    def _declared_names(self, declaration: Node) -> set[str]:
        names: set[str] = set()
        if declaration.type in ("lexical_declaration", "variable_declaration"):
            for declarator in declaration.named_children:
                if declarator.type == "variable_declarator":
                    name = declarator.child_by_field_name("name")
                    if name is not None:
                        names.add(self.node_text(name))
        else:
            name = declaration.child_by_field_name("name")
            if name is not None:
                names.add(self.node_text(name))
        return names

    def _default_export_value(self) -> Optional[Node]:
        for node in self.root.named_children:
            if node.type == "export_statement" and any(
                not c.is_named and c.type == "default" for c in node.children
            ):
                value = node.child_by_field_name("value")
                if value is not None:
                    return value
        for node in self.root.named_children:
            if node.type != "expression_statement" or not node.named_children:
                continue
            expr = node.named_children[0]
            if expr.type == "assignment_expression":
                left = expr.child_by_field_name("left")
                if left is not None and self.node_text(left) == "module.exports":
                    return expr.child_by_field_name("right")
        return None

    def _variable_value(self, name: str) -> Optional[Node]:
        for node in self.root.named_children:
            declaration = node
            if node.type == "export_statement":
                declaration = node.child_by_field_name("declaration")
                if declaration is None:
                    continue
            if declaration.type not in ("lexical_declaration", "variable_declaration"):
                continue
            for declarator in declaration.named_children:
                if declarator.type != "variable_declarator":
                    continue
                ident = declarator.child_by_field_name("name")
                if ident is not None and self.node_text(ident) == name:
                    return declarator.child_by_field_name("value")
        return None

    def _resolve_object(self, node: Node, depth: int = 0) -> Optional[Node]:
        if depth > 8:
            return None
        if node.type == "object":
            return node
        if node.type in _WRAPPER_NODES:
            inner = node.named_children[0] if node.named_children else None
            return self._resolve_object(inner, depth + 1) if inner is not None else None
        if node.type == "identifier":
            value = self._variable_value(self.node_text(node))
            return self._resolve_object(value, depth + 1) if value is not None else None
        if node.type == "call_expression":
            arguments = node.child_by_field_name("arguments")
            if arguments is None:
                return None
            for arg in arguments.named_children:
                found = self._resolve_object(arg, depth + 1)
                if found is not None:
                    return found
        return None

    def _property_key(self, node: Node) -> Optional[str]:
        if node.type == "shorthand_property_identifier":
            return self.node_text(node)
        if node.type != "pair":
            return None
        key = node.child_by_field_name("key")
        if key is None:
            return None
        text = self.node_text(key)
        if key.type == "string":
            return text[1:-1]
        return text

    def _merge_object(
        self,
        obj: Node,
        values: Mapping[str, Any],
        deep: bool,
        edits: list[tuple[int, int, str]],
    ) -> None:
        properties = [c for c in obj.named_children if c.type != "comment"]
        by_key = {}
        for prop in properties:
            key = self._property_key(prop)
            if key is not None:
                by_key[key] = prop

        indent = self._property_indent(obj, properties)
        additions: list[str] = []
        for key, value in values.items():
            prop = by_key.get(key)
            if prop is None:
                additions.append(f"{_js_key(key)}: {to_js_literal(value, indent)}")
                continue
            if prop.type == "shorthand_property_identifier":
                edits.append((prop.start_byte, prop.end_byte, f"{_js_key(key)}: {to_js_literal(value, indent)}"))
                continue
            value_node = prop.child_by_field_name("value")
            if deep and isinstance(value, Mapping) and value_node is not None and value_node.type == "object":
                self._merge_object(value_node, value, deep, edits)
            elif value_node is not None:
                edits.append((value_node.start_byte, value_node.end_byte, to_js_literal(value, indent)))

        if not additions:
            return
        if not properties:
            fresh = {k: v for k, v in values.items() if k not in by_key}
            edits.append((obj.start_byte, obj.end_byte, to_js_literal(fresh, self._line_indent(obj))))
            return

        last = properties[-1]
        trailing_comma = None
        seen_last = False
        for child in obj.children:
            if child == last:
                seen_last = True
            elif seen_last and child.type == ",":
                trailing_comma = child
                break
        multiline = obj.start_point[0] != obj.end_point[0]

        if trailing_comma is not None:
            anchor = trailing_comma.end_byte
            sep = f"\n{indent}" if multiline else " "
            text = "".join(f"{sep}{entry}," for entry in additions)
        else:
            anchor = last.end_byte
            sep = f",\n{indent}" if multiline else ", "
            text = "".join(f"{sep}{entry}" for entry in additions)
        edits.append((anchor, anchor, text))

    def _line_indent(self, node: Node) -> str:
        line_start = self._data.rfind(b"\n", 0, node.start_byte) + 1
        line = self._data[line_start:node.start_byte].decode("utf-8")
        return line[: len(line) - len(line.lstrip())]

    def _property_indent(self, obj: Node, properties: list[Node]) -> str:
        if properties and properties[0].start_point[0] != obj.start_point[0]:
            return self._line_indent(properties[0])
        return self._line_indent(obj) + "  "


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def compose(*transforms: ModuleTransform) -> ModuleTransform:
    """Chain transforms left to right into a single transform."""

    def _composed(module: ParsedModule) -> ParsedModule:
        for transform in transforms:
            module = transform(module)
        return module

    return _composed


def _normalise_code(code: str) -> str:
    return re.sub(r"\s+", " ", code).strip().rstrip(";").rstrip()


def _js_key(key: str) -> str:
    return key if _IDENTIFIER_RE.match(key) else _js_string(key)


def _js_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def to_js_literal(value: Any, indent: str = "") -> str:
    """Serialise plain data as a JavaScript expression.

    Objects are written one property per line at ``indent`` + two spaces,
    short scalar arrays stay on one line.
    """
    inner = indent + "  "
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        body = ",\n".join(
            f"{inner}{_js_key(str(k))}: {to_js_literal(v, inner)}" for k, v in value.items()
        )
        return "{\n" + body + f",\n{indent}}}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if all(not isinstance(v, (Mapping, list, tuple)) for v in value):
            return "[" + ", ".join(to_js_literal(v, indent) for v in value) + "]"
        body = ",\n".join(f"{inner}{to_js_literal(v, inner)}" for v in value)
        return "[\n" + body + f",\n{indent}]"
    if isinstance(value, str):
        return _js_string(value)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)
