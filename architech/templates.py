"""Template handling for blueprint actions.

Two renderers live here:

* ``TemplateProcessor`` substitutes ``{{ dotted.path }}`` placeholders and
  ``{{#if path}}...{{else}}...{{/if}}`` blocks inside action fields (paths,
  file content, modifier params).  It is deliberately small and forgiving:
  a placeholder that does not resolve is left exactly as written, so source
  code containing ``{{ ... }}`` (JSX style objects, Vue templates) passes
  through untouched.
* ``TemplateRenderer`` renders whole Jinja2 template files for
  ``CREATE_FILE`` actions that reference a ``template`` instead of inline
  content.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from architech.utils import has_path, lookup


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_$][\w$-]*(?:\.[\w$-]+)*)\s*\}\}")
_WHOLE_PLACEHOLDER_RE = re.compile(r"^\s*\{\{\s*([A-Za-z_$][\w$-]*(?:\.[\w$-]+)*)\s*\}\}\s*$")

# Innermost block first: the body may not contain another opening tag.
_IF_BLOCK_RE = re.compile(
    r"\{\{#if\s+([^}]+?)\s*\}\}((?:(?!\{\{#if\s).)*?)\{\{/if\}\}",
    re.DOTALL,
)
_ELSE_TAG = "{{else}}"
_IF_CLOSE = "{{/if}}"


# ---------------------------------------------------------------------------
# TemplateProcessor
# ---------------------------------------------------------------------------


class TemplateProcessor:
    """Substitutes recipe-derived variables into strings.

    Stateless: every method is a pure function of its arguments.
    """

    def render(self, text: str, variables: Mapping[str, Any]) -> str:
        """Render conditional blocks, then placeholders."""
        if "{{" not in text:
            return text
        rendered = self._render_conditionals(text, variables)
        return _PLACEHOLDER_RE.sub(lambda m: self._substitute(m, variables), rendered)

    def render_value(self, value: Any, variables: Mapping[str, Any]) -> Any:
        """Render every string inside a nested structure.

        A string that consists of a single placeholder resolving to a list
        or a mapping is replaced by that value itself, so
        ``"{{ module.parameters.plugins }}"`` can inject a list into merged
        JSON.
        """
        if isinstance(value, str):
            whole = _WHOLE_PLACEHOLDER_RE.match(value)
            if whole and has_path(variables, whole.group(1)):
                resolved = lookup(variables, whole.group(1))
                if isinstance(resolved, (list, Mapping)):
                    return resolved
            return self.render(value, variables)
        if isinstance(value, list):
            return [self.render_value(item, variables) for item in value]
        if isinstance(value, Mapping):
            return {
                self.render(str(key), variables): self.render_value(item, variables)
                for key, item in value.items()
            }
        return value

    def evaluate(self, condition: str, variables: Mapping[str, Any]) -> bool:
        """Evaluate a condition expression.

        Accepted forms: ``path``, ``{{path}}``, ``!path``, ``true`` and
        ``false``.  Paths that do not resolve are falsy.
        """
        expr = condition.strip()
        wrapped = re.fullmatch(r"\{\{\s*(.*?)\s*\}\}", expr, re.DOTALL)
        if wrapped:
            expr = wrapped.group(1).strip()

        negate = False
        while expr.startswith("!"):
            negate = not negate
            expr = expr[1:].strip()

        lowered = expr.lower()
        if lowered in ("true", "false"):
            result = lowered == "true"
        else:
            result = is_truthy(lookup(variables, expr))
        return not result if negate else result

    def extract_variables(self, text: str) -> list[str]:
        """Return every dotted path referenced by placeholders or conditions."""
        found: set[str] = set()
        for match in _PLACEHOLDER_RE.finditer(text):
            if match.group(1) != "else":
                found.add(match.group(1))
        for match in re.finditer(r"\{\{#if\s+!*\s*([\w$.-]+)\s*\}\}", text):
            found.add(match.group(1))
        return sorted(found)

    def validate(self, text: str) -> list[str]:
        """Return a list of structural problems (empty when well-formed)."""
        problems: list[str] = []
        depth = 0
        for token in re.finditer(r"\{\{#if\s+[^}]+\}\}|\{\{/if\}\}|\{\{else\}\}", text):
            tag = token.group(0)
            if tag == _IF_CLOSE:
                depth -= 1
                if depth < 0:
                    problems.append(f"Unmatched {{{{/if}}}} at offset {token.start()}")
                    depth = 0
            elif tag == _ELSE_TAG:
                if depth == 0:
                    problems.append(f"{{{{else}}}} outside a conditional at offset {token.start()}")
            else:
                depth += 1
        if depth > 0:
            problems.append(f"{depth} unclosed {{{{#if}}}} block(s)")
        return problems

    # -- Internal -----------------------------------------------------------

    def _render_conditionals(self, text: str, variables: Mapping[str, Any]) -> str:
        previous = None
        while previous != text:
            previous = text
            text = _IF_BLOCK_RE.sub(lambda m: self._select_branch(m, variables), text)
        return text

    def _select_branch(self, match: re.Match[str], variables: Mapping[str, Any]) -> str:
        body = match.group(2)
        if _ELSE_TAG in body:
            truthy, falsy = body.split(_ELSE_TAG, 1)
        else:
            truthy, falsy = body, ""
        return truthy if self.evaluate(match.group(1), variables) else falsy

    @staticmethod
    def _substitute(match: re.Match[str], variables: Mapping[str, Any]) -> str:
        path = match.group(1)
        if not has_path(variables, path):
            return match.group(0)
        return format_value(lookup(variables, path))


def is_truthy(value: Any) -> bool:
    """Truthiness used by conditions.

    ``None``, ``False``, ``0``, empty collections and the strings ``""``,
    ``"false"`` and ``"0"`` are false; everything else is true.
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0")
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def format_value(value: Any) -> str:
    """Render a resolved variable into template text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 template files referenced by blueprints.

    Templates are looked up under ``template_dir`` and rendered with the
    same variables the placeholder processor sees (``project``, ``module``,
    ``paths``, ``modules``...).
    """

    def __init__(self, template_dir: str | Path) -> None:
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter

    def render(self, template_path: str, context: Mapping[str, Any]) -> str:
        """Render a single template file.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"nextjs/app/layout.tsx.j2"``).
            context: Variables available inside the template.

        Raises:
            jinja2.TemplateNotFound: If the template does not exist.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: Mapping[str, Any]) -> str:
        """Render an inline Jinja2 template string."""
        template = self.env.from_string(template_string)
        return template.render(**context)

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*."""
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*.j2")
        )


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
