"""
=============================================================================
TEMPLATE ENGINES
=============================================================================

Extra.template(tag, path, locals) looks up an engine by tag, compiles the
template source once (the compiled form is cached under "_<tag>:<path>")
and renders it with the handler's locals:

    extra.template("format", "views/hello.txt", {"name": "Ada"})

        ┌────────────┐  compile (first call only)  ┌──────────────┐
        │ file text  │ ──────────────────────────► │  compiled    │ ─┐
        └────────────┘                             └──────────────┘  │
                                                                     │ render
                                         {"name": "Ada"} ────────────┤
                                                                     ▼
                                                              "Hello, Ada!"

Two engines ship with routekit, both built on the standard library:

    format     str.format_map          "Hello, {name}!"
    template   string.Template         "Hello, $name!"

Anything else (an embedded-Python engine, Mustache, ...) is plugged in
with App.add_engine(tag, engine).

=============================================================================
"""

from abc import ABC, abstractmethod
from string import Template
from typing import Any, Dict, Mapping


class TemplateEngine(ABC):
    """
    Render capability used by Extra.template().

    Subclasses split the work in two so that the expensive part can be
    cached: compile() runs once per template file, render() once per
    request.
    """

    def compile(self, source: str) -> Any:
        """Turn template source into a reusable compiled form. Identity by default."""
        return source

    @abstractmethod
    def render(self, compiled: Any, context: Mapping[str, Any]) -> str:
        """Render a compiled template with the given variables."""


class FormatEngine(TemplateEngine):
    """str.format templates: "Hello, {name}!"."""

    def render(self, compiled: str, context: Mapping[str, Any]) -> str:
        return compiled.format_map(context)


class StringTemplateEngine(TemplateEngine):
    """string.Template templates: "Hello, $name!". Missing names raise KeyError."""

    def compile(self, source: str) -> Template:
        return Template(source)

    def render(self, compiled: Template, context: Mapping[str, Any]) -> str:
        return compiled.substitute(context)


def builtin_engines() -> Dict[str, TemplateEngine]:
    """Fresh instances of the engines every App starts with."""
    return {
        "format": FormatEngine(),
        "template": StringTemplateEngine(),
    }
