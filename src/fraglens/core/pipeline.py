"""Turns a document line into a :class:`ResolvedLine`.

Definition files go through the DSL engine; build scripts are executed by the
script host through the module cache. Failures become ``ResolvedLine.error``
and keep whatever was computed before the failing stage.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from ..dsl.parser import ParseResult, format_tokens
from ..host.scripts import ScriptLoadError
from .declarations import ensure_exported, find_declaration
from .documents import Document, Editor
from .models import FileKind, ResolvedLine
from .modules import ModuleCache

logger = logging.getLogger(__name__)

_STACK_LINE_RE = re.compile(r":(\d+):\d+")


class DslEngine(Protocol):
    def parse(self, text: str, path: str | Path | None = None) -> ParseResult: ...

    def resolve(self, result: ParseResult, name: str, validate_valence: bool = False) -> str: ...

    def decode(self, notation: str) -> str: ...

    def molecular_weight(self, notation: str) -> float: ...

    def formula(self, notation: str) -> str: ...


class ParseCache:
    """Parse result of one document revision."""

    def __init__(self, engine: DslEngine) -> None:
        self.engine = engine
        self._key: tuple[str, int] | None = None
        self._result: ParseResult | None = None

    @property
    def empty(self) -> bool:
        return self._result is None

    def clear(self) -> None:
        self._key = None
        self._result = None

    def get(self, document: Document) -> ParseResult:
        key = (document.uri, document.version)
        if self._result is None or self._key != key:
            path = document.path
            self._result = self.engine.parse(document.text, str(path) if path else None)
            self._key = key
        return self._result


def describe_load_error(exc: ScriptLoadError) -> str:
    for text in (exc.stack, str(exc)):
        if not text:
            continue
        m = _STACK_LINE_RE.search(text)
        if m:
            return f"Line {m.group(1)}: {exc}"
    return str(exc)


class ResolutionPipeline:
    def __init__(self, engine: DslEngine, modules: ModuleCache, editor: Editor) -> None:
        self.engine = engine
        self.modules = modules
        self.editor = editor

    async def resolve(
        self, document: Document, line: int, cache: ParseCache | None = None
    ) -> ResolvedLine | None:
        try:
            if document.kind is FileKind.BUILD:
                return await self._resolve_build(document, line)
            if document.kind is FileKind.DSL:
                return self._resolve_dsl(document, line, cache or ParseCache(self.engine))
        except Exception as exc:
            logger.debug("resolve failed for %s:%d", document.uri, line, exc_info=True)
            return ResolvedLine(line=line, error=str(exc))
        return None

    def _resolve_dsl(self, document: Document, line: int, cache: ParseCache) -> ResolvedLine | None:
        result = cache.get(document)
        text = document.line_at(line).strip()
        if not text or text.startswith("#"):
            return None

        # editor lines are 0-based, the engine's are 1-based
        definition = result.definition_at(line + 1)
        if definition is None:
            return None

        resolved = ResolvedLine(
            line=line, name=definition.name, expression=format_tokens(definition.tokens)
        )
        try:
            resolved.notation = self.engine.resolve(result, definition.name, validate_valence=False)
        except Exception as exc:
            resolved.error = str(exc)
            return resolved
        if not resolved.notation:
            resolved.error = "Could not resolve definition"
            return resolved

        try:
            resolved.derived_notation = self.engine.decode(resolved.notation)
        except Exception as exc:
            resolved.error = str(exc)
            return resolved

        try:
            resolved.molecular_weight = self.engine.molecular_weight(resolved.notation)
            resolved.formula = self.engine.formula(resolved.notation)
        except Exception as exc:
            resolved.error = str(exc)
        return resolved

    async def _resolve_build(self, document: Document, line: int) -> ResolvedLine | None:
        raw = document.line_at(line)
        text = raw.strip()
        if not text or text.startswith(("//", "/*")):
            return None
        declaration = find_declaration(raw)
        if declaration is None:
            return None

        path = document.path
        if path is None:
            return ResolvedLine(
                line=line, name=declaration.name, expression=text, error="Save the file to preview it"
            )
        document = await ensure_exported(self.editor, document, line)
        try:
            exports = await self.modules.load(path)
        except ScriptLoadError as exc:
            return ResolvedLine(
                line=line,
                name=declaration.name,
                expression=text,
                error=describe_load_error(exc),
            )

        value = exports.get(declaration.name)
        if value is None or not value.is_fragment:
            # not every export is a fragment
            return None
        return ResolvedLine(
            line=line,
            name=declaration.name,
            expression=text,
            derived_notation=value.notation,
            molecular_weight=value.molecular_weight,
            formula=value.formula,
        )
