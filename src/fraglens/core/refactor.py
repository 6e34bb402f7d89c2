"""Rewrite a build-script fragment as explicit constructor calls.

Experimental: the fragment's own ``toCode()`` does the generation, so complex
structures may fail. Every failure raises :class:`RefactorError` before the
document is edited.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..host.scripts import ScriptLoadError
from ..utils.trace import log_event
from .declarations import ensure_exported, find_declaration_at
from .documents import Document, Editor
from .models import FileKind
from .modules import ModuleCache

logger = logging.getLogger(__name__)

LIBRARY = "smiles-js"
CONSTRUCTORS = ("Ring", "Linear", "FusedRing", "Molecule")

_LIBRARY_IMPORT_RE = re.compile(r"import\s*\{([^}]+)\}\s*from\s*['\"]smiles-js['\"]")


class RefactorError(RuntimeError):
    pass


@dataclass
class RefactorResult:
    name: str
    code: str
    import_statement: str | None

    @property
    def message(self) -> str:
        return f'Refactored "{self.name}" to constructor code'


def used_constructors(code: str) -> list[str]:
    return [c for c in CONSTRUCTORS if f"{c}(" in code]


def existing_imports(text: str) -> set[str]:
    names: set[str] = set()
    for m in _LIBRARY_IMPORT_RE.finditer(text):
        for part in m.group(1).split(","):
            # an aliased specifier binds only its local name
            name = re.split(r"\s+as\s+", part.strip())[-1].strip()
            if name:
                names.add(name)
    return names


def import_statement(needed: list[str], existing: set[str]) -> str | None:
    missing = [c for c in needed if c not in existing]
    if not missing:
        return None
    return f"import {{ {', '.join(missing)} }} from '{LIBRARY}';\n"


def import_insert_line(text: str) -> int:
    last_import = -1
    for i, raw in enumerate(text.split("\n")):
        line = raw.strip()
        if line.startswith("import "):
            last_import = i
        elif line and not line.startswith(("//", "/*")) and last_import >= 0:
            break
    return last_import + 1


class RefactorGenerator:
    def __init__(self, modules: ModuleCache, editor: Editor) -> None:
        self.modules = modules
        self.editor = editor

    async def refactor(self, document: Document, line: int) -> RefactorResult:
        if document.kind is not FileKind.BUILD:
            raise RefactorError("This command only works in .smiles.js files")
        declaration = find_declaration_at(document, line)
        if declaration is None:
            raise RefactorError("No const declaration found on the current line")
        name = declaration.name

        path = document.path
        if path is None:
            raise RefactorError("Save the file before refactoring")
        if declaration.needs_export:
            await ensure_exported(self.editor, document, line)
        else:
            # the script host reads the file, not the buffer
            await self.editor.save(document)
        text = document.text

        try:
            exports = await self.modules.load(path)
        except ScriptLoadError as exc:
            raise RefactorError(f'Could not load export "{name}": {exc}') from exc
        value = exports.get(name)
        if value is None:
            raise RefactorError(f'Could not load export "{name}"')
        if not value.can_generate_code:
            raise RefactorError(f'Export "{name}" does not have a toCode() method')
        try:
            code = await value.to_code(name)
        except Exception as exc:
            raise RefactorError(f"Failed to generate code: {exc}") from exc

        statement = import_statement(used_constructors(code), existing_imports(text))
        inserts = [(line + 1, f"\n// Refactored from {name}:\n{code}\n")]
        if statement:
            inserts.append((import_insert_line(text), statement))
        # bottom-up so earlier inserts do not shift later positions
        for at, snippet in sorted(inserts, key=lambda item: item[0], reverse=True):
            await self.editor.insert(document, at, 0, snippet)

        logger.info("refactored %s in %s", name, document.uri)
        log_event("refactor", uri=document.uri, line=line, name=name, imports=statement)
        return RefactorResult(name=name, code=code, import_statement=statement)
