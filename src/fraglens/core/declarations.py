from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..utils.trace import log_event
from .documents import Document, Editor

logger = logging.getLogger(__name__)

EXPORT_MARKER = "export "

_EXPORTED_RE = re.compile(r"export\s+const\s+(\w+)\s*=")
_BARE_RE = re.compile(r"^(\s*)const\s+(\w+)\s*=")


@dataclass(frozen=True)
class Declaration:
    name: str
    needs_export: bool
    column: int | None = None  # where the export marker goes


def find_declaration(line_text: str) -> Declaration | None:
    m = _EXPORTED_RE.search(line_text)
    if m:
        return Declaration(m.group(1), needs_export=False)
    m = _BARE_RE.match(line_text)
    if m:
        return Declaration(m.group(2), needs_export=True, column=len(m.group(1)))
    return None


def find_declaration_at(document: Document, line: int) -> Declaration | None:
    return find_declaration(document.line_at(line))


async def ensure_exported(editor: Editor, document: Document, line: int) -> Document:
    """Insert the export marker in front of a bare ``const`` on ``line``.

    The document is saved after the insertion so the script host reads the
    edited file. This write is not undone here.
    """
    declaration = find_declaration_at(document, line)
    if declaration is None or not declaration.needs_export:
        return document
    await editor.insert(document, line, declaration.column or 0, EXPORT_MARKER)
    await editor.save(document)
    logger.info("exported %s on line %d of %s", declaration.name, line + 1, document.uri)
    log_event("export_inserted", uri=document.uri, line=line, name=declaration.name)
    return document
