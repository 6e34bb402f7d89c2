"""Translation of engine positions and issue categories into editor terms.

Engines report 1-based lines and columns; the editor counts from 0. Every
diagnostic-producing path goes through these helpers.
"""

from __future__ import annotations

from .models import Position, Range, Severity

SEVERITY_BY_CATEGORY: dict[str, Severity] = {
    "error": Severity.ERROR,
    "syntax": Severity.ERROR,
    "undefined": Severity.ERROR,
    "circular": Severity.ERROR,
    "redefinition": Severity.ERROR,
    "warning": Severity.WARNING,
    "chemistry": Severity.WARNING,
    "info": Severity.INFORMATION,
    "hint": Severity.HINT,
}


def severity_for(category: str | None) -> Severity:
    if not category:
        return Severity.ERROR
    return SEVERITY_BY_CATEGORY.get(category, Severity.ERROR)


def to_editor_position(line: int | None, column: int | None) -> Position:
    editor_line = max(line - 1, 0) if line is not None else 0
    editor_column = max(column - 1, 0) if column is not None else 0
    return Position(editor_line, editor_column)


def to_editor_range(line: int | None, column: int | None, end_column: int | None = None) -> Range:
    start = to_editor_position(line, column)
    if end_column is None:
        end = start.character + 1
    else:
        end = max(end_column - 1, start.character)
    return Range(start, Position(start.line, end))
