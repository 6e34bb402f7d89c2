"""Parser for SELFIES definition files.

One statement per line::

    # comment
    import "rings.selfies"
    import [phenyl, pyridyl] from "aromatics.selfies"
    [methyl] = [C]
    [ethanol] = [methyl][C][O]       # references another definition
    [hexane] = repeat([C], 6)

Bracket tokens whose content is a lower-case identifier are references to
other definitions; every other bracket token is a SELFIES symbol. Positions in
issues are 1-based.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

_DEFINITION_RE = re.compile(r"^\s*\[([^\]]*)\]\s*=\s*(.*)$")
_IMPORT_ALL_RE = re.compile(r'^\s*import\s+"([^"]+)"\s*$')
_IMPORT_SOME_RE = re.compile(r'^\s*import\s+\[([^\]]*)\]\s+from\s+"([^"]+)"\s*$')
_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_BRACKET_RE = re.compile(r"\[[^\[\]\s]+\]")
_REPEAT_RE = re.compile(r"repeat\(\s*((?:\[[^\[\]\s]+\]\s*)+),\s*(-?\d+)\s*\)")

# lower-case SELFIES symbols that are not references
SELFIES_KEYWORDS = frozenset({"nop"})


@dataclass(frozen=True)
class RepeatCall:
    pattern: tuple[str, ...]
    count: int


Token = str | RepeatCall


@dataclass(frozen=True)
class Definition:
    name: str
    line: int
    column: int
    tokens: tuple[Token, ...]
    origin: str | None = None  # file the definition was imported from


@dataclass(frozen=True)
class ParseIssue:
    message: str
    line: int
    column: int
    type: str = "error"
    end_column: int | None = None
    code: str | None = None


@dataclass
class ParseResult:
    definitions: dict[str, Definition] = field(default_factory=dict)
    errors: list[ParseIssue] = field(default_factory=list)
    warnings: list[ParseIssue] = field(default_factory=list)
    path: str | None = None

    def local_definitions(self) -> list[Definition]:
        return [d for d in self.definitions.values() if d.origin is None]

    def definition_at(self, line: int) -> Definition | None:
        for definition in self.definitions.values():
            if definition.origin is None and definition.line == line:
                return definition
        return None


def is_reference(symbol: str) -> bool:
    return bool(_NAME_RE.match(symbol)) and symbol not in SELFIES_KEYWORDS


def references(definition: Definition) -> list[str]:
    names: list[str] = []
    for token in definition.tokens:
        pattern = token.pattern if isinstance(token, RepeatCall) else (token,)
        for symbol in pattern:
            inner = symbol[1:-1]
            if is_reference(inner):
                names.append(inner)
    return names


def format_tokens(tokens: tuple[Token, ...] | list[Token]) -> str:
    parts: list[str] = []
    for token in tokens:
        if isinstance(token, RepeatCall):
            parts.append(f"repeat({''.join(token.pattern)}, {token.count})")
        else:
            parts.append(str(token))
    return "".join(parts)


def _strip_comment(line: str) -> str:
    # '#' inside brackets is a triple bond, not a comment
    depth = 0
    for i, ch in enumerate(line):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        elif ch == "#" and depth == 0:
            return line[:i]
    return line


def _syntax(message: str, line: int, column: int, end_column: int | None = None) -> ParseIssue:
    return ParseIssue(message, line, column, "syntax", end_column=end_column, code="E_SYNTAX")


def _tokenize(
    body: str,
    line: int,
    offset: int,
    errors: list[ParseIssue],
    refs: list[tuple[str, int, int]],
) -> list[Token] | None:
    """Split a definition body; ``offset`` is the 0-based column of the body."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(body):
        if body[pos].isspace():
            pos += 1
            continue
        m = _BRACKET_RE.match(body, pos)
        if m:
            tokens.append(m.group(0))
            if is_reference(m.group(0)[1:-1]):
                refs.append((m.group(0)[1:-1], line, offset + pos + 1))
            pos = m.end()
            continue
        m = _REPEAT_RE.match(body, pos)
        if m:
            count = int(m.group(2))
            if count < 1:
                errors.append(
                    _syntax(
                        f"repeat count must be a positive integer, got {count}",
                        line,
                        offset + m.start(2) + 1,
                        offset + m.end(2) + 1,
                    )
                )
                return None
            pattern: list[str] = []
            for sym in _BRACKET_RE.finditer(m.group(1)):
                pattern.append(sym.group(0))
                if is_reference(sym.group(0)[1:-1]):
                    refs.append((sym.group(0)[1:-1], line, offset + m.start(1) + sym.start() + 1))
            tokens.append(RepeatCall(tuple(pattern), count))
            pos = m.end()
            continue
        errors.append(
            _syntax(f"Unexpected character '{body[pos]}'", line, offset + pos + 1, offset + pos + 2)
        )
        return None
    return tokens


def _find_cycle(name: str, definitions: dict[str, Definition]) -> list[str] | None:
    stack: list[str] = [name]
    seen: set[str] = set()

    def visit(current: str) -> list[str] | None:
        definition = definitions.get(current)
        if definition is None:
            return None
        for ref in references(definition):
            if ref == name:
                return [*stack, ref]
            if ref in seen or ref not in definitions:
                continue
            seen.add(ref)
            stack.append(ref)
            found = visit(ref)
            if found:
                return found
            stack.pop()
        return None

    return visit(name)


def _parse_import(
    line_text: str,
    line_no: int,
    path: Path | None,
    result: ParseResult,
    seen: frozenset[str],
) -> None:
    column = len(line_text) - len(line_text.lstrip()) + 1
    end = len(line_text.rstrip()) + 1
    m_all = _IMPORT_ALL_RE.match(line_text)
    m_some = _IMPORT_SOME_RE.match(line_text)
    if m_all is None and m_some is None:
        result.errors.append(
            _syntax('Expected import "path" or import [names] from "path"', line_no, column, end)
        )
        return
    target_text = m_all.group(1) if m_all else m_some.group(2)
    wanted = None
    if m_some:
        wanted = [n.strip().strip("[]") for n in m_some.group(1).split(",") if n.strip()]
    if path is None:
        result.errors.append(
            ParseIssue("Imports need a saved file", line_no, column, "error", end, "E_IMPORT")
        )
        return
    target = (path.parent / target_text).resolve()
    if str(target) in seen:
        result.errors.append(
            ParseIssue(
                f'Circular import of "{target_text}"', line_no, column, "circular", end, "E_IMPORT"
            )
        )
        return
    if not target.is_file():
        result.errors.append(
            ParseIssue(
                f'Cannot import "{target_text}": file not found',
                line_no,
                column,
                "error",
                end,
                "E_IMPORT",
            )
        )
        return
    imported = parse(target.read_text(encoding="utf-8"), target, seen | {str(path.resolve())})
    if imported.errors:
        result.errors.append(
            ParseIssue(
                f'Imported file "{target_text}" has {len(imported.errors)} error(s)',
                line_no,
                column,
                "error",
                end,
                "E_IMPORT",
            )
        )
    for name in wanted or []:
        if name not in imported.definitions:
            result.errors.append(
                ParseIssue(
                    f'"{target_text}" does not define [{name}]',
                    line_no,
                    column,
                    "undefined",
                    end,
                    "E_UNDEFINED",
                )
            )
    for name, definition in imported.definitions.items():
        if wanted is not None and name not in wanted:
            continue
        if name in result.definitions:
            result.errors.append(
                ParseIssue(
                    f"Import redefines [{name}]", line_no, column, "redefinition", end, "E_REDEFINITION"
                )
            )
            continue
        origin = definition.origin or str(target)
        result.definitions[name] = Definition(
            name, definition.line, definition.column, definition.tokens, origin
        )


def parse(
    text: str,
    path: str | Path | None = None,
    _seen: frozenset[str] = frozenset(),
) -> ParseResult:
    source = Path(path) if path is not None else None
    result = ParseResult(path=str(source) if source is not None else None)
    refs: list[tuple[str, int, int]] = []

    for line_no, raw in enumerate(text.split("\n"), start=1):
        line = _strip_comment(raw.rstrip("\r"))
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("import ") or stripped == "import":
            _parse_import(line, line_no, source, result, _seen)
            continue
        m = _DEFINITION_RE.match(line)
        indent = len(line) - len(line.lstrip()) + 1
        if m is None:
            result.errors.append(
                _syntax(
                    "Expected a definition of the form [name] = tokens",
                    line_no,
                    indent,
                    len(line.rstrip()) + 1,
                )
            )
            continue
        name = m.group(1)
        column = m.start(1)  # 1-based column of the opening bracket
        name_end = m.end(1) + 2
        if not is_reference(name):
            result.errors.append(
                _syntax(
                    f"Invalid definition name [{name}]: use lower-case letters, digits and '_'",
                    line_no,
                    column,
                    name_end,
                )
            )
            continue
        line_refs: list[tuple[str, int, int]] = []
        tokens = _tokenize(m.group(2), line_no, m.start(2), result.errors, line_refs)
        if tokens is None:
            continue
        if not tokens:
            result.errors.append(
                _syntax(f"Definition of [{name}] has no tokens", line_no, column, name_end)
            )
            continue
        if name in result.definitions:
            first = result.definitions[name]
            where = f"line {first.line}" if first.origin is None else f'"{first.origin}"'
            result.errors.append(
                ParseIssue(
                    f"Duplicate definition of [{name}] (first defined on {where})",
                    line_no,
                    column,
                    "redefinition",
                    end_column=name_end,
                    code="E_REDEFINITION",
                )
            )
            continue
        result.definitions[name] = Definition(name, line_no, column, tuple(tokens))
        refs.extend(line_refs)

    for ref, line_no, column in refs:
        if ref not in result.definitions:
            result.errors.append(
                ParseIssue(
                    f"Undefined reference [{ref}]",
                    line_no,
                    column,
                    "undefined",
                    end_column=column + len(ref) + 2,
                    code="E_UNDEFINED",
                )
            )

    for definition in result.local_definitions():
        cycle = _find_cycle(definition.name, result.definitions)
        if cycle:
            result.errors.append(
                ParseIssue(
                    f"Circular reference: {' -> '.join(cycle)}",
                    definition.line,
                    definition.column,
                    "circular",
                    end_column=definition.column + len(definition.name) + 2,
                    code="E_CIRCULAR",
                )
            )

    return result
