from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any


class FileKind(str, Enum):
    DSL = "dsl"
    BUILD = "build-format"
    UNSUPPORTED = "unsupported"


class Severity(IntEnum):
    # Same numbering as the LSP DiagnosticSeverity enum.
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @staticmethod
    def on_line(line: int, start: int, end: int) -> Range:
        return Range(Position(line, start), Position(line, end))


@dataclass(frozen=True)
class RelatedInformation:
    message: str
    range: Range | None = None
    uri: str | None = None


@dataclass
class Diagnostic:
    range: Range
    message: str
    severity: Severity
    source: str
    code: str | None = None
    related: list[RelatedInformation] = field(default_factory=list)
    related_fix: str | None = None
    unnecessary: bool = False


@dataclass
class ResolvedLine:
    """What the preview shows for one cursor line."""

    line: int
    name: str | None = None
    expression: str = ""
    notation: str | None = None
    derived_notation: str | None = None
    molecular_weight: float | None = None
    formula: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_payload(self) -> dict[str, Any]:
        # camelCase keys for the editor client
        return {
            "line": self.line,
            "name": self.name,
            "expression": self.expression,
            "notation": self.notation,
            "derivedNotation": self.derived_notation,
            "molecularWeight": self.molecular_weight,
            "formula": self.formula,
            "error": self.error,
        }
