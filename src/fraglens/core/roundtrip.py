"""Round-trip stability diagnostics for SMILES string literals.

Finding the literals is a text heuristic, not a parse of the host language:
it can miss real SMILES and flag strings that only look like one. Findings
are non-blocking, so that is acceptable.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from ..chem import rdkit_utils as RU
from .documents import Document
from .models import Diagnostic, Range, RelatedInformation, Severity
from .store import DiagnosticCollection

logger = logging.getLogger(__name__)

SOURCE = "smiles-roundtrip"
STABILIZES_CODE = "smiles-stabilizes"
UNSTABLE_CODE = "smiles-unstable"

_STRUCTURE_RE = re.compile(r"[CNOPSFIBrl\[\]()=@#\\/+-]")
_DIGIT_RE = re.compile(r"\d")
_BOND_RE = re.compile(r"[=#]")
_LITERAL_RE = re.compile(r"(['\"])(.*?)\1")
_FIELD_RE = re.compile(r"smiles\s*:\s*(['\"])(.*?)\1")
_NORMALIZED_RE = re.compile(r'Stabilizes to "([^"]+)"')

RoundTrip = Callable[[str], RU.RoundTripResult]


def looks_like_smiles(text: str) -> bool:
    return bool(_STRUCTURE_RE.search(text)) and bool(
        _DIGIT_RE.search(text) or _BOND_RE.search(text)
    )


@dataclass(frozen=True)
class NotationLiteral:
    value: str
    line: int
    start: int
    end: int

    @property
    def range(self) -> Range:
        return Range.on_line(self.line, self.start, self.end)


def extract_literals(line: str, line_no: int) -> list[NotationLiteral]:
    # keyed by start column: a `smiles: "..."` value is also a plain literal
    found: dict[int, NotationLiteral] = {}
    for pattern in (_LITERAL_RE, _FIELD_RE):
        for m in pattern.finditer(line):
            value = m.group(2)
            if not looks_like_smiles(value):
                continue
            start = m.start(2)
            found.setdefault(start, NotationLiteral(value, line_no, start, start + len(value)))
    return [found[k] for k in sorted(found)]


def normalized_from_message(message: str) -> str | None:
    m = _NORMALIZED_RE.search(message)
    return m.group(1) if m else None


@dataclass(frozen=True)
class QuickFix:
    title: str
    range: Range
    new_text: str
    diagnostic: Diagnostic


def quick_fixes(diagnostics: list[Diagnostic]) -> list[QuickFix]:
    fixes: list[QuickFix] = []
    for diagnostic in diagnostics:
        if diagnostic.code != STABILIZES_CODE:
            continue
        normalized = normalized_from_message(diagnostic.message)
        if normalized is None:
            continue
        fixes.append(
            QuickFix(
                f"Replace with normalized SMILES: {normalized}",
                diagnostic.range,
                normalized,
                diagnostic,
            )
        )
    return fixes


def _diagnostic(literal: NotationLiteral, result: RU.RoundTripResult, uri: str | None) -> Diagnostic:
    if result.stabilizes:
        delta = len(literal.value) - len(result.first)
        return Diagnostic(
            range=literal.range,
            message=(
                f'SMILES round-trip: Stabilizes to "{result.first}" ({delta} char difference)'
            ),
            severity=Severity.WARNING,
            source=SOURCE,
            code=STABILIZES_CODE,
            related=[RelatedInformation(f"Use normalized form: {result.first}", literal.range, uri)],
            related_fix=result.first,
            unnecessary=True,
        )
    return Diagnostic(
        range=literal.range,
        message="SMILES round-trip: Unstable after 2 parses. Please file a bug report.",
        severity=Severity.ERROR,
        source=SOURCE,
        code=UNSTABLE_CODE,
    )


class RoundTripChecker:
    def __init__(
        self,
        collection: DiagnosticCollection | None = None,
        round_trip: RoundTrip = RU.round_trip,
    ) -> None:
        self.collection = collection or DiagnosticCollection(SOURCE)
        self._round_trip = round_trip

    def check(self, text: str, uri: str | None = None) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for line_no, line in enumerate(text.split("\n")):
            for literal in extract_literals(line.rstrip("\r"), line_no):
                try:
                    result = self._round_trip(literal.value)
                except Exception as exc:
                    # invalid SMILES belong to the syntax diagnostics, not here
                    logger.debug("skipping %r on line %d: %s", literal.value, line_no + 1, exc)
                    continue
                if not result.perfect:
                    diagnostics.append(_diagnostic(literal, result, uri))
        return diagnostics

    def update(self, document: Document) -> list[Diagnostic]:
        if not document.supported:
            return []
        diagnostics = self.check(document.text, document.uri)
        self.collection.set(document.uri, diagnostics)
        return diagnostics

    def clear(self, document: Document) -> None:
        self.collection.delete(document.uri)
