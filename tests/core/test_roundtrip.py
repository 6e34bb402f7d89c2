from __future__ import annotations

import pytest

from fraglens.chem.rdkit_utils import RoundTripResult
from fraglens.core.documents import Workspace
from fraglens.core.models import Severity
from fraglens.core.roundtrip import (
    RoundTripChecker,
    extract_literals,
    looks_like_smiles,
    normalized_from_message,
    quick_fixes,
)


def fixed_round_trip(table: dict[str, tuple[str, str]]):
    def run(smiles: str) -> RoundTripResult:
        if smiles not in table:
            raise ValueError(f"Invalid SMILES: {smiles}")
        first, second = table[smiles]
        return RoundTripResult(smiles, first, second)

    return run


@pytest.mark.parametrize(
    "text,expected",
    [
        ("C1=CC=CC=C1", True),
        ("CC(=O)O", True),
        ("C#N", True),
        ("CCO", False),  # no digit and no bond symbol
        ("hello world", False),
        ("12345", False),
    ],
)
def test_notation_heuristic(text: str, expected: bool) -> None:
    assert looks_like_smiles(text) is expected


def test_literal_and_field_patterns_report_once() -> None:
    line = "const b = Fragment({ smiles: 'C1=CC=CC=C1', name: 'benzene' });"
    (literal,) = extract_literals(line, 7)
    assert literal.value == "C1=CC=CC=C1"
    assert literal.start == line.index("C1=")
    assert literal.range.start.line == 7


def test_stabilizing_literal_gets_warning_with_fix() -> None:
    checker = RoundTripChecker(round_trip=fixed_round_trip({"C1=CC=CC=C1": ("c1ccccc1", "c1ccccc1")}))
    (diagnostic,) = checker.check('const benzene = Fragment("C1=CC=CC=C1");', "file:///tmp/b.smiles.js")
    assert diagnostic.severity is Severity.WARNING
    assert diagnostic.code == "smiles-stabilizes"
    assert diagnostic.message == 'SMILES round-trip: Stabilizes to "c1ccccc1" (3 char difference)'
    assert diagnostic.related_fix == "c1ccccc1"
    assert diagnostic.unnecessary
    assert normalized_from_message(diagnostic.message) == "c1ccccc1"


def test_unstable_literal_is_an_error() -> None:
    checker = RoundTripChecker(round_trip=fixed_round_trip({"C1=CN1": ("C1=CN1x", "C1=CN1y")}))
    (diagnostic,) = checker.check("x = 'C1=CN1'")
    assert diagnostic.severity is Severity.ERROR
    assert "file a bug report" in diagnostic.message


def test_invalid_literals_are_skipped() -> None:
    checker = RoundTripChecker(round_trip=fixed_round_trip({}))
    assert checker.check("const broken = Fragment('C1CC(=O');") == []


def test_quick_fix_replaces_literal_range() -> None:
    checker = RoundTripChecker(round_trip=fixed_round_trip({"C1=CC=CC=C1": ("c1ccccc1", "c1ccccc1")}))
    line = "x = 'C1=CC=CC=C1'"
    diagnostics = checker.check(line)
    (fix,) = quick_fixes(diagnostics)
    assert fix.title == "Replace with normalized SMILES: c1ccccc1"
    assert fix.new_text == "c1ccccc1"
    assert (fix.range.start.character, fix.range.end.character) == (5, 16)


def test_update_stores_per_document_and_skips_unsupported() -> None:
    ws = Workspace()
    checker = RoundTripChecker(round_trip=fixed_round_trip({"C1=CC=CC=C1": ("c1ccccc1", "c1ccccc1")}))
    script = ws.open("file:///tmp/b.smiles.js", "x = 'C1=CC=CC=C1'")
    notes = ws.open("file:///tmp/notes.txt", "x = 'C1=CC=CC=C1'")
    checker.update(script)
    checker.update(notes)
    assert len(checker.collection.get(script.uri)) == 1
    assert checker.collection.get(notes.uri) == []
    checker.clear(script)
    assert checker.collection.uris() == []


def test_rdkit_round_trip_classification() -> None:
    pytest.importorskip("rdkit")
    checker = RoundTripChecker()
    (diagnostic,) = checker.check('benzene = "C1=CC=CC=C1"')
    normalized = normalized_from_message(diagnostic.message)
    assert normalized == "c1ccccc1"
    assert checker.check(f'benzene = "{normalized}"') == []


@pytest.mark.parametrize("smiles", ["OC(=O)C", "N#CC", "C1CCCCC1O", "C(=O)O"])
def test_author_atom_order_is_kept(smiles: str) -> None:
    pytest.importorskip("rdkit")
    line = f'acid = "{smiles}"'
    assert [lit.value for lit in extract_literals(line, 0)] == [smiles]
    assert RoundTripChecker().check(line) == []
