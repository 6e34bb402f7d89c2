from __future__ import annotations

import pytest

from fraglens.dsl import engine as E
from fraglens.dsl.parser import parse

selfies = pytest.importorskip("selfies")


def test_resolve_inlines_references() -> None:
    result = parse("[methyl] = [C]\n[ethanol] = [methyl][C][O]\n[chain] = repeat([methyl], 3)")
    assert E.resolve(result, "ethanol") == "[C][C][O]"
    assert E.resolve(result, "chain") == "[C][C][C]"


def test_decode_to_smiles() -> None:
    assert E.decode("[C][C][O]") == "CCO"


def test_resolve_errors_are_descriptive() -> None:
    result = parse("[a] = [b]\n[b] = [a]\n[c] = [C][nothing]")
    with pytest.raises(E.ResolveError, match="Circular reference"):
        E.resolve(result, "a")
    with pytest.raises(E.ResolveError, match=r"Undefined reference \[nothing\]"):
        E.resolve(result, "c")
    with pytest.raises(E.ResolveError, match=r"Undefined reference \[zzz\]"):
        E.resolve(result, "zzz")


def test_engine_properties() -> None:
    pytest.importorskip("rdkit")
    engine = E.SelfiesEngine()
    result = engine.parse("[ethanol] = [C][C][O]")
    notation = engine.resolve(result, "ethanol")
    assert engine.formula(notation) == "C2H6O"
    assert engine.molecular_weight(notation) == pytest.approx(46.07, abs=0.01)


def test_load_has_no_chemistry_warnings_for_valid_definitions() -> None:
    result = E.load("[methyl] = [C]\n[ethanol] = [methyl][C][O]")
    assert result.errors == []
    assert result.warnings == []
