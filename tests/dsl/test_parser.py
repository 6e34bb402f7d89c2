from __future__ import annotations

from pathlib import Path

from fraglens.core.diagnostics import diagnostic_from_issue
from fraglens.core.models import Position
from fraglens.dsl.parser import RepeatCall, format_tokens, parse


def test_duplicate_definition_reported_once_on_later_line() -> None:
    result = parse("[a] = [C]\n[b] = [a][a]\n[a] = [N]")
    assert len(result.errors) == 1
    issue = result.errors[0]
    assert (issue.line, issue.column) == (3, 1)
    assert issue.code == "E_REDEFINITION"
    # first definition wins
    assert result.definitions["a"].tokens == ("[C]",)
    assert diagnostic_from_issue(issue).range.start == Position(2, 0)


def test_definitions_record_line_and_tokens() -> None:
    text = "# alkyls\n[methyl] = [C]\n\n[ethanol] = [methyl][C][O]  # comment\n"
    result = parse(text)
    assert result.errors == []
    assert result.definitions["methyl"].line == 2
    ethanol = result.definitions["ethanol"]
    assert ethanol.line == 4
    assert ethanol.tokens == ("[methyl]", "[C]", "[O]")
    assert result.definition_at(4) is ethanol
    assert result.definition_at(3) is None


def test_hash_inside_brackets_is_a_bond() -> None:
    result = parse("[nitrile] = [C][#N]")
    assert result.errors == []
    assert result.definitions["nitrile"].tokens == ("[C]", "[#N]")


def test_repeat_tokens() -> None:
    result = parse("[hexane] = repeat([C], 6)")
    (token,) = result.definitions["hexane"].tokens
    assert token == RepeatCall(("[C]",), 6)
    assert format_tokens(result.definitions["hexane"].tokens) == "repeat([C], 6)"


def test_undefined_reference_points_at_the_reference() -> None:
    result = parse("[a] = [C][missing]")
    (issue,) = result.errors
    assert issue.code == "E_UNDEFINED"
    assert (issue.line, issue.column) == (1, 10)
    assert issue.end_column == 19


def test_circular_reference() -> None:
    result = parse("[a] = [b]\n[b] = [a]")
    codes = {e.code for e in result.errors}
    assert codes == {"E_CIRCULAR"}
    assert any("a -> b -> a" in e.message for e in result.errors)


def test_syntax_errors() -> None:
    result = parse("[a] = [C] oops\nnot a definition\n[Bad] = [C]")
    assert [e.line for e in result.errors] == [1, 2, 3]
    assert all(e.type == "syntax" for e in result.errors)
    assert result.errors[0].column == 11


def test_imports_resolve_relative_to_file(tmp_path: Path) -> None:
    (tmp_path / "base.selfies").write_text("[methyl] = [C]\n[ethyl] = [C][C]\n", encoding="utf-8")
    main = tmp_path / "main.selfies"
    text = 'import [methyl] from "base.selfies"\n[ethanol] = [methyl][C][O]\n'
    main.write_text(text, encoding="utf-8")
    result = parse(text, main)
    assert result.errors == []
    assert "ethyl" not in result.definitions
    assert result.definitions["methyl"].origin == str((tmp_path / "base.selfies").resolve())
    # imported definitions never match a line of this file
    assert result.definition_at(1) is None


def test_import_without_file_path_is_an_error() -> None:
    result = parse('import "base.selfies"\n')
    (issue,) = result.errors
    assert issue.code == "E_IMPORT"


def test_missing_import(tmp_path: Path) -> None:
    main = tmp_path / "main.selfies"
    result = parse('import "nope.selfies"\n', main)
    assert "file not found" in result.errors[0].message
