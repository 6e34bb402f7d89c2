from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

pytest.importorskip("pygls")

from lsprotocol import types as lsp  # noqa: E402

from fraglens.core.models import Diagnostic, Range, RelatedInformation, ResolvedLine, Severity  # noqa: E402
from fraglens.core.roundtrip import STABILIZES_CODE  # noqa: E402
from fraglens.lsp import server as S  # noqa: E402

URI = "file:///tmp/benzene.smiles.js"


def _stabilizing() -> Diagnostic:
    rng = Range.on_line(3, 10, 21)
    return Diagnostic(
        range=rng,
        message='SMILES round-trip: Stabilizes to "c1ccccc1" (3 char difference)',
        severity=Severity.WARNING,
        source="smiles-roundtrip",
        code=STABILIZES_CODE,
        related=[RelatedInformation("Use normalized form: c1ccccc1", rng, URI)],
        related_fix="c1ccccc1",
        unnecessary=True,
    )


@pytest.fixture
def session(monkeypatch):
    published: list[lsp.PublishDiagnosticsParams] = []
    shown: list[lsp.ShowMessageParams] = []
    monkeypatch.setattr(S.server, "text_document_publish_diagnostics", published.append)
    monkeypatch.setattr(S.server, "window_show_message", shown.append)
    session = S.configure()
    session.published = published
    session.shown = shown
    return session


def test_diagnostic_conversion() -> None:
    converted = S.to_lsp_diagnostic(_stabilizing(), URI)
    assert converted.severity == lsp.DiagnosticSeverity.Warning
    assert converted.range.start == lsp.Position(line=3, character=10)
    assert converted.code == STABILIZES_CODE
    assert converted.tags == [lsp.DiagnosticTag.Unnecessary]
    assert converted.related_information[0].location.uri == URI
    assert converted.data == {"relatedFix": "c1ccccc1"}


def test_collections_publish_their_union(session) -> None:
    lint = Diagnostic(Range.on_line(0, 0, 5), "Old Ring API", Severity.ERROR, "smiles-js", "deprecated-api")
    session.synchronizer.collection.set(URI, [lint])
    session.roundtrip.collection.set(URI, [_stabilizing()])
    last = session.published[-1]
    assert last.uri == URI
    assert [d.source for d in last.diagnostics] == ["smiles-js", "smiles-roundtrip"]

    session.roundtrip.collection.delete(URI)
    assert len(session.published[-1].diagnostics) == 1


def test_code_action_offers_normalized_replacement(session) -> None:
    session.roundtrip.collection.set(URI, [_stabilizing()])
    params = lsp.CodeActionParams(
        text_document=lsp.TextDocumentIdentifier(uri=URI),
        range=lsp.Range(start=lsp.Position(line=3, character=12), end=lsp.Position(line=3, character=12)),
        context=lsp.CodeActionContext(diagnostics=[]),
    )
    (action,) = S.code_action(params)
    assert action.title == "Replace with normalized SMILES: c1ccccc1"
    assert action.kind == lsp.CodeActionKind.QuickFix
    (edit,) = action.edit.changes[URI]
    assert edit.new_text == "c1ccccc1"
    assert (edit.range.start.character, edit.range.end.character) == (10, 21)


def test_code_action_ignores_other_lines(session) -> None:
    session.roundtrip.collection.set(URI, [_stabilizing()])
    params = lsp.CodeActionParams(
        text_document=lsp.TextDocumentIdentifier(uri=URI),
        range=lsp.Range(start=lsp.Position(line=0, character=0), end=lsp.Position(line=1, character=0)),
        context=lsp.CodeActionContext(diagnostics=[]),
    )
    assert S.code_action(params) == []


def test_settings_from_client_options(session) -> None:
    settings = S._settings_from({"fraglens": {"preview": {"width": 640}}})
    assert settings.preview.width == 640
    assert S._settings_from({"fraglens": {"build_suffix": "js"}}) is None
    assert session.shown[-1].type == lsp.MessageType.Error
    assert S._settings_from(None) is None
    assert S._settings_from({"python": {"analysis": {}}}, section_only=True) is None
    assert S._settings_from({"log_level": "DEBUG"}).log_level == "DEBUG"


def test_field_accepts_dicts_and_objects() -> None:
    assert S._field({"uri": "a", "line": 3}, "line") == 3
    assert S._field(SimpleNamespace(uri="b"), "uri") == "b"
    assert S._field(None, "uri", "x") == "x"


def test_current_line_payload_without_preview(session) -> None:
    session.preview_open = False
    payload = S.current_line_payload(session, ResolvedLine(line=2, name="water", derived_notation="O"))
    assert payload["resolved"]["derivedNotation"] == "O"
    assert payload["svg"] is None
    assert S.current_line_payload(session, None)["resolved"] is None


def test_current_line_payload_renders_when_preview_open(session) -> None:
    pytest.importorskip("rdkit")
    session.preview_open = True
    payload = S.current_line_payload(session, ResolvedLine(line=0, derived_notation="c1ccccc1"))
    assert "<svg" in payload["svg"]
    broken = S.current_line_payload(session, ResolvedLine(line=0, derived_notation="C1CC("))
    assert broken["svg"] is None and "Invalid" in broken["renderError"]


class FakeClient:
    def __init__(self, applied: bool = True) -> None:
        self.applied = applied
        self.requests: list[lsp.ApplyWorkspaceEditParams] = []

    async def workspace_apply_edit_async(self, params):
        self.requests.append(params)
        return lsp.ApplyWorkspaceEditResult(applied=self.applied)


def test_lsp_editor_mirrors_insert_to_client(tmp_path) -> None:
    path = tmp_path / "water.smiles.js"
    path.write_text("const water = Fragment('O');\n", encoding="utf-8")
    session = S.Session()
    document = session.workspace.load(path)
    client = FakeClient()
    editor = S.LspEditor(client)

    asyncio.run(editor.insert(document, 0, 0, "export "))
    asyncio.run(editor.save(document))

    (request,) = client.requests
    (edit,) = request.edit.changes[document.uri]
    assert edit.new_text == "export "
    assert edit.range.start == lsp.Position(line=0, character=0)
    assert path.read_text(encoding="utf-8").startswith("export const water")
