from __future__ import annotations

import asyncio
from pathlib import Path

from fraglens.chem.rdkit_utils import RoundTripResult
from fraglens.core.diagnostics import DiagnosticsSynchronizer
from fraglens.core.documents import FileEditor, Workspace
from fraglens.core.events import (
    Dispatcher,
    DocumentChanged,
    DocumentClosed,
    DocumentOpened,
    EditorSwitched,
    SelectionChanged,
)
from fraglens.core.modules import ModuleCache
from fraglens.core.pipeline import ResolutionPipeline
from fraglens.core.roundtrip import RoundTripChecker
from fraglens.core.tracker import CursorTracker
from fraglens.dsl.engine import expand
from fraglens.dsl.parser import ParseResult, parse


class Engine:
    def parse(self, text: str, path: str | Path | None = None) -> ParseResult:
        return parse(text, path)

    def resolve(self, result, name, validate_valence=False):
        return "".join(expand(result, name))

    def decode(self, notation):
        return notation.replace("[", "").replace("]", "")

    def molecular_weight(self, notation):
        return 0.0

    def formula(self, notation):
        return ""


class NoHost:
    async def load(self, path, token):
        raise AssertionError("not used")


class ExplodingProvider:
    def update(self, document):
        raise RuntimeError("provider bug")

    def clear(self, document):
        pass


def _stabilizes(smiles: str) -> RoundTripResult:
    return RoundTripResult(smiles, smiles.lower(), smiles.lower())


def _dispatcher(*extra):
    engine = Engine()
    tracker = CursorTracker(ResolutionPipeline(engine, ModuleCache(NoHost()), FileEditor()))
    sync = DiagnosticsSynchronizer(engine)
    checker = RoundTripChecker(round_trip=_stabilizes)
    return Dispatcher(tracker, [sync, checker, *extra]), tracker, sync, checker


def test_events_drive_diagnostics_and_cursor() -> None:
    dispatcher, tracker, sync, _ = _dispatcher()
    ws = Workspace()
    received = []
    tracker.subscribe(received.append)

    async def scenario():
        doc = ws.open("file:///tmp/a.selfies", "[a] = [C]\n[b] = [a][x]\n")
        dispatcher.post(DocumentOpened(doc))
        dispatcher.post(EditorSwitched(doc, 0))
        await dispatcher.idle()
        assert len(sync.collection.get(doc.uri)) == 1
        assert received[-1].name == "a"

        dispatcher.post(SelectionChanged(doc, 1))
        await dispatcher.idle()
        assert received[-1].name == "b"
        assert "Undefined reference [x]" in received[-1].error

        ws.change(doc.uri, "[a] = [C]\n[b] = [a][O]\n")
        dispatcher.post(DocumentChanged(doc))
        await dispatcher.idle()
        assert sync.collection.get(doc.uri) == []
        assert received[-1].notation == "[C][O]"

        dispatcher.post(DocumentClosed(doc))
        await dispatcher.idle()
        assert received[-1] is None
        assert tracker.state is None
        await dispatcher.aclose()

    asyncio.run(scenario())


def test_repeated_changes_never_double_diagnostics() -> None:
    dispatcher, _, sync, checker = _dispatcher()
    ws = Workspace()

    async def scenario():
        doc = ws.open("file:///tmp/b.smiles.js", "const r = Ring('c', 6); const s = 'C1=CC=CC=C1';")
        dispatcher.post(DocumentOpened(doc))
        for _ in range(3):
            dispatcher.post(DocumentChanged(doc))
        await dispatcher.idle()
        await dispatcher.aclose()
        return doc

    doc = asyncio.run(scenario())
    assert len(sync.collection.get(doc.uri)) == 1
    assert len(checker.collection.get(doc.uri)) == 1


def test_failing_provider_does_not_stop_others() -> None:
    dispatcher, _, sync, _ = _dispatcher(ExplodingProvider())
    ws = Workspace()

    async def scenario():
        doc = ws.open("file:///tmp/a.selfies", "[a] = [zz]\n")
        dispatcher.post(DocumentOpened(doc))
        await dispatcher.idle()
        await dispatcher.aclose()
        return doc

    doc = asyncio.run(scenario())
    assert len(sync.collection.get(doc.uri)) == 1


def test_unsupported_editor_is_ignored() -> None:
    dispatcher, tracker, _, _ = _dispatcher()
    ws = Workspace()

    async def scenario():
        doc = ws.open("file:///tmp/a.selfies", "[a] = [C]\n")
        notes = ws.open("file:///tmp/notes.txt", "text")
        dispatcher.post(EditorSwitched(doc, 0))
        dispatcher.post(EditorSwitched(notes, 0))
        dispatcher.post(EditorSwitched(None))
        await dispatcher.idle()
        await dispatcher.aclose()
        return doc

    doc = asyncio.run(scenario())
    assert tracker.state.document is doc
    assert tracker.current.name == "a"
