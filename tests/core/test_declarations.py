from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from fraglens.core.declarations import ensure_exported, find_declaration
from fraglens.core.documents import Document, FileEditor, Workspace


def test_find_declaration_variants() -> None:
    exported = find_declaration("export const water = Fragment('O');")
    assert exported.name == "water" and not exported.needs_export

    bare = find_declaration("  const ring = Ring({ atoms: 'c', size: 6 });")
    assert bare.name == "ring" and bare.needs_export and bare.column == 2

    assert find_declaration("water.attach(ring);") is None
    assert find_declaration("// const note = 1") is None


def test_bare_declaration_gets_export_inserted_and_saved(tmp_path: Path) -> None:
    path = tmp_path / "water.smiles.js"
    path.write_text("import { Fragment } from 'smiles-js';\nconst water = Fragment('O')\n", encoding="utf-8")
    document = Workspace().load(path)
    version = document.version

    result = asyncio.run(ensure_exported(FileEditor(), document, 1))

    assert result is document
    assert document.line_at(1) == "export const water = Fragment('O')"
    assert document.version > version
    # persisted before anything loads the module
    assert path.read_text(encoding="utf-8").splitlines()[1] == "export const water = Fragment('O')"


def test_indented_declaration_keeps_indent(tmp_path: Path) -> None:
    path = tmp_path / "ring.smiles.js"
    path.write_text("    const ring = Ring('c', 6)\n", encoding="utf-8")
    document = Workspace().load(path)
    asyncio.run(ensure_exported(FileEditor(), document, 0))
    assert document.line_at(0) == "    export const ring = Ring('c', 6)"


class RecordingEditor:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def insert(self, document: Document, line: int, character: int, text: str) -> None:
        self.calls.append("insert")
        document.insert(line, character, text)

    async def save(self, document: Document) -> None:
        self.calls.append("save")


@pytest.mark.parametrize(
    "text",
    ["export const water = Fragment('O')", "water.attach(ring)", ""],
)
def test_no_edit_without_bare_declaration(text: str) -> None:
    document = Document("file:///tmp/x.smiles.js", text)
    editor = RecordingEditor()
    asyncio.run(ensure_exported(editor, document, 0))
    assert editor.calls == []
    assert document.text == text


def test_insert_happens_before_save() -> None:
    document = Document("file:///tmp/x.smiles.js", "const water = Fragment('O')")
    editor = RecordingEditor()
    asyncio.run(ensure_exported(editor, document, 0))
    assert editor.calls == ["insert", "save"]


def test_file_editor_refuses_to_save_without_path() -> None:
    document = Document("untitled:Untitled-1", "const water = Fragment('O')")
    with pytest.raises(OSError):
        asyncio.run(FileEditor().save(document))
