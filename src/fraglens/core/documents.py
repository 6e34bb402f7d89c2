from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

from ..config.models import Settings
from ..utils.io import read_text, write_text
from .models import FileKind


def path_to_uri(path: str | Path) -> str:
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> Path | None:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return None
    return Path(unquote(parsed.path))


def classify(
    name: str,
    language_id: str = "",
    dsl_suffixes: Sequence[str] = (".selfies",),
    dsl_language_ids: Sequence[str] = ("selfies",),
    build_suffix: str = ".smiles.js",
) -> FileKind:
    if name.endswith(build_suffix):
        return FileKind.BUILD
    if language_id in dsl_language_ids or name.endswith(tuple(dsl_suffixes)):
        return FileKind.DSL
    return FileKind.UNSUPPORTED


@dataclass(eq=False)
class Document:
    """An open editor buffer. The editor owns it; ``version`` changes on every edit."""

    uri: str
    text: str
    version: int = 0
    language_id: str = ""
    kind: FileKind = FileKind.UNSUPPORTED

    @property
    def path(self) -> Path | None:
        return uri_to_path(self.uri)

    @property
    def lines(self) -> list[str]:
        return [line.rstrip("\r") for line in self.text.split("\n")]

    @property
    def supported(self) -> bool:
        return self.kind is not FileKind.UNSUPPORTED

    def line_at(self, index: int) -> str:
        lines = self.lines
        if 0 <= index < len(lines):
            return lines[index]
        return ""

    def offset_at(self, line: int, character: int) -> int:
        raw = self.text.split("\n")
        if line >= len(raw):
            return len(self.text)
        offset = sum(len(r) + 1 for r in raw[:line])
        return offset + min(character, len(raw[line]))

    def insert(self, line: int, character: int, text: str) -> None:
        offset = self.offset_at(line, character)
        self.text = self.text[:offset] + text + self.text[offset:]
        self.version += 1

    def replace(self, text: str, version: int | None = None) -> None:
        self.text = text
        self.version = version if version is not None else self.version + 1


class Workspace:
    """Open documents by URI, classified with the active settings."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._documents: dict[str, Document] = {}

    def classify(self, uri: str, language_id: str = "") -> FileKind:
        path = uri_to_path(uri)
        name = path.name if path is not None else uri
        return classify(
            name,
            language_id,
            self.settings.dsl_suffixes,
            self.settings.dsl_language_ids,
            self.settings.build_suffix,
        )

    def open(self, uri: str, text: str, version: int = 0, language_id: str = "") -> Document:
        document = Document(
            uri=uri,
            text=text,
            version=version,
            language_id=language_id,
            kind=self.classify(uri, language_id),
        )
        self._documents[uri] = document
        return document

    def load(self, path: str | Path, language_id: str = "") -> Document:
        uri = path_to_uri(path)
        existing = self._documents.get(uri)
        if existing is not None:
            return existing
        return self.open(uri, read_text(path), language_id=language_id)

    def change(self, uri: str, text: str, version: int | None = None) -> Document | None:
        document = self._documents.get(uri)
        if document is None:
            return None
        document.replace(text, version)
        return document

    def close(self, uri: str) -> Document | None:
        return self._documents.pop(uri, None)

    def get(self, uri: str) -> Document | None:
        return self._documents.get(uri)

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)


class Editor(Protocol):
    """Write access to the editor's source of truth."""

    async def insert(self, document: Document, line: int, character: int, text: str) -> None: ...

    async def save(self, document: Document) -> None: ...


class FileEditor:
    """Edits the in-memory document and writes it to its file on save."""

    async def insert(self, document: Document, line: int, character: int, text: str) -> None:
        document.insert(line, character, text)

    async def save(self, document: Document) -> None:
        path = document.path
        if path is None:
            raise OSError(f"Cannot save a document without a file path: {document.uri}")
        write_text(path, document.text)
