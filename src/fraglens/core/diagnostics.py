from __future__ import annotations

import logging

from ..dsl.parser import ParseIssue
from ..utils.trace import log_event
from .store import DiagnosticCollection
from .documents import Document
from .lints import lint_build_script
from .models import Diagnostic, FileKind, Range, Severity
from .pipeline import DslEngine
from .positions import severity_for, to_editor_range

logger = logging.getLogger(__name__)

SOURCE = "selfies"


def diagnostic_from_issue(issue: ParseIssue, default_category: str = "error") -> Diagnostic:
    return Diagnostic(
        range=to_editor_range(issue.line, issue.column, issue.end_column),
        message=issue.message,
        severity=severity_for(issue.type or default_category),
        source=SOURCE,
        code=issue.code,
    )


class DiagnosticsSynchronizer:
    """Recomputes the full diagnostic set of a document and publishes it.

    Definition files get a parse of their own (independent of the cursor
    tracker's cache); build scripts only get the deprecation lints.
    """

    def __init__(self, engine: DslEngine, collection: DiagnosticCollection | None = None) -> None:
        self.engine = engine
        self.collection = collection or DiagnosticCollection(SOURCE)

    def compute(self, document: Document) -> list[Diagnostic] | None:
        if document.kind is FileKind.BUILD:
            return lint_build_script(document.text)
        if document.kind is FileKind.DSL:
            return self._definition_diagnostics(document)
        return None

    def update(self, document: Document) -> list[Diagnostic]:
        diagnostics = self.compute(document)
        if diagnostics is None:
            return []
        self.collection.set(document.uri, diagnostics)
        log_event("diagnostics", uri=document.uri, version=document.version, count=len(diagnostics))
        return diagnostics

    def clear(self, document: Document) -> None:
        self.collection.delete(document.uri)

    def _definition_diagnostics(self, document: Document) -> list[Diagnostic]:
        path = document.path
        try:
            result = self.engine.parse(document.text, str(path) if path else None)
        except Exception as exc:
            logger.warning("parse of %s failed: %s", document.uri, exc)
            return [
                Diagnostic(
                    range=Range.on_line(0, 0, 1),
                    message=f"Failed to parse SELFIES file: {exc}",
                    severity=Severity.ERROR,
                    source=SOURCE,
                )
            ]
        diagnostics = [diagnostic_from_issue(e, "error") for e in result.errors]
        diagnostics.extend(diagnostic_from_issue(w, "warning") for w in result.warnings)
        return diagnostics
