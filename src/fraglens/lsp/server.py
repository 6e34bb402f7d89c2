"""fraglens language server.

Standard text synchronisation drives the diagnostics; the cursor and the
active editor are not part of LSP, so the client reports them through two
custom notifications. The resolved current line is pushed back as
``fraglens/currentLine``.
"""

from __future__ import annotations

import logging
from typing import Any

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from .. import __version__
from ..chem.render import render_svg
from ..config.models import Settings, validate_settings_payload
from ..core.documents import Document
from ..core.events import (
    DocumentChanged,
    DocumentClosed,
    DocumentOpened,
    EditorSwitched,
    SelectionChanged,
)
from ..core.models import Diagnostic, Range, ResolvedLine
from ..core.refactor import RefactorError
from ..core.roundtrip import quick_fixes
from ..host.scripts import ScriptHost
from ..session import Session
from ..utils.io import write_text
from ..utils.trace import configure_trace

logger = logging.getLogger(__name__)

SELECTION_NOTIFICATION = "fraglens/didChangeSelection"
ACTIVE_EDITOR_NOTIFICATION = "fraglens/didChangeActiveEditor"
CURRENT_LINE_NOTIFICATION = "fraglens/currentLine"

SHOW_STRUCTURE_COMMAND = "fraglens.showStructure"
TOGGLE_PREVIEW_COMMAND = "fraglens.togglePreview"
REFACTOR_COMMAND = "fraglens.refactorMolecule"

server = LanguageServer(
    "fraglens", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)


class LspEditor:
    """Applies edits locally and mirrors them into the client's buffer."""

    def __init__(self, ls: LanguageServer) -> None:
        self.ls = ls

    async def insert(self, document: Document, line: int, character: int, text: str) -> None:
        document.insert(line, character, text)
        position = lsp.Position(line=line, character=character)
        edit = lsp.WorkspaceEdit(
            changes={document.uri: [lsp.TextEdit(range=lsp.Range(start=position, end=position), new_text=text)]}
        )
        result = await self.ls.workspace_apply_edit_async(lsp.ApplyWorkspaceEditParams(edit=edit))
        if not result.applied:
            logger.warning("client rejected edit on %s: %s", document.uri, result.failure_reason)

    async def save(self, document: Document) -> None:
        # LSP has no save request; the script host reads the file from disk
        path = document.path
        if path is None:
            raise OSError(f"Cannot save a document without a file path: {document.uri}")
        write_text(path, document.text)


_state: dict[str, Any] = {"session": None}


def configure(settings: Settings | None = None, host: ScriptHost | None = None) -> Session:
    """Create the session the handlers work on, replacing any previous one."""
    session = Session(settings, editor=LspEditor(server), host=host)
    for collection in session.collections:
        collection.on_change(_publish)
    session.tracker.subscribe(_on_current_line)
    _state["session"] = session
    return session


def get_session() -> Session:
    session = _state["session"]
    if session is None:
        session = configure()
    return session


def _field(params: Any, name: str, default: Any = None) -> Any:
    # custom notifications may arrive as plain dicts or attribute objects
    if params is None:
        return default
    if isinstance(params, dict):
        return params.get(name, default)
    return getattr(params, name, default)


def _settings_from(options: Any, section_only: bool = False) -> Settings | None:
    """Settings from ``{"fraglens": {...}}``, or from a bare mapping unless ``section_only``."""
    if not isinstance(options, dict):
        return None
    if "fraglens" in options:
        payload = options["fraglens"]
    elif section_only:
        return None
    else:
        payload = options
    if not isinstance(payload, dict):
        return None
    try:
        return validate_settings_payload(payload)
    except ValueError as exc:
        logger.error("invalid fraglens settings: %s", exc)
        server.window_show_message(
            lsp.ShowMessageParams(type=lsp.MessageType.Error, message=f"Invalid fraglens settings: {exc}")
        )
        return None


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def to_lsp_range(r: Range) -> lsp.Range:
    return lsp.Range(
        start=lsp.Position(line=r.start.line, character=r.start.character),
        end=lsp.Position(line=r.end.line, character=r.end.character),
    )


def to_lsp_diagnostic(diagnostic: Diagnostic, uri: str) -> lsp.Diagnostic:
    related = [
        lsp.DiagnosticRelatedInformation(
            location=lsp.Location(uri=info.uri or uri, range=to_lsp_range(info.range or diagnostic.range)),
            message=info.message,
        )
        for info in diagnostic.related
    ]
    return lsp.Diagnostic(
        range=to_lsp_range(diagnostic.range),
        message=diagnostic.message,
        severity=lsp.DiagnosticSeverity(int(diagnostic.severity)),
        source=diagnostic.source,
        code=diagnostic.code,
        related_information=related or None,
        tags=[lsp.DiagnosticTag.Unnecessary] if diagnostic.unnecessary else None,
        data={"relatedFix": diagnostic.related_fix} if diagnostic.related_fix else None,
    )


def _publish(uri: str) -> None:
    session = get_session()
    diagnostics = [to_lsp_diagnostic(d, uri) for d in session.diagnostics_for(uri)]
    logger.debug("publishing %d diagnostics for %s", len(diagnostics), uri)
    server.text_document_publish_diagnostics(
        lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def current_line_payload(session: Session, resolved: ResolvedLine | None) -> dict[str, Any]:
    state = session.tracker.state
    payload: dict[str, Any] = {
        "uri": state.document.uri if state is not None else None,
        "resolved": resolved.to_payload() if resolved is not None else None,
        "svg": None,
        "renderError": None,
    }
    notation = resolved.derived_notation if resolved is not None else None
    if session.preview_open and notation:
        preview = session.settings.preview
        try:
            payload["svg"] = render_svg(
                notation,
                width=preview.width,
                height=preview.height,
                add_stereo_annotation=preview.stereo_annotations,
            )
        except Exception as exc:
            payload["renderError"] = str(exc)
    return payload


def _push_current_line(resolved: ResolvedLine | None) -> dict[str, Any]:
    payload = current_line_payload(get_session(), resolved)
    server.protocol.notify(CURRENT_LINE_NOTIFICATION, payload)
    return payload


def _on_current_line(resolved: ResolvedLine | None) -> None:
    if get_session().settings.preview.on_cursor_move:
        _push_current_line(resolved)


def _apply_settings(session: Session, settings: Settings) -> None:
    logging.getLogger("fraglens").setLevel(settings.log_level)
    if settings.trace_path != session.settings.trace_path:
        configure_trace(settings.trace_path)
    session.apply_settings(settings)


def _show_error(message: str) -> None:
    server.window_show_message(lsp.ShowMessageParams(type=lsp.MessageType.Error, message=message))


# ---------------------------------------------------------------------------
# Lifecycle and configuration
# ---------------------------------------------------------------------------

@server.feature(lsp.INITIALIZE)
def on_initialize(params: lsp.InitializeParams):
    session = get_session()
    settings = _settings_from(getattr(params, "initialization_options", None))
    if settings is not None:
        _apply_settings(session, settings)
    logger.info("fraglens %s initialised", __version__)


@server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(params: lsp.DidChangeConfigurationParams):
    # other extensions' sections arrive here too
    settings = _settings_from(getattr(params, "settings", None), section_only=True)
    if settings is not None:
        _apply_settings(get_session(), settings)
        logger.info("settings updated")


# ---------------------------------------------------------------------------
# Text document synchronisation
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams):
    session = get_session()
    td = params.text_document
    document = session.workspace.open(td.uri, td.text, td.version, td.language_id)
    session.dispatcher.post(DocumentOpened(document))
    if document.supported and session.settings.preview.auto_open:
        session.preview_open = True


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams):
    session = get_session()
    uri = params.text_document.uri
    if not params.content_changes:
        return
    document = session.workspace.change(uri, params.content_changes[-1].text, params.text_document.version)
    if document is not None:
        session.dispatcher.post(DocumentChanged(document))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams):
    session = get_session()
    document = session.workspace.close(params.text_document.uri)
    if document is not None:
        session.dispatcher.post(DocumentClosed(document))


@server.feature(SELECTION_NOTIFICATION)
def did_change_selection(params):
    session = get_session()
    document = session.workspace.get(_field(params, "uri") or "")
    if document is None:
        return
    session.dispatcher.post(SelectionChanged(document, int(_field(params, "line", 0))))


@server.feature(ACTIVE_EDITOR_NOTIFICATION)
def did_change_active_editor(params):
    session = get_session()
    document = session.workspace.get(_field(params, "uri") or "")
    session.dispatcher.post(EditorSwitched(document, int(_field(params, "line", 0) or 0)))


# ---------------------------------------------------------------------------
# Quick fixes
# ---------------------------------------------------------------------------

@server.feature(
    lsp.TEXT_DOCUMENT_CODE_ACTION,
    lsp.CodeActionOptions(code_action_kinds=[lsp.CodeActionKind.QuickFix]),
)
def code_action(params: lsp.CodeActionParams) -> list[lsp.CodeAction]:
    uri = params.text_document.uri
    first, last = params.range.start.line, params.range.end.line
    in_range = [
        d for d in get_session().diagnostics_for(uri)
        if d.range.start.line <= last and d.range.end.line >= first
    ]
    actions: list[lsp.CodeAction] = []
    for fix in quick_fixes(in_range):
        actions.append(
            lsp.CodeAction(
                title=fix.title,
                kind=lsp.CodeActionKind.QuickFix,
                diagnostics=[to_lsp_diagnostic(fix.diagnostic, uri)],
                edit=lsp.WorkspaceEdit(
                    changes={uri: [lsp.TextEdit(range=to_lsp_range(fix.range), new_text=fix.new_text)]}
                ),
                is_preferred=True,
            )
        )
    return actions


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _target(uri: str | None, line: int | None) -> tuple[Document | None, int]:
    session = get_session()
    if uri:
        return session.workspace.get(uri), int(line or 0)
    state = session.tracker.state
    if state is None:
        return None, 0
    return state.document, state.line


@server.command(SHOW_STRUCTURE_COMMAND)
async def cmd_show_structure(uri: str | None = None, line: int | None = None):
    """Open the preview and push the structure of the given (or current) line."""
    session = get_session()
    session.preview_open = True
    document, line = _target(uri, line)
    if document is None or not document.supported:
        _show_error("Open a SELFIES or smiles-js file first")
        return None
    session.tracker.on_editor_switched(document, line)
    return await _refresh_and_push(session)


@server.command(TOGGLE_PREVIEW_COMMAND)
async def cmd_toggle_preview():
    session = get_session()
    session.preview_open = not session.preview_open
    if session.preview_open and session.tracker.state is not None:
        await _refresh_and_push(session)
    return {"open": session.preview_open}


async def _refresh_and_push(session: Session) -> dict[str, Any]:
    resolved = await session.tracker.refresh()
    if session.settings.preview.on_cursor_move:
        # the tracker listener has already notified the client
        return current_line_payload(session, resolved)
    return _push_current_line(resolved)


@server.command(REFACTOR_COMMAND)
async def cmd_refactor(uri: str | None = None, line: int | None = None):
    document, line = _target(uri, line)
    if document is None:
        _show_error("No active smiles-js file")
        return None
    try:
        result = await get_session().refactorer.refactor(document, line)
    except RefactorError as exc:
        _show_error(str(exc))
        return None
    server.window_show_message(lsp.ShowMessageParams(type=lsp.MessageType.Info, message=result.message))
    return {"name": result.name, "code": result.code, "import": result.import_statement}


def start_server(settings: Settings | None = None, tcp: tuple[str, int] | None = None) -> None:
    configure(settings)
    if tcp is not None:
        host, port = tcp
        logger.info("listening on %s:%d", host, port)
        server.start_tcp(host, port)
    else:
        server.start_io()
