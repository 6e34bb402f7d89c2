from __future__ import annotations

from .config.models import Settings
from .core.diagnostics import DiagnosticsSynchronizer
from .core.documents import Editor, FileEditor, Workspace
from .core.events import Dispatcher
from .core.models import Diagnostic
from .core.modules import ModuleCache
from .core.pipeline import DslEngine, ResolutionPipeline
from .core.refactor import RefactorGenerator
from .core.roundtrip import RoundTripChecker
from .core.store import DiagnosticCollection
from .core.tracker import CursorTracker
from .dsl.engine import SelfiesEngine
from .host.scripts import NodeScriptHost, ScriptHost


class Session:
    """One editor session: the workspace and every component wired together."""

    def __init__(
        self,
        settings: Settings | None = None,
        editor: Editor | None = None,
        host: ScriptHost | None = None,
        engine: DslEngine | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.workspace = Workspace(self.settings)
        self.engine = engine or SelfiesEngine()
        self.editor = editor or FileEditor()
        self.modules = ModuleCache(host or NodeScriptHost.from_settings(self.settings.script_host))
        self.pipeline = ResolutionPipeline(self.engine, self.modules, self.editor)
        self.tracker = CursorTracker(self.pipeline)
        self.synchronizer = DiagnosticsSynchronizer(self.engine, DiagnosticCollection("selfies"))
        self.roundtrip = RoundTripChecker(DiagnosticCollection("smiles-roundtrip"))
        self.refactorer = RefactorGenerator(self.modules, self.editor)
        self.dispatcher = Dispatcher(self.tracker, [self.synchronizer, self.roundtrip])
        self.preview_open = False

    @property
    def collections(self) -> list[DiagnosticCollection]:
        return [self.synchronizer.collection, self.roundtrip.collection]

    def diagnostics_for(self, uri: str) -> list[Diagnostic]:
        merged: list[Diagnostic] = []
        for collection in self.collections:
            merged.extend(collection.get(uri))
        return merged

    def apply_settings(self, settings: Settings) -> None:
        self.settings = settings
        self.workspace.settings = settings
        if isinstance(self.modules.host, NodeScriptHost):
            self.modules.host = NodeScriptHost.from_settings(settings.script_host)
            self.modules.clear()
