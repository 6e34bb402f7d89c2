from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .documents import Document
from .models import ResolvedLine
from .pipeline import ParseCache, ResolutionPipeline

logger = logging.getLogger(__name__)

Listener = Callable[[ResolvedLine | None], None]


@dataclass
class CursorState:
    document: Document
    line: int


class CursorTracker:
    """Follows the cursor in the active supported document.

    The ``on_*`` handlers update the state and return True when the current
    line needs resolving; :meth:`refresh` does the resolve and notifies
    subscribers. Unsupported documents leave the tracker attached to the last
    supported one.
    """

    def __init__(self, pipeline: ResolutionPipeline) -> None:
        self.pipeline = pipeline
        self.parse_cache = ParseCache(pipeline.engine)
        self.state: CursorState | None = None
        self.current: ResolvedLine | None = None
        self._listeners: list[Listener] = []

    @property
    def attached(self) -> bool:
        return self.state is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_editor_switched(self, document: Document | None, line: int) -> bool:
        if document is None or not document.supported:
            return False
        self.parse_cache.clear()
        self.state = CursorState(document, line)
        # the document changed, so resolve even if the line index did not
        return True

    def on_selection_changed(self, document: Document, line: int) -> bool:
        if not document.supported:
            return False
        if self.state is None or self.state.document is not document:
            return self.on_editor_switched(document, line)
        if self.state.line == line:
            return False
        self.state.line = line
        return True

    def on_document_changed(self, document: Document) -> bool:
        if self.state is None or self.state.document is not document:
            return False
        self.parse_cache.clear()
        return True

    def on_document_closed(self, document: Document) -> bool:
        if self.state is None or self.state.document is not document:
            return False
        self.state = None
        self.parse_cache.clear()
        self.current = None
        self._emit(None)
        return False

    async def refresh(self) -> ResolvedLine | None:
        state = self.state
        if state is None:
            return None
        resolved = await self.pipeline.resolve(state.document, state.line, self.parse_cache)
        self.current = resolved
        self._emit(resolved)
        return resolved

    def _emit(self, resolved: ResolvedLine | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(resolved)
            except Exception:
                logger.exception("current-line listener failed")

    def dispose(self) -> None:
        self._listeners.clear()
        self.state = None
        self.parse_cache.clear()
