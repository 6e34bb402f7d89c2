"""Editor events and the loop that routes them.

Each editor source has its own event type. A single consumer loop applies them
in arrival order: cursor state changes happen inside the loop, while
diagnostic recomputes and line resolves are spawned as independent tasks. A
slow task is not cancelled by a newer one; whichever finishes last publishes
last.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ..utils.trace import log_event
from .documents import Document
from .tracker import CursorTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentOpened:
    document: Document


@dataclass(frozen=True)
class DocumentChanged:
    document: Document


@dataclass(frozen=True)
class DocumentClosed:
    document: Document


@dataclass(frozen=True)
class SelectionChanged:
    document: Document
    line: int


@dataclass(frozen=True)
class EditorSwitched:
    document: Document | None
    line: int = 0


Event = DocumentOpened | DocumentChanged | DocumentClosed | SelectionChanged | EditorSwitched


class DocumentProvider(Protocol):
    def update(self, document: Document) -> Any: ...

    def clear(self, document: Document) -> None: ...


class Dispatcher:
    def __init__(self, tracker: CursorTracker, providers: Sequence[DocumentProvider] = ()) -> None:
        self.tracker = tracker
        self.providers = list(providers)
        self._queue: asyncio.Queue[Event] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._consumer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    def post(self, event: Event) -> None:
        """Queue an event; must be called with a running event loop."""
        self._ensure_consumer()
        self._queue.put_nowait(event)

    def _ensure_consumer(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop or self._consumer is None or self._consumer.done():
            if self._loop is not loop:
                self._queue = asyncio.Queue()
                self._tasks = set()
            self._loop = loop
            self._consumer = loop.create_task(self._consume())

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._dispatch(event)
            except Exception:
                logger.exception("failed to dispatch %s", type(event).__name__)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: Event) -> None:
        document = event.document
        log_event(
            "editor_event",
            kind=type(event).__name__,
            uri=document.uri if document is not None else None,
            line=getattr(event, "line", None),
        )
        if isinstance(event, DocumentOpened):
            self._update_providers(event.document)
        elif isinstance(event, DocumentChanged):
            self._update_providers(event.document)
            if self.tracker.on_document_changed(event.document):
                self._spawn(self.tracker.refresh())
        elif isinstance(event, DocumentClosed):
            for provider in self.providers:
                provider.clear(event.document)
            self.tracker.on_document_closed(event.document)
        elif isinstance(event, SelectionChanged):
            if self.tracker.on_selection_changed(event.document, event.line):
                self._spawn(self.tracker.refresh())
        elif isinstance(event, EditorSwitched):
            if self.tracker.on_editor_switched(event.document, event.line):
                self._spawn(self.tracker.refresh())

    def _update_providers(self, document: Document) -> None:
        for provider in self.providers:
            self._spawn(self._run_provider(provider, document))

    async def _run_provider(self, provider: DocumentProvider, document: Document) -> None:
        try:
            provider.update(document)
        except Exception:
            logger.exception("%s failed for %s", type(provider).__name__, document.uri)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("background task failed", exc_info=task.exception())

    async def idle(self) -> None:
        """Wait until queued events are dispatched and spawned work has finished."""
        while True:
            if self._queue is not None:
                await self._queue.join()
            if not self._tasks:
                return
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
