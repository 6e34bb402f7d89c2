from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .models import Diagnostic

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class DiagnosticCollection:
    """Diagnostics of one producer, keyed by document URI.

    ``set`` replaces the whole list for a URI; nothing is ever merged.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._items: dict[str, list[Diagnostic]] = {}
        self._listeners: list[ChangeListener] = []

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, uri: str, diagnostics: Iterable[Diagnostic]) -> None:
        self._items[uri] = list(diagnostics)
        self._notify(uri)

    def delete(self, uri: str) -> None:
        if self._items.pop(uri, None) is not None:
            self._notify(uri)

    def get(self, uri: str) -> list[Diagnostic]:
        return list(self._items.get(uri, ()))

    def uris(self) -> list[str]:
        return list(self._items)

    def clear(self) -> None:
        for uri in list(self._items):
            self.delete(uri)

    def _notify(self, uri: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(uri)
            except Exception:
                logger.exception("%s: diagnostics listener failed for %s", self.name, uri)
