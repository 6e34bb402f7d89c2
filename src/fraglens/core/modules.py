"""Single-slot cache of loaded build scripts.

The key is the script path plus its modification time. A miss evicts whatever
is resident before loading, so at most one module is ever held. Each miss
takes a new generation number and only the newest load may install (or clear)
the slot; an older load that settles late still returns its own result to its
caller but cannot displace a newer entry.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from ..host.scripts import ExportedValue, ScriptHost, ScriptLoadError
from ..utils.trace import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleCacheEntry:
    key: tuple[str, int]
    exports: dict[str, ExportedValue]


class ModuleCache:
    def __init__(self, host: ScriptHost) -> None:
        self.host = host
        self.entry: ModuleCacheEntry | None = None
        self._generation = 0

    @staticmethod
    def key_for(path: str | Path) -> tuple[str, int]:
        p = Path(path).resolve()
        try:
            mtime = p.stat().st_mtime_ns
        except OSError as exc:
            raise ScriptLoadError(f"Cannot read {p}: {exc.strerror or exc}") from exc
        return str(p), mtime

    def clear(self) -> None:
        self.entry = None

    async def load(self, path: str | Path) -> dict[str, ExportedValue]:
        key = self.key_for(path)
        if self.entry is not None and self.entry.key == key:
            return self.entry.exports

        self.entry = None
        self._generation += 1
        generation = self._generation
        token = f"{time.time_ns()}-{generation}"
        log_event("module_load", path=key[0], mtime=key[1], generation=generation)
        try:
            exports = await self.host.load(Path(key[0]), token)
        except ScriptLoadError as exc:
            if generation == self._generation:
                self.entry = None
            logger.info("module load failed for %s: %s", key[0], exc)
            log_event("module_load_failed", path=key[0], generation=generation, error=str(exc))
            raise
        if generation == self._generation:
            self.entry = ModuleCacheEntry(key, exports)
        else:
            logger.debug("discarding superseded load of %s (generation %d)", key[0], generation)
        return exports
