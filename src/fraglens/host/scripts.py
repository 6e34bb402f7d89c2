"""Execution of smiles-js build scripts in a Node.js subprocess.

Every load runs a fresh ``node`` process that imports the script with a
``?t=<token>`` query, so edits are always observed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ..config.models import ScriptHostSettings

logger = logging.getLogger(__name__)

RUNNER = Path(__file__).with_name("runner.mjs")

CodeGenerator = Callable[[str], Awaitable[str]]


class ScriptLoadError(RuntimeError):
    def __init__(self, message: str, stack: str | None = None) -> None:
        super().__init__(message)
        self.stack = stack


@dataclass
class ExportedValue:
    name: str
    notation: str | None = None
    molecular_weight: float | None = None
    formula: str | None = None
    code_generator: CodeGenerator | None = field(default=None, repr=False, compare=False)

    @property
    def is_fragment(self) -> bool:
        return self.notation is not None

    @property
    def can_generate_code(self) -> bool:
        return self.code_generator is not None

    async def to_code(self, variable_name: str) -> str:
        if self.code_generator is None:
            raise AttributeError(f"Export {self.name!r} has no code generator")
        return await self.code_generator(variable_name)


class ScriptHost(Protocol):
    async def load(self, path: Path, token: str) -> dict[str, ExportedValue]: ...


def _error_from_stderr(raw: str) -> ScriptLoadError:
    try:
        data = json.loads(raw)
    except ValueError:
        return ScriptLoadError(raw.strip() or "Module load failed", raw or None)
    if not isinstance(data, dict):
        return ScriptLoadError(raw.strip(), raw)
    return ScriptLoadError(str(data.get("message") or "Module load failed"), data.get("stack"))


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class NodeScriptHost:
    def __init__(self, node: str = "node", timeout: float = 30.0, runner: Path = RUNNER) -> None:
        self.node = node
        self.timeout = timeout
        self.runner = runner

    @classmethod
    def from_settings(cls, settings: ScriptHostSettings) -> NodeScriptHost:
        return cls(node=settings.node, timeout=settings.timeout)

    async def _run(self, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.node,
                str(self.runner),
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ScriptLoadError(f"Node.js executable not found: {self.node}") from exc
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ScriptLoadError(f"Module load timed out after {self.timeout:g}s") from exc
        if proc.returncode != 0:
            raise _error_from_stderr(err.decode("utf-8", errors="replace"))
        return out.decode("utf-8")

    def _code_generator(self, path: Path, token: str, export: str) -> CodeGenerator:
        async def generate(variable_name: str) -> str:
            raw = await self._run("code", str(path), token, export, variable_name)
            return str(json.loads(raw)["code"])

        return generate

    async def load(self, path: Path, token: str) -> dict[str, ExportedValue]:
        path = Path(path).resolve()
        raw = await self._run("exports", str(path), token)
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise ScriptLoadError(f"Unreadable module description: {exc}") from exc
        exports: dict[str, ExportedValue] = {}
        for name, info in payload.items():
            smiles = info.get("smiles")
            exports[name] = ExportedValue(
                name=name,
                notation=smiles if isinstance(smiles, str) else None,
                molecular_weight=_number(info.get("molecularWeight")),
                formula=info.get("formula") if isinstance(info.get("formula"), str) else None,
                code_generator=self._code_generator(path, token, name) if info.get("toCode") else None,
            )
        logger.debug("loaded %d exports from %s", len(exports), path)
        return exports
