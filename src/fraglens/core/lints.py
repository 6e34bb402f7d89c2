"""Line-pattern checks for deprecated smiles-js APIs in build scripts.

These run on text only; the script is never executed for them.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator

from .models import Diagnostic, Range, RelatedInformation, Severity

SOURCE = "smiles-js"

_IMPORT_RE = re.compile(r"import\s+.*\s+from\s+['\"](.+)['\"]")
_ATTACH_AT_RE = re.compile(r"\.attachAt\(")
_OLD_RING_RE = re.compile(r"Ring\(\s*(['\"])([a-z])\1\s*,\s*(\d+)\s*\)")

LineCheck = Callable[[int, str], Iterator[Diagnostic]]


def _diagnostic(rng: Range, message: str, code: str, replacement: str) -> Diagnostic:
    return Diagnostic(
        range=rng,
        message=message,
        severity=Severity.ERROR,
        source=SOURCE,
        code=code,
        related=[RelatedInformation(f"Replace with: {replacement}", rng)],
        related_fix=replacement,
    )


def check_deprecated_import(line_no: int, line: str) -> Iterator[Diagnostic]:
    m = _IMPORT_RE.search(line)
    if m and "/fragment" in m.group(1):
        yield _diagnostic(
            Range.on_line(line_no, 0, len(line)),
            f"Deprecated import path: '{m.group(1)}'. Use './index.js' or 'smiles-js' instead. "
            "The Fragment API has been updated.",
            "deprecated-import",
            "import { parse, Ring, Linear, Fragment } from 'smiles-js';",
        )


def check_renamed_method(line_no: int, line: str) -> Iterator[Diagnostic]:
    for m in _ATTACH_AT_RE.finditer(line):
        yield _diagnostic(
            Range.on_line(line_no, m.start(), m.start() + len(".attachAt")),
            "Method .attachAt() has been replaced with .attach() in the new API",
            "deprecated-method",
            ".attach(",
        )


def check_old_ring_constructor(line_no: int, line: str) -> Iterator[Diagnostic]:
    for m in _OLD_RING_RE.finditer(line):
        atoms, size = m.group(2), m.group(3)
        yield _diagnostic(
            Range.on_line(line_no, m.start(), len(line)),
            "Old Ring API: Use Ring({ atoms: 'c', size: 6 }) instead of Ring('c', 6)",
            "deprecated-api",
            f"Ring({{ atoms: '{atoms}', size: {size} }})",
        )


DEPRECATION_CHECKS: tuple[LineCheck, ...] = (
    check_deprecated_import,
    check_renamed_method,
    check_old_ring_constructor,
)


def lint_build_script(text: str, checks: tuple[LineCheck, ...] = DEPRECATION_CHECKS) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for line_no, raw in enumerate(text.split("\n")):
        line = raw.rstrip("\r")
        for check in checks:
            diagnostics.extend(check(line_no, line))
    return diagnostics
