from __future__ import annotations

from pathlib import Path

from ..chem import rdkit_utils as RU
from .parser import Definition, ParseIssue, ParseResult, RepeatCall, Token, is_reference, parse

try:  # optional dependency
    import selfies as sf

    SELFIES_AVAILABLE = True
except Exception:  # pragma: no cover - import guard
    sf = None  # type: ignore[assignment]
    SELFIES_AVAILABLE = False


class SelfiesNotAvailable(RuntimeError):
    pass


class ResolveError(ValueError):
    pass


def _require_selfies() -> None:
    if not SELFIES_AVAILABLE:
        raise SelfiesNotAvailable("selfies not installed. Install 'selfies' to decode definitions.")


def _expand_symbol(result: ParseResult, symbol: str, stack: tuple[str, ...]) -> list[str]:
    inner = symbol[1:-1]
    if inner in result.definitions or is_reference(inner):
        return expand(result, inner, stack)
    return [symbol]


def _expand_token(result: ParseResult, token: Token, stack: tuple[str, ...]) -> list[str]:
    if isinstance(token, RepeatCall):
        unit: list[str] = []
        for symbol in token.pattern:
            unit.extend(_expand_symbol(result, symbol, stack))
        return unit * token.count
    return _expand_symbol(result, token, stack)


def expand(result: ParseResult, name: str, _stack: tuple[str, ...] = ()) -> list[str]:
    """Return the SELFIES symbols of ``name`` with every reference inlined."""
    if name in _stack:
        raise ResolveError(f"Circular reference: {' -> '.join([*_stack, name])}")
    definition = result.definitions.get(name)
    if definition is None:
        raise ResolveError(f"Undefined reference [{name}]")
    stack = (*_stack, name)
    symbols: list[str] = []
    for token in definition.tokens:
        symbols.extend(_expand_token(result, token, stack))
    return symbols


def decode(selfies: str) -> str:
    _require_selfies()
    return sf.decoder(selfies)


def resolve(result: ParseResult, name: str, validate_valence: bool = False) -> str:
    notation = "".join(expand(result, name))
    if validate_valence:
        smiles = decode(notation)
        if RU.mol_from_smiles(smiles) is None:
            raise ResolveError(f"[{name}] does not form a chemically valid molecule ({smiles})")
    return notation


def molecular_weight(selfies: str) -> float:
    return RU.molecular_weight(decode(selfies))


def formula(selfies: str) -> str:
    return RU.molecular_formula(decode(selfies))


def _chemistry_warning(result: ParseResult, definition: Definition) -> ParseIssue | None:
    try:
        notation = "".join(expand(result, definition.name))
    except ResolveError:
        return None  # already reported as undefined/circular
    try:
        decode(notation)
    except Exception as exc:
        return ParseIssue(
            f"SELFIES decoder rejected [{definition.name}]: {exc}",
            definition.line,
            definition.column,
            "chemistry",
            end_column=definition.column + len(definition.name) + 2,
            code="W_CHEMISTRY",
        )
    return None


def load(text: str, path: str | Path | None = None) -> ParseResult:
    """Parse with imports, then flag definitions the SELFIES decoder rejects."""
    result = parse(text, path)
    if SELFIES_AVAILABLE:
        for definition in result.local_definitions():
            warning = _chemistry_warning(result, definition)
            if warning is not None:
                result.warnings.append(warning)
    return result


class SelfiesEngine:
    """The SELFIES definition engine behind the resolution pipeline."""

    def parse(self, text: str, path: str | Path | None = None) -> ParseResult:
        return load(text, path)

    def resolve(self, result: ParseResult, name: str, validate_valence: bool = False) -> str:
        return resolve(result, name, validate_valence=validate_valence)

    def decode(self, notation: str) -> str:
        return decode(notation)

    def molecular_weight(self, notation: str) -> float:
        return molecular_weight(notation)

    def formula(self, notation: str) -> str:
        return formula(notation)
