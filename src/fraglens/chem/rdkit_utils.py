from __future__ import annotations

from dataclasses import dataclass

try:  # optional dependency
    from rdkit import Chem, RDLogger
    from rdkit.Chem import Descriptors, rdMolDescriptors

    # Unparseable input is reported through return values and exceptions.
    RDLogger.DisableLog("rdApp.*")
    RDKIT_AVAILABLE = True
except Exception:  # pragma: no cover - import guard
    Chem = None  # type: ignore[assignment]
    Descriptors = rdMolDescriptors = None  # type: ignore[assignment]
    RDKIT_AVAILABLE = False


class RDKitNotAvailable(RuntimeError):
    pass


def _require_rdkit() -> None:
    if not RDKIT_AVAILABLE:
        raise RDKitNotAvailable("rdkit not installed. Install 'rdkit' to enable chem features.")


def mol_from_smiles(smiles: str, sanitize: bool = True):
    _require_rdkit()
    if sanitize:
        return Chem.MolFromSmiles(smiles)
    return Chem.MolFromSmiles(smiles, sanitize=False)


def _mol_or_raise(smiles: str):
    mol = mol_from_smiles(smiles)
    if mol is None:
        raise ValueError(f"Invalid SMILES: {smiles}")
    return mol


def canonical_smiles(smiles: str) -> str:
    return Chem.MolToSmiles(_mol_or_raise(smiles), canonical=True)


def rewrite_smiles(smiles: str) -> str:
    """Sanitize and write back in the input atom order."""
    return Chem.MolToSmiles(_mol_or_raise(smiles), canonical=False)


def molecular_weight(smiles: str) -> float:
    return float(Descriptors.MolWt(_mol_or_raise(smiles)))


def molecular_formula(smiles: str) -> str:
    return rdMolDescriptors.CalcMolFormula(_mol_or_raise(smiles))


@dataclass(frozen=True)
class RoundTripResult:
    original: str
    first: str
    second: str

    @property
    def perfect(self) -> bool:
        return self.first == self.original

    @property
    def stabilizes(self) -> bool:
        return not self.perfect and self.second == self.first

    @property
    def classification(self) -> str:
        if self.perfect:
            return "perfect"
        if self.stabilizes:
            return "stabilizes"
        return "unstable"


def round_trip(smiles: str) -> RoundTripResult:
    """Parse and re-encode twice.

    ``perfect`` when the first re-encoding reproduces the input, ``stabilizes``
    when the second pass reproduces the first. Raises ValueError for input
    RDKit cannot parse.
    """
    first = rewrite_smiles(smiles)
    second = rewrite_smiles(first)
    return RoundTripResult(original=smiles, first=first, second=second)
