from __future__ import annotations

from . import rdkit_utils as RU


def is_valid_smiles(smiles: str) -> bool:
    if not RU.RDKIT_AVAILABLE or not smiles:
        return False
    try:
        return RU.mol_from_smiles(smiles) is not None
    except Exception:
        return False


def render_svg(
    smiles: str,
    width: int = 500,
    height: int = 300,
    add_stereo_annotation: bool = True,
) -> str:
    RU._require_rdkit()
    from rdkit.Chem.Draw import rdMolDraw2D

    mol = RU.mol_from_smiles(smiles)
    if mol is None:
        raise ValueError(f"Invalid molecule for SMILES: {smiles}")
    drawer = rdMolDraw2D.MolDraw2DSVG(width, height)
    drawer.drawOptions().addStereoAnnotation = add_stereo_annotation
    rdMolDraw2D.PrepareAndDrawMolecule(drawer, mol)
    drawer.FinishDrawing()
    return drawer.GetDrawingText()
