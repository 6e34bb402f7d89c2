"""fraglens: live feedback for molecular fragment definitions.

Resolves the definition under the editor cursor for SELFIES definition files
and smiles-js build scripts, and keeps their diagnostics current. The language
server in ``fraglens.lsp`` is the editor-facing surface.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
