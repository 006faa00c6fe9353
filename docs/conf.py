"""Sphinx configuration for the dmrgjax documentation."""

import sys
import warnings
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

# Build from a plain checkout as well as from an installed package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

project = "dmrgjax"
author = "dmrgjax Contributors"
copyright = f"2026, {author}"
try:
    release = version("dmrgjax")
except PackageNotFoundError:
    release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "sphinx_autodoc_typehints",
    "sphinx_copybutton",
    "myst_parser",
]

# Private helpers (``_EnvironmentCache``, ``_eigensolve``) stay out of the API pages.
autodoc_member_order = "groupwise"
autodoc_typehints = "description"
autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
}
autodoc_type_aliases = {
    "LocalOp": "dmrgjax.algorithms.local_ops.LocalOp",
    "OptionsLike": "dmrgjax.algorithms.dmrg.OptionsLike",
}

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_use_rtype = False

myst_enable_extensions = ["dollarmath", "colon_fence"]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "jax": ("https://jax.readthedocs.io/en/latest/", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
}

html_theme = "furo"
html_title = f"dmrgjax {release}"

source_suffix = {".md": "markdown", ".rst": "restructuredtext"}
exclude_patterns = ["_build"]

warnings.filterwarnings(
    "ignore", category=DeprecationWarning, module="sphinx_autodoc_typehints"
)
