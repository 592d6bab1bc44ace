# ruff: noqa: D100
from __future__ import annotations

import importlib.metadata

project = "scfmix"
copyright = "2023 H. L. Nourse"
author = "H. L. Nourse"
try:
    version = release = importlib.metadata.version("scfmix")
except importlib.metadata.PackageNotFoundError:
    version = release = "0.0.0"

extensions = [
    "myst_parser",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx_copybutton",
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
]

# Don't show typehints/annotations
autodoc_typehints = "none"

source_suffix = [".rst", ".md"]
exclude_patterns = [
    "_build",
    "**.ipynb_checkpoints",
    "Thumbs.db",
    ".DS_Store",
    ".env",
    ".venv",
]

html_theme = "furo"
html_title = "scfmix " + version

myst_enable_extensions = [
    "amsmath",
    "colon_fence",
    "deflist",
    "dollarmath",
    "substitution",
]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "scipy": ("https://docs.scipy.org/doc/scipy/", None),
    "mpi4py": ("https://mpi4py.readthedocs.io/en/stable/", None),
}

always_document_param_types = True

myst_substitutions = {
    "SCF": r"{abbr}`SCF (self-consistent field)`",
    "RMSE": r"{abbr}`RMSE (root-mean-square error)`",
    "MPI": r"{abbr}`MPI (message passing interface)`",
}
