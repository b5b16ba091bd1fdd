# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys
sys.path.insert(0, os.path.abspath('..'))

from kubeboot import __version__  # noqa: E402

# -- Project information -----------------------------------------------------

project = 'kubeboot'
copyright = '2024, kubeboot contributors'
author = 'kubeboot contributors'
release = __version__
version = __version__

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
html_static_path = []

# -- Extension configuration -------------------------------------------------

# Docstrings are Google style (Args/Returns/Raises)
napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = False
napoleon_use_param = True
napoleon_use_rtype = True
napoleon_attr_annotations = True

autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'special-members': '__init__',
    'undoc-members': False,
    'exclude-members': '__weakref__,__dataclass_fields__,__dataclass_params__,__match_args__,__post_init__'
}

autodoc_typehints = 'description'
autodoc_typehints_description_target = 'documented'


def skip_dataclass_fields(app, what, name, obj, skip, options):
    """Skip dataclass fields already listed under the class's Attributes section."""
    if what == "attribute" and 'kubeboot' in str(getattr(obj, '__module__', '')):
        return True
    return skip


def setup(app):
    app.connect('autodoc-skip-member', skip_dataclass_fields)


intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
}
