"""
campaign-sync: synchronize code records between a Campaign instance and the
local filesystem.
"""

from pyrollup import rollup

from . import core
from .core import *  # noqa

__all__ = rollup(core)

__canonical_children__ = [
    "core",
]
