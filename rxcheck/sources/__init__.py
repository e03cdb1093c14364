"""Upstream drug label sources."""

from .base import DrugSource
from .openfda import OpenFDASource

__all__ = ["DrugSource", "OpenFDASource"]
