"""rxcheck: cached drug lookup and pairwise interaction analysis."""

__version__ = "0.3.0"
