"""pipefit – parametric pipe-fitting adapters exported as binary STL."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
