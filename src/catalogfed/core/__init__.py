"""Core compensation layer: federation, caching glue and conditional updates."""

from catalogfed.core.engine import CatalogEngine

__all__ = ["CatalogEngine"]
