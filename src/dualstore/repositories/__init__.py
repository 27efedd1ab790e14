"""Read-side repositories for both backends."""

from .base import Repository
from .relational import RelationalRepository, relation_loader
from .wide_column import StrictWideColumnRepository, WideColumnRepository, sort_items

__all__ = [
    "Repository",
    "RelationalRepository",
    "relation_loader",
    "StrictWideColumnRepository",
    "WideColumnRepository",
    "sort_items",
]
