"""Write-side model managers for both backends."""

from .base import ModelManager
from .relational import RelationalModelManager
from .wide_column import WideColumnModelManager

__all__ = ["ModelManager", "RelationalModelManager", "WideColumnModelManager"]
