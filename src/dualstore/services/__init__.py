"""Service layer."""

from .model_service import ModelService

__all__ = ["ModelService"]
