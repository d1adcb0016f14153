"""Result models for service operations."""

from app.models.results.generation import GenerationResult

__all__ = ["GenerationResult"]
