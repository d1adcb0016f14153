"""
Result models for generation service operations.
"""

from pydantic import BaseModel
from typing import Optional


class GenerationResult(BaseModel):
    """Result of a single prompt -> completion exchange."""
    success: bool
    response: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[str] = None
    model_name: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
