"""Contact form models for the contact form service.

This module contains the Pydantic models exchanged between the contact flow,
the validator and the bot verification services.
"""

from typing import Dict, List
from typing_extensions import Annotated
from pydantic import BaseModel, Field


class ValidationResult(BaseModel):
    """Outcome of running the form rules.

    Attributes:
        errors: First failing rule message per field
        clean: Trimmed values of the fields that passed every rule
    """
    errors: Dict[str, str] = Field(default_factory=dict)
    clean: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class VerificationResult(BaseModel):
    """Bot verification outcome.

    Attributes:
        score: Confidence that the visitor is human, between 0 and 1
        success: Policy decision, the flow proceeds only when true
        errors: Upstream error codes or risk reasons
    """
    score: Annotated[float, Field(0.0, ge=0.0, le=1.0)]
    success: bool = False
    errors: List[str] = Field(default_factory=list)
