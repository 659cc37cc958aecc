from typing import List, Self

from pydantic import BaseModel, Field, model_validator


class ValidationResult(BaseModel):
    """Outcome of static analysis of one analytical query."""

    is_valid: bool = Field(default=True, description="False if the query must not be executed")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal findings, in detection order")
    errors: List[str] = Field(default_factory=list, description="Reasons the query was rejected, in detection order")
    modified: bool = Field(default=False, description="True if the query was rewritten for safety")
    modified_query: str = Field(default="", description="Query to execute; equals the input unless modified")

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        """A rejected query always names at least one reason."""
        if not self.is_valid and not self.errors:
            raise ValueError("is_valid=False requires at least one error")
        return self


class ResultValidation(BaseModel):
    """Checks applied to a result set after execution."""

    is_valid: bool = Field(default=True, description="Result checks never reject; kept for symmetry with ValidationResult")
    warnings: List[str] = Field(default_factory=list, description="Large-result and truncation notices")
