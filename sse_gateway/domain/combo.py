"""
Combo Domain Model
"""

from pydantic import BaseModel, ConfigDict, Field


class ComboDefinition(BaseModel):
    """A named, ordered list of model identifiers tried as one logical request."""

    name: str = Field(..., min_length=1, description="Combo name")
    models: list[str] = Field(default_factory=list, description="Ordered model identifiers")

    model_config = ConfigDict(frozen=True)
