"""
Shared pydantic bases for the scheduling API.

Unknown fields are rejected on both sides of the wire so a misspelled
``scheduled_at`` fails loudly instead of silently booking at a default.
"""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(BaseModel):
    """Request bodies: extras forbidden, surrounding whitespace stripped from strings."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)
