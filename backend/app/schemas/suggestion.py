"""
Contact update suggestion schemas (AI-proposed field changes pending user approval).
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.contact import HubSpotContact


class ContactSuggestion(BaseModel):
    """One proposed change to a contact field. Sent to HubSpot only when apply is true."""
    field: str
    label: str = ""
    current_value: str | None = None
    new_value: str | None = None
    apply: bool = False
    context: str | None = Field(default=None, description="Where the value was found, e.g. a transcript excerpt")


class ApplyUpdatesRequest(BaseModel):
    suggestions: list[ContactSuggestion] = Field(default_factory=list)


class ApplyUpdatesResponse(BaseModel):
    """updated is false when no suggestion was selected (nothing sent to HubSpot)."""
    updated: bool
    contact: HubSpotContact | None = None
    updated_fields: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None
