"""
Common Pydantic schemas (integration status).
"""

from datetime import datetime

from pydantic import BaseModel


class HubSpotStatusResponse(BaseModel):
    """Whether the current user has HubSpot connected and when the token expires."""
    connected: bool
    expires_at: datetime | None = None
    needs_refresh: bool = False
