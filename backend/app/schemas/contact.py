"""
HubSpot contact schema (API contract). Kept in sync with frontend types/HubSpotContact.
"""

from typing import Any

from pydantic import BaseModel, Field

# Output field name -> HubSpot property name. Order is the order properties are requested in.
CONTACT_PROPERTY_MAP: dict[str, str] = {
    "firstname": "firstname",
    "lastname": "lastname",
    "email": "email",
    "phone": "phone",
    "mobilephone": "mobilephone",
    "company": "company",
    "jobtitle": "jobtitle",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "country": "country",
    "website": "website",
    "linkedin_url": "hs_linkedin_url",
    "twitter_handle": "twitterhandle",
}

CONTACT_PROPERTIES: list[str] = list(CONTACT_PROPERTY_MAP.values())


class HubSpotContact(BaseModel):
    """A HubSpot contact normalized to the fields this app reads and writes."""
    id: str
    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    phone: str | None = None
    mobilephone: str | None = None
    company: str | None = None
    jobtitle: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    website: str | None = None
    linkedin_url: str | None = None
    twitter_handle: str | None = None
    display_name: str = ""

    def value_of(self, field: str) -> str | None:
        """Current value for an output field name or HubSpot property name."""
        name = output_field_name(field)
        if name is None:
            return None
        return getattr(self, name)


class Unrepresentable(BaseModel):
    """A HubSpot response body that has no identifiable id/properties."""
    raw: Any = None


class ContactUpdateRequest(BaseModel):
    """Request body for a partial update. Keys are output field names or HubSpot property names."""
    properties: dict[str, str | None] = Field(default_factory=dict)


class ContactSearchResponse(BaseModel):
    contacts: list[HubSpotContact]


def output_field_name(field: str) -> str | None:
    """Map a HubSpot property name (or an output name) to the output field name."""
    if field in CONTACT_PROPERTY_MAP:
        return field
    for out_name, prop in CONTACT_PROPERTY_MAP.items():
        if prop == field:
            return out_name
    return None


def hubspot_property_name(field: str) -> str:
    """Map an output field name (or a HubSpot property name) to the HubSpot property name.
    Raises ValueError for fields outside the known property set."""
    if field in CONTACT_PROPERTY_MAP:
        return CONTACT_PROPERTY_MAP[field]
    if field in CONTACT_PROPERTIES:
        return field
    raise ValueError(f"Unknown HubSpot contact field: {field}")
