"""Property record models returned by address lookups."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PropertyData(BaseModel):
    """Public-record attributes for a property.

    Every attribute except the address is optional because providers
    rarely return complete records.
    """

    address: str
    square_footage: int | None = Field(default=None, gt=0)
    property_type: str | None = None
    year_built: int | None = None
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    lot_size: int | None = Field(default=None, ge=0)
    provider_id: str | None = None
    confidence: float = Field(ge=0, le=1)
