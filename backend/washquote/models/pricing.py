"""Per-tenant pricing and feature configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from washquote.models.enums import ServiceType


class HouseWashingPricing(BaseModel):
    """Rates for soft-washing exterior walls."""

    base_price: float = Field(default=150.0, ge=0)
    price_per_sq_ft: float = Field(default=0.15, ge=0)
    price_per_window: float = Field(default=8.0, ge=0)


class RoofCleaningPricing(BaseModel):
    """Rates for roof cleaning, charged on roof area."""

    base_price: float = Field(default=200.0, ge=0)
    price_per_sq_ft: float = Field(default=0.25, ge=0)


class GutterCleaningPricing(BaseModel):
    """Rates for gutter cleaning, charged per linear foot."""

    base_price: float = Field(default=100.0, ge=0)
    price_per_linear_ft: float = Field(default=3.50, ge=0)


class PricingConfig(BaseModel):
    """Rates for every supported service."""

    house_washing: HouseWashingPricing = Field(default_factory=HouseWashingPricing)
    roof_cleaning: RoofCleaningPricing = Field(default_factory=RoofCleaningPricing)
    gutter_cleaning: GutterCleaningPricing = Field(
        default_factory=GutterCleaningPricing
    )

    def base_price(self, service_type: ServiceType) -> float:
        """Return the flat base charge for a service."""
        return getattr(self, service_type.value).base_price


class FeatureToggles(BaseModel):
    """Switches controlling which services and lookups a tenant offers."""

    enable_house_washing: bool = True
    enable_roof_cleaning: bool = True
    enable_gutter_cleaning: bool = True
    require_address: bool = False
    enable_property_lookup: bool = True

    def is_enabled(self, service_type: ServiceType) -> bool:
        return bool(getattr(self, f"enable_{service_type.value}"))


class Branding(BaseModel):
    """Widget branding for a tenant."""

    company_name: str
    primary_color: str = "#3b82f6"
    secondary_color: str = "#10b981"
    logo_url: str | None = None


class TenantConfig(BaseModel):
    """Everything the estimator needs to know about one company."""

    company_id: str = Field(min_length=1)
    branding: Branding
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    features: FeatureToggles = Field(default_factory=FeatureToggles)
