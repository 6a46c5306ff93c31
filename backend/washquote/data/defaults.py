"""Default tenant configuration used for demos and unknown companies."""

from washquote.models.pricing import (
    Branding,
    FeatureToggles,
    GutterCleaningPricing,
    HouseWashingPricing,
    PricingConfig,
    RoofCleaningPricing,
    TenantConfig,
)

DEFAULT_COMPANY_ID = "demo"

DEFAULT_PRICING = PricingConfig(
    house_washing=HouseWashingPricing(
        base_price=150.0,
        price_per_sq_ft=0.15,
        price_per_window=8.0,
    ),
    roof_cleaning=RoofCleaningPricing(
        base_price=200.0,
        price_per_sq_ft=0.25,
    ),
    gutter_cleaning=GutterCleaningPricing(
        base_price=100.0,
        price_per_linear_ft=3.50,
    ),
)

DEFAULT_TENANT_CONFIG = TenantConfig(
    company_id=DEFAULT_COMPANY_ID,
    branding=Branding(
        company_name="Demo Cleaning Co",
        primary_color="#3b82f6",
        secondary_color="#10b981",
    ),
    pricing=DEFAULT_PRICING,
    features=FeatureToggles(),
)
