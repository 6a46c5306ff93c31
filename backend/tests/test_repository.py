"""Tests for TenantConfigRepository."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from washquote.data import DEFAULT_COMPANY_ID, DEFAULT_TENANT_CONFIG, TenantConfigRepository
from washquote.models.pricing import Branding, FeatureToggles, PricingConfig, TenantConfig


def _tenant(company_id: str = "sparkle", **features: bool) -> TenantConfig:
    return TenantConfig(
        company_id=company_id,
        branding=Branding(company_name="Sparkle Wash"),
        pricing=PricingConfig.model_validate(
            {"house_washing": {"base_price": 199, "price_per_sq_ft": 0.2}}
        ),
        features=FeatureToggles(**features),
    )


class TestGet:
    def test_default_company_present(self) -> None:
        repo = TenantConfigRepository()

        assert repo.has(DEFAULT_COMPANY_ID)
        assert repo.get(DEFAULT_COMPANY_ID) == DEFAULT_TENANT_CONFIG

    def test_stored_tenant_returned(self) -> None:
        repo = TenantConfigRepository([_tenant()])

        config = repo.get("sparkle")

        assert config.pricing.house_washing.base_price == 199
        assert config.pricing.roof_cleaning.base_price == 200

    def test_unknown_tenant_gets_defaults_under_own_id(self) -> None:
        repo = TenantConfigRepository()

        config = repo.get("acme")

        assert config.company_id == "acme"
        assert config.pricing == DEFAULT_TENANT_CONFIG.pricing
        assert not repo.has("acme")

    def test_put_replaces(self) -> None:
        repo = TenantConfigRepository([_tenant()])

        repo.put(_tenant(enable_roof_cleaning=False))

        assert repo.get("sparkle").features.enable_roof_cleaning is False
        assert repo.company_ids() == [DEFAULT_COMPANY_ID, "sparkle"]


class TestFromJsonFile:
    def test_loads_tenant_list(self, tmp_path: Path) -> None:
        path = tmp_path / "tenants.json"
        path.write_text(
            json.dumps([_tenant("a").model_dump(), _tenant("b").model_dump()]),
            encoding="utf-8",
        )

        repo = TenantConfigRepository.from_json_file(path)

        assert repo.company_ids() == ["a", "b", DEFAULT_COMPANY_ID]
        assert repo.get("b").branding.company_name == "Sparkle Wash"

    def test_invalid_json_raises_value_error(self, tmp_path: Path) -> None:
        path = tmp_path / "tenants.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="not valid JSON"):
            TenantConfigRepository.from_json_file(path)

    def test_schema_mismatch_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "tenants.json"
        path.write_text(json.dumps([{"company_id": ""}]), encoding="utf-8")

        with pytest.raises(ValidationError):
            TenantConfigRepository.from_json_file(path)
