"""Property lookup: address -> public-record attributes.

``SimulatedPropertyLookup`` returns plausible mock records. The provider
variant standardizes the address, queries a property-records API, and
degrades to the simulated record whenever the provider is unavailable.
Lookups never raise.
"""

from __future__ import annotations

import logging
import random
import re
import uuid
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from washquote.exceptions import PropertyLookupError
from washquote.models.property import PropertyData

logger = logging.getLogger(__name__)

_ADDRESS_PATTERN = re.compile(r"^\d+\s+[A-Za-z0-9\s,.-]+$")
_WHITESPACE = re.compile(r"\s+")

# (property type, min sq ft, max sq ft)
_PROPERTY_BUCKETS: list[tuple[str, int, int]] = [
    ("Single Family", 1200, 1800),
    ("Townhouse", 1800, 2400),
    ("Condo", 2400, 3200),
    ("Multi-Family", 3200, 4500),
]


def validate_address(address: str) -> bool:
    """Check that an address starts with a street number followed by a street."""
    return bool(_ADDRESS_PATTERN.match(address.strip()))


def standardize_address(address: str) -> str:
    """Trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", address.strip())


class PropertyLookup(Protocol):
    """Looks up public-record attributes for an address."""

    def lookup(self, address: str) -> PropertyData | None:
        ...


class SimulatedPropertyLookup:
    """Mock property records drawn from per-property-type ranges."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def lookup(self, address: str) -> PropertyData | None:
        address = standardize_address(address)
        if not address:
            return None

        rng = self._rng
        property_type, low, high = rng.choice(_PROPERTY_BUCKETS)
        return PropertyData(
            address=address,
            square_footage=rng.randrange(low, high),
            property_type=property_type,
            year_built=rng.randint(1970, 2019),
            bedrooms=rng.randint(2, 5),
            bathrooms=rng.randint(1, 3),
            lot_size=rng.randint(5000, 12999),
            provider_id=f"sim_{uuid.uuid4().hex[:9]}",
            confidence=rng.uniform(0.88, 0.99),
        )


class ProviderPropertyLookup:
    """Address standardization plus a property-records API, over httpx.

    Either step may be unconfigured: without a standardization key the
    address is cleaned locally, and without records credentials every
    lookup goes to ``fallback``.
    """

    def __init__(
        self,
        http_client: httpx.Client,
        fallback: PropertyLookup,
        records_url: str | None = None,
        records_key: str | None = None,
        standardize_url: str | None = None,
        standardize_key: str | None = None,
    ) -> None:
        self._http = http_client
        self._fallback = fallback
        self._records_url = records_url
        self._records_key = records_key
        self._standardize_url = standardize_url
        self._standardize_key = standardize_key

    def lookup(self, address: str) -> PropertyData | None:
        if not address.strip():
            return None
        try:
            standardized = self.standardize(address)
            return self._fetch_record(standardized)
        except PropertyLookupError as exc:
            logger.warning("Property lookup failed, using fallback: %s", exc)
            return self._fallback.lookup(address)

    def standardize(self, address: str) -> str:
        """Standardize an address with the provider, or locally if unconfigured."""
        cleaned = standardize_address(address)
        if not (self._standardize_url and self._standardize_key):
            return cleaned

        try:
            response = self._http.post(
                self._standardize_url,
                json={
                    "TransmissionReference": "washquote",
                    "CustomerID": self._standardize_key,
                    "Records": [
                        {"RecordID": "1", "AddressLine1": cleaned, "Country": "US"},
                    ],
                },
            )
            response.raise_for_status()
            records = response.json().get("Records") or []
            formatted = records[0].get("FormattedAddress") if records else None
        except (
            httpx.HTTPError,
            httpx.InvalidURL,
            ValueError,
            AttributeError,
            TypeError,
        ) as exc:
            logger.warning("Address standardization failed: %s", exc)
            return cleaned

        return formatted or cleaned

    def _fetch_record(self, address: str) -> PropertyData | None:
        if not (self._records_url and self._records_key):
            return self._fallback.lookup(address)

        try:
            response = self._http.get(
                self._records_url,
                params={"address": address},
                headers={"Authorization": f"Bearer {self._records_key}"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            msg = f"Property records request failed: {exc}"
            raise PropertyLookupError(msg) from exc

        return self._to_property_data(payload, address)

    @staticmethod
    def _to_property_data(payload: Any, address: str) -> PropertyData:
        """Map a records payload (single object or OData ``value`` list)."""
        if isinstance(payload, dict) and isinstance(payload.get("value"), list):
            records = payload["value"]
            if not records:
                msg = f"No property record found for '{address}'"
                raise PropertyLookupError(msg)
            payload = records[0]
        if not isinstance(payload, dict):
            msg = "Property records response is not an object"
            raise PropertyLookupError(msg)

        try:
            return PropertyData(
                address=address,
                square_footage=payload.get("LivingArea"),
                property_type=payload.get("PropertyType"),
                year_built=payload.get("YearBuilt"),
                bedrooms=payload.get("BedroomsTotal"),
                bathrooms=payload.get("BathroomsTotal"),
                lot_size=payload.get("LotSizeSquareFeet"),
                provider_id=(
                    str(payload["ListingId"]) if payload.get("ListingId") else None
                ),
                confidence=0.95,
            )
        except ValidationError as exc:
            msg = f"Property record has invalid fields: {exc}"
            raise PropertyLookupError(msg) from exc
