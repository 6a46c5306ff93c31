"""Tenant configuration data and repository."""

from washquote.data.defaults import (
    DEFAULT_COMPANY_ID,
    DEFAULT_PRICING,
    DEFAULT_TENANT_CONFIG,
)
from washquote.data.repository import TenantConfigRepository

__all__ = [
    "DEFAULT_COMPANY_ID",
    "DEFAULT_PRICING",
    "DEFAULT_TENANT_CONFIG",
    "TenantConfigRepository",
]
