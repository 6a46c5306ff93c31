"""Tenant configuration repository."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import TypeAdapter

from washquote.data.defaults import DEFAULT_TENANT_CONFIG
from washquote.models.pricing import TenantConfig

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_TENANT_LIST = TypeAdapter(list[TenantConfig])


class TenantConfigRepository:
    """Repository for looking up per-company estimator configuration.

    Wraps in-memory tenant configs. Companies without a stored config get
    the default pricing and toggles under their own company id, so the
    widget keeps working for tenants that never customized their rates.
    """

    def __init__(
        self,
        configs: Iterable[TenantConfig] = (),
        default: TenantConfig = DEFAULT_TENANT_CONFIG,
    ) -> None:
        self._default = default
        self._configs: dict[str, TenantConfig] = {
            default.company_id: default,
        }
        for config in configs:
            self._configs[config.company_id] = config

    @classmethod
    def from_json_file(cls, path: Path | str) -> TenantConfigRepository:
        """Load tenant configs from a JSON file holding a list of tenants.

        Raises:
            ValueError: If the file is not valid JSON or a tenant entry
                does not match the ``TenantConfig`` schema.
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            msg = f"Tenant config file {path} is not valid JSON: {exc}"
            raise ValueError(msg) from exc
        configs = _TENANT_LIST.validate_python(raw)
        logger.info("Loaded %d tenant configs from %s", len(configs), path)
        return cls(configs)

    def get(self, company_id: str) -> TenantConfig:
        """Return the config for ``company_id``, or the defaults re-keyed to it."""
        config = self._configs.get(company_id)
        if config is not None:
            return config
        logger.info(
            "No stored config for company '%s'; using default pricing",
            company_id,
        )
        return self._default.model_copy(update={"company_id": company_id})

    def has(self, company_id: str) -> bool:
        return company_id in self._configs

    def put(self, config: TenantConfig) -> None:
        """Store or replace a tenant's config."""
        self._configs[config.company_id] = config

    def company_ids(self) -> list[str]:
        return sorted(self._configs)
