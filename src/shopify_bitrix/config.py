"""
Bitrix24 mapping configuration.

``BitrixConfig`` is the static lookup table the order mapper reads: the
SKU → product ID catalogue, the deal pipeline (category and stages), lead
source codes and the placeholder products used when a lookup misses.
It is an immutable value passed into the mapper explicitly: fields cannot
be reassigned and the lookup tables are read-only views.

``load_config`` builds one from a JSON file and environment overrides.
Unlike order mapping, configuration loading fails loudly.
"""

import json
import os
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationException
from .log import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Placeholder product for SKUs missing from the catalogue (socks)
DEFAULT_FALLBACK_PRODUCT_ID = 2900

# Product used for the shipping row when none is configured
DEFAULT_SHIPPING_PRODUCT_ID = 3000

DEFAULT_TAX_RATE = 19.0

DEFAULT_STAGE_ID = "NEW"

DEFAULT_SOURCE_ID = "WEB"

# Shopify financial_status → stock Bitrix24 deal pipeline stage
SHOPIFY_STATUS_TO_BITRIX_STAGE: dict[str, str] = {
    "pending": "NEW",
    "authorized": "PREPARATION",
    "partially_paid": "PREPAYMENT_INVOICE",
    "paid": "WON",
    "partially_refunded": "EXECUTING",
    "refunded": "LOSE",
    "voided": "LOSE",
}

# Shopify source_name → Bitrix24 SOURCE_ID
SHOPIFY_SOURCE_TO_BITRIX_SOURCE: dict[str, str] = {
    "web": "WEB",
    "pos": "STORE",
    "shopify_draft_order": "OTHER",
    "iphone": "WEB",
    "android": "WEB",
}

# Environment variables read by load_config
ENV_CONFIG_PATH = "BITRIX_CONFIG_PATH"
ENV_INT_OVERRIDES: dict[str, str] = {
    "BITRIX_CATEGORY_ID": "category_id",
    "BITRIX_SHIPPING_PRODUCT_ID": "shipping_product_id",
    "BITRIX_FALLBACK_PRODUCT_ID": "fallback_product_id",
}
ENV_DEFAULT_STAGE_ID = "BITRIX_DEFAULT_STAGE_ID"
ENV_SKU_MAP = "BITRIX_SKU_MAP"


class BitrixConfig(BaseModel):
    """Immutable lookup table for mapping Shopify orders onto Bitrix24 deals."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    sku_to_product_id: Mapping[str, int] = Field(default_factory=dict)
    category_id: int = 0
    default_stage_id: Optional[str] = None
    shipping_product_id: int = 0
    financial_status_stages: Mapping[str, str] = Field(
        default_factory=lambda: dict(SHOPIFY_STATUS_TO_BITRIX_STAGE)
    )
    source_ids: Mapping[str, str] = Field(
        default_factory=lambda: dict(SHOPIFY_SOURCE_TO_BITRIX_SOURCE)
    )
    fallback_product_id: int = DEFAULT_FALLBACK_PRODUCT_ID
    default_tax_rate: float = DEFAULT_TAX_RATE
    shipping_tax_rate: float = DEFAULT_TAX_RATE

    @field_validator("financial_status_stages", "source_ids")
    @classmethod
    def _lowercase_keys(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType({key.strip().lower(): value for key, value in v.items()})

    @field_validator("sku_to_product_id")
    @classmethod
    def _read_only(cls, v: Mapping[str, int]) -> Mapping[str, int]:
        return MappingProxyType(dict(v))

    def financial_status_to_stage_id(self, financial_status: Optional[str]) -> Optional[str]:
        """Bitrix stage for a Shopify financial status, None if unmapped."""
        if not financial_status:
            return None
        return self.financial_status_stages.get(financial_status.strip().lower())

    def source_name_to_source_id(self, source_name: Optional[str]) -> Optional[str]:
        """Bitrix SOURCE_ID for a Shopify source_name, None if unmapped."""
        if not source_name:
            return None
        return self.source_ids.get(source_name.strip().lower())


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _read_json_file(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as e:
        raise ConfigurationException(
            f"Cannot read Bitrix config file: {e}", source=path
        ) from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationException(
            f"Bitrix config file is not valid JSON: {e}", source=path
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationException(
            "Bitrix config file must contain a JSON object",
            source=path,
            details={"type": type(data).__name__},
        )
    return data


def _parse_sku_map(raw: str) -> dict:
    try:
        sku_map = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationException(
            f"{ENV_SKU_MAP} is not valid JSON: {e}", source=ENV_SKU_MAP
        ) from e
    if not isinstance(sku_map, dict):
        raise ConfigurationException(
            f"{ENV_SKU_MAP} must be a JSON object", source=ENV_SKU_MAP
        )
    return sku_map


def load_config(environ: Optional[Mapping[str, str]] = None) -> BitrixConfig:
    """
    Build a BitrixConfig from the environment.

    ``BITRIX_CONFIG_PATH`` names a JSON file holding any BitrixConfig
    fields. Individual env vars then override it:
    BITRIX_CATEGORY_ID, BITRIX_SHIPPING_PRODUCT_ID, BITRIX_FALLBACK_PRODUCT_ID,
    BITRIX_DEFAULT_STAGE_ID and BITRIX_SKU_MAP (JSON object, merged over the
    file's SKU map).

    Args:
        environ: Mapping to read instead of os.environ

    Raises:
        ConfigurationException: If a source is unreadable or a value is invalid
    """
    env = os.environ if environ is None else environ
    data: dict = {}

    path = env.get(ENV_CONFIG_PATH)
    if path:
        data.update(_read_json_file(path))
        logger.info(f"Loaded Bitrix config from {path}")

    for var, field_name in ENV_INT_OVERRIDES.items():
        if env.get(var):
            data[field_name] = env[var].strip()

    if env.get(ENV_DEFAULT_STAGE_ID):
        data["default_stage_id"] = env[ENV_DEFAULT_STAGE_ID].strip()

    if env.get(ENV_SKU_MAP):
        base_map = data.get("sku_to_product_id")
        sku_map = dict(base_map) if isinstance(base_map, dict) else {}
        sku_map.update(_parse_sku_map(env[ENV_SKU_MAP]))
        data["sku_to_product_id"] = sku_map

    try:
        config = BitrixConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationException(
            "Invalid Bitrix config",
            source=path,
            details={"errors": e.errors(include_url=False)},
        ) from e

    logger.debug(
        f"Bitrix config: {len(config.sku_to_product_id)} SKUs, "
        f"category {config.category_id}"
    )
    return config
