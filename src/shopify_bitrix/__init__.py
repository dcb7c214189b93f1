"""
Shopify → Bitrix24 order mapping package.

Turns a Shopify order payload into the deal fields and product rows
expected by the Bitrix24 CRM REST API.
"""

from .config import BitrixConfig, load_config
from .order_mapper import shopify_order_to_bitrix_deal

__all__ = [
    "config",
    "exceptions",
    "log",
    "models",
    "order_mapper",
    "BitrixConfig",
    "load_config",
    "shopify_order_to_bitrix_deal",
]
