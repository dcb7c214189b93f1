"""
Mapping from a Shopify order to a Bitrix24 deal.

This module is the single source of truth for Shopify → Bitrix24 field
translation. It produces:
  - Deal fields for crm.deal.add / crm.deal.update
  - Product rows for crm.deal.productrows.set, one row per unit sold
    plus an optional shipping row

Mapping never fails. Missing or malformed order fields fall back to zero,
None or a configured default. SKUs missing from the catalogue are logged
as warnings and reported in ``unmapped_skus``.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional, Union

from .config import (
    BitrixConfig,
    DEFAULT_SHIPPING_PRODUCT_ID,
    DEFAULT_SOURCE_ID,
    DEFAULT_STAGE_ID,
)
from .log import get_logger
from .models import ShopifyLineItem, ShopifyOrder, TaxLine, money_set_amount

logger = get_logger(__name__)

# Shopify source_name of orders rung up in the point-of-sale app
POS_SOURCE_NAME = "pos"

SOURCE_DESCRIPTION_OFFLINE = "offline (pre-order)"
SOURCE_DESCRIPTION_ONLINE = "online (stock)"

DEFAULT_CURRENCY = "EUR"

# Bitrix24 DISCOUNT_TYPE_ID: 1 = monetary, 2 = percentage
DISCOUNT_TYPE_MONETARY = 1


# ---------------------------------------------------------------------------
# Public: Shopify order → Bitrix24 deal fields + product rows
# ---------------------------------------------------------------------------

def shopify_order_to_bitrix_deal(
    order: Union[ShopifyOrder, Mapping],
    config: Optional[BitrixConfig] = None,
    log: Optional[logging.Logger] = None,
) -> dict:
    """
    Map a Shopify order to a Bitrix24 deal.

    Args:
        order: Shopify order (REST Admin API / orders webhook payload) or
            an already validated ShopifyOrder
        config: Lookup tables and placeholder products; defaults apply if omitted
        log: Receives one warning per unmapped SKU; module logger if omitted

    Returns:
        Dict with ``deal_fields`` (flat Bitrix field dict), ``product_rows``
        (list of row dicts) and ``unmapped_skus`` (SKUs that fell back to
        the placeholder product, in line item order)
    """
    order = ShopifyOrder.from_payload(order)
    if config is None:
        config = BitrixConfig()
    log = log or logger

    shipping_price = _shipping_price(order)
    taxes_included = "Y" if order.taxes_included else "N"

    deal_fields = _deal_fields(order, config, shipping_price)

    product_rows: list[dict] = []
    unmapped_skus: list[Optional[str]] = []

    for item in order.line_items:
        product_id = config.sku_to_product_id.get(item.sku)
        if not product_id:
            product_id = config.fallback_product_id
            unmapped_skus.append(item.sku)
            log.warning(
                f"[ORDER MAPPER] SKU {item.sku} not found in mapping, "
                f"using default product ID {product_id}"
            )
        product_rows.extend(
            _line_item_rows(item, order, config, product_id, taxes_included)
        )

    if shipping_price > 0:
        product_rows.append(_shipping_row(config, shipping_price, taxes_included))

    return {
        "deal_fields": deal_fields,
        "product_rows": product_rows,
        "unmapped_skus": unmapped_skus,
    }


# ---------------------------------------------------------------------------
# Deal fields
# ---------------------------------------------------------------------------

def _deal_fields(order: ShopifyOrder, config: BitrixConfig, shipping_price: float) -> dict:
    total_price = first_present(order.current_total_price, order.total_price, default=0.0)
    total_discount = first_present(
        order.current_total_discounts, order.total_discounts, default=0.0
    )
    total_tax = first_present(order.current_total_tax, default=0.0)

    customer = order.customer
    customer_name = customer.full_name if customer else None
    customer_email = first_present(order.email, customer.email if customer else None)

    stage_id = (
        config.financial_status_to_stage_id(order.financial_status)
        or config.default_stage_id
        or DEFAULT_STAGE_ID
    )
    source_id = config.source_name_to_source_id(order.source_name) or DEFAULT_SOURCE_ID

    return {
        "TITLE": order.name or f"Order #{order.id}",
        "OPPORTUNITY": total_price,
        "CURRENCY_ID": order.currency or DEFAULT_CURRENCY,
        "COMMENTS": f"Shopify order {order.name or order.id}",
        "CATEGORY_ID": config.category_id if config.category_id > 0 else 0,
        "STAGE_ID": stage_id,
        "SOURCE_ID": source_id,
        "SOURCE_DESCRIPTION": _source_description(order),
        # Key back to the Shopify order
        "UF_SHOPIFY_ORDER_ID": order.id,
        "UF_SHOPIFY_CUSTOMER_EMAIL": customer_email,
        "UF_SHOPIFY_CUSTOMER_NAME": customer_name,
        # Aggregates for reports
        "UF_SHOPIFY_TOTAL_DISCOUNT": total_discount,
        "UF_SHOPIFY_SHIPPING_PRICE": shipping_price,
        "UF_SHOPIFY_TOTAL_TAX": total_tax,
    }


def _source_description(order: ShopifyOrder) -> str:
    if order.source_name == POS_SOURCE_NAME:
        return SOURCE_DESCRIPTION_OFFLINE
    return SOURCE_DESCRIPTION_ONLINE


def _shipping_price(order: ShopifyOrder) -> float:
    first_line = order.shipping_lines[0] if order.shipping_lines else None
    return first_present(
        money_set_amount(order.current_total_shipping_price_set),
        money_set_amount(order.total_shipping_price_set),
        order.shipping_price,
        first_line.price if first_line else None,
        default=0.0,
    )


# ---------------------------------------------------------------------------
# Product rows
# ---------------------------------------------------------------------------

def _line_item_rows(
    item: ShopifyLineItem,
    order: ShopifyOrder,
    config: BitrixConfig,
    product_id: int,
    taxes_included: str,
) -> list[dict]:
    """One identical row per unit: Bitrix rows always carry QUANTITY 1."""
    price_brutto = first_present(item.price, money_set_amount(item.price_set), default=0.0)

    allocation = item.discount_allocations[0] if item.discount_allocations else None
    discount = first_present(
        allocation.amount if allocation else None,
        money_set_amount(allocation.amount_set) if allocation else None,
        item.total_discount,
        default=0.0,
    )

    price = price_brutto - discount
    discount_rate = (discount / price_brutto) * 100 if price_brutto > 0 else 0.0
    tax_rate = _tax_rate(item, order, config)

    return [
        {
            "PRODUCT_ID": product_id,
            "PRICE": price,
            "PRICE_BRUTTO": price_brutto,
            "QUANTITY": 1,
            "DISCOUNT_TYPE_ID": DISCOUNT_TYPE_MONETARY,
            "DISCOUNT_SUM": discount,
            "DISCOUNT_RATE": discount_rate,
            "TAX_INCLUDED": taxes_included,
            "TAX_RATE": tax_rate,
        }
        for _ in range(_unit_count(item))
    ]


def _shipping_row(config: BitrixConfig, shipping_price: float, taxes_included: str) -> dict:
    product_id = (
        config.shipping_product_id
        if config.shipping_product_id > 0
        else DEFAULT_SHIPPING_PRODUCT_ID
    )
    return {
        "PRODUCT_ID": product_id,
        "PRICE": shipping_price,
        "QUANTITY": 1,
        "DISCOUNT_TYPE_ID": DISCOUNT_TYPE_MONETARY,
        "DISCOUNT_SUM": 0.0,
        "TAX_INCLUDED": taxes_included,
        "TAX_RATE": config.shipping_tax_rate,
    }


def _tax_rate(item: ShopifyLineItem, order: ShopifyOrder, config: BitrixConfig) -> float:
    """Percentage from the item's first tax line, else the order's, else the default."""
    if item.tax_lines:
        return _percent(item.tax_lines[0])
    if order.tax_lines:
        return _percent(order.tax_lines[0])
    return config.default_tax_rate


def _percent(tax_line: TaxLine) -> float:
    # Shopify rates are fractions (0.19)
    return (tax_line.rate or 0.0) * 100


def _unit_count(item: ShopifyLineItem) -> int:
    quantity = first_present(item.quantity, default=1.0)
    if quantity <= 0:
        return 0
    return math.ceil(quantity)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def first_present(*candidates: Any, default: Any = None) -> Any:
    """
    Return the first candidate that is present, else ``default``.

    None and empty strings count as absent. Zero is a present value, so an
    explicit "0.00" from Shopify wins over later fallbacks.
    """
    for candidate in candidates:
        if candidate is None:
            continue
        if isinstance(candidate, str) and not candidate.strip():
            continue
        return candidate
    return default
