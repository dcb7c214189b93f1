"""
Typed records for the parts of a Shopify order the mapper reads.

Shopify payloads are loose: money comes as strings, optional blocks are
missing or null, and older API versions drop whole sections. Every field
here is optional and coerced leniently so that validating any JSON-like
order mapping never raises. Anything that cannot be interpreted collapses
to None (or an empty list) and is handled by the mapper's defaults.
"""

import math
import numbers
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


# ---------------------------------------------------------------------------
# Lenient coercion helpers
# ---------------------------------------------------------------------------

def _as_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (numbers.Real, Decimal)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _is_collection(value: Any) -> bool:
    return isinstance(value, (Mapping, Sequence)) and not isinstance(value, (str, bytes, bytearray))


def _as_text(value: Any) -> Optional[str]:
    if value is None or _is_collection(value):
        return None
    return str(value)


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    if _is_collection(value):
        return False
    return bool(value)


def _as_record(value: Any) -> Any:
    """Models pass through, mappings become dicts, anything else is None."""
    if isinstance(value, BaseModel):
        return value
    if isinstance(value, Mapping):
        return dict(value)
    return None


def _as_records(value: Any) -> list:
    """Keep the record entries of a sequence; a non-sequence becomes empty."""
    if not _is_collection(value) or isinstance(value, Mapping):
        return []
    records = (_as_record(item) for item in value)
    return [record for record in records if record is not None]


Amount = Annotated[Optional[float], BeforeValidator(_as_number)]
Text = Annotated[Optional[str], BeforeValidator(_as_text)]
Flag = Annotated[bool, BeforeValidator(_as_flag)]


class ShopifyRecord(BaseModel):
    """Base for all payload records: unknown keys ignored, values immutable."""

    model_config = ConfigDict(extra="ignore", frozen=True)


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

class Money(ShopifyRecord):
    amount: Amount = None
    currency_code: Text = None


class MoneySet(ShopifyRecord):
    """Shopify price set; only the shop currency is used."""

    shop_money: Annotated[Optional[Money], BeforeValidator(_as_record)] = None
    presentment_money: Annotated[Optional[Money], BeforeValidator(_as_record)] = None


OptionalMoneySet = Annotated[Optional[MoneySet], BeforeValidator(_as_record)]


def money_set_amount(money_set: Optional[MoneySet]) -> Optional[float]:
    """Return ``money_set.shop_money.amount`` or None if any link is missing."""
    if money_set is None or money_set.shop_money is None:
        return None
    return money_set.shop_money.amount


# ---------------------------------------------------------------------------
# Order sub-records
# ---------------------------------------------------------------------------

class TaxLine(ShopifyRecord):
    title: Text = None
    price: Amount = None
    rate: Amount = None


class DiscountAllocation(ShopifyRecord):
    amount: Amount = None
    amount_set: OptionalMoneySet = None


class ShippingLine(ShopifyRecord):
    title: Text = None
    price: Amount = None
    price_set: OptionalMoneySet = None


class ShopifyCustomer(ShopifyRecord):
    id: Text = None
    first_name: Text = None
    last_name: Text = None
    email: Text = None

    @property
    def full_name(self) -> Optional[str]:
        """'First Last' trimmed, or None when both parts are blank."""
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None


class ShopifyLineItem(ShopifyRecord):
    id: Text = None
    sku: Text = None
    title: Text = None
    price: Amount = None
    price_set: OptionalMoneySet = None
    quantity: Amount = None
    total_discount: Amount = None
    discount_allocations: Annotated[List[DiscountAllocation], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )
    tax_lines: Annotated[List[TaxLine], BeforeValidator(_as_records)] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

class ShopifyOrder(ShopifyRecord):
    """
    A Shopify order as delivered by the Admin REST API or the
    ``orders/create`` webhook. Only the fields used for the Bitrix24 deal
    are modelled.
    """

    id: Text = None
    name: Text = None
    email: Text = None
    currency: Text = None
    source_name: Text = None
    financial_status: Text = None
    taxes_included: Flag = False

    current_total_price: Amount = None
    total_price: Amount = None
    current_total_discounts: Amount = None
    total_discounts: Amount = None
    current_total_tax: Amount = None
    current_total_shipping_price_set: OptionalMoneySet = None
    total_shipping_price_set: OptionalMoneySet = None
    shipping_price: Amount = None

    customer: Annotated[Optional[ShopifyCustomer], BeforeValidator(_as_record)] = None
    line_items: Annotated[List[ShopifyLineItem], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )
    tax_lines: Annotated[List[TaxLine], BeforeValidator(_as_records)] = Field(default_factory=list)
    shipping_lines: Annotated[List[ShippingLine], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )

    @classmethod
    def from_payload(cls, payload: Any) -> "ShopifyOrder":
        """Build an order from a webhook/API mapping or pass a model through."""
        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, Mapping):
            return cls()
        return cls.model_validate(dict(payload))
