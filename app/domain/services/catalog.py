# app/domain/services/catalog.py
"""Resolve an exchange request ("Size L instead of M") to priced line items."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Dict, List, Mapping

from app.domain.models.returns import LineItem

_TOKEN_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


class VariantCatalog:
    """
    A SKU mentioned in the description is priced from ``prices``; the new
    line keeps the total quantity of the old lines.  Without a known SKU the
    request is a same-price variant swap of every old line.
    """

    def __init__(self, prices: Mapping[str, float | Decimal] | None = None) -> None:
        self._prices: Dict[str, Decimal] = {
            sku.upper(): Decimal(str(price)) for sku, price in (prices or {}).items()
        }

    def resolve(self, description: str, old_items: List[LineItem]) -> List[LineItem]:
        for token in _TOKEN_RE.findall(description):
            sku = token.upper()
            if sku in self._prices:
                quantity = sum(item.quantity for item in old_items) or 1
                return [
                    LineItem(sku=sku, name=description, price=self._prices[sku], quantity=quantity)
                ]

        return [
            LineItem(
                sku=item.sku,
                name=f"{item.name} ({description})",
                price=item.price,
                quantity=item.quantity,
            )
            for item in old_items
        ]
