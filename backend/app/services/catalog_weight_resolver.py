"""
Catalog & Weight Resolver.

Catalog reference: exact match on (item short description, rating text)
against the overlay-merged catalog table, suffixed with the item's size(s)
in millimetres.

Unit weight: read from the review-output cache by exact item code. The
engine never computes weights; it only returns what a user entered, or
"0.00" when nothing is cached.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Hashable, Iterable, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.models.orm_models import ReviewOutput
from app.services.code_synthesizer import format_number
from app.services.domain_values import CatalogRefValue

logger = logging.getLogger("pms-expansion.catalog")

_WEIGHT_QUANTUM = Decimal("0.01")
# IN-list size per weight query; stays under driver bind-parameter limits
_LOOKUP_CHUNK = 500


class ItemNotFoundError(LookupError):
    """No review-output row exists for the item code."""

    def __init__(self, item_code: str):
        super().__init__(f"Item not found: {item_code}")
        self.item_code = item_code


class InvalidWeightError(ValueError):
    """Unit weight is not a non-negative decimal."""


def catalog_key(ref: CatalogRefValue) -> Tuple[str, Optional[str]]:
    return (ref.item_short_desc, ref.rating or None)


# ── Catalog ───────────────────────────────────────────────────────────────────

class CatalogResolver:

    def __init__(self, catalog_refs: Mapping[Hashable, CatalogRefValue]) -> None:
        self._refs: Dict[Tuple[str, Optional[str]], CatalogRefValue] = {
            catalog_key(ref): ref for ref in catalog_refs.values()
        }

    def resolve(
        self,
        short_desc: str,
        rating_text: Optional[str],
        size1_mm: float,
        size2_mm: Optional[float] = None,
    ) -> str:
        """``<catalog>-<s1>x<s2>`` / ``<catalog>-<s1>``, or "" when unmatched."""
        ref = self._refs.get((short_desc, rating_text or None))
        if ref is None or not ref.catalog:
            return ""
        suffix = format_number(size1_mm)
        if size2_mm is not None:
            suffix += f"x{format_number(size2_mm)}"
        return f"{ref.catalog}-{suffix}"


# ── Weight ────────────────────────────────────────────────────────────────────

def normalize_weight(raw: object) -> str:
    """'12.5' -> '12.50'. Raises InvalidWeightError on junk or negatives."""
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise InvalidWeightError(f"Unit weight must be a decimal number, got {raw!r}")
    if not value.is_finite() or value < 0:
        raise InvalidWeightError(f"Unit weight must be a non-negative number, got {raw!r}")
    return str(value.quantize(_WEIGHT_QUANTUM, rounding=ROUND_HALF_UP))


def resolve_weight(weights: Mapping[str, Optional[str]], item_code: str) -> str:
    cached = weights.get(item_code)
    return cached if cached else config.DEFAULT_UNIT_WEIGHT


async def load_weights(session: AsyncSession, item_codes: Optional[Iterable[str]] = None) -> Dict[str, str]:
    """
    Cached weights keyed by item code; rows without a weight are left out.
    With item_codes, only those codes are read, in chunks of _LOOKUP_CHUNK.
    """
    query = select(ReviewOutput.item_code, ReviewOutput.unit_weight).where(
        ReviewOutput.unit_weight.is_not(None)
    )
    if item_codes is None:
        result = await session.execute(query)
        return {code: weight for code, weight in result.all() if weight}

    codes = sorted(set(item_codes))
    weights: Dict[str, str] = {}
    for i in range(0, len(codes), _LOOKUP_CHUNK):
        result = await session.execute(
            query.where(ReviewOutput.item_code.in_(codes[i:i + _LOOKUP_CHUNK]))
        )
        weights.update({code: weight for code, weight in result.all() if weight})
    return weights


async def update_weight(session: AsyncSession, item_code: str, weight: object) -> ReviewOutput:
    """Overwrite the cached weight. Never creates the row."""
    normalized = normalize_weight(weight)
    result = await session.execute(
        select(ReviewOutput).where(ReviewOutput.item_code == item_code)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise ItemNotFoundError(item_code)
    row.unit_weight = normalized
    await session.commit()
    await session.refresh(row)
    logger.info(f"Unit weight updated: {item_code} -> {normalized}")
    return row
