"""
Overlay Resolver — two-tier (global default + project override) value merge.

Every overlaid domain table (sizes, schedules, ratings, materials,
dimensional standards, component descriptions, catalog references,
construction descriptions, valve sub-types, reducer chart, branch chart)
resolves through the same code path:

    defaults  ──►  map[natural_key] = row
    overrides ──►  map[natural_key] = row   (overwrites on collision)

The merge is pure; loading is a thin async wrapper around one SELECT per tier.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.domain_values import Lookup, lookup

logger = logging.getLogger("pms-expansion.overlay")

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def overlay(
    defaults: Iterable[T],
    overrides: Iterable[T],
    key_fn: Callable[[T], K],
) -> Dict[K, T]:
    """Merge two tiers into one map; an override always wins on key collision."""
    merged: Dict[K, T] = {}
    for row in defaults:
        merged[key_fn(row)] = row
    for row in overrides:
        merged[key_fn(row)] = row
    return merged


class OverlayResolver(Generic[T]):
    """
    Generic resolver for one overlaid domain type.

    Args:
        model: ORM class carrying the scope column.
        key_fn: natural-key extractor applied to converted values.
        to_value: ORM row -> immutable domain value.
        scope_column: name of the scope column (``project_id`` for domain
            tables, ``spec_id`` for the branch chart).
    """

    def __init__(
        self,
        model: Any,
        key_fn: Callable[[T], Hashable],
        to_value: Callable[[Any], T],
        scope_column: str = "project_id",
    ) -> None:
        self.model = model
        self.key_fn = key_fn
        self.to_value = to_value
        self.scope_column = scope_column

    def merge(self, defaults: Iterable[T], overrides: Iterable[T]) -> Dict[Hashable, T]:
        return overlay(defaults, overrides, self.key_fn)

    async def load(self, session: AsyncSession, scope_id: Optional[int]) -> Dict[Hashable, T]:
        """Fetch both tiers and merge. No scope id yields a defaults-only map."""
        column = getattr(self.model, self.scope_column)
        result = await session.execute(
            select(self.model).where(column.is_(None)).order_by(self.model.id)
        )
        defaults: List[T] = [self.to_value(row) for row in result.scalars().all()]

        overrides: List[T] = []
        if scope_id is not None:
            result = await session.execute(
                select(self.model).where(column == scope_id).order_by(self.model.id)
            )
            overrides = [self.to_value(row) for row in result.scalars().all()]

        merged = self.merge(defaults, overrides)
        logger.debug(
            "overlay resolved",
            extra={
                "table": self.model.__tablename__,
                "defaults": len(defaults),
                "overrides": len(overrides),
                "merged": len(merged),
            },
        )
        return merged

    def get(self, resolved: Dict[Hashable, T], key: Optional[Hashable]) -> Lookup:
        return lookup(resolved, key)
