"""
Review Output Service — expansion entry points plus the review-output cache.

    expand_spec      load context + expand (read-only)
    load_and_cache   expand every spec of a project, upsert into review_output
    update_unit_weight / filter_cached_items   cache maintenance and queries

The cache is keyed on item_code (unique). Inserts go through
INSERT ... ON CONFLICT (item_code) DO NOTHING, so concurrent loads of the
same project never duplicate rows and never overwrite a user-entered weight.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.orm_models import ReviewOutput, Spec
from app.services.catalog_weight_resolver import load_weights, update_weight
from app.services.expansion_pipeline import ExpansionResult, GeneratedItem, attach_weights, expand
from app.services.perf_monitor import timed_async, tracker
from app.services.spec_repository import load_context

logger = logging.getLogger("pms-expansion.review-output")

# Keeps one multi-row INSERT under SQLite's bound-parameter limit
_INSERT_CHUNK = 500


class NoSpecsError(LookupError):
    def __init__(self, project_id: int):
        super().__init__(f"No specs found for project {project_id}")
        self.project_id = project_id


@dataclass
class LoadSummary:
    specs: int = 0
    generated: int = 0
    inserted: int = 0
    skipped_specs: int = 0


def _factory_for(session: AsyncSession) -> async_sessionmaker:
    return async_sessionmaker(session.bind, class_=AsyncSession, expire_on_commit=False)


# ── Expansion ─────────────────────────────────────────────────────────────────

@timed_async
async def expand_spec(
    session_factory: async_sessionmaker,
    spec_id: int,
    project_id: Optional[int],
    include_weight: bool = False,
) -> ExpansionResult:
    """Load one spec's context and expand it. Raises SpecNotFoundError."""
    start = time.perf_counter()
    context = await load_context(session_factory, spec_id, project_id)
    result = expand(context)
    if include_weight and result.success:
        # Only the generated codes are read from the cache
        async with session_factory() as session:
            weights = await load_weights(session, [item.item_code for item in result.data])
        attach_weights(result, weights)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    tracker.record_expansion(
        context.spec_name, duration_ms, len(result.data), len(result.diagnostics)
    )
    logger.info(
        f"Spec {context.spec_name} generated in {duration_ms}ms",
        extra={"spec_id": spec_id, "project_id": project_id, "duration_ms": duration_ms},
    )
    return result


# ── Cache ─────────────────────────────────────────────────────────────────────

def to_review_output_row(item: GeneratedItem, project_id: int) -> Dict[str, Any]:
    return {
        "project_id": project_id,
        "spec": item.spec,
        "comp_type": item.comp_type,
        "short_code": item.short_code,
        "item_code": item.item_code,
        "client_item_code": item.client_item_code,
        "item_long_desc": item.item_long_desc,
        "item_short_desc": item.item_short_desc,
        "size1_inch": item.size1_inch,
        "size1_mm": item.size1_mm,
        "size2_inch": item.size2_inch,
        "size2_mm": item.size2_mm,
        "sch_1": item.sch1,
        "sch_2": item.sch2,
        "rating": item.rating,
        "g_type": item.g_type,
        "s_type": item.s_type,
        "skey": item.skey,
        "catref": item.catref,
    }


def _insert_for(session: AsyncSession):
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported dialect for review-output upsert: {dialect}")


async def insert_missing(session: AsyncSession, rows: List[Dict[str, Any]]) -> int:
    """Insert rows whose item_code is not cached yet. Returns the number inserted."""
    unique: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        unique.setdefault(row["item_code"], row)
    if not unique:
        return 0

    insert = _insert_for(session)
    payload = list(unique.values())
    inserted = 0
    for i in range(0, len(payload), _INSERT_CHUNK):
        stmt = (
            insert(ReviewOutput)
            .values(payload[i:i + _INSERT_CHUNK])
            .on_conflict_do_nothing(index_elements=["item_code"])
            .returning(ReviewOutput.id)
        )
        result = await session.execute(stmt)
        inserted += len(result.all())
    return inserted


@timed_async
async def load_and_cache(
    session: AsyncSession,
    project_id: int,
    session_factory: Optional[async_sessionmaker] = None,
) -> LoadSummary:
    """
    Expand every spec of a project and cache the items.

    A spec with no PMS lines is skipped; the remaining specs still load.

    Raises:
        NoSpecsError: the project has no (non-deleted) specs.
    """
    result = await session.execute(
        select(Spec.id, Spec.spec_name)
        .where(Spec.project_id == project_id, Spec.is_deleted.is_(False))
        .order_by(Spec.id)
    )
    specs = result.all()
    if not specs:
        raise NoSpecsError(project_id)

    factory = session_factory or _factory_for(session)
    summary = LoadSummary()
    for spec_id, spec_name in specs:
        expansion = await expand_spec(factory, spec_id, project_id)
        summary.specs += 1
        if not expansion.success:
            logger.warning(
                f"Spec {spec_name} has no PMS lines, nothing cached",
                extra={"spec_id": spec_id, "project_id": project_id},
            )
            summary.skipped_specs += 1
            continue
        summary.generated += len(expansion.data)
        summary.inserted += await insert_missing(
            session, [to_review_output_row(item, project_id) for item in expansion.data]
        )

    await session.commit()
    tracker.record_cached(summary.inserted)
    logger.info(
        f"Project {project_id} cached: {summary.inserted} new of {summary.generated} generated "
        f"across {summary.specs} specs",
        extra={"project_id": project_id},
    )
    return summary


async def update_unit_weight(session: AsyncSession, item_code: str, unit_weight: Any) -> ReviewOutput:
    """Raises ItemNotFoundError / InvalidWeightError."""
    return await update_weight(session, item_code, unit_weight)


async def filter_cached_items(
    session: AsyncSession,
    comp_type: Optional[str] = None,
    size1: Optional[str] = None,
    size2: Optional[str] = None,
    rating: Optional[str] = None,
    project_id: Optional[int] = None,
) -> List[ReviewOutput]:
    """Exact-match filter on the cache; an absent argument does not constrain."""
    query = select(ReviewOutput)
    if comp_type:
        query = query.where(ReviewOutput.comp_type == comp_type)
    if size1:
        query = query.where(ReviewOutput.size1_inch == size1)
    if size2:
        query = query.where(ReviewOutput.size2_inch == size2)
    if rating:
        query = query.where(ReviewOutput.rating == rating)
    if project_id is not None:
        query = query.where(ReviewOutput.project_id == project_id)
    result = await session.execute(query.order_by(ReviewOutput.id))
    return list(result.scalars().all())
