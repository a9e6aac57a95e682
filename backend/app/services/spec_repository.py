"""
Spec Repository — loads everything one expansion needs, in one fan-out.

Each overlaid table resolves through an OverlayResolver; the per-spec
tables (PMS lines, valve lines, SizeRange) are read directly. Queries run
concurrently, each on its own session from the factory, because an
AsyncSession must not be shared across concurrent awaits.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.orm_models import (
    BranchEntry,
    CatalogReference,
    Component,
    ComponentDesc,
    ConstructionDesc,
    DimensionalStandard,
    Material,
    PMSLine,
    Rating,
    ReducerEntry,
    Schedule,
    Size,
    SizeRange,
    Spec,
    ValvePMSLine,
    ValveSubType,
)
from app.services.catalog_weight_resolver import catalog_key
from app.services.domain_values import (
    BranchValue,
    CatalogRefValue,
    ComponentDescValue,
    ConstructionDescValue,
    DimStdValue,
    MaterialValue,
    PMSLineValue,
    RatingValue,
    ReducerValue,
    ScheduleValue,
    SizeValue,
    ValveSubTypeValue,
)
from app.services.expansion_pipeline import ExpansionContext
from app.services.overlay_resolver import OverlayResolver
from app.services.size_range_resolver import SizeIndex

logger = logging.getLogger("pms-expansion.repository")

R = TypeVar("R")


class SpecNotFoundError(LookupError):
    def __init__(self, spec_id: int):
        super().__init__(f"Spec not found: {spec_id}")
        self.spec_id = spec_id


# ── ORM row -> domain value ───────────────────────────────────────────────────

def _size(row: Size) -> SizeValue:
    return SizeValue(
        code=row.code,
        c_code=row.c_code,
        size1_size2=float(row.size1_size2),
        size_inch=row.size_inch,
        size_mm=float(row.size_mm),
        od=float(row.od),
    )


def _schedule(row: Schedule) -> ScheduleValue:
    return ScheduleValue(row.code, row.c_code, row.sch1_sch2, row.sch_desc or "")


def _rating(row: Rating) -> RatingValue:
    return RatingValue(row.rating_code, row.c_rating_code, row.rating_value)


def _material(row: Material) -> MaterialValue:
    return MaterialValue(row.code, row.c_code, row.material_description)


def _dim_std(row: DimensionalStandard) -> DimStdValue:
    return DimStdValue(row.code, row.c_code or "", row.dim_std)


def _component_desc(row: ComponentDesc) -> ComponentDescValue:
    return ComponentDescValue(
        code=row.code,
        c_code=row.c_code,
        item_description=row.item_description,
        short_code=row.short_code or "",
        g_type=row.g_type or "",
        s_type=row.s_type or "",
        skey=row.skey or "",
    )


def _catalog_ref(row: CatalogReference) -> CatalogRefValue:
    return CatalogRefValue(row.item_short_desc, row.rating, row.catalog or "")


def _construction_desc(row: ConstructionDesc) -> ConstructionDescValue:
    return ConstructionDescValue(row.code, row.c_code, row.construction_desc)


def _valve_sub_type(row: ValveSubType) -> ValveSubTypeValue:
    return ValveSubTypeValue(row.code, row.c_code, row.valv_sub_type)


def _reducer(row: ReducerEntry) -> ReducerValue:
    return ReducerValue(row.type, float(row.big_size), float(row.small_size))


def _branch(row: BranchEntry) -> BranchValue:
    return BranchValue(float(row.run_size), float(row.branch_size), row.comp_name)


def _pms_line(row: Any, is_valve_line: bool = False) -> PMSLineValue:
    return PMSLineValue(
        id=row.id,
        sort_order=row.sort_order,
        component_id=row.component_id,
        component_desc_code=row.component_desc_code,
        size1_code=row.size1_code,
        size2_code=row.size2_code,
        rating_code=row.rating_code,
        material_code=row.material_code,
        dimensional_standard_code=row.dimensional_standard_code,
        construction_desc_code=getattr(row, "construction_desc_code", None),
        valv_sub_type_code=getattr(row, "valv_sub_type_code", None),
        is_valve_line=is_valve_line,
    )


# ── Resolvers, one per overlaid table ─────────────────────────────────────────

SIZES = OverlayResolver(Size, lambda v: v.code, _size)
SCHEDULES = OverlayResolver(Schedule, lambda v: v.code, _schedule)
RATINGS = OverlayResolver(Rating, lambda v: v.rating_code, _rating)
MATERIALS = OverlayResolver(Material, lambda v: v.code, _material)
DIM_STDS = OverlayResolver(DimensionalStandard, lambda v: v.code, _dim_std)
COMPONENT_DESCS = OverlayResolver(ComponentDesc, lambda v: v.code, _component_desc)
CATALOG_REFS = OverlayResolver(CatalogReference, catalog_key, _catalog_ref)
CONSTRUCTION_DESCS = OverlayResolver(ConstructionDesc, lambda v: v.code, _construction_desc)
VALVE_SUB_TYPES = OverlayResolver(ValveSubType, lambda v: v.code, _valve_sub_type)
REDUCERS = OverlayResolver(ReducerEntry, lambda v: (v.type, v.big_size, v.small_size), _reducer)
BRANCHES = OverlayResolver(
    BranchEntry, lambda v: (v.run_size, v.branch_size), _branch, scope_column="spec_id"
)


# ── Per-spec queries ──────────────────────────────────────────────────────────

async def _get_spec(session: AsyncSession, spec_id: int) -> Optional[Spec]:
    return await session.get(Spec, spec_id)


async def _pms_lines(session: AsyncSession, spec_id: int) -> List[PMSLineValue]:
    result = await session.execute(
        select(PMSLine).where(PMSLine.spec_id == spec_id).order_by(PMSLine.sort_order, PMSLine.id)
    )
    return [_pms_line(row) for row in result.scalars().all()]


async def _valve_lines(session: AsyncSession, spec_id: int) -> List[PMSLineValue]:
    result = await session.execute(
        select(ValvePMSLine)
        .where(ValvePMSLine.spec_id == spec_id)
        .order_by(ValvePMSLine.sort_order, ValvePMSLine.id)
    )
    return [_pms_line(row, is_valve_line=True) for row in result.scalars().all()]


async def _components(session: AsyncSession) -> Dict[int, str]:
    result = await session.execute(select(Component.id, Component.name))
    return {cid: name for cid, name in result.all()}


async def _size_range(session: AsyncSession, spec_id: int) -> Dict[str, Optional[str]]:
    result = await session.execute(
        select(SizeRange.size_code, SizeRange.schedule_code).where(SizeRange.spec_id == spec_id)
    )
    return {size_code: schedule_code for size_code, schedule_code in result.all()}


# ── Fan-out ───────────────────────────────────────────────────────────────────

async def load_context(
    session_factory: async_sessionmaker,
    spec_id: int,
    project_id: Optional[int],
) -> ExpansionContext:
    """
    Build the ExpansionContext for one spec.

    Raises:
        SpecNotFoundError: the spec id does not exist.
    """

    async def run(query: Callable[..., Awaitable[R]], *args: Any) -> R:
        async with session_factory() as session:
            return await query(session, *args)

    spec = await run(_get_spec, spec_id)
    if spec is None:
        raise SpecNotFoundError(spec_id)

    (
        pms_lines, valve_lines, components, size_range,
        sizes, schedules, ratings, materials, dim_stds, component_descs,
        catalog_refs, construction_descs, valve_sub_types, reducers, branches,
    ) = await asyncio.gather(
        run(_pms_lines, spec_id),
        run(_valve_lines, spec_id),
        run(_components),
        run(_size_range, spec_id),
        run(SIZES.load, project_id),
        run(SCHEDULES.load, project_id),
        run(RATINGS.load, project_id),
        run(MATERIALS.load, project_id),
        run(DIM_STDS.load, project_id),
        run(COMPONENT_DESCS.load, project_id),
        run(CATALOG_REFS.load, project_id),
        run(CONSTRUCTION_DESCS.load, project_id),
        run(VALVE_SUB_TYPES.load, project_id),
        run(REDUCERS.load, project_id),
        run(BRANCHES.load, spec_id),
    )

    logger.info(
        f"Context loaded for spec {spec.spec_name}: "
        f"{len(pms_lines)} PMS lines, {len(valve_lines)} valve lines, {len(size_range)} enabled sizes",
        extra={"spec_id": spec_id, "project_id": project_id},
    )
    return ExpansionContext(
        spec_id=spec_id,
        spec_name=spec.spec_name,
        project_id=project_id,
        pms_lines=pms_lines,
        valve_lines=valve_lines,
        components=components,
        component_descs=component_descs,
        sizes=SizeIndex(sizes.values()),
        schedules=schedules,
        ratings=ratings,
        materials=materials,
        dim_stds=dim_stds,
        catalog_refs=catalog_refs,
        size_range=size_range,
        branches=tuple(branches.values()),
        reducers=tuple(reducers.values()),
        construction_descs=construction_descs,
        valve_sub_types=valve_sub_types,
    )
