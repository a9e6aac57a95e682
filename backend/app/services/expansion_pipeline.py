"""
Expansion Pipeline — PMS lines in, generated items out.

    PMS line ─► required refs (component, description, size1, size2, material)
             ─► enabled sizes in span (SizeRange)
             ─► combination policy for the component type
             ─► codes + descriptions
             ─► catalog reference (+ cached unit weight when requested)

``expand`` is pure over an ``ExpansionContext`` loaded once per request
(see spec_repository.load_context). A line with a missing required
reference is skipped with a diagnostic; optional references degrade to
placeholders. One bad line never aborts the rest of the spec.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from app import config
from app.services.catalog_weight_resolver import CatalogResolver, resolve_weight
from app.services.code_synthesizer import ResolvedAttributes, format_number, synthesize
from app.services.combination_engine import PolicyInput, expand_combinations
from app.services.domain_values import (
    BranchValue,
    CatalogRefValue,
    ComponentDescValue,
    ConstructionDescValue,
    DimStdValue,
    MaterialValue,
    Missing,
    PMSLineValue,
    RatingValue,
    ReducerValue,
    ScheduleValue,
    ValveSubTypeValue,
    lookup,
    value_or_none,
)
from app.services.size_range_resolver import SizeIndex, enabled_sizes_in_range

logger = logging.getLogger("pms-expansion")

NO_DATA_MESSAGE = "No data found for the specified spec ID"


@dataclass(frozen=True)
class ExpansionContext:
    """Everything one spec expansion reads, already overlay-merged."""
    spec_id: int
    spec_name: str
    project_id: Optional[int]
    pms_lines: Sequence[PMSLineValue]
    valve_lines: Sequence[PMSLineValue]
    components: Mapping[int, str]
    component_descs: Mapping[str, ComponentDescValue]
    sizes: SizeIndex
    schedules: Mapping[str, ScheduleValue]
    ratings: Mapping[str, RatingValue]
    materials: Mapping[str, MaterialValue]
    dim_stds: Mapping[str, DimStdValue]
    catalog_refs: Mapping[object, CatalogRefValue]
    size_range: Mapping[str, Optional[str]]
    branches: Sequence[BranchValue] = ()
    reducers: Sequence[ReducerValue] = ()
    construction_descs: Mapping[str, ConstructionDescValue] = field(default_factory=dict)
    valve_sub_types: Mapping[str, ValveSubTypeValue] = field(default_factory=dict)
    weights: Mapping[str, str] = field(default_factory=dict)


@dataclass
class GeneratedItem:
    spec: str
    comp_type: str
    short_code: str
    item_code: str
    client_item_code: str
    item_long_desc: str
    item_short_desc: str
    size1_inch: str
    size2_inch: str
    size1_mm: str
    size2_mm: str
    sch1: str
    sch2: str
    rating: str
    g_type: str
    s_type: str
    skey: str
    catref: str
    unit_weight: Optional[str] = None
    valv_sub_type: str = ""
    construction_desc: str = ""

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass(frozen=True)
class LineDiagnostic:
    pms_line_id: int
    sort_order: int
    stream: str                 # "pms" | "valve"
    reason: str
    missing: Tuple[str, ...] = ()


@dataclass
class ExpansionResult:
    success: bool
    message: str = ""
    data: List[GeneratedItem] = field(default_factory=list)
    diagnostics: List[LineDiagnostic] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def counts_by_type(self) -> Dict[str, int]:
        return dict(Counter(item.comp_type for item in self.data))


# ── Per-line expansion ────────────────────────────────────────────────────────

def _required_refs(ctx: ExpansionContext, line: PMSLineValue) -> Dict[str, object]:
    return {
        "component": lookup(ctx.components, line.component_id),
        "component_desc": lookup(ctx.component_descs, line.component_desc_code),
        "size1": lookup(ctx.sizes.by_code, line.size1_code),
        "size2": lookup(ctx.sizes.by_code, line.size2_code),
        "material": lookup(ctx.materials, line.material_code),
    }


def _expand_line(
    ctx: ExpansionContext,
    line: PMSLineValue,
    catalog: CatalogResolver,
    include_weight: bool,
) -> Tuple[List[GeneratedItem], Optional[LineDiagnostic]]:
    stream = "valve" if line.is_valve_line else "pms"
    refs = _required_refs(ctx, line)
    missing = tuple(name for name, res in refs.items() if isinstance(res, Missing))
    if missing:
        return [], LineDiagnostic(
            pms_line_id=line.id,
            sort_order=line.sort_order,
            stream=stream,
            reason="missing required reference",
            missing=missing,
        )

    component_name: str = refs["component"].value
    is_valve = component_name == config.COMP_VALVE
    if is_valve != line.is_valve_line:
        reason = "valve component in PMS stream" if is_valve else "non-valve component in valve stream"
        return [], LineDiagnostic(line.id, line.sort_order, stream, reason)

    desc: ComponentDescValue = refs["component_desc"].value
    size_from = refs["size1"].value
    size_to = refs["size2"].value
    attrs = ResolvedAttributes(
        component_name=component_name,
        component_desc=desc,
        material=refs["material"].value,
        rating=value_or_none(lookup(ctx.ratings, line.rating_code)),
        dim_std=value_or_none(lookup(ctx.dim_stds, line.dimensional_standard_code)),
    )

    enabled = enabled_sizes_in_range(size_from, size_to, ctx.sizes, ctx.size_range)
    combos = expand_combinations(PolicyInput(
        component_name=component_name,
        item_description=desc.item_description,
        span_from=size_from,
        span_to=size_to,
        enabled=enabled,
        sizes=ctx.sizes,
        size_range=ctx.size_range,
        branches=ctx.branches,
        reducers=ctx.reducers,
        construction_desc=value_or_none(lookup(ctx.construction_descs, line.construction_desc_code)),
        valve_sub_type=value_or_none(lookup(ctx.valve_sub_types, line.valv_sub_type_code)),
    ))

    items: List[GeneratedItem] = []
    for combo in combos:
        codes = synthesize(combo, attrs, ctx.schedules)
        size2 = combo.size2
        items.append(GeneratedItem(
            spec=ctx.spec_name,
            comp_type=component_name,
            short_code=desc.short_code,
            item_code=codes.item_code,
            client_item_code=codes.client_item_code,
            item_long_desc=codes.long_desc,
            item_short_desc=codes.short_desc,
            size1_inch=format_number(combo.size1.size1_size2),
            size2_inch=format_number(size2.size1_size2) if size2 else config.SINGLE_PLACEHOLDER,
            size1_mm=format_number(combo.size1.size_mm),
            size2_mm=format_number(size2.size_mm) if size2 else config.SINGLE_PLACEHOLDER,
            sch1=codes.sch1,
            sch2=codes.sch2,
            rating=codes.rating,
            g_type=desc.g_type,
            s_type=desc.s_type,
            skey=desc.skey,
            catref=catalog.resolve(
                codes.short_desc,
                attrs.rating.rating_value if attrs.rating else None,
                combo.size1.size_mm,
                size2.size_mm if size2 else None,
            ),
            unit_weight=resolve_weight(ctx.weights, codes.item_code) if include_weight else None,
            valv_sub_type=combo.valve_sub_type.valv_sub_type if combo.valve_sub_type else "",
            construction_desc=combo.construction_desc.construction_desc if combo.construction_desc else "",
        ))
    return items, None


# ── Spec expansion ────────────────────────────────────────────────────────────

def expand(ctx: ExpansionContext, include_weight: bool = False) -> ExpansionResult:
    """
    Expand every PMS line, then every valve line, of one spec.

    Args:
        ctx: loaded, overlay-merged context for the spec.
        include_weight: attach the cached unit weight ("0.00" when absent).

    Returns:
        ExpansionResult; ``success`` is False only when the spec has no lines.
    """
    if not ctx.pms_lines and not ctx.valve_lines:
        logger.info(f"No PMS lines for spec {ctx.spec_id}")
        return ExpansionResult(success=False, error=NO_DATA_MESSAGE)

    catalog = CatalogResolver(ctx.catalog_refs)
    result = ExpansionResult(success=True, message="Data processed successfully")

    for line in [*ctx.pms_lines, *ctx.valve_lines]:
        items, diagnostic = _expand_line(ctx, line, catalog, include_weight)
        if diagnostic is not None:
            logger.warning(
                f"PMS line {diagnostic.pms_line_id} skipped: {diagnostic.reason}"
                + (f" ({', '.join(diagnostic.missing)})" if diagnostic.missing else ""),
                extra={"spec_id": ctx.spec_id, "project_id": ctx.project_id},
            )
            result.diagnostics.append(diagnostic)
        result.data.extend(items)

    logger.info(
        f"Spec {ctx.spec_name} expanded: {len(result.data)} items, "
        f"{len(result.diagnostics)} lines skipped",
        extra={"spec_id": ctx.spec_id, "project_id": ctx.project_id},
    )
    return result


def attach_weights(result: ExpansionResult, weights: Mapping[str, str]) -> ExpansionResult:
    """Set every item's unit weight from the cache snapshot; "0.00" when absent."""
    for item in result.data:
        item.unit_weight = resolve_weight(weights, item.item_code)
    return result
