"""
Combination Policy Engine — expands one PMS line into concrete size tuples.

Each component type has its own policy. A policy is a generator over
``Combination`` tuples; the engine picks one by component name and drains
it. Ordering is deterministic: the enabled-size order (ascending OD) first,
then the chart order documented on each policy.

Policies never look anything up in the database. They receive the
overlay-merged size catalog, the spec's SizeRange, and the branch/reducer
charts already loaded for this expansion.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from app import config
from app.services.domain_values import (
    BranchValue,
    ConstructionDescValue,
    ReducerValue,
    SizeValue,
    ValveSubTypeValue,
)
from app.services.size_range_resolver import (
    EnabledSize,
    SizeIndex,
    is_enabled,
    schedule_code_for,
)

logger = logging.getLogger("pms-expansion.combinations")


@dataclass(frozen=True)
class Combination:
    """One concrete item to synthesize. size2 is None for single-size items."""
    size1: SizeValue
    schedule1_code: Optional[str]
    size2: Optional[SizeValue] = None
    schedule2_code: Optional[str] = None
    construction_desc: Optional[ConstructionDescValue] = None
    valve_sub_type: Optional[ValveSubTypeValue] = None


@dataclass(frozen=True)
class PolicyInput:
    component_name: str
    item_description: str
    span_from: SizeValue
    span_to: SizeValue
    enabled: Sequence[EnabledSize]
    sizes: SizeIndex
    size_range: Mapping[str, Optional[str]]
    branches: Sequence[BranchValue] = field(default_factory=tuple)
    reducers: Sequence[ReducerValue] = field(default_factory=tuple)
    construction_desc: Optional[ConstructionDescValue] = None
    valve_sub_type: Optional[ValveSubTypeValue] = None


Policy = Callable[[PolicyInput], Iterator[Combination]]


# ── Policies ──────────────────────────────────────────────────────────────────

def plain_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """One item per enabled size; size2 and schedule2 absent."""
    for entry in ctx.enabled:
        yield Combination(size1=entry.size, schedule1_code=entry.schedule_code)


def tee_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """
    Run size × branch size from the branch chart (tag "T").

    Branch sizes below the smallest enabled size are ignored, and a branch
    size that is not enabled for the spec yields nothing. Chart rows are
    taken in ascending branch size.
    """
    if not ctx.enabled:
        return
    smallest_mm = min(e.size.size_mm for e in ctx.enabled)
    for run in ctx.enabled:
        matches = sorted(
            (
                b for b in ctx.branches
                if b.run_size == run.size.size_mm
                and b.branch_size >= smallest_mm
                and b.comp_name == config.TEE_BRANCH_TAG
            ),
            key=lambda b: b.branch_size,
        )
        for branch in matches:
            branch_size = ctx.sizes.find_by_mm(branch.branch_size)
            if not is_enabled(branch_size, ctx.size_range):
                continue
            yield Combination(
                size1=run.size,
                schedule1_code=run.schedule_code,
                size2=branch_size,
                schedule2_code=schedule_code_for(branch_size, ctx.size_range),
            )


def reducer_family(item_description: str) -> str:
    if config.SWAGE_KEYWORD in (item_description or "").lower():
        return config.REDUCER_SWAGE_FAMILY
    return config.REDUCER_FAMILY


def reducer_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """
    Big end × small end from the reducer chart of the matching family.

    Both ends must sit inside the line's nominal span; the small end must be
    enabled for the spec. Chart rows are taken in descending small size.
    """
    family = reducer_family(ctx.item_description)
    low = ctx.span_from.size1_size2
    high = ctx.span_to.size1_size2
    for big in ctx.enabled:
        nominal = big.size.size1_size2
        if not low <= nominal <= high:
            continue
        matches = sorted(
            (
                r for r in ctx.reducers
                if r.type == family
                and r.big_size == nominal
                and low <= r.small_size <= high
            ),
            key=lambda r: r.small_size,
            reverse=True,
        )
        for reducer in matches:
            small = ctx.sizes.find_by_nominal(reducer.small_size)
            if not is_enabled(small, ctx.size_range):
                continue
            yield Combination(
                size1=big.size,
                schedule1_code=big.schedule_code,
                size2=small,
                schedule2_code=schedule_code_for(small, ctx.size_range),
            )


def reducing_pair_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """
    Graduated pairs: each enabled size with up to the four next-lower
    enabled sizes (nearest first). The smallest size has no partner and is
    skipped.
    """
    for big in ctx.enabled:
        lower = sorted(
            (e for e in ctx.enabled if e.size.size_mm < big.size.size_mm),
            key=lambda e: e.size.size_mm,
            reverse=True,
        )[: config.REDUCING_PAIR_LIMIT]
        for small in lower:
            yield Combination(
                size1=big.size,
                schedule1_code=big.schedule_code,
                size2=small.size,
                schedule2_code=small.schedule_code,
            )


def olet_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """
    Header (run) × outlet (branch) for branch-chart rows tagged W/H/O/S/L.

    The enabled size is the outlet; the header is not bound to the line's
    span but must be enabled for the spec. Rows are taken in ascending run
    size.
    """
    for outlet in ctx.enabled:
        matches = sorted(
            (
                b for b in ctx.branches
                if b.branch_size == outlet.size.size_mm
                and b.comp_name in config.OLET_BRANCH_TAGS
            ),
            key=lambda b: b.run_size,
        )
        for branch in matches:
            run = ctx.sizes.find_by_mm(branch.run_size)
            if not is_enabled(run, ctx.size_range):
                continue
            yield Combination(
                size1=run,
                schedule1_code=schedule_code_for(run, ctx.size_range),
                size2=outlet.size,
                schedule2_code=outlet.schedule_code,
            )


def valve_policy(ctx: PolicyInput) -> Iterator[Combination]:
    """One valve per enabled size. Valves carry no schedules."""
    for entry in ctx.enabled:
        yield Combination(
            size1=entry.size,
            schedule1_code=None,
            construction_desc=ctx.construction_desc,
            valve_sub_type=ctx.valve_sub_type,
        )


# ── Dispatch ──────────────────────────────────────────────────────────────────

_POLICIES: Dict[str, Policy] = {
    config.COMP_TEE: tee_policy,
    config.COMP_REDUCER: reducer_policy,
    config.COMP_COUPLING: reducing_pair_policy,
    config.COMP_OLET: olet_policy,
    config.COMP_VALVE: valve_policy,
}


def select_policy(component_name: str, item_description: str) -> Policy:
    """Pick the policy for a component; matching on the name is case-sensitive."""
    if (
        component_name == config.COMP_FLANGE
        and config.REDUCING_KEYWORD in (item_description or "").lower()
    ):
        return reducing_pair_policy
    return _POLICIES.get(component_name, plain_policy)


def expand_combinations(ctx: PolicyInput) -> List[Combination]:
    policy = select_policy(ctx.component_name, ctx.item_description)
    combos = list(policy(ctx))
    logger.debug(
        "combinations expanded",
        extra={
            "component": ctx.component_name,
            "policy": policy.__name__,
            "enabled_sizes": len(ctx.enabled),
            "combinations": len(combos),
        },
    )
    return combos
