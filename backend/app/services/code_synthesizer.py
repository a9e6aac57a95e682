"""
Code & Description Synthesizer.

Item code layout (internal alphabet; the client code uses the same positions
with each value's client code):

    <desc code><size1><size2 | X><sch1 | XX><sch2 | XX><rating | X><material>

Valves carry no schedule positions:

    <desc code><size1>X<rating | X><material>

Long description:

    <description>, [<sch1>, ][<sch2>, ][<rating>, ]<material>[, <dim std>]
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from app import config
from app.services.combination_engine import Combination
from app.services.domain_values import (
    ComponentDescValue,
    DimStdValue,
    MaterialValue,
    RatingValue,
    ScheduleValue,
)


@dataclass(frozen=True)
class ResolvedAttributes:
    """Line-level values shared by every combination of one PMS line."""
    component_name: str
    component_desc: ComponentDescValue
    material: MaterialValue
    rating: Optional[RatingValue] = None
    dim_std: Optional[DimStdValue] = None


@dataclass(frozen=True)
class SynthesizedCodes:
    item_code: str
    client_item_code: str
    long_desc: str
    short_desc: str
    sch1: str
    sch2: str
    rating: str


def format_number(value: Optional[float]) -> str:
    """50.0 -> "50", 0.75 -> "0.75"; None renders as the single placeholder."""
    if value is None:
        return config.SINGLE_PLACEHOLDER
    as_float = float(value)
    if as_float.is_integer():
        return str(int(as_float))
    return f"{as_float:g}"


def _schedule(code: Optional[str], schedules: Mapping[str, ScheduleValue]) -> Optional[ScheduleValue]:
    if code is None:
        return None
    return schedules.get(code)


def build_long_desc(
    item_description: str,
    material_description: str,
    sch1: Optional[ScheduleValue],
    sch2: Optional[ScheduleValue],
    rating: Optional[RatingValue],
    dim_std: Optional[DimStdValue],
) -> str:
    clauses: List[str] = [s.sch1_sch2 for s in (sch1, sch2) if s is not None]
    if rating is not None:
        clauses.append(rating.rating_value)
    text = f"{item_description}, "
    if clauses:
        text += ", ".join(clauses) + ", "
    text += material_description
    if dim_std is not None and dim_std.dim_std:
        text += f", {dim_std.dim_std}"
    return text


def synthesize(
    combo: Combination,
    attrs: ResolvedAttributes,
    schedules: Mapping[str, ScheduleValue],
) -> SynthesizedCodes:
    """Build codes and descriptions for one combination. Never raises on absent optionals."""
    desc = attrs.component_desc
    sch1 = _schedule(combo.schedule1_code, schedules)
    sch2 = _schedule(combo.schedule2_code, schedules)
    rating = attrs.rating
    material = attrs.material
    x, xx = config.SINGLE_PLACEHOLDER, config.SCHEDULE_PLACEHOLDER

    if attrs.component_name == config.COMP_VALVE:
        item_code = "".join((
            desc.code,
            combo.size1.code,
            x,
            rating.rating_code if rating else x,
            material.code,
        ))
        client_item_code = "".join((
            desc.c_code,
            combo.size1.c_code,
            x,
            rating.c_rating_code if rating else x,
            material.c_code,
        ))
    else:
        item_code = "".join((
            desc.code,
            combo.size1.code,
            combo.size2.code if combo.size2 else x,
            sch1.code if sch1 else xx,
            sch2.code if sch2 else xx,
            rating.rating_code if rating else x,
            material.code,
        ))
        client_item_code = "".join((
            desc.c_code,
            combo.size1.c_code,
            combo.size2.c_code if combo.size2 else x,
            sch1.c_code if sch1 else xx,
            sch2.c_code if sch2 else xx,
            rating.c_rating_code if rating else x,
            material.c_code,
        ))

    return SynthesizedCodes(
        item_code=item_code,
        client_item_code=client_item_code,
        long_desc=build_long_desc(
            desc.item_description, material.material_description, sch1, sch2, rating, attrs.dim_std
        ),
        short_desc=desc.item_description,
        sch1=sch1.sch1_sch2 if sch1 else xx,
        sch2=sch2.sch1_sch2 if sch2 else xx,
        rating=rating.rating_value if rating else x,
    )
