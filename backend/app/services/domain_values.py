"""
Immutable domain values the expansion engine works on.

ORM rows are converted into these once per expansion (see spec_repository),
so every engine component is a pure function over plain frozen dataclasses
and can be unit tested without a database.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Hashable, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


# ── Tagged lookup result ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class Missing:
    key: Any


Lookup = Union[Found[T], Missing]


def lookup(table: Mapping[Hashable, T], key: Optional[Hashable]) -> Lookup:
    """Look ``key`` up in ``table``; None and unknown keys both yield Missing."""
    if key is None or key not in table:
        return Missing(key)
    return Found(table[key])


def value_or_none(result: Lookup) -> Optional[Any]:
    return result.value if isinstance(result, Found) else None


# ── Domain values ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SizeValue:
    code: str
    c_code: str
    size1_size2: float      # nominal inches, e.g. 0.5, 2, 24
    size_inch: str          # display text
    size_mm: float
    od: float

    @property
    def sort_key(self) -> tuple:
        # OD is expected unique; mm then code keep the order stable when it isn't
        return (self.od, self.size_mm, self.code)


@dataclass(frozen=True)
class ScheduleValue:
    code: str
    c_code: str
    sch1_sch2: str
    sch_desc: str = ""


@dataclass(frozen=True)
class RatingValue:
    rating_code: str
    c_rating_code: str
    rating_value: str


@dataclass(frozen=True)
class MaterialValue:
    code: str
    c_code: str
    material_description: str


@dataclass(frozen=True)
class DimStdValue:
    code: str
    c_code: str
    dim_std: str


@dataclass(frozen=True)
class ComponentDescValue:
    code: str
    c_code: str
    item_description: str
    short_code: str = ""
    g_type: str = ""
    s_type: str = ""
    skey: str = ""


@dataclass(frozen=True)
class CatalogRefValue:
    item_short_desc: str
    rating: Optional[str]
    catalog: str


@dataclass(frozen=True)
class ConstructionDescValue:
    code: str
    c_code: str
    construction_desc: str


@dataclass(frozen=True)
class ValveSubTypeValue:
    code: str
    c_code: str
    valv_sub_type: str


@dataclass(frozen=True)
class BranchValue:
    run_size: float         # mm
    branch_size: float      # mm
    comp_name: str          # geometry tag


@dataclass(frozen=True)
class ReducerValue:
    type: str               # REDUCER | REDUCER SWAGE
    big_size: float         # nominal inches
    small_size: float


# ── Declared rules ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PMSLineValue:
    id: int
    sort_order: int
    component_id: Optional[int]
    component_desc_code: Optional[str]
    size1_code: Optional[str]
    size2_code: Optional[str]
    rating_code: Optional[str] = None
    material_code: Optional[str] = None
    dimensional_standard_code: Optional[str] = None
    # Valve lines only
    construction_desc_code: Optional[str] = None
    valv_sub_type_code: Optional[str] = None
    is_valve_line: bool = False
