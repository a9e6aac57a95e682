"""
Size/Schedule Range Resolver.

A size takes part in expansion only when it is both numerically inside the
PMS line's span and explicitly enabled for the spec through SizeRange. Each
enabled size carries the schedule code SizeRange assigns to it (or None,
rendered as the schedule placeholder downstream).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from app.services.domain_values import SizeValue


@dataclass(frozen=True)
class EnabledSize:
    size: SizeValue
    schedule_code: Optional[str]


class SizeIndex:
    """
    Overlay-merged size catalog with the lookups the combination policies need.

    Sizes are held in OD order (tie-break mm, then code). Lookups by mm or by
    nominal inch return the first size in that order.
    """

    def __init__(self, sizes: Iterable[SizeValue]) -> None:
        self.ordered: List[SizeValue] = sorted(sizes, key=lambda s: s.sort_key)
        self.by_code: Dict[str, SizeValue] = {s.code: s for s in self.ordered}
        self._by_mm: Dict[float, SizeValue] = {}
        self._by_nominal: Dict[float, SizeValue] = {}
        for s in self.ordered:
            self._by_mm.setdefault(float(s.size_mm), s)
            self._by_nominal.setdefault(float(s.size1_size2), s)

    def __len__(self) -> int:
        return len(self.ordered)

    def find_by_mm(self, size_mm: float) -> Optional[SizeValue]:
        return self._by_mm.get(float(size_mm))

    def find_by_nominal(self, nominal: float) -> Optional[SizeValue]:
        return self._by_nominal.get(float(nominal))


def enabled_sizes_in_range(
    size_from: SizeValue,
    size_to: SizeValue,
    sizes: SizeIndex,
    size_range: Mapping[str, Optional[str]],
) -> List[EnabledSize]:
    """
    Enabled sizes with ``size_from.mm <= mm <= size_to.mm``, ascending by OD.

    Args:
        size_from / size_to: the PMS line's declared span (inclusive).
        sizes: overlay-merged size catalog.
        size_range: SizeRange for the spec, size code -> schedule code.
    """
    low, high = size_from.size_mm, size_to.size_mm
    return [
        EnabledSize(size=s, schedule_code=size_range[s.code])
        for s in sizes.ordered
        if low <= s.size_mm <= high and s.code in size_range
    ]


def schedule_code_for(size: SizeValue, size_range: Mapping[str, Optional[str]]) -> Optional[str]:
    return size_range.get(size.code)


def is_enabled(size: Optional[SizeValue], size_range: Mapping[str, Optional[str]]) -> bool:
    return size is not None and size.code in size_range
