"""Performance monitoring for spec expansion and review-output caching."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("pms-api.perf")


def timed_async(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time for async functions.

    Usage::

        @timed_async
        async def my_async_function():
            ...
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
            return result
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                f"{func.__module__}.{func.__qualname__} timed",
                extra={"duration_ms": duration_ms},
            )
    return wrapper


class ExpansionTracker:
    """
    Thread-safe in-memory tracker for expansion metrics.

    Tracks:
    - Specs expanded and items generated
    - Cumulative and average expansion duration
    - Slowest spec seen so far
    - Skipped PMS lines and failures, broken down by stage
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._specs_expanded: int = 0
        self._items_generated: int = 0
        self._lines_skipped: int = 0
        self._items_cached: int = 0
        self._total_duration_ms: float = 0.0
        self._error_counts: Dict[str, int] = {}       # stage -> count
        self._slowest_spec: Optional[str] = None
        self._slowest_spec_ms: float = 0.0

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_expansion(
        self,
        spec_name: str,
        duration_ms: float,
        items: int,
        skipped_lines: int = 0,
    ) -> None:
        """Call once per spec expansion, whether or not it produced items."""
        with self._lock:
            self._specs_expanded += 1
            self._items_generated += items
            self._lines_skipped += skipped_lines
            self._total_duration_ms += duration_ms
            if duration_ms > self._slowest_spec_ms:
                self._slowest_spec_ms = duration_ms
                self._slowest_spec = spec_name

    def record_cached(self, inserted: int) -> None:
        with self._lock:
            self._items_cached += inserted

    def record_error(self, stage: str) -> None:
        """Increment the error counter for a stage (``generate``, ``load`` ...)."""
        with self._lock:
            self._error_counts[stage] = self._error_counts.get(stage, 0) + 1

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            specs_expanded            : int
            items_generated           : int
            lines_skipped             : int
            items_cached              : int
            avg_expansion_duration_ms : float  (0 if none expanded)
            slowest_spec              : str | None
            slowest_spec_ms           : float
            error_count               : int   (total across all stages)
            error_count_by_stage      : dict  {stage: count}
        """
        with self._lock:
            avg = (
                round(self._total_duration_ms / self._specs_expanded, 2)
                if self._specs_expanded > 0
                else 0.0
            )
            return {
                "specs_expanded": self._specs_expanded,
                "items_generated": self._items_generated,
                "lines_skipped": self._lines_skipped,
                "items_cached": self._items_cached,
                "avg_expansion_duration_ms": avg,
                "slowest_spec": self._slowest_spec,
                "slowest_spec_ms": round(self._slowest_spec_ms, 2),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_stage": dict(self._error_counts),
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._specs_expanded = 0
            self._items_generated = 0
            self._lines_skipped = 0
            self._items_cached = 0
            self._total_duration_ms = 0.0
            self._error_counts.clear()
            self._slowest_spec = None
            self._slowest_spec_ms = 0.0


# Module-level singleton; import this instance everywhere else.
tracker = ExpansionTracker()
