from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CalculationResult:
    """
    Outcome of a commission calculation.

    Calculation never raises: a failure yields an empty record list with the
    swallowed exception kept in ``error``. ``records == []`` with ``error is None``
    means no commissions are owed.
    """
    records: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def swallowed(self) -> bool:
        return self.error is not None

    def __iter__(self):
        return iter(self.records)

    def __len__(self):
        return len(self.records)


def empty_stats() -> Dict[str, Any]:
    return {
        "totalEarnings": 0,
        "pendingEarnings": 0,
        "paidEarnings": 0,
        "totalCommissions": 0,
        "byType": {},
    }


@dataclass
class StatsResult:
    """Per-user commission statistics; degrades to all zeros on failure."""
    stats: Dict[str, Any] = field(default_factory=empty_stats)
    error: Optional[BaseException] = None

    @property
    def swallowed(self) -> bool:
        return self.error is not None
