"""
Observation Aggregator Module
=============================

Summary statistics over a filtered point sequence.

Design:
- Mutable accumulator (StatsAccumulator) folded left over the points
- Immutable snapshot (ObservationStats)
- Commutative updates: the result does not depend on point order
- Total: no point can make the fold fail
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable

from bufeo_store.schemas import ObservationPoint, PointType

UNKNOWN_CATEGORY = "Unknown"


class ChartMode(str, Enum):
    """Which histogram the chart shows."""
    DANGER = "danger"
    HEALTH = "health"


@dataclass(frozen=True)
class ObservationStats:
    """
    Immutable statistics snapshot.

    Attributes:
        adults: Adults counted across sightings
        calves: Calves counted across sightings
        danger_count: Number of hazard points
        danger_types: Hazard category -> count
        health_status: Health status -> count (hazard points only)
    """

    adults: int = 0
    calves: int = 0
    danger_count: int = 0
    danger_types: Dict[str, int] = field(default_factory=dict)
    health_status: Dict[str, int] = field(default_factory=dict)

    def __add__(self, other: 'ObservationStats') -> 'ObservationStats':
        """Combine statistics of two disjoint point sequences."""
        if not isinstance(other, ObservationStats):
            return NotImplemented
        return ObservationStats(
            adults=self.adults + other.adults,
            calves=self.calves + other.calves,
            danger_count=self.danger_count + other.danger_count,
            danger_types=dict(Counter(self.danger_types) + Counter(other.danger_types)),
            health_status=dict(Counter(self.health_status) + Counter(other.health_status)),
        )

    def histogram(self, mode: ChartMode) -> Dict[str, int]:
        if ChartMode(mode) == ChartMode.DANGER:
            return dict(self.danger_types)
        return dict(self.health_status)

    def to_dict(self) -> Dict[str, object]:
        return {
            'adults': self.adults,
            'calves': self.calves,
            'danger_count': self.danger_count,
            'danger_types': dict(self.danger_types),
            'health_status': dict(self.health_status),
        }

    def __str__(self) -> str:
        return f"adults={self.adults}, calves={self.calves}, danger={self.danger_count}"


class StatsAccumulator:
    """
    Stateful accumulator for observation statistics.

    Usage:
        accumulator = StatsAccumulator()
        for point in points:
            accumulator.update(point)
        stats = accumulator.get_stats()  # Immutable
    """

    def __init__(self):
        self._adults = 0
        self._calves = 0
        self._danger_count = 0
        self._danger_types: Dict[str, int] = defaultdict(int)
        self._health_status: Dict[str, int] = defaultdict(int)

    def update(self, point: ObservationPoint) -> None:
        """
        Fold one point into the counters.

        Sightings add their adult/calf counts; hazards add to the hazard
        count and both histograms. Start and end markers add nothing.
        """
        if point.type == PointType.SIGHTING:
            self._adults += point.adults or 0
            self._calves += point.calves or 0
        elif point.type == PointType.HAZARD:
            self._danger_count += 1
            self._danger_types[point.danger_type or UNKNOWN_CATEGORY] += 1
            self._health_status[point.health_status or UNKNOWN_CATEGORY] += 1

    def get_stats(self) -> ObservationStats:
        return ObservationStats(
            adults=self._adults,
            calves=self._calves,
            danger_count=self._danger_count,
            danger_types=dict(self._danger_types),
            health_status=dict(self._health_status),
        )

    def reset(self) -> None:
        """Reset all counters to zero."""
        self._adults = 0
        self._calves = 0
        self._danger_count = 0
        self._danger_types.clear()
        self._health_status.clear()


def aggregate(points: Iterable[ObservationPoint]) -> ObservationStats:
    """
    Reduce a point sequence to summary statistics.

    Example:
        >>> stats = aggregate(filtered_points)
        >>> stats.histogram(ChartMode.HEALTH)
        {'injured': 1, 'Unknown': 1}
    """
    accumulator = StatsAccumulator()
    for point in points:
        accumulator.update(point)
    return accumulator.get_stats()
