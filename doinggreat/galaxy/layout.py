"""
Galaxy layout: one star per moment, grouped into weekly clusters on spiral rings.

Week 0 (the week of the first moment) sits at the canvas center; later weeks
fill rings of growing radius and capacity, clockwise from 12 o'clock. A star's
position inside its 300x300 cluster is derived from its client UUID, so the
layout is stable across runs.
"""
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from doinggreat.core.dates import WeekCalculator, utcnow
from doinggreat.db.models import Moment
from doinggreat.galaxy.delaunay import Edge, Point, triangulate

logger = logging.getLogger(__name__)

MASK64 = (1 << 64) - 1

CLUSTER_RADIUS = 150.0  # half of the 300x300 cluster
CLUSTER_SIZE = CLUSTER_RADIUS * 2
BASE_RING_RADIUS = 350.0
RING_SPACING = 350.0
CANVAS_PADDING = 200.0
EMPTY_CANVAS_SIZE = 800.0
MIN_CONSTELLATION_STARS = 3


def stable_seed(client_id: str) -> int:
    """Fold the 128-bit UUID into 64 bits."""
    value = uuid.UUID(str(client_id)).int
    return ((value >> 64) ^ value) & MASK64


class SeededRandom:
    """64-bit linear congruential generator (Knuth MMIX constants)."""

    MULTIPLIER = 6364136223846793005
    INCREMENT = 1442695040888963407

    def __init__(self, seed: int):
        self.state = seed & MASK64

    @classmethod
    def for_client_id(cls, client_id: str) -> "SeededRandom":
        return cls(stable_seed(client_id))

    def next(self) -> int:
        self.state = (self.state * self.MULTIPLIER + self.INCREMENT) & MASK64
        return self.state

    def random(self) -> float:
        """Uniform float in [0, 1) from the top 53 bits."""
        return (self.next() >> 11) * (1.0 / (1 << 53))

    def uniform(self, lo: float, hi: float) -> float:
        return lo + (hi - lo) * self.random()


@dataclass(frozen=True)
class SpiralRingConfig:
    ring_index: int  # 0 = center
    radius: float
    week_capacity: int
    start_week_number: int

    @classmethod
    def ring_for(cls, week_number: int) -> "SpiralRingConfig":
        if week_number <= 0:
            return cls(0, 0.0, 1, 0)
        cumulative = 1
        ring = 1
        while True:
            capacity = 4 + (ring - 1) * 6
            if week_number < cumulative + capacity:
                return cls(ring, BASE_RING_RADIUS + (ring - 1) * RING_SPACING, capacity, cumulative)
            cumulative += capacity
            ring += 1

    def position(self, week_number: int, center: Point) -> Point:
        if week_number < self.start_week_number or week_number >= self.start_week_number + self.week_capacity:
            raise ValueError(f"week {week_number} is not on ring {self.ring_index}")
        if self.ring_index == 0:
            return center
        step = 2 * math.pi / self.week_capacity
        angle = step * (week_number - self.start_week_number) - math.pi / 2
        return (center[0] + math.cos(angle) * self.radius, center[1] + math.sin(angle) * self.radius)


def canvas_size(total_weeks: int) -> float:
    """Side of the square canvas that fits every ring up to week total_weeks - 1."""
    if total_weeks <= 0:
        return EMPTY_CANVAS_SIZE
    outer = SpiralRingConfig.ring_for(total_weeks - 1)
    return (outer.radius + CLUSTER_RADIUS + CANVAS_PADDING) * 2


@dataclass
class WeekCluster:
    week_number: int
    center: Point
    moment_ids: list[str] = field(default_factory=list)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_y, width, height)"""
        return (self.center[0] - CLUSTER_RADIUS, self.center[1] - CLUSTER_RADIUS, CLUSTER_SIZE, CLUSTER_SIZE)


@dataclass
class GalaxyLayout:
    canvas_size: float
    canvas_center: Point
    week_clusters: list[WeekCluster]
    constellation_lines: dict[int, set[Edge]]
    epoch: datetime

    @property
    def total_weeks(self) -> int:
        return len(self.week_clusters)

    def cluster_for_week(self, week_number: int) -> WeekCluster | None:
        for cluster in self.week_clusters:
            if cluster.week_number == week_number:
                return cluster
        return None


class GalaxyLayoutEngine:
    def calculate_layout(self, moments: list[Moment]) -> GalaxyLayout:
        if not moments:
            half = EMPTY_CANVAS_SIZE / 2
            return GalaxyLayout(EMPTY_CANVAS_SIZE, (half, half), [], {}, utcnow())

        ordered = sorted(moments, key=lambda m: m.happened_at)
        epoch = ordered[0].happened_at
        weeks = WeekCalculator(epoch)
        by_week: dict[int, list[Moment]] = {}
        for m in ordered:
            by_week.setdefault(weeks.week_number(m.happened_at), []).append(m)

        total_weeks = max(by_week) + 1
        size = canvas_size(total_weeks)
        center = (size / 2, size / 2)

        clusters = []
        for week in range(total_weeks):
            ring = SpiralRingConfig.ring_for(week)
            clusters.append(
                WeekCluster(week, ring.position(week, center), [m.client_id for m in by_week.get(week, [])])
            )

        lines: dict[int, set[Edge]] = {}
        for cluster in clusters:
            if len(cluster.moment_ids) < MIN_CONSTELLATION_STARS:
                continue
            stars = [self.star_position(m.client_id, cluster) for m in by_week[cluster.week_number]]
            lines[cluster.week_number] = triangulate(stars)
            logger.debug(
                "Week %d: %d stars, %d constellation edges",
                cluster.week_number,
                len(stars),
                len(lines[cluster.week_number]),
            )

        logger.info("Galaxy layout: %d moments across %d weeks", len(moments), total_weeks)
        return GalaxyLayout(size, center, clusters, lines, epoch)

    def star_position(self, client_id: str, cluster: WeekCluster) -> Point:
        rng = SeededRandom.for_client_id(client_id)
        local_x = rng.uniform(0, CLUSTER_SIZE)
        local_y = rng.uniform(0, CLUSTER_SIZE)
        min_x, min_y, _, _ = cluster.bounds
        return (min_x + local_x, min_y + local_y)

    def position_for(self, moment: Moment, layout: GalaxyLayout) -> Point:
        """Canvas position of a moment's star; (0, 0) when its week has no cluster."""
        week = WeekCalculator(layout.epoch).week_number(moment.happened_at)
        cluster = layout.cluster_for_week(week)
        if cluster is None:
            return (0.0, 0.0)
        return self.star_position(moment.client_id, cluster)

    def color_index(self, client_id: str) -> int:
        rng = SeededRandom.for_client_id(client_id)
        # Skip two draws so color does not correlate with position
        rng.next()
        rng.next()
        return rng.next() & 0x7FFFFFFF
