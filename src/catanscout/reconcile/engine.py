"""
Cell-based reconciliation of classified points against the live feed.

The live feed reports points one by one (`on_live_point_observed`). A sweep then
groups classified and still-unclassified points at the classification level and:
- drops unclassified points that share a cell with a resource/settlement (duplicates),
- queues cells holding two or more unclassified points for a manual decision,
- flags classified points the feed never reported as missing, unless a same-name
  point shows up in their cell, in which case the point is treated as moved.

All state lives in one `ReconciliationState` owned by a `Reconciler`; every mutation
goes through the reconciler's lock, so debounced sweeps running on a timer thread
never interleave with event handlers.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping

from catanscout.catalog.store import TrackedPointStore
from catanscout.config.settings import Settings, get_settings
from catanscout.core.geo import GeoPoint, LatLngBounds, haversine_m
from catanscout.core.timers import ThrottledTimer
from catanscout.domain.models import (
    AmbiguousCluster,
    Category,
    CellBucket,
    ClusterSweep,
    LivePoint,
    MovedPair,
    ResourceType,
    SweepReport,
    TrackedPoint,
    name_sort_key,
)
from catanscout.grid.cell import Cell
from catanscout.reconcile.grouping import group_by_cell, points_in_viewport, strictly_inside_viewport
from catanscout.reconcile.scores import CellScore, cell_scores

logger = logging.getLogger(__name__)


class ObservationOutcome(str, Enum):
    OBSERVED = "observed"
    CLASSIFIED_PRESENT = "classified_present"
    MOVED = "moved"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    INVALID = "invalid"


@dataclass
class ReconciliationState:
    """Session-scoped reconciliation bookkeeping."""

    # Every live point reported during the current live-set sweep.
    seen: dict[str, TrackedPoint] = field(default_factory=dict)
    # Live points that are neither classified nor skipped.
    observed: dict[str, TrackedPoint] = field(default_factory=dict)
    # Ids the user (or a sweep) decided to ignore.
    skipped: set[str] = field(default_factory=set)
    clusters: deque[AmbiguousCluster] = field(default_factory=deque)
    missing: dict[str, TrackedPoint] = field(default_factory=dict)
    moved: list[MovedPair] = field(default_factory=list)

    def reset_live_set(self) -> None:
        self.seen.clear()
        self.observed.clear()
        self.clusters.clear()
        self.missing.clear()
        self.moved.clear()


class Reconciler:
    """Owns the reconciliation state for one session and one store."""

    def __init__(
        self,
        store: TrackedPointStore,
        settings: Settings | None = None,
        state: ReconciliationState | None = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.state = state or ReconciliationState()
        self.last_report: SweepReport | None = None
        self._lock = threading.RLock()
        self._sweep_timer = ThrottledTimer(
            self.sweep,
            delay_seconds=self.settings.reconciliation.sweep_debounce_seconds,
            name="reconcile-sweep",
        )

    @property
    def classification_level(self) -> int:
        return self.settings.grid.classification_level

    # Live feed events

    def on_live_point_observed(self, point: LivePoint | TrackedPoint) -> ObservationOutcome:
        """Record one point reported by the live feed."""
        live = point if isinstance(point, TrackedPoint) else TrackedPoint.from_live(point)
        if not live.has_valid_location():
            logger.debug("Ignoring live point %s: no usable coordinates", live.id)
            return ObservationOutcome.INVALID
        with self._lock:
            # Each point is analyzed once, unless the first report lacked its name.
            previous = self.state.seen.get(live.id)
            if previous is not None and (previous.name or not live.name):
                return ObservationOutcome.DUPLICATE
            self.state.seen[live.id] = live

            stored = self.store.find(live.id)
            if stored is not None:
                outcome = ObservationOutcome.CLASSIFIED_PRESENT
                if not stored.exists_in_live_set:
                    stored.exists_in_live_set = True
                    self.state.missing.pop(stored.id, None)
                    if self._has_moved(stored, live):
                        self._record_move(stored, live)
                        outcome = ObservationOutcome.MOVED
                if not stored.name and live.name:
                    stored.name = live.name
                return outcome

            if live.id in self.state.skipped:
                return ObservationOutcome.SKIPPED

            self.state.observed[live.id] = live
            return ObservationOutcome.OBSERVED

    def observe_all(self, points: Iterable[LivePoint | TrackedPoint]) -> dict[ObservationOutcome, int]:
        counts: dict[ObservationOutcome, int] = {}
        for point in points:
            outcome = self.on_live_point_observed(point)
            counts[outcome] = counts.get(outcome, 0) + 1
        return counts

    def reset_live_set(self) -> None:
        """Start over after a full refresh of the live set (user skips are kept)."""
        with self._lock:
            self._sweep_timer.cancel()
            self.state.reset_live_set()
            for point in self.store:
                point.exists_in_live_set = False
                point.replacement_id = None
            self.last_report = None

    def _has_moved(self, stored: TrackedPoint, live: TrackedPoint) -> bool:
        tol = self.settings.reconciliation.moved_tolerance_deg
        return not (
            math.isclose(stored.lat, live.lat, rel_tol=0.0, abs_tol=tol)
            and math.isclose(stored.lng, live.lng, rel_tol=0.0, abs_tol=tol)
        )

    def _record_move(self, stored: TrackedPoint, observed: TrackedPoint) -> MovedPair:
        self.state.moved = [p for p in self.state.moved if p.stored.id != stored.id]
        pair = MovedPair(stored=stored, observed=observed)
        self.state.moved.append(pair)
        self.state.missing.pop(stored.id, None)
        logger.info(
            "Point %s moved %.1f m (now %s)",
            stored.id,
            haversine_m(stored.location, observed.location),
            observed.id,
        )
        return pair

    # Detection

    def group(self, level: int | None = None) -> dict[str, CellBucket]:
        """Group classified and still-unclassified points by cell."""
        with self._lock:
            point_sets: dict[Category, list[TrackedPoint]] = self.store.point_sets()
            point_sets[Category.UNCLASSIFIED] = list(self.state.observed.values())
            return group_by_cell(point_sets, self.classification_level if level is None else level)

    def detect_missing(self, buckets: Mapping[str, CellBucket]) -> list[TrackedPoint]:
        """Flag classified points the live feed never reported; returns the newly flagged ones."""
        flagged: list[TrackedPoint] = []
        with self._lock:
            for bucket in buckets.values():
                candidates = bucket.unclassified
                for point in bucket.classified():
                    if point.exists_in_live_set or point.replacement_id:
                        continue
                    match = _same_name_candidate(point, candidates)
                    if match is not None:
                        # Same name in the same cell: the entity got a new id, it did not vanish.
                        point.replacement_id = match.id
                        self._record_move(point, match)
                        continue
                    if point.id not in self.state.missing:
                        self.state.missing[point.id] = point
                        flagged.append(point)
        return flagged

    def detect_ambiguous_clusters(self, buckets: Mapping[str, CellBucket]) -> ClusterSweep:
        """Drop duplicates of known points and queue cells that need a manual decision."""
        result = ClusterSweep()
        with self._lock:
            for bucket in buckets.values():
                unclassified = bucket.unclassified
                if not unclassified:
                    continue

                if bucket.has_cell_claim():
                    for point in unclassified:
                        self.state.skipped.add(point.id)
                        self.state.observed.pop(point.id, None)
                        result.dropped_ids.append(point.id)
                    continue

                if len(unclassified) == 1:
                    result.single_candidate_ids.append(unclassified[0].id)
                    continue

                cluster = AmbiguousCluster(cell=bucket.cell, members=sorted(unclassified, key=name_sort_key))
                self.state.clusters.append(cluster)
                result.enqueued.append(cluster)
        return result

    def sweep(self, viewport: LatLngBounds | None = None, zoom: float | None = None) -> SweepReport:
        """Recompute missing points and the ambiguous-cluster queue."""
        cfg = self.settings.reconciliation
        if not cfg.analyze_for_missing_data:
            return SweepReport(ran=False, reason="missing-data analysis is disabled")
        if zoom is not None and cfg.min_sweep_zoom is not None and zoom < cfg.min_sweep_zoom:
            return SweepReport(ran=False, reason=f"zoom {zoom} is below {cfg.min_sweep_zoom}")

        with self._lock:
            self.state.clusters.clear()
            buckets = self.group()
            if viewport is not None:
                # Partial cells may still be missing points the feed has not delivered.
                buckets = strictly_inside_viewport(buckets, viewport)

            self.detect_missing(buckets)
            clusters = self.detect_ambiguous_clusters(buckets)
            missing = (
                self.missing_in_viewport(viewport) if viewport is not None else list(self.state.missing.values())
            )
            report = SweepReport(
                ran=True,
                cells_checked=len(buckets),
                clusters=list(self.state.clusters),
                dropped_ids=clusters.dropped_ids,
                single_candidate_ids=clusters.single_candidate_ids,
                missing=missing,
                moved=list(self.state.moved),
            )
            self.last_report = report

        logger.info(
            "Sweep checked %s cells: %s clusters, %s missing, %s moved, %s dropped",
            report.cells_checked,
            len(report.clusters),
            len(report.missing),
            len(report.moved),
            len(report.dropped_ids),
        )
        return report

    def schedule_sweep(self, viewport: LatLngBounds | None = None, zoom: float | None = None) -> None:
        """Debounced `sweep`: a newer call supersedes a pending one."""
        self._sweep_timer.schedule(viewport=viewport, zoom=zoom)

    def flush_scheduled_sweep(self) -> None:
        self._sweep_timer.flush()

    def score_cells(self, cells: Iterable[Cell]) -> list[CellScore]:
        """Resource scores for `cells`, which must be at the configured score level."""
        level = self.settings.grid.score_level
        cells = list(cells)
        if any(c.level != level for c in cells):
            raise ValueError(f"Scored cells must be at level {level}")
        return cell_scores(self.group(level), cells)

    def missing_in_viewport(self, bounds: LatLngBounds) -> list[TrackedPoint]:
        with self._lock:
            return points_in_viewport(self.state.missing.values(), bounds)

    # Manual resolution

    def next_cluster(self) -> AmbiguousCluster | None:
        with self._lock:
            return self.state.clusters[0] if self.state.clusters else None

    def resolve_cluster(
        self,
        cluster: AmbiguousCluster,
        chosen_id: str,
        category: Category,
        *,
        resource_type: ResourceType | None = None,
    ) -> TrackedPoint:
        """Classify one member of a cluster; the other members leave the unclassified set."""
        if not category.is_classified:
            raise ValueError(f"Cannot resolve a cluster as {category.value!r}")
        chosen = next((m for m in cluster.members if m.id == chosen_id), None)
        if chosen is None:
            raise KeyError(chosen_id)

        with self._lock:
            point = self.store.add(
                chosen.id,
                chosen.lat,
                chosen.lng,
                chosen.name,
                category,
                resource_type=resource_type,
                exists_in_live_set=True,
            )
            for member in cluster.members:
                self.state.observed.pop(member.id, None)
            self._discard_cluster(cluster)
        logger.info("Cluster %s resolved: %s is a %s", cluster.cell, chosen_id, category.label)
        return point

    def skip_cluster(self, cluster: AmbiguousCluster) -> None:
        with self._lock:
            for member in cluster.members:
                self.state.skipped.add(member.id)
                self.state.observed.pop(member.id, None)
            self._discard_cluster(cluster)

    def _discard_cluster(self, cluster: AmbiguousCluster) -> None:
        self.state.clusters = deque(c for c in self.state.clusters if c is not cluster)

    def resolve_move(self, pair: MovedPair | str, new_coordinates: GeoPoint | None = None) -> TrackedPoint:
        """Accept a relocation: update the stored point and drop the moved pair.

        `pair` may also be the stored point id. Coordinates default to the observed ones.
        When the live feed reports the point under another id, the stored point takes it.
        """
        with self._lock:
            if isinstance(pair, str):
                found = next((p for p in self.state.moved if p.stored.id == pair), None)
                if found is None:
                    raise KeyError(pair)
                pair = found

            stored_id = pair.stored.id
            observed_id = pair.observed.id
            target = new_coordinates or pair.observed.location
            point = self.store.relocate(
                stored_id,
                target.lat,
                target.lng,
                new_id=observed_id if observed_id != stored_id else None,
                name=pair.observed.name,
            )
            point.exists_in_live_set = True

            self.state.moved = [p for p in self.state.moved if p is not pair]
            self.state.missing.pop(stored_id, None)
            self.state.observed.pop(observed_id, None)
        return point

    def resolve_all_moves(self) -> list[TrackedPoint]:
        with self._lock:
            return [self.resolve_move(pair) for pair in list(self.state.moved)]

    def remove_missing(self, point_id: str) -> TrackedPoint:
        """Delete a classified point confirmed gone from the live set."""
        with self._lock:
            point = self.store.remove(point_id)
            self.state.missing.pop(point_id, None)
        return point


def _same_name_candidate(point: TrackedPoint, candidates: list[TrackedPoint]) -> TrackedPoint | None:
    if not point.name:
        return None
    return next((c for c in candidates if c.name == point.name and c.id != point.id), None)
