"""
Resource scores per cell.

A cell's score is its own resource count plus the average resource count of the
surrounding cells that hold resources. A trailing "?" on the label means the cell
or one of its neighbors still holds unclassified points, so the score may grow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from catanscout.domain.models import CellBucket, Category
from catanscout.grid.cell import EIGHT_NEIGHBORS, Cell


@dataclass(frozen=True)
class CellScore:
    cell: Cell
    score: float
    has_unknown: bool

    @property
    def label(self) -> str:
        return f"{self.score:.1f}{'?' if self.has_unknown else ''}"


def cell_scores(buckets: Mapping[str, CellBucket], cells: Iterable[Cell]) -> list[CellScore]:
    """Score each of `cells` from buckets grouped at the same level; zero scores are omitted."""
    out: list[CellScore] = []
    for cell in cells:
        cells_with_resources = 0
        total_resources = 0
        has_unknown = False
        for neighbor in cell.neighbors(EIGHT_NEIGHBORS):
            data = buckets.get(neighbor.key)
            if data is None:
                continue
            resources = data.of(Category.RESOURCE)
            if resources:
                cells_with_resources += 1
                total_resources += len(resources)
            if data.unclassified:
                has_unknown = True

        own = buckets.get(cell.key)
        score = float(len(own.of(Category.RESOURCE))) if own is not None else 0.0
        if own is not None and own.unclassified:
            has_unknown = True
        if total_resources > 0:
            score += total_resources / cells_with_resources
        if score > 0:
            out.append(CellScore(cell=cell, score=score, has_unknown=has_unknown))
    return out
