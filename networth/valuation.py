"""Bucketed market-value / book-value series per group."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

import pandas as pd
import structlog

from networth.domain import Transaction
from networth.replay import LedgerReplayEngine
from networth.segmentation import Section, Segmentation

logger = structlog.get_logger(__name__)


class Side(str, Enum):
    ACTIVE = "active"      # assets: groups worth more than zero
    PASSIVE = "passive"    # liabilities: groups worth less than zero, shown positive


class Scale(str, Enum):
    ABSOLUTE = "absolute"
    CROPPED = "cropped-absolute"
    RELATIVE = "relative"


class BaselineMode(str, Enum):
    NONE = "none"
    INDIVIDUAL = "showIndividualBaselines"
    GLOBAL = "showGlobalBaseline"


@dataclass(frozen=True)
class GroupValue:
    amount: float
    baseline: Optional[float] = None

    @property
    def gain(self) -> float:
        return self.amount - (self.baseline or 0.0)


@dataclass(frozen=True)
class Bucket:
    date: date
    values: Mapping[str, GroupValue] = field(default_factory=dict)
    baseline: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def amount(self, label: str) -> float:
        value = self.values.get(label)
        return value.amount if value is not None else 0.0

    @property
    def total(self) -> float:
        return sum(v.amount for v in self.values.values())


@dataclass(frozen=True)
class Series:
    buckets: tuple[Bucket, ...]
    groups: frozenset[str]
    label_every: int = 1

    @property
    def dates(self) -> list[date]:
        return [b.date for b in self.buckets]

    def is_labelled(self, index: int) -> bool:
        return (len(self.buckets) - index - 1) % self.label_every == 0

    def to_frame(self, baselines: bool = False) -> pd.DataFrame:
        """One row per bucket, one column per group (missing groups are 0)."""
        columns = sorted(self.groups)
        rows = []
        for b in self.buckets:
            row = {label: b.amount(label) for label in columns}
            if baselines:
                for label in columns:
                    value = b.values.get(label)
                    row[f"{label} (book)"] = value.baseline if value is not None else 0.0
            rows.append(row)
        frame = pd.DataFrame(rows, index=pd.DatetimeIndex(self.dates, name="date"))
        return frame.fillna(0.0)


def aggregate(
    segmentation: Segmentation,
    transactions: Sequence[Transaction],
    engine: LedgerReplayEngine,
    side: Side = Side.ACTIVE,
) -> Series:
    """Replay date-descending `transactions` bucket by bucket.

    The BEFORE slice only seeds the state: holdings are replayed and their
    market value on the first boundary becomes the starting book value.
    """
    state = engine.initial_state()
    sign = -1 if side is Side.PASSIVE else 1
    buckets: list[Bucket] = []
    groups: set[str] = set()

    for section, up_to, items in segmentation.sweep(transactions):
        if section is Section.BEFORE:
            for t in items:
                engine.apply(state, t, up_to, track_book_value=False)
            engine.settle(state, up_to)
            continue

        for t in items:
            engine.apply(state, t, up_to)

        values: dict[str, GroupValue] = {}
        bucket_baseline = 0.0
        for label, group in state.items():
            market_value = engine.market_value(group, up_to)
            if market_value == 0 or (market_value > 0) != (side is Side.ACTIVE):
                continue
            values[label] = GroupValue(market_value * sign, group.book_value * sign)
            bucket_baseline += group.book_value * sign
            groups.add(label)

        buckets.append(Bucket(up_to, values, bucket_baseline))

    logger.info(
        "series_aggregated",
        buckets=len(buckets),
        groups=len(groups),
        side=side.value,
        grouping=engine.grouper.grouping.value,
    )
    return Series(tuple(buckets), frozenset(groups), segmentation.label_every)


def crop_floor(series: Series, baseline_mode: BaselineMode = BaselineMode.NONE) -> float:
    """Lowest value observed in the series, used as the bottom of a cropped chart."""
    if not series.buckets:
        return 0.0
    floor = min(b.total for b in series.buckets)
    for b in series.buckets:
        if baseline_mode is BaselineMode.GLOBAL and b.baseline is not None:
            floor = min(floor, b.baseline)
        if baseline_mode is BaselineMode.INDIVIDUAL and len(series.groups) == 1:
            for value in b.values.values():
                if value.baseline is not None:
                    floor = min(floor, value.baseline)
    return floor


def share_of_total(series: Series) -> Series:
    """Each group's amount (and baseline) as a fraction of its bucket total."""
    buckets = []
    for b in series.buckets:
        total = b.total
        if total == 0:
            values = {label: GroupValue(0.0, 0.0) for label in b.values}
            buckets.append(Bucket(b.date, values, 0.0))
            continue
        values = {
            label: GroupValue(
                v.amount / total,
                v.baseline / total if v.baseline is not None else None,
            )
            for label, v in b.values.items()
        }
        baseline = b.baseline / total if b.baseline is not None else None
        buckets.append(Bucket(b.date, values, baseline))
    return Series(tuple(buckets), series.groups, series.label_every)


def floor_for(series: Series, scale: Scale, baseline_mode: BaselineMode = BaselineMode.NONE) -> float:
    if Scale(scale) is Scale.CROPPED:
        return crop_floor(series, baseline_mode)
    return 0.0
