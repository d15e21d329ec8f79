"""Adaptive time bucketing and the forward sweep over date-sorted transactions.

A range is cut into buckets ending at `end` and stepping backwards by a whole
number of days, weeks or months. The step is picked from a fixed ladder so
that the bucket count stays bounded whatever the length of the range.
"""
import math
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, NamedTuple, Sequence

import pandas as pd
import structlog

from networth.domain import Transaction

logger = structlog.get_logger(__name__)

MAX_BUCKETS = 400


class Density(str, Enum):
    LIGHT = "light"
    DENSE = "dense"


class StepUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Section(str, Enum):
    BEFORE = "before"
    INTO = "into"


@dataclass(frozen=True)
class Step:
    unit: StepUnit
    multiple: int = 1

    def back(self, end: date, n: int) -> date:
        """The date `n` steps before `end`."""
        k = n * self.multiple
        if self.unit is StepUnit.DAY:
            return end - timedelta(days=k)
        if self.unit is StepUnit.WEEK:
            return end - timedelta(weeks=k)
        return (pd.Timestamp(end) - pd.DateOffset(months=k)).date()


class Slice(NamedTuple):
    section: Section
    up_to: date
    items: tuple[Transaction, ...]   # oldest first


def month_difference(start: date, end: date) -> int:
    months = (end.year - start.year) * 12 + end.month - start.month
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def _light_rung(days: int, weeks: int, months: int) -> tuple[Step, int, int]:
    if months > 72:
        return Step(StepUnit.MONTH, 2), 6, months // 2 + 1
    if months > 36:
        return Step(StepUnit.MONTH), 6, months + 1
    if months > 24:
        return Step(StepUnit.MONTH), 3, months + 1
    if weeks > 20:
        return Step(StepUnit.WEEK), 4, weeks + 1
    if days > 50:
        return Step(StepUnit.DAY), 7, days + 1
    return Step(StepUnit.DAY), 2, days + 1


def _dense_rung(days: int, weeks: int, months: int) -> tuple[Step, int, int]:
    if months > 5 * 12:
        return Step(StepUnit.MONTH), 6, months + 1
    if months > 4 * 12:
        return Step(StepUnit.WEEK), 16, weeks + 1
    if months > 3 * 12:
        return Step(StepUnit.WEEK, 2), 8, weeks // 2 + 1
    if months > 2 * 12:
        return Step(StepUnit.WEEK), 8, weeks + 1
    if months > 12:
        return Step(StepUnit.WEEK), 6, weeks + 1
    if weeks > 6 * 4:
        return Step(StepUnit.DAY), 30, days + 1
    if days > 60:
        return Step(StepUnit.DAY), 7, days + 1
    return Step(StepUnit.DAY), 1, days + 1


def _month_multiples() -> Iterator[int]:
    yield from (1, 2, 3, 4, 6, 12)
    years = 2
    while True:
        yield 12 * years
        years += 1


def _widen_monthly(months: int, step: Step, label_every: int, hops: int) -> tuple[Step, int, int]:
    """Coarsen a monthly step until the bucket count fits MAX_BUCKETS."""
    if hops + 1 <= MAX_BUCKETS:
        return step, label_every, hops
    for multiple in _month_multiples():
        if multiple <= step.multiple:
            continue
        hops = months // multiple + 1
        if hops + 1 <= MAX_BUCKETS:
            break
    if multiple < 12:
        label_every = 12 // multiple
    else:
        label_every = max(1, math.ceil((hops + 1) / 30))
    return Step(StepUnit.MONTH, multiple), label_every, hops


@dataclass(frozen=True)
class Segmentation:
    start: date
    end: date
    step: Step
    hops: int
    label_every: int

    @property
    def bucket_count(self) -> int:
        return self.hops + 1

    def boundaries(self) -> list[date]:
        """Bucket dates, oldest first; the last one is always `end`."""
        return [self.step.back(self.end, n) for n in range(self.hops, -1, -1)]

    def is_labelled(self, index: int) -> bool:
        return (self.bucket_count - index - 1) % self.label_every == 0

    def sweep(self, transactions: Sequence[Transaction]) -> Iterator[Slice]:
        """Walk date-descending `transactions` once, oldest to newest.

        Yields a BEFORE slice with everything up to the step preceding the
        first bucket, then one INTO slice per bucket. Transactions dated after
        `end` are never yielded.
        """
        i = len(transactions) - 1
        section = Section.BEFORE
        for n in range(self.hops + 1, -1, -1):
            up_to = self.step.back(self.end, n)
            first = i
            while i >= 0 and transactions[i].date <= up_to:
                i -= 1
            yield Slice(section, up_to, tuple(transactions[i + 1:first + 1][::-1]))
            section = Section.INTO


def segment(start: date, end: date, density: Density = Density.LIGHT) -> Segmentation:
    if start > end:
        raise ValueError(f"Range start {start} is after its end {end}")

    days = (end - start).days
    weeks = days // 7
    months = month_difference(start, end)

    rung = _light_rung if Density(density) is Density.LIGHT else _dense_rung
    step, label_every, hops = rung(days, weeks, months)
    if step.unit is StepUnit.MONTH:
        step, label_every, hops = _widen_monthly(months, step, label_every, hops)

    logger.debug(
        "segmentation_selected",
        density=Density(density).value,
        unit=step.unit.value,
        multiple=step.multiple,
        buckets=hops + 1,
        label_every=label_every,
    )
    return Segmentation(start, end, step, hops, label_every)
