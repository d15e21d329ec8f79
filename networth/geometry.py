"""Stacked-area geometry: bands, monotone cubic paths and value-axis ticks.

Coordinates are in an SVG-like box of `width` x `height` with y growing
downwards; bucket i sits at x = i / (n - 1) * width.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence

import numpy as np

from networth.valuation import BaselineMode, Series

Point = tuple[float, float]


class Offset(str, Enum):
    NORMAL = "normal"
    EXPAND = "expand"


def _num(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def stack_bands(matrix: np.ndarray, offset: Offset = Offset.NORMAL) -> np.ndarray:
    """Cumulative [y0, y1] per layer and bucket.

    `matrix` has one row per layer (bottom first) and one column per bucket;
    the result has shape (layers, buckets, 2).
    """
    values = np.asarray(matrix, dtype=float)
    if values.ndim != 2:
        raise ValueError("stack_bands expects a 2-D matrix")
    if Offset(offset) is Offset.EXPAND:
        totals = values.sum(axis=0)
        safe = np.where(totals != 0, totals, 1.0)
        values = np.where(totals != 0, values / safe, 0.0)

    tops = np.cumsum(values, axis=0)
    bottoms = tops - values
    return np.stack([bottoms, tops], axis=-1)


def monotone_slopes(xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    dx = np.diff(xs)
    dy = np.diff(ys)
    with np.errstate(divide="ignore", invalid="ignore"):
        secants = np.where(dx != 0, dy / dx, 0.0)

    n = len(xs)
    m = np.zeros(n)
    m[0] = secants[0]
    m[-1] = secants[-1]
    for i in range(1, n - 1):
        if secants[i - 1] * secants[i] <= 0:
            continue
        w1 = 2 * dx[i] + dx[i - 1]
        w2 = dx[i] + 2 * dx[i - 1]
        m[i] = (w1 + w2) / (w1 / secants[i - 1] + w2 / secants[i])
    return m


def monotone_spline(points: Sequence[Point]) -> str:
    """SVG path through `points` with cubic segments that never overshoot."""
    if len(points) < 2:
        return ""
    xs = np.array([p[0] for p in points], dtype=float)
    ys = np.array([p[1] for p in points], dtype=float)
    dx = np.diff(xs)
    m = monotone_slopes(xs, ys)

    parts = [f"M{_num(xs[0])},{_num(ys[0])}"]
    for i in range(len(xs) - 1):
        c1 = (xs[i] + dx[i] / 3, ys[i] + m[i] * dx[i] / 3)
        c2 = (xs[i + 1] - dx[i] / 3, ys[i + 1] - m[i + 1] * dx[i] / 3)
        parts.append(
            f"C{_num(c1[0])},{_num(c1[1])} {_num(c2[0])},{_num(c2[1])} "
            f"{_num(xs[i + 1])},{_num(ys[i + 1])}"
        )
    return " ".join(parts)


@dataclass(frozen=True)
class AxisTicks:
    step: float
    graph_min: float
    graph_max: float
    start: float
    end: float

    def values(self) -> list[float]:
        count = int(math.floor((self.end - self.start) / self.step + 1e-9)) + 1
        return [round(self.start + i * self.step, 10) for i in range(max(count, 0))]


def value_ticks(data_min: float, data_max: float, nice: bool = False) -> AxisTicks:
    """Round-number ticks, about ten across the range."""
    span = data_max - data_min
    if span <= 0:
        span = abs(data_max) or 1.0
    raw = span / 10
    magnitude = 10 ** math.floor(math.log10(raw))
    norm = raw / magnitude
    if norm < 1.5:
        factor = 1
    elif norm < 3:
        factor = 2
    elif norm < 7:
        factor = 5
    else:
        factor = 10
    step = factor * magnitude

    graph_min = math.floor(data_min / step) * step if nice else data_min
    graph_max = math.ceil(data_max / step) * step if nice else data_max
    return AxisTicks(
        step=step,
        graph_min=graph_min,
        graph_max=graph_max,
        start=math.ceil(graph_min / step) * step,
        end=math.floor(graph_max / step) * step,
    )


class Layer(NamedTuple):
    label: str
    path: str
    bands: np.ndarray   # (buckets, 2) in value space


@dataclass(frozen=True)
class ChartLayout:
    layers: tuple[Layer, ...]
    baseline_paths: dict
    global_baseline_path: str
    ticks: AxisTicks
    width: float
    height: float

    def y_position(self, value: float) -> float:
        low, high = self.ticks.graph_min, self.ticks.graph_max
        domain = (high - low) or 1.0
        return self.height - (max(value, low) - low) / domain * self.height

    def tick_positions(self) -> list[tuple[float, float]]:
        return [(v, self.y_position(v)) for v in self.ticks.values()]


def layout(
    series: Series,
    group_order: Optional[Sequence[str]] = None,
    offset: Offset = Offset.NORMAL,
    floor: float = 0.0,
    nice: bool = False,
    baseline_mode: BaselineMode = BaselineMode.NONE,
    reverse: bool = False,
    width: float = 1000,
    height: float = 1000,
) -> ChartLayout:
    buckets = series.buckets
    labels = list(group_order) if group_order is not None else sorted(series.groups)
    if reverse:
        labels.reverse()
    expand = Offset(offset) is Offset.EXPAND

    matrix = np.array([[b.amount(label) for b in buckets] for label in labels], dtype=float)
    matrix = matrix.reshape(len(labels), len(buckets))
    bands = stack_bands(matrix, offset)
    totals = matrix.sum(axis=0)

    def scaled_baseline(value: float, i: int) -> float:
        if expand:
            return value / (totals[i] or 1.0)
        return value

    if expand:
        raw_max = 1.0
    else:
        raw_max = max(0.0, float(bands[-1, :, 1].max())) if bands.size else 0.0
    for li, label in enumerate(labels):
        for i, b in enumerate(buckets):
            value = b.values.get(label)
            if value is None or value.baseline is None:
                continue
            raw_max = max(raw_max, bands[li, i, 0] + scaled_baseline(value.baseline, i))

    ticks = value_ticks(floor, max(raw_max, floor), nice)
    low, high = ticks.graph_min, ticks.graph_max
    domain = (high - low) or 1.0
    n = len(buckets)

    def x(i: int) -> float:
        return i / (n - 1) * width if n > 1 else 0.0

    def y(value: float) -> float:
        return height - (max(value, low) - low) / domain * height

    layers = []
    for li, label in enumerate(labels):
        bottom = [(x(i), y(bands[li, i, 0])) for i in range(n)]
        top = [(x(i), y(bands[li, i, 1])) for i in range(n)][::-1]
        path = ""
        if n > 1:
            path = f"{monotone_spline(bottom)} L{monotone_spline(top)[1:]} Z"
        layers.append(Layer(label, path, bands[li]))

    baseline_paths = {}
    if baseline_mode is BaselineMode.INDIVIDUAL:
        for li, label in enumerate(labels):
            points = []
            for i, b in enumerate(buckets):
                value = b.values.get(label)
                if value is None or value.baseline is None:
                    continue
                if value.amount > 0 and value.baseline != value.amount:
                    points.append((x(i), y(bands[li, i, 0] + scaled_baseline(value.baseline, i))))
            if len(points) > 1:
                baseline_paths[label] = monotone_spline(points)

    global_path = ""
    if baseline_mode is BaselineMode.GLOBAL:
        points = [
            (x(i), y(scaled_baseline(b.baseline, i)))
            for i, b in enumerate(buckets)
            if b.baseline is not None
        ]
        global_path = monotone_spline(points)

    return ChartLayout(tuple(layers), baseline_paths, global_path, ticks, width, height)
