"""Plotly figures for the dashboard."""
from datetime import date
from typing import Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from networth.geometry import ChartLayout
from networth.valuation import Series

TEMPLATE = "plotly_dark"
PALETTE = px.colors.qualitative.Plotly


def _date_labels(series: Series) -> list[str]:
    return [
        b.date.strftime("%d %b %y") if series.is_labelled(i) else ""
        for i, b in enumerate(series.buckets)
    ]


def stacked_area_figure(
    chart: ChartLayout,
    series: Series,
    value_format=lambda v: f"{v:,.0f}",
    title: str = "",
) -> go.Figure:
    """Render a ChartLayout as filled SVG path shapes.

    One invisible scatter trace per layer carries the legend entry and the
    hover text (value and gain over book value).
    """
    fig = go.Figure()
    n = len(series.buckets)
    xs = [i / (n - 1) * chart.width if n > 1 else 0.0 for i in range(n)]
    labels = [layer.label for layer in chart.layers]

    for index, layer in enumerate(chart.layers):
        color = PALETTE[index % len(PALETTE)]
        if layer.path:
            fig.add_shape(
                type="path",
                path=layer.path,
                fillcolor=color,
                opacity=0.85,
                line=dict(width=0),
                layer="below",
            )
        hover = []
        for b in series.buckets:
            value = b.values.get(layer.label)
            amount = value.amount if value is not None else 0.0
            gain = value.gain if value is not None else 0.0
            hover.append(f"{layer.label}: {value_format(amount)} (gain {value_format(gain)})")
        fig.add_trace(
            go.Scatter(
                x=xs,
                y=[chart.y_position(top) for _, top in layer.bands],
                mode="lines",
                name=layer.label,
                line=dict(width=0.5, color=color),
                hovertext=hover,
                hoverinfo="text",
            )
        )

    for label, path in chart.baseline_paths.items():
        color = PALETTE[labels.index(label) % len(PALETTE)]
        fig.add_shape(type="path", path=path, line=dict(color=color, width=2, dash="dot"))
    if chart.global_baseline_path:
        fig.add_shape(type="path", path=chart.global_baseline_path, line=dict(color="white", width=2))

    ticks = chart.tick_positions()
    fig.update_xaxes(
        range=[0, chart.width],
        tickvals=xs,
        ticktext=_date_labels(series),
        tickangle=-45,
        showgrid=False,
    )
    fig.update_yaxes(
        range=[chart.height, 0],
        tickvals=[pos for _, pos in ticks],
        ticktext=[value_format(v) for v, _ in ticks],
    )
    fig.update_layout(
        template=TEMPLATE,
        title=title,
        hovermode="x unified",
        margin=dict(t=30, b=10, l=10, r=10),
    )
    return fig


def line_figure(points: Sequence[tuple[date, float]], name: str, title: str = "") -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=[d for d, _ in points],
            y=[v for _, v in points],
            mode="lines",
            line_shape="spline",
            name=name,
        )
    )
    fig.update_layout(template=TEMPLATE, title=title, margin=dict(t=30, b=10, l=10, r=10))
    return fig


def spending_figure(totals: dict, title: str = "Spending by category") -> go.Figure:
    frame = pd.DataFrame(
        sorted(totals.items(), key=lambda kv: kv[1], reverse=True),
        columns=["Category", "Spent"],
    )
    return px.bar(
        frame,
        x="Category",
        y="Spent",
        title=title,
        template=TEMPLATE,
        color="Spent",
        color_continuous_scale=px.colors.sequential.Emrld,
    )


def series_lines_figure(series: Series, title: str = "", percent: bool = False) -> go.Figure:
    """One line per group of a series; with `percent`, 1.0 is drawn as 0%."""
    frame = series.to_frame()
    fig = go.Figure()
    for label in frame.columns:
        values = (frame[label] - 1) * 100 if percent else frame[label]
        fig.add_trace(go.Scatter(x=frame.index, y=values, mode="lines", line_shape="spline", name=label))
    fig.update_layout(template=TEMPLATE, title=title, margin=dict(t=30, b=10, l=10, r=10))
    if percent:
        fig.update_yaxes(ticksuffix="%")
    return fig


def trend_figure(points: Sequence[tuple[date, float]], title: str = "") -> go.Figure:
    frame = pd.DataFrame(points, columns=["Period", "Total"])
    frame["Period"] = frame["Period"].map(lambda d: d.strftime("%b %y"))
    frame["Direction"] = ["in" if v >= 0 else "out" for v in frame["Total"]]
    return px.bar(
        frame,
        x="Period",
        y="Total",
        title=title,
        template=TEMPLATE,
        color="Direction",
        color_discrete_map={"in": "#8f8", "out": "#f88"},
    )
