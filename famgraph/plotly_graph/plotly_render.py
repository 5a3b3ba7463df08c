from __future__ import annotations

import json
from typing import Dict, List

from plotly import graph_objects as go

from ..dates import format_partial_date
from ..schemas import FamilyGraph, Person
from .colors import build_sibling_colors
from .layout import NODE_H, compute_layout


def _hover_text(p: Person) -> str:
    lines = [p.display_name]
    born, died = format_partial_date(p.birth), format_partial_date(p.death)
    if born or died:
        lines.append(f"{born or '?'} - {died}" if died else f"b. {born}")
    if p.notes:
        lines.append(p.notes)
    return "<br>".join(lines)


def build_plotly_figure(graph: FamilyGraph) -> go.Figure:
    if not graph.people:
        fig = go.Figure()
        fig.update_layout(title="No family data found")
        return fig

    layout = compute_layout(graph)
    pos = layout.positions
    by_id = {p.id: p for p in graph.people}

    edge_x: List[float | None] = []
    edge_y: List[float | None] = []
    for e in layout.edges:
        x0, y0 = pos[e.source]
        x1, y1 = pos[e.target]
        edge_x += [x0, x1, None]
        edge_y += [y0, y1, None]

    edge_trace = go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        line=dict(width=1, color="gray"),
        hoverinfo="none",
    )

    nodes = list(pos.keys())
    parents_map: Dict[str, List[str]] = {
        n: [pid for pid in by_id[n].parent_ids if pid in by_id] for n in nodes
    }
    node_colors = build_sibling_colors(nodes, parents_map)

    node_x, node_y, texts, hover_texts = [], [], [], []
    for n in nodes:
        x, y = pos[n]
        node_x.append(x)
        node_y.append(y)
        texts.append(by_id[n].display_name)
        hover_texts.append(_hover_text(by_id[n]))

    node_trace = go.Scatter(
        x=node_x,
        y=node_y,
        mode="markers+text",
        text=texts,
        textposition="top center",
        hoverinfo="text",
        hovertext=hover_texts,
        customdata=nodes,
        marker=dict(size=18, color=node_colors, line=dict(width=1, color="#333")),
        textfont=dict(size=9),
    )

    xs = [xy[0] for xy in pos.values()]
    ys = [xy[1] for xy in pos.values()]
    x_min, x_max = min(xs), max(xs)
    y_min, y_max = min(ys), max(ys)
    pad_x = 0.15 * (x_max - x_min if x_max > x_min else NODE_H)
    pad_y = 0.15 * (y_max - y_min if y_max > y_min else NODE_H)

    fig = go.Figure(data=[edge_trace, node_trace])
    fig.update_layout(
        showlegend=False,
        hovermode="closest",
        dragmode="pan",
        autosize=True,
        margin=dict(l=0, r=0, t=0, b=0),
        plot_bgcolor="white",
        paper_bgcolor="white",
        xaxis=dict(
            showgrid=False,
            zeroline=False,
            showticklabels=False,
            range=[x_min - pad_x, x_max + pad_x],
        ),
        # generation 0 on top
        yaxis=dict(
            showgrid=False,
            zeroline=False,
            showticklabels=False,
            range=[y_max + pad_y, y_min - pad_y],
        ),
    )
    return fig


def build_plotly_figure_json(graph: FamilyGraph) -> dict:
    return json.loads(build_plotly_figure(graph).to_json())


def write_html(fig: go.Figure, out_path: str) -> None:
    config = {"scrollZoom": True, "displayModeBar": True, "responsive": True}
    fig.write_html(out_path, include_plotlyjs="cdn", full_html=True, config=config)
