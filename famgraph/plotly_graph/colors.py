from __future__ import annotations
from typing import Dict, List

SIBLING_PALETTE = [
    "#FFA07A", "#98FB98", "#87CEFA", "#DDA0DD", "#F4A460",
    "#66CDAA", "#FFB6C1", "#E6E6FA", "#20B2AA"
]
ROOT_COLOR = "#D3D3D3"


def build_sibling_colors(
    nodes: List[str],
    parents_map: Dict[str, List[str]],
) -> List[str]:
    """Children of the same first parent share a palette colour; roots are grey."""
    parent_list = sorted({ps[0] for ps in parents_map.values() if ps})
    parent_color_map = {p: SIBLING_PALETTE[i % len(SIBLING_PALETTE)] for i, p in enumerate(parent_list)}

    node_colors: List[str] = []
    for node in nodes:
        parents = parents_map.get(node) or []
        if parents:
            node_colors.append(parent_color_map.get(parents[0], ROOT_COLOR))
        else:
            node_colors.append(ROOT_COLOR)
    return node_colors
