from .force_color import DEFAULT_NODE_COLORS, FALLBACK_COLOR, color_for_type, mix_hex, node_color_map, parse_color_overrides
from .force_physics import DRAG_HEAT, Body, ForceSimulation, LayoutLink
from .force_tree import QuadCell, accumulate, build_quadtree

__all__ = [
    "DEFAULT_NODE_COLORS",
    "FALLBACK_COLOR",
    "color_for_type",
    "mix_hex",
    "node_color_map",
    "parse_color_overrides",
    "DRAG_HEAT",
    "Body",
    "ForceSimulation",
    "LayoutLink",
    "QuadCell",
    "accumulate",
    "build_quadtree",
]
