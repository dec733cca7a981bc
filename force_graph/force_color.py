from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Mapping, Optional, Tuple

LOG = logging.getLogger(__name__)

DEFAULT_NODE_COLORS: Dict[str, str] = {
    "gene": "#FF6B6B",  # coral red
    "disease": "#4ECDC4",  # turquoise
    "drug": "#45B7D1",  # blue
    "pathway": "#96CEB4",  # sage green
}
FALLBACK_COLOR = "#999999"

_QUOTES = re.compile(r"^['\"]|['\"]$")


def parse_color_overrides(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse a JSON object of type -> color. Returns None when the value is malformed."""
    if raw is None or not str(raw).strip():
        return {}
    cleaned = _QUOTES.sub("", str(raw).strip())
    try:
        parsed: Any = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        LOG.warning("color-override-invalid", extra={"error": str(exc)})
        return None
    if not isinstance(parsed, dict):
        LOG.warning("color-override-invalid", extra={"error": "override must be a JSON object"})
        return None
    bad = [k for k, v in parsed.items() if not isinstance(v, str) or not v.strip()]
    if bad:
        LOG.warning("color-override-invalid", extra={"error": "non-string colors", "keys": bad})
        return None
    return {str(k): v.strip() for k, v in parsed.items()}


def node_color_map(raw_override: Optional[str] = None) -> Dict[str, str]:
    """Built-in colors with the override merged on top; malformed overrides leave the defaults."""
    overrides = parse_color_overrides(raw_override)
    if overrides is None:
        return dict(DEFAULT_NODE_COLORS)
    return {**DEFAULT_NODE_COLORS, **overrides}


def color_for_type(node_type: str, colors: Mapping[str, str]) -> str:
    return colors.get(node_type) or FALLBACK_COLOR


def _hex_to_rgb(h: str) -> Tuple[int, int, int]:
    h = h.lstrip("#")
    if len(h) == 3:
        h = "".join(ch * 2 for ch in h)
    try:
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        return 153, 153, 153


def _rgb_to_hex(rgb: Tuple[float, float, float]) -> str:
    r, g, b = (max(0, min(255, int(round(c)))) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def mix_hex(h1: str, h2: str, t: float) -> str:
    a = _hex_to_rgb(h1)
    b = _hex_to_rgb(h2)
    return _rgb_to_hex(tuple(a[i] + (b[i] - a[i]) * t for i in range(3)))  # type: ignore[arg-type]
