from force_graph.force_color import (
    DEFAULT_NODE_COLORS,
    FALLBACK_COLOR,
    color_for_type,
    mix_hex,
    node_color_map,
    parse_color_overrides,
)


def test_defaults_without_override():
    assert node_color_map(None) == DEFAULT_NODE_COLORS
    assert node_color_map("") == DEFAULT_NODE_COLORS


def test_override_merges_over_defaults():
    colors = node_color_map('{"gene": "#000000", "protein": "#123456"}')
    assert colors["gene"] == "#000000"
    assert colors["protein"] == "#123456"
    assert colors["drug"] == DEFAULT_NODE_COLORS["drug"]


def test_quoted_override_is_accepted():
    colors = node_color_map("'{\"disease\": \"#abcdef\"}'")
    assert colors["disease"] == "#abcdef"


def test_malformed_override_falls_back(caplog):
    caplog.set_level("WARNING")
    assert parse_color_overrides("{not json") is None
    assert node_color_map("{not json") == DEFAULT_NODE_COLORS
    assert node_color_map('["gene"]') == DEFAULT_NODE_COLORS
    assert node_color_map('{"gene": 5}') == DEFAULT_NODE_COLORS
    assert any(r.getMessage() == "color-override-invalid" for r in caplog.records)


def test_unknown_type_uses_fallback():
    assert color_for_type("protein", DEFAULT_NODE_COLORS) == FALLBACK_COLOR
    assert color_for_type("gene", DEFAULT_NODE_COLORS) == "#FF6B6B"


def test_mix_hex_endpoints():
    assert mix_hex("#000000", "#ffffff", 0.0) == "#000000"
    assert mix_hex("#000000", "#ffffff", 1.0) == "#ffffff"
    assert mix_hex("#000", "#fff", 0.5) == "#808080"
