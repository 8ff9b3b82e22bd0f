import pytest

from control_layout.geometry import Position, Viewport
from control_layout.magnetic_points import MagneticSnapPoint
from control_layout.snap_engine import SnapMode, SnapSettings, nearest_magnetic_point, resolve, snap_to_grid

VIEWPORT = Viewport(400.0, 800.0)


def _point(point_id: str, x: float, y: float) -> MagneticSnapPoint:
    return MagneticSnapPoint(point_id, Position(x, y), point_id)


def test_magnetic_point_within_radius_wins_over_everything() -> None:
    # (5, 5) would edge-snap, but the magnetic point is closer than the radius.
    points = [_point("corner", 20.0, 20.0)]
    result = resolve(Position(5.0, 5.0), VIEWPORT, points)

    assert result.position == Position(20.0, 20.0)
    assert result.snapped is True
    assert result.kind == "magnetic"
    assert result.point_id == "corner"


def test_nearest_magnetic_point_is_chosen() -> None:
    points = [_point("far", 240.0, 300.0), _point("near", 215.0, 300.0)]

    result = resolve(Position(210.0, 300.0), VIEWPORT, points)

    assert result.point_id == "near"


def test_magnetic_tie_goes_to_earlier_point() -> None:
    points = [_point("first", 100.0, 300.0), _point("second", 120.0, 300.0)]

    assert nearest_magnetic_point(Position(110.0, 300.0), points).id == "first"


def test_magnetic_radius_is_exclusive() -> None:
    points = [_point("p", 200.0, 300.0)]

    result = resolve(Position(150.0, 300.0), VIEWPORT, points)

    assert result.snapped is False
    assert result.kind == "none"
    assert result.position == Position(150.0, 300.0)


def test_top_left_corner_snaps_both_axes_to_padding_plus_half() -> None:
    result = resolve(Position(5.0, 5.0), VIEWPORT)

    assert result.position == Position(40.0, 40.0)
    assert result.snapped is True
    assert result.kind == "edge"


def test_just_inside_the_padded_edge_snaps_outward_to_it() -> None:
    result = resolve(Position(39.0, 300.0), VIEWPORT, edge_padding=16.0, element_half_size=24.0)

    assert result.position == Position(40.0, 300.0)
    assert result.snapped is True
    assert result.kind == "edge"


def test_far_edges_snap_inside_viewport() -> None:
    result = resolve(Position(390.0, 790.0), VIEWPORT)

    assert result.position == Position(360.0, 760.0)
    assert result.kind == "edge"


def test_center_line_snap_per_axis() -> None:
    result = resolve(Position(210.0, 300.0), VIEWPORT)

    assert result.position == Position(200.0, 300.0)
    assert result.kind == "center"


def test_axes_compose_independently() -> None:
    result = resolve(Position(210.0, 5.0), VIEWPORT)

    assert result.position == Position(200.0, 40.0)
    assert result.kind == "edge+center"


def test_center_overrides_edge_on_the_same_axis() -> None:
    narrow = Viewport(100.0, 800.0)

    result = resolve(Position(50.0, 300.0), narrow)

    assert result.position == Position(50.0, 300.0)
    assert result.snapped is True
    assert result.kind == "center"


def test_snapped_reports_rule_match_even_without_coordinate_change() -> None:
    result = resolve(Position(40.0, 40.0), VIEWPORT)

    assert result.position == Position(40.0, 40.0)
    assert result.snapped is True


def test_unsnapped_interior_point_is_returned_unchanged() -> None:
    raw = Position(120.0, 260.0)

    result = resolve(raw, VIEWPORT)

    assert result.position == raw
    assert result.snapped is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (Position(55.0, 61.0), Position(40.0, 80.0)),
        (Position(60.0, 20.0), Position(80.0, 40.0)),
        (Position(19.0, 101.0), Position(0.0, 120.0)),
    ],
)
def test_grid_snap_rounds_to_nearest_multiple(raw: Position, expected: Position) -> None:
    result = snap_to_grid(raw, 40.0)

    assert result.position == expected
    assert result.kind == "grid"


def test_grid_snap_on_grid_point_is_not_reported_as_snapped() -> None:
    result = snap_to_grid(Position(80.0, 120.0), 40.0)

    assert result.snapped is False


def test_grid_mode_never_consults_edges_or_magnets() -> None:
    settings = SnapSettings(mode=SnapMode.GRID)

    result = settings.apply(Position(5.0, 5.0), VIEWPORT, [_point("p", 6.0, 6.0)])

    assert result.position == Position(0.0, 0.0)
    assert result.kind == "grid"


def test_none_mode_passes_raw_through() -> None:
    settings = SnapSettings(mode=SnapMode.NONE)

    result = settings.apply(Position(5.0, 5.0), VIEWPORT)

    assert result.position == Position(5.0, 5.0)
    assert result.snapped is False


def test_snap_mode_parse_is_case_insensitive_with_fallback() -> None:
    assert SnapMode.parse("GRID") is SnapMode.GRID
    assert SnapMode.parse("bogus") is SnapMode.EDGE
    assert SnapMode.parse(None, SnapMode.NONE) is SnapMode.NONE
