import pytest

from app.utils.geo import distance_meters, is_unknown_location


def test_distance_same_point_is_zero():
    assert distance_meters(-6.2, 106.8, -6.2, 106.8) == 0


def test_distance_one_degree_latitude():
    assert distance_meters(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)


def test_distance_is_symmetric():
    a = distance_meters(-6.2, 106.8, -6.3, 106.9)
    b = distance_meters(-6.3, 106.9, -6.2, 106.8)
    assert a == pytest.approx(b)


def test_distance_small_offset():
    offset = 150 / 111195.0
    assert distance_meters(-6.2, 106.8, -6.2 + offset, 106.8) == pytest.approx(150, abs=0.5)


@pytest.mark.parametrize("lat, lon, expected", [
    (None, None, True),
    (None, 106.8, True),
    (0, 0, True),
    (0.0, 106.8, False),
    (-6.2, 0.0, False),
    (-6.2, 106.8, False),
])
def test_is_unknown_location(lat, lon, expected):
    assert is_unknown_location(lat, lon) is expected
