import pytest

from services.geo import bounding_box, haversine_m


def test_haversine_zero_distance():
    assert haversine_m(50.0, 14.0, 50.0, 14.0) == 0.0


def test_haversine_one_degree_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)


def test_haversine_symmetric():
    a = haversine_m(50.0875, 14.4213, 50.0911, 14.4018)
    b = haversine_m(50.0911, 14.4018, 50.0875, 14.4213)
    assert a == pytest.approx(b)


def test_bounding_box_padding():
    box = bounding_box(50.0, 14.0, 111)
    assert box.max_lat - 50.0 == pytest.approx(0.002)
    assert 50.0 - box.min_lat == pytest.approx(0.002)
    assert box.contains(50.001, 14.001)
    assert not box.contains(50.01, 14.0)
