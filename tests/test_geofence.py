import pytest

from app.core.errors import InvalidShiftConfiguration
from app.services.geofence_service import (
    EARTH_RADIUS_M,
    check_allowed_locations,
    check_locations,
    distance_meters,
    is_within_geofence,
)

OFFICE_A = {"name": "Office A", "center_lat": 12.9716, "center_lon": 77.5946, "radius_m": 100}
OFFICE_B = {"name": "Office B", "center_lat": 12.9352, "center_lon": 77.6245, "radius_m": 150}


class _Shift:
    def __init__(self, required=True, locations=None):
        self.sh_location_required = required
        self.sh_allowed_locations = locations if locations is not None else [OFFICE_A, OFFICE_B]


def test_distance_same_point_is_zero():
    assert distance_meters(12.9716, 77.5946, 12.9716, 77.5946) == 0


def test_distance_is_symmetric():
    d1 = distance_meters(12.9716, 77.5946, 12.9352, 77.6245)
    d2 = distance_meters(12.9352, 77.6245, 12.9716, 77.5946)
    assert d1 == pytest.approx(d2)
    # roughly 5.2 km between the two offices
    assert 5000 < d1 < 5500


def test_distance_antipodal_points_is_half_circumference():
    d = distance_meters(0, 0, 0, 180)
    assert d == pytest.approx(EARTH_RADIUS_M * 3.141592653589793)


def test_one_degree_of_latitude():
    assert distance_meters(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)


def test_point_inside_circle():
    result = is_within_geofence(12.9717, 77.5946, OFFICE_A)
    assert result.within_fence is True
    assert result.distance < 100


def test_point_on_boundary_is_inside():
    circle = dict(OFFICE_A, radius_m=distance_meters(12.9716, 77.5946, 12.9725, 77.5946))
    assert is_within_geofence(12.9725, 77.5946, circle).within_fence is True


def test_any_circle_accepts():
    check = check_locations(12.9353, 77.6245, [OFFICE_A, OFFICE_B], required=True)
    assert check.allowed is True
    assert check.location_name == "Office B"


def test_far_from_all_circles_reports_nearest():
    # about 5.5 km north of office A, further still from office B
    check = check_locations(13.0216, 77.5946, [OFFICE_A, OFFICE_B], required=True)
    assert check.allowed is False
    assert check.location_name == "Office A"
    assert check.distance > 5000
    assert check.reason == "Outside all allowed locations"


def test_not_required_allows_anywhere():
    check = check_locations(-33.0, 151.0, [OFFICE_A], required=False)
    assert check.allowed is True


def test_required_without_locations_rejects():
    check = check_locations(12.9716, 77.5946, [], required=True)
    assert check.allowed is False
    assert check.reason == "No allowed locations configured"


def test_non_positive_radius_is_configuration_error():
    with pytest.raises(InvalidShiftConfiguration):
        is_within_geofence(12.9716, 77.5946, dict(OFFICE_A, radius_m=0))
    with pytest.raises(InvalidShiftConfiguration):
        is_within_geofence(12.9716, 77.5946, dict(OFFICE_A, radius_m=-10))


def test_shift_check_respects_deployment_switch():
    shift = _Shift()
    assert check_allowed_locations(13.0216, 77.5946, shift).allowed is False
    assert check_allowed_locations(13.0216, 77.5946, shift, enforced=False).allowed is True
    assert check_allowed_locations(13.0216, 77.5946, _Shift(required=False)).allowed is True
    assert check_allowed_locations(13.0216, 77.5946, None).allowed is True
