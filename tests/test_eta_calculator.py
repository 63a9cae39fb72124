import pytest

from tools.eta_calculator import estimate_eta_minutes, great_circle_distance_km

KOZHIKODE = (11.2588, 75.7804)
KANNUR = (11.8745, 75.3704)


@pytest.mark.parametrize("point", [(0.0, 0.0), KOZHIKODE, (-33.8688, 151.2093), (89.9, -179.9)])
def test_distance_to_self_is_zero(point):
    assert great_circle_distance_km(*point, *point) == pytest.approx(0.0, abs=1e-9)


def test_distance_is_symmetric():
    there = great_circle_distance_km(*KOZHIKODE, *KANNUR)
    back = great_circle_distance_km(*KANNUR, *KOZHIKODE)
    assert there == pytest.approx(back)


def test_distance_matches_known_value():
    # Kozhikode to Kannur is roughly 82 km as the crow flies
    assert great_circle_distance_km(*KOZHIKODE, *KANNUR) == pytest.approx(81.7, abs=1.0)


def test_one_degree_of_latitude():
    assert great_circle_distance_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


def test_antipodal_points_do_not_blow_up():
    assert great_circle_distance_km(0, 0, 0, 180) == pytest.approx(20015.09, abs=0.1)


def test_eta_at_thirty_kmh():
    assert estimate_eta_minutes(5) == 10
    assert estimate_eta_minutes(0) == 0
    assert estimate_eta_minutes(15) == 30


def test_eta_rounds_to_nearest_minute():
    assert estimate_eta_minutes(1.2) == 2  # 2.4 min
    assert estimate_eta_minutes(1.3) == 3  # 2.6 min


def test_eta_is_non_decreasing():
    distances = [i * 0.05 for i in range(0, 400)]
    etas = [estimate_eta_minutes(d) for d in distances]
    assert all(a <= b for a, b in zip(etas, etas[1:]))
