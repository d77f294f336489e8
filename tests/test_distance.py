import numpy as np
import pytest

from posebooth.distance import DistanceEstimator


@pytest.fixture
def estimator():
    return DistanceEstimator()


@pytest.mark.parametrize(
    "ratio,expected",
    [
        (0.9, 0.5),
        (0.26, 0.5),
        (0.25, 0.8),
        (0.2, 0.8),
        (0.1, 1.2),
        (0.05, 1.8),
        (0.02, 2.2),
        (0.01, 2.5),
        (0.0, 2.5),
    ],
)
def test_ladder_buckets(estimator, ratio, expected):
    assert estimator.distance_for_ratio(ratio) == expected


def test_estimate_is_monotone_in_occupancy(estimator):
    distances = [estimator.distance_for_ratio(r) for r in np.linspace(0.0, 1.0, 501)]
    assert all(a >= b for a, b in zip(distances, distances[1:]))


def test_estimate_uses_larger_of_pixel_and_bbox_ratio(estimator, make_descriptor):
    d = make_descriptor(pixel_ratio=0.05, bounding_box_ratio=0.2)
    assert estimator.estimate(d) == 0.8

    d = make_descriptor(pixel_ratio=0.3, bounding_box_ratio=0.02)
    assert estimator.estimate(d) == 0.5


def test_no_subject_is_far(estimator):
    assert estimator.estimate(None) == 2.5


def test_smooth_without_history_returns_raw(estimator):
    assert estimator.smooth(1.8, 0) == 1.8


def test_smooth_is_exponential_moving_average(estimator):
    assert estimator.smooth(2.0, 1.0) == pytest.approx(1.3)


def test_smooth_converges_to_constant_input(estimator):
    value = 2.5
    for _ in range(200):
        value = estimator.smooth(0.5, value)
    assert value == pytest.approx(0.5, abs=1e-9)


def test_in_range_threshold(estimator):
    assert estimator.in_range(1.0)
    assert estimator.in_range(0.5)
    assert not estimator.in_range(1.01)


def test_update_smooths_against_previous(estimator, make_descriptor):
    close = make_descriptor(pixel_ratio=0.3, bounding_box_ratio=0.3)

    sample = estimator.update(close, previous=2.5)

    assert sample.raw == 0.5
    assert sample.smoothed == pytest.approx(2.5 * 0.7 + 0.5 * 0.3)
    assert not sample.in_range


def test_missing_subject_is_never_in_range(estimator):
    sample = estimator.update(None, previous=0.2)
    assert sample.smoothed < 1.0
    assert not sample.in_range
