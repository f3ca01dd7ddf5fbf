"""Tests for the pure weighting terms (green_access/weights.py)."""

import math

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from green_access.errors import DegenerateGeometryError, MissingAttributeError, ScoringError
from green_access.weights import (
    aggregate_score,
    coverage_ratio,
    density_factor,
    distance_weights,
    mean_green_weight,
    reference_density,
    size_weights,
    tract_density,
)


class TestCoverageRatio:
    def test_uses_tract_area_not_buffer_area(self):
        buffer = box(-10, -10, 110, 110)
        parks = gpd.GeoSeries([box(0, 0, 50, 100)])
        assert coverage_ratio(buffer, parks, 10_000.0) == pytest.approx(0.5)

    def test_overlapping_parks_are_not_deduplicated(self):
        buffer = box(-10, -10, 110, 110)
        parks = gpd.GeoSeries([box(0, 0, 100, 100), box(0, 0, 100, 100)])
        assert coverage_ratio(buffer, parks, 10_000.0) == pytest.approx(2.0)

    def test_only_the_part_inside_the_buffer_counts(self):
        buffer = box(0, 0, 100, 100)
        parks = gpd.GeoSeries([box(50, 0, 150, 100)])
        assert coverage_ratio(buffer, parks, 10_000.0) == pytest.approx(0.5)

    def test_zero_area_tract_raises(self):
        with pytest.raises(DegenerateGeometryError):
            coverage_ratio(box(0, 0, 1, 1), gpd.GeoSeries([box(0, 0, 1, 1)]), 0.0)


class TestSizeWeight:
    def test_smallest_park_gets_the_floor_value(self):
        assert size_weights([200.0, 800.0])[0] == pytest.approx(1 + math.log(2))

    def test_never_below_one_and_grows_with_area(self):
        w = size_weights([50.0, 100.0, 1_000.0, 1e6])
        assert (w >= 1.0).all()
        assert list(w) == sorted(w)

    def test_min_is_per_set(self):
        assert size_weights([10.0, 30.0])[1] == pytest.approx(1 + math.log(4))
        assert size_weights([30.0, 90.0])[0] == pytest.approx(1 + math.log(2))

    def test_zero_area_minimum_raises(self):
        with pytest.raises(DegenerateGeometryError):
            size_weights([0.0, 10.0])

    def test_empty_input(self):
        assert size_weights([]).size == 0


class TestDistanceWeight:
    def test_linear_decay(self):
        w = distance_weights([0.0, 100.0, 400.0], 400.0)
        assert w.tolist() == pytest.approx([1.0, 0.75, 0.0])

    def test_beyond_radius_is_clamped_to_zero(self):
        assert distance_weights([400.0 + 1e-9], 400.0)[0] == 0.0

    def test_stays_within_unit_interval(self):
        d = np.linspace(0.0, 4_000.0, 1_001)
        w = distance_weights(d, 400.0)
        assert ((w >= 0.0) & (w <= 1.0)).all()

    def test_non_positive_radius_raises(self):
        with pytest.raises(ValueError):
            distance_weights([1.0], 0.0)


def test_mean_green_weight_is_a_mean_not_a_sum():
    one = mean_green_weight([2.0], [0.5])
    many = mean_green_weight([2.0] * 5, [0.5] * 5)
    assert one == many == pytest.approx(1.0)


class TestDensity:
    def test_people_per_km2(self):
        assert tract_density(100, 1e6) == pytest.approx(100.0)
        assert tract_density(100, 10_000.0) == pytest.approx(10_000.0)

    @pytest.mark.parametrize("population", [None, float("nan"), -5])
    def test_unusable_population_raises(self, population):
        with pytest.raises(MissingAttributeError):
            tract_density(population, 1e6)

    def test_zero_area_raises(self):
        with pytest.raises(DegenerateGeometryError):
            tract_density(100, 0.0)

    def test_reference_is_mean_of_usable_tracts(self):
        ref = reference_density([100, 300, None, 50], [1e6, 1e6, 1e6, 0.0])
        assert ref == pytest.approx(200.0)

    def test_reference_undefined_when_nothing_usable(self):
        assert math.isnan(reference_density([None, None], [1e6, 1e6]))

    def test_factor_is_one_for_empty_tract(self):
        assert density_factor(0.0, 100.0) == 1.0

    def test_factor_at_reference(self):
        assert density_factor(100.0, 100.0) == pytest.approx(1 + math.log(2))

    @pytest.mark.parametrize("ref", [0.0, float("nan"), None])
    def test_factor_requires_a_reference(self, ref):
        with pytest.raises(MissingAttributeError):
            density_factor(10.0, ref)


class TestAggregate:
    def test_clamps_to_one(self):
        assert aggregate_score(3.0, 1.5, 1.0) == 1.0

    def test_unclamped_value(self):
        assert aggregate_score(0.2, 1.0, 2.0) == pytest.approx(0.1)

    def test_monotone_in_coverage(self):
        scores = [aggregate_score(c, 1.2, 1.7) for c in np.linspace(0.0, 2.0, 21)]
        assert scores == sorted(scores)

    def test_monotone_decreasing_in_density(self):
        factors = [density_factor(d, 1_000.0) for d in (0, 500, 1_000, 4_000, 20_000)]
        scores = [aggregate_score(0.3, 1.4, f) for f in factors]
        assert scores == sorted(scores, reverse=True)

    def test_non_finite_raises(self):
        with pytest.raises(ScoringError):
            aggregate_score(float("inf"), 1.0, 1.0)
