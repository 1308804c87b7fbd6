import math

import pytest

from traceforge.core import (
    DEFAULT_BASE_RESOLUTION,
    METERS_PER_DEGREE,
    ConfigurationError,
    ConflationConfig,
    GeomDeviation,
)


class TestConflationConfig:
    """Tests for distance threshold configuration."""

    def test_default_thresholds(self):
        """Test that defaults derive from the base imagery resolution."""
        config = ConflationConfig()
        assert config.min_distance == pytest.approx(DEFAULT_BASE_RESOLUTION * 30)
        assert config.min_distance_node_to_node == pytest.approx(DEFAULT_BASE_RESOLUTION * 2.5)
        assert config.min_distance_node_to_other_way == pytest.approx(DEFAULT_BASE_RESOLUTION * 5)
        assert config.merge_min_shared_nodes is None

    def test_from_resolution(self):
        config = ConflationConfig.from_resolution(0.01)
        assert config.min_distance == pytest.approx(0.3)
        assert config.min_distance_node_to_node == pytest.approx(0.025)
        assert config.min_distance_node_to_other_way == pytest.approx(0.05)

    def test_from_resolution_overrides(self):
        config = ConflationConfig.from_resolution(0.01, merge_min_shared_nodes=3)
        assert config.merge_min_shared_nodes == 3

    def test_threshold_order_enforced(self):
        """Test that node_to_node <= node_to_other_way <= min_distance is required."""
        with pytest.raises(ConfigurationError):
            ConflationConfig(min_distance=1.0, min_distance_node_to_node=0.5,
                             min_distance_node_to_other_way=0.1)
        with pytest.raises(ConfigurationError):
            ConflationConfig(min_distance=0.1, min_distance_node_to_node=0.01,
                             min_distance_node_to_other_way=0.5)

    def test_non_positive_thresholds(self):
        with pytest.raises(ConfigurationError):
            ConflationConfig(min_distance=0.0, min_distance_node_to_node=0.0,
                             min_distance_node_to_other_way=0.0)

    def test_invalid_base_resolution(self):
        with pytest.raises(ConfigurationError):
            ConflationConfig.from_resolution(0)

    def test_invalid_shared_nodes(self):
        with pytest.raises(ConfigurationError):
            ConflationConfig(merge_min_shared_nodes=0)

    def test_configuration_error_is_value_error(self):
        """Test that configuration errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            ConflationConfig(precision=-1)


class TestGeomDeviation:
    """Tests for real-world tolerances."""

    def test_distance_latlon(self):
        dev = GeomDeviation(METERS_PER_DEGREE, math.radians(15))
        assert dev.distance_latlon == pytest.approx(1.0)

    def test_negative_distance(self):
        with pytest.raises(ConfigurationError):
            GeomDeviation(-0.1, 0.0)

    def test_negative_angle(self):
        with pytest.raises(ConfigurationError):
            GeomDeviation(0.1, -0.1)
