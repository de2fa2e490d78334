"""Tests for configuration presets."""

from __future__ import annotations

import pytest

from dasv.config.config import SupervoxelConfig, get_config


def test_default_constants():
    cfg = SupervoxelConfig()
    assert cfg.depth_to_z == 0.001
    assert (cfg.center_x, cfg.center_y, cfg.px_focal) == (320.0, 240.0, 528.0)
    assert cfg.cluster_radius == 0.025
    assert cfg.cluster_time_radius == 5
    assert cfg.cluster_iterations == 5
    assert cfg.cluster_radius_mult == 1.7
    assert cfg.spatial_time_increase == 0.0
    assert (cfg.depth_min, cfg.depth_max) == (0, 2000)


def test_density_decay():
    cfg = SupervoxelConfig()
    assert cfg.density_decay == pytest.approx(10.0 / 11.0)
    cfg.cluster_time_radius = 1
    assert cfg.density_decay == pytest.approx(2.0 / 3.0)


def test_presets():
    assert get_config("kinect") == SupervoxelConfig()
    cfg = get_config("kinect_calibrated")
    assert cfg.center_x == pytest.approx(318.39)
    assert cfg.center_y == pytest.approx(271.99)
    assert cfg.px_focal == pytest.approx(528.01)


def test_unknown_preset():
    with pytest.raises(ValueError, match="Unknown camera preset"):
        get_config("xtion")
