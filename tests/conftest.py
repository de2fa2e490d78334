"""Shared fixtures for the supervoxel tests."""

from __future__ import annotations

import numpy as np
import pytest

from dasv.config.config import SupervoxelConfig
from dasv.datatypes import Cluster
from dasv.modules.rgbd import create_rgbd_data


@pytest.fixture
def small_config() -> SupervoxelConfig:
    """Camera centered on a 64x64 image with small supervoxels."""
    cfg = SupervoxelConfig()
    cfg.center_x = 32.0
    cfg.center_y = 32.0
    cfg.cluster_radius = 0.01
    return cfg


@pytest.fixture
def tiny_config() -> SupervoxelConfig:
    """Camera centered on a 16x16 image."""
    cfg = SupervoxelConfig()
    cfg.center_x = 8.0
    cfg.center_y = 8.0
    return cfg


@pytest.fixture
def make_images():
    """Factory for constant color/depth image pairs."""

    def _make(width, height, color=(0, 128, 128), depth=1000):
        img = np.empty((height, width, 3), dtype=np.uint8)
        img[...] = color
        dep = np.full((height, width), depth, dtype=np.uint16)
        return img, dep

    return _make


@pytest.fixture
def two_color_rgbd(tiny_config):
    """16x16 frame at 1 m, left half red, right half blue."""
    color = np.zeros((16, 16, 3), dtype=np.uint8)
    color[:, :8] = (255, 0, 0)
    color[:, 8:] = (0, 0, 255)
    depth = np.full((16, 16), 1000, dtype=np.uint16)
    return create_rgbd_data(color, depth, tiny_config)


@pytest.fixture
def make_cluster():
    """Factory for a valid cluster seeded from a frame pixel."""

    def _make(rgbd, x, y, color=None):
        p = rgbd.point(x, y)
        return Cluster(
            valid=True,
            pixel=np.array([x, y], dtype=np.float32),
            color=p.color if color is None else np.asarray(color, dtype=np.float32),
            position=p.position,
            normal=p.normal,
            cluster_radius_px=p.cluster_radius_px,
        )

    return _make
