"""Tests for the RGB-D dataset loaders."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from dasv.dataset_loader import RgbdSequenceDataset, UniformDataset


def test_uniform_dataset():
    dataset = UniformDataset(8, 6, color=(10, 20, 30), depth=1500, num_frames=3)
    assert len(dataset) == 3
    assert (dataset.width, dataset.height) == (8, 6)

    color, depth = dataset.get_frame(2)
    assert color.shape == (6, 8, 3)
    assert color.dtype == np.uint8
    assert (color == (10, 20, 30)).all()
    assert depth.shape == (6, 8)
    assert depth.dtype == np.uint16
    assert (depth == 1500).all()

    with pytest.raises(IndexError):
        dataset.get_frame(3)


def _write_frame(path, index, rgb, depth, depth_ext="png"):
    cv2.imwrite(str(path / f"{index:03d}_color.png"), np.ascontiguousarray(rgb[..., ::-1]))
    cv2.imwrite(str(path / f"{index:03d}_depth.{depth_ext}"), depth)


def test_sequence_dataset(tmp_path):
    rgb = np.zeros((4, 5, 3), dtype=np.uint8)
    rgb[...] = (200, 100, 50)
    depth = np.arange(20, dtype=np.uint16).reshape(4, 5) * 1000

    _write_frame(tmp_path, 1, rgb, depth, depth_ext="pgm")
    _write_frame(tmp_path, 0, rgb, depth + 1)
    # color image without depth
    cv2.imwrite(str(tmp_path / "002_color.png"), rgb)

    dataset = RgbdSequenceDataset(tmp_path)
    assert len(dataset) == 2
    assert (dataset.width, dataset.height) == (5, 4)

    color, dep = dataset.get_frame(0)
    assert (color == (200, 100, 50)).all()
    assert dep.dtype == np.uint16
    np.testing.assert_array_equal(dep, depth + 1)

    _, dep = dataset.get_frame(1)
    np.testing.assert_array_equal(dep, depth)


def test_sequence_dataset_missing_directory(tmp_path):
    dataset = RgbdSequenceDataset(tmp_path / "missing")
    assert len(dataset) == 0
    assert (dataset.width, dataset.height) == (0, 0)


def test_sequence_dataset_unreadable_frame(tmp_path):
    (tmp_path / "000_color.png").write_bytes(b"not an image")
    (tmp_path / "000_depth.png").write_bytes(b"not an image")
    with pytest.raises(OSError):
        RgbdSequenceDataset(tmp_path)
