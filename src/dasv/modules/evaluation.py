"""Compression error of a supervoxel partition."""

import math
from collections.abc import Mapping

import numpy as np

from dasv.datatypes import Cluster, Frame

NAN_PAIR = (math.nan, math.nan)


def _safe_ratio(num: float, den: float) -> float:
    if den == 0:
        return math.nan
    return float(num / den)


def _error_ratio(
    rep_color: np.ndarray,
    rep_position: np.ndarray,
    color: np.ndarray,
    position: np.ndarray,
    mean_color: np.ndarray,
    mean_position: np.ndarray,
) -> tuple[float, float]:
    # variance kept by the representatives relative to the variance of the points
    cluster_error_color = np.sum(np.square(rep_color - mean_color))
    cluster_error_position = np.sum(np.square(rep_position - mean_position))
    pixel_error_color = np.sum(np.square(color - mean_color))
    pixel_error_position = np.sum(np.square(position - mean_position))
    return (
        _safe_ratio(cluster_error_color, pixel_error_color),
        _safe_ratio(cluster_error_position, pixel_error_position),
    )


def evaluate_compression_error(
    frame: Frame, clusters: Mapping[tuple[int, int], Cluster]
) -> tuple[float, float]:
    """
    Compute how much color and position variance the clusters of a frame keep.

    Args:
        frame: Frame with point data and assignment.
        clusters: Lookup from (time, id) to cluster.

    Returns:
        (color ratio, position ratio), NaN if the frame has no valid or no
        assigned points.

    """
    rgbd = frame.rgbd
    valid = rgbd.valid
    if not valid.any():
        return NAN_PAIR
    mean_color = rgbd.color[valid].mean(axis=0)
    mean_position = rgbd.position[valid].mean(axis=0)

    a = frame.assignment
    mask = valid & a.assigned
    if not mask.any():
        return NAN_PAIR
    pairs = np.stack([a.cluster_time[mask], a.cluster_id[mask]], axis=1)
    keys, inverse = np.unique(pairs, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)
    found = [clusters.get((int(t), int(i))) for t, i in keys]
    known_key = np.array([c is not None for c in found], dtype=bool)
    known = known_key[inverse]
    if not known.any():
        return NAN_PAIR
    key_color = np.array([c.color if c is not None else np.zeros(3) for c in found])
    key_position = np.array(
        [c.position if c is not None else np.zeros(3) for c in found]
    )
    rep_color = key_color[inverse[known]]
    rep_position = key_position[inverse[known]]
    return _error_ratio(
        rep_color,
        rep_position,
        rgbd.color[mask][known],
        rgbd.position[mask][known],
        mean_color,
        mean_position,
    )


def evaluate_downsample_compression_error(frame: Frame) -> tuple[float, float]:
    """
    Compression error of a regular grid with as many cells as frame clusters.

    The grid has round(3.464 * sqrt(n)) columns and round(2.598 * sqrt(n))
    rows and serves as reference for evaluate_compression_error.

    Args:
        frame: Frame with point data and clusters.

    Returns:
        (color ratio, position ratio), NaN for frames without valid points
        or clusters.

    """
    rgbd = frame.rgbd
    valid = rgbd.valid
    num_clusters = len(frame.clusters)
    if not valid.any() or num_clusters == 0:
        return NAN_PAIR
    mean_color = rgbd.color[valid].mean(axis=0)
    mean_position = rgbd.position[valid].mean(axis=0)

    h, w = valid.shape
    grid_w = int(3.464 * math.sqrt(num_clusters) + 0.5)
    grid_h = int(2.598 * math.sqrt(num_clusters) + 0.5)
    gx = (np.arange(w) * grid_w) // w
    gy = (np.arange(h) * grid_h) // h
    cell = (gy[:, np.newaxis] * grid_w + gx[np.newaxis, :])[valid]

    n_cells = grid_w * grid_h
    num = np.bincount(cell, minlength=n_cells)
    cell_color = np.stack(
        [np.bincount(cell, rgbd.color[valid][:, k], n_cells) for k in range(3)], axis=1
    )
    cell_position = np.stack(
        [np.bincount(cell, rgbd.position[valid][:, k], n_cells) for k in range(3)],
        axis=1,
    )
    # every cell holding a valid point has num > 0
    cell_color /= np.maximum(num, 1)[:, np.newaxis]
    cell_position /= np.maximum(num, 1)[:, np.newaxis]

    return _error_ratio(
        cell_color[cell],
        cell_position[cell],
        rgbd.color[valid],
        rgbd.position[valid],
        mean_color,
        mean_position,
    )
