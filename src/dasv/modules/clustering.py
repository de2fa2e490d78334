"""Spatio-temporal cluster assignment and center refinement."""

from collections.abc import Iterator

import numpy as np

from dasv.config.config import SupervoxelConfig
from dasv.datatypes import Cluster, Frame
from dasv.modules.rgbd import CameraFacingNormals, NormalEstimator, camera_project
from dasv.state.timeseries import Timeseries
from dasv.state.window import WindowData

# metric weights for color and space-time
COLOR_WEIGHT = 0.67
SPACE_TIME_WEIGHT = 0.33


def stack_window(frames: list[Frame]) -> WindowData:
    """Copy consecutive frames into a window of the same length."""
    f0 = frames[0]
    window = WindowData.allocate(len(frames), f0.rgbd.width, f0.rgbd.height)
    for f in frames:
        window.store(f)
    window.select(frames)
    return window


def unstack_assignment(window: WindowData, frames: list[Frame]) -> None:
    """Write the window assignment back into its frames."""
    for f in frames:
        s = window.slot(f.time)
        f.assignment.cluster_time[...] = window.cluster_time[s]
        f.assignment.cluster_id[...] = window.cluster_id[s]
        f.assignment.distance[...] = window.distance[s]


def point_cluster_distance(
    dti: np.ndarray | int,
    color: np.ndarray,
    position: np.ndarray,
    c: Cluster,
    cfg: SupervoxelConfig,
) -> np.ndarray:
    """
    Combined color, space and time distance between points and a cluster.

    d = 0.67 * |dc|^2 + 0.33 * (mt + mx) where mt grows quadratically once the
    time difference leaves the cluster time radius and mx is the squared
    distance relative to the (time dilated) physical cluster radius.

    Args:
        dti: Time difference(s), must broadcast against color.shape[:-1].
        color: (..., 3) point colors.
        position: (..., 3) point positions.
        c: The cluster.
        cfg: Clustering configuration.

    Returns:
        Distances with the point shape.

    """
    dti = np.abs(np.asarray(dti))
    tr = float(cfg.cluster_time_radius)
    mc = np.sum(np.square(color - c.color), axis=-1)
    dt = np.maximum(0, dti - cfg.cluster_time_radius).astype(np.float32)
    mt = dt * dt / (tr * tr)
    r = cfg.cluster_radius + cfg.spatial_time_increase * dti.astype(np.float32)
    mx = np.sum(np.square(position - c.position), axis=-1) / (r * r)
    return COLOR_WEIGHT * mc + SPACE_TIME_WEIGHT * (mt + mx)


def cluster_box(
    window: WindowData, c: Cluster, cfg: SupervoxelConfig
) -> Iterator[tuple[slice | np.ndarray, slice, slice]]:
    """
    Pixel boxes covered by a cluster in every active frame of the window.

    Frames sharing the same box radius are grouped into one box.

    Yields:
        (slot index, row slice, column slice) into the window arrays.

    """
    dti = np.abs(window.times - c.time)
    rpx = (
        cfg.cluster_radius_mult
        * c.cluster_radius_px
        * (1.0 + cfg.spatial_time_increase * dti / cfg.cluster_radius)
    )
    radii = (rpx + 0.5).astype(np.int64)
    xc = int(float(c.pixel[0]) + 0.5)
    yc = int(float(c.pixel[1]) + 0.5)
    active = window.active
    for R in np.unique(radii[active]):
        sel = active & (radii == R)
        idx = slice(None) if sel.all() else np.nonzero(sel)[0]
        x1 = max(0, xc - int(R))
        x2 = min(window.width - 1, xc + int(R))
        y1 = max(0, yc - int(R))
        y2 = min(window.height - 1, yc + int(R))
        if x1 > x2 or y1 > y2:
            continue
        yield idx, slice(y1, y2 + 1), slice(x1, x2 + 1)


def _window_clusters(frames: list[Frame]) -> Iterator[Cluster]:
    for f in frames:
        for c in f.clusters:
            if c.valid:
                yield c


def update_cluster_assignment(
    frames: list[Frame], window: WindowData, cfg: SupervoxelConfig
) -> None:
    """Assign every point in the window to its nearest cluster."""
    for c in _window_clusters(frames):
        for idx, ys, xs in cluster_box(window, c, cfg):
            dti = np.abs(window.times[idx] - c.time)[:, np.newaxis, np.newaxis]
            d = point_cluster_distance(
                dti, window.color[idx, ys, xs], window.position[idx, ys, xs], c, cfg
            )
            dist = window.distance[idx, ys, xs]
            closer = window.valid[idx, ys, xs] & (d < dist)
            if not closer.any():
                continue
            window.distance[idx, ys, xs] = np.where(closer, d, dist)
            window.cluster_time[idx, ys, xs] = np.where(
                closer, c.time, window.cluster_time[idx, ys, xs]
            )
            window.cluster_id[idx, ys, xs] = np.where(
                closer, c.id, window.cluster_id[idx, ys, xs]
            )


def update_cluster_centers(
    frames: list[Frame],
    window: WindowData,
    cfg: SupervoxelConfig,
    normal_estimator: NormalEstimator,
) -> None:
    """
    Move clusters to the mean of their assigned points.

    Clusters without any assigned point in their boxes are invalidated.
    """
    for c in _window_clusters(frames):
        num = 0
        sum_color = np.zeros(3, dtype=np.float64)
        sum_position = np.zeros(3, dtype=np.float64)
        normals = []
        for idx, ys, xs in cluster_box(window, c, cfg):
            mask = (
                window.valid[idx, ys, xs]
                & (window.cluster_id[idx, ys, xs] == c.id)
                & (window.cluster_time[idx, ys, xs] == c.time)
            )
            n = int(mask.sum())
            if n == 0:
                continue
            num += n
            sum_color += window.color[idx, ys, xs][mask].sum(axis=0)
            sum_position += window.position[idx, ys, xs][mask].sum(axis=0)
            normals.append(window.normal[idx, ys, xs][mask])
        if num == 0:
            c.valid = False
            continue
        scl = 1.0 / num
        c.color = (scl * sum_color).astype(np.float32)
        c.position = (scl * sum_position).astype(np.float32)
        c.normal = normal_estimator.cluster_normal(np.concatenate(normals)).astype(
            np.float32
        )
        c.pixel = camera_project(c.position, cfg)


def update_clusters(
    time: int,
    series: Timeseries,
    cfg: SupervoxelConfig,
    normal_estimator: NormalEstimator | None = None,
    window: WindowData | None = None,
) -> None:
    """
    Refine the clusters around an active time.

    Runs a fixed number of Lloyd iterations (assignment, center update) over
    all frames within the cluster time radius of the active time.

    Args:
        time: Active time.
        series: Timeseries holding the frames.
        cfg: Clustering configuration.
        normal_estimator: Strategy for cluster normals.
        window: Window the frames are attached to. Without one the frames
            are copied into a temporary window and the assignment is copied
            back afterwards.

    """
    if normal_estimator is None:
        normal_estimator = CameraFacingNormals()
    tr = cfg.cluster_time_radius
    frames = series.get_frame_range(time - tr, time + tr + 1)
    if not frames:
        return
    if window is None:
        data = stack_window(frames)
    else:
        data = window
        data.select(frames)
    for _ in range(cfg.cluster_iterations):
        update_cluster_assignment(frames, data, cfg)
        update_cluster_centers(frames, data, cfg, normal_estimator)
    if window is None:
        unstack_assignment(data, frames)
