"""Target and cluster densities in supervoxels per pixel."""

import math

import numpy as np

from dasv.datatypes import Cluster, RgbdData

# kernel range R s.t. phi(x) >= 0.01 * phi(0) for all x <= R
KERNEL_RANGE = 1.21


def point_density(cluster_radius_px: np.ndarray | float, normal_z: np.ndarray | float):
    """
    Expected supervoxels per pixel for a uniform physical coverage.

    rho = 1 / (r_px^2 * pi * |n_z|), the reciprocal area of one supervoxel
    disk seen under the given normal.
    """
    return 1.0 / (
        np.square(cluster_radius_px) * math.pi * np.abs(normal_z)
    )


def compute_frame_density(rgbd: RgbdData) -> np.ndarray:
    """
    Compute the target density of a frame.

    Args:
        rgbd: Point data of the frame.

    Returns:
        (H, W) density, zero for invalid points.

    """
    density = np.zeros(rgbd.valid.shape, dtype=np.float32)
    v = rgbd.valid
    density[v] = point_density(rgbd.cluster_radius_px[v], rgbd.normal[v, 2])
    return density


def compute_cluster_density(
    rows: int, cols: int, clusters: list[Cluster]
) -> np.ndarray:
    """
    Splat clusters as truncated gaussian kernels.

    Each cluster contributes rho * exp(-pi * rho * d^2) with rho computed from
    its own radius and normal, i.e. one unit of mass spread with
    sigma = rho^(-1/2).

    Args:
        rows: Image height.
        cols: Image width.
        clusters: Clusters to splat; invalid clusters are skipped.

    Returns:
        (rows, cols) density provided by the clusters.

    """
    density = np.zeros((rows, cols), dtype=np.float32)
    for c in clusters:
        if not c.valid:
            continue
        sxf = float(c.pixel[0])
        syf = float(c.pixel[1])
        sx = int(sxf + 0.5)
        sy = int(syf + 0.5)
        rho = float(point_density(c.cluster_radius_px, c.normal[2]))
        # kernel influence range
        R = int(math.ceil(KERNEL_RANGE / math.sqrt(rho)))
        xmin = max(sx - R, 0)
        xmax = min(sx + R, cols - 1)
        ymin = max(sy - R, 0)
        ymax = min(sy + R, rows - 1)
        if xmin > xmax or ymin > ymax:
            continue
        dx = np.arange(xmin, xmax + 1, dtype=np.float32) - sxf
        dy = np.arange(ymin, ymax + 1, dtype=np.float32) - syf
        d2 = dy[:, np.newaxis] ** 2 + dx[np.newaxis, :] ** 2
        density[ymin : ymax + 1, xmin : xmax + 1] += rho * np.exp(-math.pi * rho * d2)
    return density
