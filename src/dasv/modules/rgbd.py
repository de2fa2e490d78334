from abc import ABC, abstractmethod

import numpy as np

from dasv.config.config import SupervoxelConfig
from dasv.datatypes import RgbdData


class NormalEstimator(ABC):
    """Strategy which provides surface normals for points and clusters."""

    @abstractmethod
    def estimate(self, rgbd: RgbdData) -> np.ndarray:
        """Return (H, W, 3) normals for the points of a frame."""

    @abstractmethod
    def cluster_normal(self, normals: np.ndarray) -> np.ndarray:
        """Return the normal of a cluster from the (N, 3) normals of its points."""


class CameraFacingNormals(NormalEstimator):
    """
    Placeholder estimator: every normal points towards the camera.

    Real normal estimation is not implemented yet. Densities computed with
    these normals assume all surfaces are fronto-parallel.
    """

    NORMAL = np.array([0.0, 0.0, -1.0], dtype=np.float32)

    def estimate(self, rgbd: RgbdData) -> np.ndarray:
        normals = np.empty_like(rgbd.position)
        normals[...] = self.NORMAL
        return normals

    def cluster_normal(self, normals: np.ndarray) -> np.ndarray:
        return self.NORMAL.copy()


def check_image_shapes(color: np.ndarray, depth: np.ndarray) -> None:
    """
    Verify that a color and a depth image describe the same pixel grid.

    Args:
        color: (H, W, 3) color image.
        depth: (H, W) depth image.

    Raises:
        ValueError: If the shapes are malformed or do not match.

    """
    if color.ndim != 3 or color.shape[2] != 3:
        msg = f"Color image must have shape (H, W, 3), got {color.shape}"
        raise ValueError(msg)
    if depth.ndim != 2:
        msg = f"Depth image must have shape (H, W), got {depth.shape}"
        raise ValueError(msg)
    if color.shape[:2] != depth.shape:
        msg = f"Color image {color.shape[:2]} and depth image {depth.shape} differ"
        raise ValueError(msg)


def create_rgbd_data(
    color: np.ndarray,
    depth: np.ndarray,
    cfg: SupervoxelConfig,
    normal_estimator: NormalEstimator | None = None,
) -> RgbdData:
    """
    Back-project a color and a depth image into per-pixel points.

    Args:
        color: (H, W, 3) uint8 RGB image.
        depth: (H, W) uint16 depth image, 0 means no measurement.
        cfg: Camera and clustering configuration.
        normal_estimator: Strategy for surface normals.

    Returns:
        The point data of the frame.

    """
    check_image_shapes(color, depth)
    if normal_estimator is None:
        normal_estimator = CameraFacingNormals()

    h, w = depth.shape
    rgbd = RgbdData.empty(w, h)

    d = depth.astype(np.float32)
    valid = (depth != 0) & (depth >= cfg.depth_min) & (depth <= cfg.depth_max)
    rgbd.valid = valid

    # z / f per pixel
    z_over_f = np.where(valid, cfg.depth_to_z * d / cfg.px_focal, 0.0).astype(
        np.float32
    )

    # p = z/f * (x - cx, y - cy, f)
    xs = np.arange(w, dtype=np.float32) - cfg.center_x
    ys = np.arange(h, dtype=np.float32) - cfg.center_y
    rgbd.position[..., 0] = z_over_f * xs[np.newaxis, :]
    rgbd.position[..., 1] = z_over_f * ys[:, np.newaxis]
    rgbd.position[..., 2] = z_over_f * cfg.px_focal

    rgbd.color = np.where(
        valid[..., np.newaxis], color.astype(np.float32) / 255.0, 0.0
    ).astype(np.float32)

    # world cluster radius seen at this depth
    with np.errstate(divide="ignore"):
        radius = np.where(valid, cfg.cluster_radius / z_over_f, 0.0)
    rgbd.cluster_radius_px = radius.astype(np.float32)

    rgbd.normal = normal_estimator.estimate(rgbd).astype(np.float32)
    return rgbd


def camera_project(position: np.ndarray, cfg: SupervoxelConfig) -> np.ndarray:
    """Project a camera space point onto the image plane."""
    return np.array(
        [
            cfg.center_x + cfg.px_focal * position[0] / position[2],
            cfg.center_y + cfg.px_focal * position[1] / position[2],
        ],
        dtype=np.float32,
    )
