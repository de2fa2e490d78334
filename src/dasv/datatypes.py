"""Passive data structures for the supervoxel pipeline."""

import numpy as np
from dataclasses import dataclass, field, replace


@dataclass
class Point:
    """
    A single pixel sample of an RGB-D frame.

    Attributes:
        valid: True if the pixel has a usable depth value. All other fields
            are meaningless for invalid points.
        color: RGB color in [0, 1] (3,).
        position: Camera space position in meters (3,).
        normal: Surface normal (3,).
        cluster_radius_px: Projected supervoxel radius in pixels at this depth.

    """

    valid: bool
    color: np.ndarray
    position: np.ndarray
    normal: np.ndarray
    cluster_radius_px: float


@dataclass
class RgbdData:
    """
    Per-pixel point data of one frame, stored as dense arrays indexed [y, x].

    Attributes:
        valid: (H, W) boolean validity mask.
        color: (H, W, 3) RGB colors in [0, 1].
        position: (H, W, 3) camera space positions in meters.
        normal: (H, W, 3) surface normals.
        cluster_radius_px: (H, W) projected supervoxel radius in pixels.

    """

    valid: np.ndarray
    color: np.ndarray
    position: np.ndarray
    normal: np.ndarray
    cluster_radius_px: np.ndarray

    @classmethod
    def empty(cls, width: int, height: int) -> "RgbdData":
        """Create an all-invalid frame of the given size."""
        return cls(
            valid=np.zeros((height, width), dtype=bool),
            color=np.zeros((height, width, 3), dtype=np.float32),
            position=np.zeros((height, width, 3), dtype=np.float32),
            normal=np.zeros((height, width, 3), dtype=np.float32),
            cluster_radius_px=np.zeros((height, width), dtype=np.float32),
        )

    @property
    def width(self) -> int:
        return self.valid.shape[1]

    @property
    def height(self) -> int:
        return self.valid.shape[0]

    def is_valid(self, x: int, y: int) -> bool:
        """Check that (x, y) lies inside the frame and holds a valid point."""
        return 0 <= x < self.width and 0 <= y < self.height and bool(self.valid[y, x])

    def point(self, x: int, y: int) -> Point:
        return Point(
            valid=bool(self.valid[y, x]),
            color=self.color[y, x].copy(),
            position=self.position[y, x].copy(),
            normal=self.normal[y, x].copy(),
            cluster_radius_px=float(self.cluster_radius_px[y, x]),
        )


@dataclass
class Cluster:
    """
    A tracked supervoxel.

    Attributes:
        id: Index of the cluster within the frame which created it.
        time: Creation frame time.
        valid: False once the cluster lost all of its points. Never reset.
        pixel: Projected image position [x, y] (2,).
        color: Mean RGB color (3,).
        position: Mean camera space position (3,).
        normal: Cluster normal (3,).
        cluster_radius_px: Projected radius in pixels at creation time.

    """

    id: int = 0
    time: int = 0
    valid: bool = False
    pixel: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float32))
    color: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float32))
    position: np.ndarray = field(
        default_factory=lambda: np.zeros(3, dtype=np.float32)
    )
    normal: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float32))
    cluster_radius_px: float = 0.0

    @property
    def key(self) -> tuple[int, int]:
        """Identifier of the cluster across all frames."""
        return self.time, self.id

    def copy(self) -> "Cluster":
        """Return an independent, writable value copy."""
        return replace(
            self,
            pixel=self.pixel.copy(),
            color=self.color.copy(),
            position=self.position.copy(),
            normal=self.normal.copy(),
        )

    def freeze(self) -> None:
        """Make the geometry arrays read-only."""
        for arr in (self.pixel, self.color, self.position, self.normal):
            arr.setflags(write=False)


@dataclass
class FrameAssignment:
    """
    Nearest cluster per pixel.

    The cluster is referenced by its creation time and its id within that
    frame. An id of -1 marks pixels without cluster.

    Attributes:
        cluster_time: (H, W) creation time of the assigned cluster.
        cluster_id: (H, W) id of the assigned cluster, -1 if unassigned.
        distance: (H, W) distance to the assigned cluster, inf if unassigned.

    """

    cluster_time: np.ndarray
    cluster_id: np.ndarray
    distance: np.ndarray

    @classmethod
    def empty(cls, width: int, height: int) -> "FrameAssignment":
        return cls(
            cluster_time=np.zeros((height, width), dtype=np.int64),
            cluster_id=np.full((height, width), -1, dtype=np.int64),
            distance=np.full((height, width), np.inf, dtype=np.float32),
        )

    @property
    def assigned(self) -> np.ndarray:
        return self.cluster_id >= 0


@dataclass
class Frame:
    """
    One time step of the supervoxel timeseries.

    Attributes:
        time: Frame time, consecutive integers.
        rgbd: Point data of the frame.
        clusters: Clusters created at this time. No clusters are added later.
        assignment: Per-pixel nearest cluster.

    """

    time: int
    rgbd: RgbdData
    clusters: list[Cluster] = field(default_factory=list)
    assignment: FrameAssignment | None = None

    def __post_init__(self) -> None:
        if self.assignment is None:
            self.assignment = FrameAssignment.empty(self.rgbd.width, self.rgbd.height)


def create_frame(time: int, rgbd: RgbdData, clusters: list[Cluster]) -> Frame:
    """
    Create a frame which takes ownership of newly sampled clusters.

    Args:
        time: Frame time.
        rgbd: Point data of the frame.
        clusters: New clusters, their time and id are overwritten.

    Returns:
        The frame with an empty assignment.

    """
    for i, c in enumerate(clusters):
        c.time = time
        c.id = i
    return Frame(time=time, rgbd=rgbd, clusters=list(clusters))
