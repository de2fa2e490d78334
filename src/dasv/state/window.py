from dataclasses import dataclass

import numpy as np

from dasv.datatypes import Frame

EMPTY_SLOT = -1


@dataclass
class WindowData:
    """
    Point and assignment arrays of consecutive frames stacked along time.

    Frame time t is stored in slot t % capacity, so a sliding window of
    frames can be kept without restacking it every step. Frames attached to
    the window share its memory: their rgbd and assignment arrays are views
    into their slot until they are detached.

    Attributes:
        times: (C,) frame time per slot, EMPTY_SLOT if unused.
        active: (C,) slots which take part in the current refinement.
        valid: (C, H, W) point validity.
        color: (C, H, W, 3) point colors.
        position: (C, H, W, 3) point positions.
        normal: (C, H, W, 3) point normals.
        cluster_time: (C, H, W) creation time of the assigned cluster.
        cluster_id: (C, H, W) id of the assigned cluster, -1 if unassigned.
        distance: (C, H, W) distance to the assigned cluster.

    """

    times: np.ndarray
    active: np.ndarray
    valid: np.ndarray
    color: np.ndarray
    position: np.ndarray
    normal: np.ndarray
    cluster_time: np.ndarray
    cluster_id: np.ndarray
    distance: np.ndarray

    @classmethod
    def allocate(cls, capacity: int, width: int, height: int) -> "WindowData":
        """Create an empty window with room for capacity frames."""
        if capacity <= 0:
            msg = f"Window capacity must be positive, got {capacity}"
            raise ValueError(msg)
        shape = (capacity, height, width)
        return cls(
            times=np.full(capacity, EMPTY_SLOT, dtype=np.int64),
            active=np.zeros(capacity, dtype=bool),
            valid=np.zeros(shape, dtype=bool),
            color=np.zeros(shape + (3,), dtype=np.float32),
            position=np.zeros(shape + (3,), dtype=np.float32),
            normal=np.zeros(shape + (3,), dtype=np.float32),
            cluster_time=np.zeros(shape, dtype=np.int64),
            cluster_id=np.full(shape, -1, dtype=np.int64),
            distance=np.full(shape, np.inf, dtype=np.float32),
        )

    @property
    def capacity(self) -> int:
        return self.times.shape[0]

    @property
    def width(self) -> int:
        return self.valid.shape[2]

    @property
    def height(self) -> int:
        return self.valid.shape[1]

    def slot(self, time: int) -> int:
        return time % self.capacity

    def _holding_slot(self, time: int) -> int:
        s = self.slot(time)
        if self.times[s] != time:
            msg = f"Frame {time} is not in the window"
            raise ValueError(msg)
        return s

    def store(self, frame: Frame) -> int:
        """
        Copy the point data and assignment of a frame into its slot.

        Args:
            frame: Frame to store.

        Returns:
            The slot index.

        Raises:
            ValueError: If the slot still holds a different frame.

        """
        s = self.slot(frame.time)
        if self.times[s] not in (EMPTY_SLOT, frame.time):
            msg = f"Slot of frame {frame.time} is still held by frame {self.times[s]}"
            raise ValueError(msg)
        self.times[s] = frame.time
        self.valid[s] = frame.rgbd.valid
        self.color[s] = frame.rgbd.color
        self.position[s] = frame.rgbd.position
        self.normal[s] = frame.rgbd.normal
        self.cluster_time[s] = frame.assignment.cluster_time
        self.cluster_id[s] = frame.assignment.cluster_id
        self.distance[s] = frame.assignment.distance
        return s

    def attach(self, frame: Frame) -> None:
        """Move a frame into the window; its arrays become views of the slot."""
        s = self.store(frame)
        rgbd = frame.rgbd
        rgbd.valid = self.valid[s]
        rgbd.color = self.color[s]
        rgbd.position = self.position[s]
        rgbd.normal = self.normal[s]
        a = frame.assignment
        a.cluster_time = self.cluster_time[s]
        a.cluster_id = self.cluster_id[s]
        a.distance = self.distance[s]

    def detach(self, frame: Frame) -> None:
        """Give a frame leaving the window its own copy of the slot data."""
        s = self._holding_slot(frame.time)
        rgbd = frame.rgbd
        rgbd.valid = self.valid[s].copy()
        rgbd.color = self.color[s].copy()
        rgbd.position = self.position[s].copy()
        rgbd.normal = self.normal[s].copy()
        a = frame.assignment
        a.cluster_time = self.cluster_time[s].copy()
        a.cluster_id = self.cluster_id[s].copy()
        a.distance = self.distance[s].copy()
        self.times[s] = EMPTY_SLOT
        self.active[s] = False

    def select(self, frames: list[Frame]) -> None:
        """Restrict the refinement to the slots of the given frames."""
        self.active[:] = False
        for f in frames:
            self.active[self._holding_slot(f.time)] = True
