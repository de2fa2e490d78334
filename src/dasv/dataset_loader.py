"""Loaders for RGB-D frame sequences."""

import re
from abc import ABC, abstractmethod
from pathlib import Path

import cv2
import numpy as np


class BaseDataset(ABC):
    """Abstract base class for an RGB-D dataset loader."""

    def __init__(self, base_path: Path) -> None:
        """
        Initialize the dataset loader.

        Args:
            base_path: The root directory of the dataset.

        """
        self.base_path = base_path
        self.width = 0
        self.height = 0

    @abstractmethod
    def load(self) -> None:
        """Load dataset-specific files (frame size, image paths)."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        """
        Return one frame.

        Args:
            index: Frame index.

        Returns:
            Tuple containing:
            - color: (H, W, 3) uint8 RGB image.
            - depth: (H, W) uint16 depth image.

        """


class UniformDataset(BaseDataset):
    """Synthetic frames of constant color and depth."""

    def __init__(
        self,
        width: int = 640,
        height: int = 480,
        color: tuple[int, int, int] = (0, 128, 128),
        depth: int = 1000,
        num_frames: int = 100,
    ) -> None:
        super().__init__(Path("."))
        self.width = width
        self.height = height
        self.color_value = color
        self.depth_value = depth
        self.num_frames = num_frames
        self.load()

    def load(self) -> None:
        self.color = np.empty((self.height, self.width, 3), dtype=np.uint8)
        self.color[...] = self.color_value
        self.depth = np.full((self.height, self.width), self.depth_value, dtype=np.uint16)

    def __len__(self) -> int:
        return self.num_frames

    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        if not 0 <= index < self.num_frames:
            raise IndexError(index)
        return self.color, self.depth


class RgbdSequenceDataset(BaseDataset):
    """
    Loader for a directory of numbered frames.

    Frames are stored as NNN_color.png and NNN_depth.pgm (or NNN_depth.png)
    with 16 bit depth.
    """

    COLOR_PATTERN = re.compile(r"^(\d+)_color\.png$")
    DEPTH_SUFFIXES = ("_depth.pgm", "_depth.png")

    def __init__(self, base_path: Path) -> None:
        super().__init__(base_path)
        self.frame_files: list[tuple[Path, Path]] = []
        self.load()

    def load(self) -> None:
        """Pair color and depth images by their frame number."""
        if not self.base_path.is_dir():
            return
        pairs = []
        for color_path in self.base_path.iterdir():
            m = self.COLOR_PATTERN.match(color_path.name)
            if m is None:
                continue
            for suffix in self.DEPTH_SUFFIXES:
                depth_path = self.base_path / f"{m.group(1)}{suffix}"
                if depth_path.exists():
                    pairs.append((int(m.group(1)), color_path, depth_path))
                    break
        pairs.sort()
        self.frame_files = [(c, d) for _, c, d in pairs]

        if self.frame_files:
            color, _ = self.get_frame(0)
            self.height, self.width = color.shape[:2]

    def __len__(self) -> int:
        return len(self.frame_files)

    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        color_path, depth_path = self.frame_files[index]
        bgr = cv2.imread(str(color_path), cv2.IMREAD_COLOR)
        depth = cv2.imread(str(depth_path), cv2.IMREAD_UNCHANGED)
        if bgr is None or depth is None:
            msg = f"Could not read frame {color_path.name} / {depth_path.name}"
            raise OSError(msg)
        color = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        if depth.ndim == 3:
            depth = depth[..., 0]
        return color, depth.astype(np.uint16)
