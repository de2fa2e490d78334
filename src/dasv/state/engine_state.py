from dataclasses import dataclass, field

import numpy as np

from dasv.datatypes import Cluster
from dasv.state.timeseries import Timeseries
from dasv.state.window import WindowData


@dataclass
class EngineState:
    """Current state of the continuous supervoxel engine."""

    width: int
    height: int
    is_first: bool = True  # no frame processed yet
    # feedback density of recently created clusters (H, W)
    last_density: np.ndarray | None = None
    # density of the clusters created in the last step (H, W)
    current_density: np.ndarray | None = None
    series: Timeseries = field(default_factory=Timeseries)
    # point and assignment storage of the frames in the series
    window: WindowData | None = None
    # clusters of purged frames, read-only
    inactive_clusters: list[Cluster] = field(default_factory=list)
    inactive_lookup: dict[tuple[int, int], Cluster] = field(default_factory=dict)
