"""Continuous supervoxel orchestrator."""

from collections import ChainMap
from collections.abc import Mapping

import numpy as np
from loguru import logger

from dasv.config.config import SupervoxelConfig
from dasv.datatypes import Cluster, Frame, create_frame
from dasv.exceptions import EngineNotStartedError, FrameShapeError
from dasv.modules.clustering import update_clusters
from dasv.modules.density import compute_cluster_density, compute_frame_density
from dasv.modules.rgbd import CameraFacingNormals, NormalEstimator, create_rgbd_data
from dasv.modules.sampling import sample_clusters_from_density
from dasv.state.engine_state import EngineState
from dasv.state.window import WindowData


class ContinuousSupervoxels:
    """
    Streaming supervoxel segmentation of RGB-D frames.

    Every step seeds new clusters where the recent clusters do not cover the
    target density yet, appends a frame to the timeseries, freezes frames
    which left the time window and refines all clusters around the active
    time, which lags cluster_time_radius frames behind the newest frame.
    """

    def __init__(
        self,
        config: SupervoxelConfig | None = None,
        seed: int | None = None,
        normal_estimator: NormalEstimator | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Camera and clustering configuration.
            seed: Seed of the random generator used for seed jitter.
            normal_estimator: Strategy for point and cluster normals.

        """
        self.cfg = config if config is not None else SupervoxelConfig()
        self.rng = np.random.default_rng(seed)
        self.normal_estimator = (
            normal_estimator if normal_estimator is not None else CameraFacingNormals()
        )
        self.state: EngineState | None = None

    def start(self, width: int, height: int) -> None:
        """Reset the engine for frames of the given size."""
        if width <= 0 or height <= 0:
            msg = f"Invalid frame size {width}x{height}"
            raise ValueError(msg)
        self.state = EngineState(
            width=width,
            height=height,
            window=WindowData.allocate(
                2 * self.cfg.cluster_time_radius + 1, width, height
            ),
        )

    def _require_state(self) -> EngineState:
        if self.state is None:
            msg = "start() must be called before using the engine"
            raise EngineNotStartedError(msg)
        return self.state

    def _check_input(self, color: np.ndarray, depth: np.ndarray) -> None:
        state = self._require_state()
        expected = (state.height, state.width)
        if color.shape[:2] != expected or depth.shape != expected:
            msg = (
                f"Frame size mismatch: expected {expected}, "
                f"got color {color.shape} and depth {depth.shape}"
            )
            raise FrameShapeError(msg, expected=expected, actual=depth.shape)
        if color.ndim != 3 or color.shape[2] != 3:
            msg = f"Color image must have shape (H, W, 3), got {color.shape}"
            raise FrameShapeError(msg, expected=expected, actual=color.shape)

    @property
    def active_time(self) -> int:
        """Most recent time with a full lookahead window."""
        series = self._require_state().series
        return max(series.begin, series.end - self.cfg.cluster_time_radius - 1)

    def step(self, color: np.ndarray, depth: np.ndarray) -> Frame:
        """
        Process the next frame.

        Args:
            color: (H, W, 3) uint8 RGB image.
            depth: (H, W) uint16 depth image, 0 marks missing depth.

        Returns:
            The newly created frame.

        """
        self._check_input(color, depth)
        state = self.state
        cfg = self.cfg
        lam = cfg.density_decay

        rgbd = create_rgbd_data(color, depth, cfg, self.normal_estimator)

        # sample new clusters where recent clusters do not provide density
        target_density = compute_frame_density(rgbd)
        if state.is_first:
            sample_density = target_density
        else:
            sample_density = target_density - lam * state.last_density
        new_clusters = sample_clusters_from_density(
            rgbd, sample_density, self.rng, cfg.seed_retries
        )

        current_density = compute_cluster_density(
            state.height, state.width, new_clusters
        )
        if state.is_first:
            state.last_density = current_density
        else:
            state.last_density = lam * state.last_density + current_density
        state.current_density = current_density

        series = state.series
        new_frame = create_frame(series.end, rgbd, new_clusters)
        series.add(new_frame)

        # freeze frames which left the time window
        purged = series.purge(series.end - 2 * cfg.cluster_time_radius - 1)
        for frame in purged:
            state.window.detach(frame)
            for c in frame.clusters:
                c.freeze()
                state.inactive_clusters.append(c)
                state.inactive_lookup[c.key] = c
        state.window.attach(new_frame)

        t = self.active_time
        logger.debug(
            f"f={new_frame.time}, t={t}, span=[{series.begin},{series.end}[, "
            f"clusters active={self.num_active_clusters()}"
            f"/inactive={self.num_inactive_clusters()}"
        )

        update_clusters(t, series, cfg, self.normal_estimator, state.window)

        state.is_first = False
        return new_frame

    def num_active_clusters(self) -> int:
        if self.state is None:
            return 0
        return sum(len(f.clusters) for f in self.state.series.frames)

    def num_inactive_clusters(self) -> int:
        if self.state is None:
            return 0
        return len(self.state.inactive_clusters)

    def get_frame(self, time: int) -> Frame:
        return self._require_state().series.get_frame(time)

    def get_all_clusters(self) -> list[Cluster]:
        """Copies of all inactive and active clusters."""
        if self.state is None:
            return []
        result = [c.copy() for c in self.state.inactive_clusters]
        result.extend(c.copy() for c in self.state.series.clusters())
        return result

    def cluster_lookup(self) -> Mapping[tuple[int, int], Cluster]:
        """
        Map (time, id) to the live cluster records. Do not modify them.

        Only the active clusters are collected, inactive clusters are served
        from the lookup which grows with the inactive pool.
        """
        if self.state is None:
            return {}
        active = {c.key: c for c in self.state.series.clusters()}
        return ChainMap(active, self.state.inactive_lookup)
