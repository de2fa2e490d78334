from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import numpy as np
import rerun as rr
import tyro
from loguru import logger

from dasv.config.config import get_config
from dasv.dataset_loader import BaseDataset, RgbdSequenceDataset, UniformDataset
from dasv.datatypes import Cluster
from dasv.modules.evaluation import evaluate_compression_error
from dasv.modules.utils import create_superpixel_image, save_clusters
from dasv.supervoxels import ContinuousSupervoxels


def init_rerun() -> None:
    """Initialize Rerun logging with the camera coordinate system."""
    rr.init("Continuous Supervoxels", spawn=True)

    # forward +Z, right +X, down +Y
    rr.log("world", rr.ViewCoordinates.RIGHT_HAND_Y_DOWN, static=True)


def log_frame_rerun(
    engine: ContinuousSupervoxels,
    color: np.ndarray,
    frame_id: int,
    lookup: Mapping[tuple[int, int], Cluster],
) -> None:
    rr.set_time("frame", sequence=frame_id)
    rr.log("camera/color", rr.Image(color))

    # supervoxels of the active frame
    frame = engine.get_frame(engine.active_time)
    rr.log("camera/supervoxels", rr.Image(create_superpixel_image(frame, lookup)))
    age = create_superpixel_image(
        frame,
        lookup,
        age_colors=True,
        time_radius=engine.cfg.cluster_time_radius,
    )
    rr.log("camera/supervoxel_age", rr.Image(age))

    # cluster centers of the whole window
    clusters = [c for c in engine.state.series.clusters() if c.valid]
    if len(clusters) > 0:
        positions = np.array([c.position for c in clusters])
        colors = (np.array([c.color for c in clusters]) * 255.0).astype(np.uint8)
        rr.log("world/clusters", rr.Points3D(positions, colors=colors, radii=0.01))


@dataclass
class Args:
    dataset: Literal["uniform", "sequence"] = "uniform"
    path: Path = Path("data")
    num_frames: int = 100
    width: int = 640
    height: int = 480
    camera: Literal["kinect", "kinect_calibrated"] = "kinect"
    seed: int | None = None
    output: Path = Path("clusters.tsv")
    headless: bool = False


def main(args: Args) -> None:
    # setup
    print(f"Initializing {args.dataset}...")
    loader: BaseDataset
    if args.dataset == "uniform":
        loader = UniformDataset(args.width, args.height, num_frames=args.num_frames)
    elif args.dataset == "sequence":
        loader = RgbdSequenceDataset(args.path)

    if len(loader) == 0:
        print("Error: No frames found.")
        return
    logger.info(f"Loaded {len(loader)} frames of {loader.width}x{loader.height}")

    if not args.headless:
        init_rerun()

    engine = ContinuousSupervoxels(get_config(args.camera), seed=args.seed)
    engine.start(loader.width, loader.height)

    num_frames = min(len(loader), args.num_frames)
    for i in range(num_frames):
        color, depth = loader.get_frame(i)
        frame = engine.step(color, depth)

        t = engine.active_time
        series = engine.state.series
        lookup = engine.cluster_lookup()
        err_color, err_position = evaluate_compression_error(engine.get_frame(t), lookup)
        print(
            f"Frame {frame.time:04d} | "
            f"t: {t:04d} | "
            f"Span: [{series.begin},{series.end}[ | "
            f"New: {len(frame.clusters):04d} | "
            f"Active: {engine.num_active_clusters():05d} | "
            f"Inactive: {engine.num_inactive_clusters():06d} | "
            f"Error: {err_color:.4f} / {err_position:.4f}"
        )

        if not args.headless:
            log_frame_rerun(engine, color, frame.time, lookup)

    clusters = engine.get_all_clusters()
    save_clusters(clusters, args.output)
    logger.info(f"Supervoxel count = {len(clusters)}, written to {args.output}")
    print("Done.")


def cli() -> None:
    main(tyro.cli(Args))


if __name__ == "__main__":
    cli()
