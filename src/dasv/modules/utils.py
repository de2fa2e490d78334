from collections.abc import Mapping
from pathlib import Path

import numpy as np

from dasv.datatypes import Cluster, Frame

CLUSTER_COLUMNS = 15


def _fmt(value: float) -> str:
    # default C++ stream formatting
    return f"{float(value):g}"


def format_cluster(c: Cluster) -> str:
    """
    Format a cluster as one tab separated line.

    Columns: time, id, valid, radius_px, pixel x/y, color r/g/b,
    position x/y/z, normal x/y/z.
    """
    fields = [str(int(c.time)), str(int(c.id)), "1" if c.valid else "0"]
    fields.append(_fmt(c.cluster_radius_px))
    fields.extend(_fmt(v) for v in c.pixel)
    fields.extend(_fmt(v) for v in c.color)
    fields.extend(_fmt(v) for v in c.position)
    fields.extend(_fmt(v) for v in c.normal)
    return "\t".join(fields)


def save_clusters(clusters: list[Cluster], filename: str | Path) -> None:
    """
    Save clusters to a tab separated file, one cluster per line.

    Args:
        clusters: Clusters to write.
        filename: Output filename.

    """
    with Path(filename).open("w") as f:
        for c in clusters:
            f.write(format_cluster(c) + "\n")


def parse_cluster(line: str) -> Cluster:
    fields = line.rstrip("\n").split("\t")
    if len(fields) != CLUSTER_COLUMNS:
        msg = f"Expected {CLUSTER_COLUMNS} columns, got {len(fields)}"
        raise ValueError(msg)
    values = np.array([float(v) for v in fields[3:]], dtype=np.float32)
    return Cluster(
        time=int(fields[0]),
        id=int(fields[1]),
        valid=fields[2] == "1",
        cluster_radius_px=float(values[0]),
        pixel=values[1:3].copy(),
        color=values[3:6].copy(),
        position=values[6:9].copy(),
        normal=values[9:12].copy(),
    )


def load_clusters(filename: str | Path) -> list[Cluster]:
    """
    Load clusters written by save_clusters.

    Args:
        filename: Input filename.

    Returns:
        clusters: Clusters in file order.

    """
    with Path(filename).open() as f:
        return [parse_cluster(line) for line in f if line.strip()]


def age_color_ramp(age: np.ndarray, time_radius: int) -> np.ndarray:
    """
    Map cluster ages in frames to colors.

    Clusters of the frame itself are yellow. Older clusters fade to red at one
    time radius and to black at two. Newer clusters fade to green at one time
    radius and are dark green beyond.

    Args:
        age: Frame time minus cluster time.
        time_radius: Cluster time radius in frames.

    Returns:
        (..., 3) uint8 RGB colors.

    """
    n = np.asarray(age, dtype=np.int64) * 255
    # integer division rounding towards zero
    q = np.sign(n) * (np.abs(n) // time_radius)
    out = np.zeros(q.shape + (3,), dtype=np.uint8)

    present = (q >= 0) & (q <= 255)
    out[present, 0] = 255
    out[present, 1] = (255 - q[present]).astype(np.uint8)

    older = q > 255
    out[older, 0] = np.clip((510 - q[older]) // 2, 0, 255).astype(np.uint8)

    newer = (q < 0) & (q >= -255)
    out[newer, 0] = (255 + q[newer]).astype(np.uint8)
    out[newer, 1] = 255

    out[q < -255] = (0, 96, 0)
    return out


def create_superpixel_image(
    frame: Frame,
    clusters: Mapping[tuple[int, int], Cluster],
    borders: bool = True,
    age_colors: bool = False,
    time_radius: int = 5,
) -> np.ndarray:
    """
    Paint every pixel with the color of its cluster.

    Args:
        frame: Frame with assignment.
        clusters: Lookup from (time, id) to cluster.
        borders: Invert the color of pixels at cluster borders.
        age_colors: Paint the cluster age relative to the frame instead of
            the cluster color, see age_color_ramp.
        time_radius: Cluster time radius used by the age colors.

    Returns:
        (H, W, 3) uint8 RGB image.

    """
    a = frame.assignment
    h, w = a.cluster_id.shape

    # checkerboard for unassigned pixels
    yy, xx = np.mgrid[0:h, 0:w]
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[(xx % 2) == (yy % 2)] = (96, 0, 96)

    mask = a.assigned
    if mask.any():
        pairs = np.stack([a.cluster_time[mask], a.cluster_id[mask]], axis=1)
        keys, inverse = np.unique(pairs, axis=0, return_inverse=True)
        inverse = inverse.reshape(-1)
        found = [clusters.get((int(t), int(i))) for t, i in keys]
        key_valid = np.array([c is not None and c.valid for c in found], dtype=bool)
        if age_colors:
            key_color = age_color_ramp(frame.time - keys[:, 0], time_radius)
        else:
            key_color = np.array(
                [
                    (c.color * 255.0).astype(np.uint8) if c is not None else (0, 0, 0)
                    for c in found
                ],
                dtype=np.uint8,
            )
        painted = np.zeros((h, w), dtype=bool)
        painted[mask] = key_valid[inverse]
        colors = np.zeros((h, w, 3), dtype=np.uint8)
        colors[mask] = key_color[inverse]
        img[painted] = colors[painted]

    if borders and h > 2 and w > 2:
        key = np.where(mask, a.cluster_time * (a.cluster_id.max() + 2) + a.cluster_id, -1)
        c = key[1:-1, 1:-1]
        edge = (
            (c != key[:-2, 1:-1])
            | (c != key[2:, 1:-1])
            | (c != key[1:-1, :-2])
            | (c != key[1:-1, 2:])
        ) & mask[1:-1, 1:-1]
        inner = img[1:-1, 1:-1]
        inner[edge] = 255 - inner[edge]
    return img
