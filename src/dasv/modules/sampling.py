"""Blue-noise seed sampling by error diffusion over a density mipmap."""

import numpy as np
from loguru import logger

from dasv.datatypes import Cluster, RgbdData

# a cell becomes a leaf below this mass and emits a seed above SEED_THRESHOLD
LEAF_THRESHOLD = 1.5
SEED_THRESHOLD = 0.5

# causal error diffusion weights (x+1,y), (x-1,y+1), (x,y+1), (x+1,y+1)
W_RIGHT = 7.0
W_DOWN_LEFT = 3.0
W_DOWN = 5.0
W_DOWN_RIGHT = 1.0


def find_next_pow2(x: int) -> int:
    a = 1
    while a < x:
        a *= 2
    return a


def compute_mipmap(data: np.ndarray) -> np.ndarray:
    """
    Sum 2x2 blocks of a field into a square field of half resolution.

    The result has side next_pow2(max(H, W)) / 2 so that all further levels
    form a complete quadtree. Odd dimensions are padded with zeros.

    Args:
        data: (H, W) field.

    Returns:
        (S, S) field with the 2x2 block sums in its upper left corner.

    """
    h, w = data.shape
    padded = np.pad(data, ((0, h % 2), (0, w % 2)))
    h2, w2 = padded.shape[0] // 2, padded.shape[1] // 2
    size = find_next_pow2(max(h, w)) // 2
    mm = np.zeros((size, size), dtype=np.float64)
    mm[:h2, :w2] = padded.reshape(h2, 2, w2, 2).sum(axis=(1, 3))
    return mm


def compute_mipmaps(data: np.ndarray, min_size: int = 1) -> list[np.ndarray]:
    """
    Build the mipmap pyramid of a field.

    Args:
        data: (H, W) finest level.
        min_size: Reduction stops once a side is not larger than this.

    Returns:
        Levels from finest (the field itself) to coarsest.

    """
    mm = [np.asarray(data, dtype=np.float64)]
    while True:
        q = mm[-1]
        if q.shape[0] <= min_size or q.shape[1] <= min_size:
            break
        mm.append(compute_mipmap(q))
    return mm


def find_valid_seed_point(
    valid: np.ndarray,
    sx: int,
    sy: int,
    radius: int,
    rng: np.random.Generator,
    retries: int = 100,
) -> tuple[int, int] | None:
    """
    Find a valid pixel near (sx, sy).

    Args:
        valid: (H, W) validity mask.
        sx, sy: Preferred pixel.
        radius: Maximal random offset per axis; 0 only tests (sx, sy).
        rng: Random generator for the offsets.
        retries: Number of random offsets which are tried.

    Returns:
        The chosen pixel or None if no valid pixel was hit.

    """
    h, w = valid.shape
    if radius == 0:
        if 0 <= sx < w and 0 <= sy < h and valid[sy, sx]:
            return sx, sy
        return None
    for _ in range(retries):
        dx, dy = rng.integers(-radius, radius + 1, size=2)
        x = sx + int(dx)
        y = sy + int(dy)
        if 0 <= x < w and 0 <= y < h and valid[y, x]:
            return x, y
    return None


def diffuse_error(carry: np.ndarray, x: int, y: int, v: float) -> None:
    """
    Distribute v to the causal neighbours of cell (x, y).

    Weights of neighbours outside the level are dropped and v is spread over
    the remaining weights, so the full amount is kept unless (x, y) is the
    bottom right cell.
    """
    rows, cols = carry.shape
    xm1ok = x > 0
    xp1ok = x + 1 < cols
    yp1ok = y + 1 < rows
    q = 0.0
    if xp1ok:
        q += W_RIGHT
    if yp1ok:
        if xm1ok:
            q += W_DOWN_LEFT
        q += W_DOWN
        if xp1ok:
            q += W_DOWN_RIGHT
    if q <= 0.0:
        return
    scl = v / q
    if xp1ok:
        carry[y, x + 1] += W_RIGHT * scl
    if yp1ok:
        if xm1ok:
            carry[y + 1, x - 1] += W_DOWN_LEFT * scl
        carry[y + 1, x] += W_DOWN * scl
        if xp1ok:
            carry[y + 1, x + 1] += W_DOWN_RIGHT * scl


def _sample_rec(
    valid: np.ndarray,
    seeds: list[tuple[int, int]],
    mipmaps: list[np.ndarray],
    carry: list[np.ndarray],
    level: int,
    x: int,
    y: int,
    rng: np.random.Generator,
    retries: int,
) -> None:
    v = mipmaps[level][y, x] + carry[level][y, x]

    if level <= 1 or v <= LEAF_THRESHOLD:
        if v >= SEED_THRESHOLD:
            # seed near the cell center
            if level == 0:
                sx, sy, radius = x, y, 0
            else:
                half = 1 << (level - 1)
                sx = (x << level) + half
                sy = (y << level) + half
                radius = half // 2
            seed = find_valid_seed_point(valid, sx, sy, radius, rng, retries)
            if seed is not None:
                seeds.append(seed)
                v -= 1.0
        diffuse_error(carry[level], x, y, v)
    else:
        # children in fixed order so that carry flows to later cells
        _sample_rec(valid, seeds, mipmaps, carry, level - 1, 2 * x, 2 * y, rng, retries)
        _sample_rec(valid, seeds, mipmaps, carry, level - 1, 2 * x, 2 * y + 1, rng, retries)
        _sample_rec(valid, seeds, mipmaps, carry, level - 1, 2 * x + 1, 2 * y, rng, retries)
        _sample_rec(valid, seeds, mipmaps, carry, level - 1, 2 * x + 1, 2 * y + 1, rng, retries)


def sample_density(
    valid: np.ndarray,
    density: np.ndarray,
    rng: np.random.Generator,
    retries: int = 100,
) -> np.ndarray:
    """
    Sample seed pixels whose local density follows a density field.

    Args:
        valid: (H, W) mask of pixels which may carry a seed.
        density: (H, W) target density, may be negative.
        rng: Random generator used for seed jitter.
        retries: Jitter attempts per seed.

    Returns:
        (N, 2) integer seed pixels [x, y].

    """
    mipmaps = compute_mipmaps(density, 1)
    carry = [np.zeros_like(mm) for mm in mipmaps]
    seeds: list[tuple[int, int]] = []
    _sample_rec(valid, seeds, mipmaps, carry, len(mipmaps) - 1, 0, 0, rng, retries)
    if not seeds:
        return np.empty((0, 2), dtype=int)
    return np.array(seeds, dtype=int)


def sample_clusters_from_density(
    rgbd: RgbdData,
    density: np.ndarray,
    rng: np.random.Generator,
    retries: int = 100,
) -> list[Cluster]:
    """
    Create new clusters at seed pixels sampled from a density.

    Args:
        rgbd: Point data of the frame.
        density: (H, W) sample density.
        rng: Random generator used for seed jitter.
        retries: Jitter attempts per seed.

    Returns:
        New valid clusters initialized from their seed points, with ids set
        to their list index.

    """
    seeds = sample_density(rgbd.valid, density, rng, retries)
    clusters = []
    for x, y in seeds.tolist():
        if not rgbd.is_valid(x, y):
            continue
        p = rgbd.point(x, y)
        clusters.append(
            Cluster(
                id=len(clusters),
                valid=True,
                pixel=np.array([x, y], dtype=np.float32),
                color=p.color,
                position=p.position,
                normal=p.normal,
                cluster_radius_px=p.cluster_radius_px,
            )
        )
    if len(clusters) < len(seeds):
        logger.debug(f"Dropped {len(seeds) - len(clusters)} seeds on invalid pixels")
    return clusters
