"""Tests for mipmap error diffusion seed sampling."""

from __future__ import annotations

import numpy as np
import pytest

from dasv.config.config import SupervoxelConfig
from dasv.modules.density import compute_frame_density
from dasv.modules.rgbd import create_rgbd_data
from dasv.modules.sampling import (
    _sample_rec,
    compute_mipmap,
    compute_mipmaps,
    diffuse_error,
    find_next_pow2,
    find_valid_seed_point,
    sample_clusters_from_density,
    sample_density,
)


def test_find_next_pow2():
    assert [find_next_pow2(x) for x in (1, 2, 3, 480, 640, 1024)] == [
        1,
        2,
        4,
        512,
        1024,
        1024,
    ]


def test_mipmap_pyramid_shapes():
    mipmaps = compute_mipmaps(np.zeros((480, 640)))
    assert len(mipmaps) == 11
    assert mipmaps[0].shape == (480, 640)
    assert mipmaps[1].shape == (512, 512)
    assert mipmaps[-1].shape == (1, 1)


def test_mipmap_mass_conservation():
    rng = np.random.default_rng(7)
    field = rng.normal(0.1, 0.5, size=(37, 53))
    mipmaps = compute_mipmaps(field)
    total = field.sum()
    for mm in mipmaps:
        assert mm.sum() == pytest.approx(total, rel=1e-9, abs=1e-9)
    assert mipmaps[-1].shape == (1, 1)


def test_mipmap_block_sums():
    data = np.arange(16, dtype=np.float64).reshape(4, 4)
    mm = compute_mipmap(data)
    np.testing.assert_allclose(mm, [[0 + 1 + 4 + 5, 2 + 3 + 6 + 7], [42, 50]])


def test_diffusion_interior_weights():
    carry = np.zeros((4, 4))
    diffuse_error(carry, 1, 1, 1.6)
    assert carry[1, 2] == pytest.approx(0.7)
    assert carry[2, 0] == pytest.approx(0.3)
    assert carry[2, 1] == pytest.approx(0.5)
    assert carry[2, 2] == pytest.approx(0.1)
    assert carry.sum() == pytest.approx(1.6)


@pytest.mark.parametrize("x, y", [(0, 0), (3, 1), (0, 2), (2, 3), (1, 1)])
def test_diffusion_conserves_mass(x, y):
    carry = np.zeros((4, 4))
    diffuse_error(carry, x, y, -0.8)
    assert carry.sum() == pytest.approx(-0.8)


def test_diffusion_edges():
    carry = np.zeros((4, 4))
    # right border: only the row below receives mass
    diffuse_error(carry, 3, 1, 0.8)
    assert carry[2, 2] == pytest.approx(0.3)
    assert carry[2, 3] == pytest.approx(0.5)

    # last row: everything goes right
    carry = np.zeros((4, 4))
    diffuse_error(carry, 1, 3, 0.8)
    assert carry[3, 2] == pytest.approx(0.8)

    # bottom right cell loses its mass
    carry = np.zeros((4, 4))
    diffuse_error(carry, 3, 3, 0.8)
    assert not carry.any()


def test_find_valid_seed_point():
    rng = np.random.default_rng(0)
    valid = np.zeros((8, 8), dtype=bool)
    valid[2, 5] = True
    assert find_valid_seed_point(valid, 5, 2, 0, rng) == (5, 2)
    assert find_valid_seed_point(valid, 4, 2, 0, rng) is None
    assert find_valid_seed_point(valid, 9, 2, 0, rng) is None

    seed = find_valid_seed_point(valid, 4, 3, 2, rng, retries=1000)
    assert seed == (5, 2)


def test_find_valid_seed_point_gives_up():
    rng = np.random.default_rng(0)
    valid = np.zeros((8, 8), dtype=bool)
    assert find_valid_seed_point(valid, 4, 4, 2, rng) is None


def _walk(valid, density):
    mipmaps = compute_mipmaps(density, 1)
    carry = [np.zeros_like(mm) for mm in mipmaps]
    seeds = []
    rng = np.random.default_rng(0)
    _sample_rec(valid, seeds, mipmaps, carry, len(mipmaps) - 1, 0, 0, rng, 100)
    return seeds, carry


def test_failed_seed_search_diffuses_full_mass():
    # level 1 cell (0, 0) holds 0.6, its only candidate pixel (1, 1) is invalid
    density = np.zeros((4, 4))
    density[1, 1] = 0.6
    density[2:, 2:] = 0.3
    valid = np.ones((4, 4), dtype=bool)
    valid[1, 1] = False

    seeds, carry = _walk(valid, density)
    assert (1, 1) not in seeds
    assert carry[1][0, 1] == pytest.approx(0.6 * 7.0 / 13.0)
    # plus 3/8 of what reached cell (1, 0)
    assert carry[1][1, 0] == pytest.approx(
        0.6 * 5.0 / 13.0 + 3.0 / 8.0 * 0.6 * 7.0 / 13.0
    )
    # the residual ends up in the bottom right cell
    assert seeds == [(3, 3)]


def test_emitted_seed_diffuses_remainder():
    density = np.zeros((4, 4))
    density[1, 1] = 0.6
    density[2:, 2:] = 0.3
    valid = np.ones((4, 4), dtype=bool)

    seeds, carry = _walk(valid, density)
    assert seeds[0] == (1, 1)
    assert carry[1][0, 1] == pytest.approx(-0.4 * 7.0 / 13.0)


def test_uniform_density_exact_count():
    # every 4x4 cell carries exactly one seed
    valid = np.ones((64, 64), dtype=bool)
    density = np.full((64, 64), 1.0 / 16.0)
    seeds = sample_density(valid, density, np.random.default_rng(1))
    assert seeds.shape == (256, 2)
    cells = {(x // 4, y // 4) for x, y in seeds.tolist()}
    assert len(cells) == 256


@pytest.mark.parametrize("rho", [0.05, 0.04])
def test_uniform_density_expected_count(rho):
    valid = np.ones((64, 64), dtype=bool)
    density = np.full((64, 64), rho)
    counts = [
        len(sample_density(valid, density, np.random.default_rng(s))) for s in range(5)
    ]
    expected = rho * 64 * 64
    assert np.mean(counts) == pytest.approx(expected, rel=0.15)


def test_seeds_only_on_valid_pixels():
    valid = np.zeros((64, 64), dtype=bool)
    valid[:, :32] = True
    density = np.full((64, 64), 0.05)
    seeds = sample_density(valid, density, np.random.default_rng(3))
    assert len(seeds) > 0
    assert valid[seeds[:, 1], seeds[:, 0]].all()


def test_no_seeds_for_negative_or_invalid():
    valid = np.ones((32, 32), dtype=bool)
    seeds = sample_density(valid, np.full((32, 32), -0.1), np.random.default_rng(0))
    assert seeds.shape == (0, 2)

    seeds = sample_density(
        np.zeros((32, 32), dtype=bool),
        np.full((32, 32), 0.1),
        np.random.default_rng(0),
    )
    assert seeds.shape == (0, 2)


def test_sampling_is_reproducible():
    valid = np.ones((48, 40), dtype=bool)
    density = np.random.default_rng(5).uniform(0.0, 0.1, size=(48, 40))
    a = sample_density(valid, density, np.random.default_rng(11))
    b = sample_density(valid, density, np.random.default_rng(11))
    np.testing.assert_array_equal(a, b)


def test_sample_clusters_from_density(make_images):
    cfg = SupervoxelConfig()
    cfg.center_x = 32.0
    cfg.center_y = 32.0
    color, depth = make_images(64, 64, color=(0, 128, 128))
    rgbd = create_rgbd_data(color, depth, cfg)
    density = compute_frame_density(rgbd) * 20.0

    clusters = sample_clusters_from_density(rgbd, density, np.random.default_rng(2))
    assert len(clusters) > 0
    assert [c.id for c in clusters] == list(range(len(clusters)))
    for c in clusters:
        assert c.valid
        x, y = int(c.pixel[0]), int(c.pixel[1])
        np.testing.assert_array_equal(c.position, rgbd.position[y, x])
        np.testing.assert_array_equal(c.color, rgbd.color[y, x])
        assert c.cluster_radius_px == pytest.approx(13.2, rel=1e-5)
