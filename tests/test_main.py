"""End to end run of the command line entry point."""

from __future__ import annotations

from dasv.main import Args, main
from dasv.modules.utils import load_clusters


def test_headless_uniform_run(tmp_path, capsys):
    output = tmp_path / "clusters.tsv"
    args = Args(
        dataset="uniform",
        num_frames=3,
        width=64,
        height=48,
        seed=0,
        output=output,
        headless=True,
    )
    main(args)

    out = capsys.readouterr().out
    assert out.count("Frame ") == 3
    assert "Done." in out

    clusters = load_clusters(output)
    assert len(clusters) > 0
    assert {c.time for c in clusters} <= {0, 1, 2}


def test_missing_sequence(tmp_path, capsys):
    output = tmp_path / "clusters.tsv"
    args = Args(dataset="sequence", path=tmp_path / "missing", output=output, headless=True)
    main(args)

    assert "No frames found" in capsys.readouterr().out
    assert not output.exists()
