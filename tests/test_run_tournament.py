import sys

import pandas as pd

import run_tournament


def test_script_writes_outputs(tmp_path, monkeypatch, capsys):
    out = tmp_path / "out"
    monkeypatch.setattr(
        sys,
        "argv",
        ["run_tournament.py", "--seed", "1", "--config", str(tmp_path / "engine.json"), "--output-dir", str(out)],
    )
    run_tournament.main()

    results = pd.read_csv(out / "results.csv")
    ratings = pd.read_csv(out / "ratings.csv", index_col="team")
    progress = pd.read_csv(out / "qualifier_progress.csv")
    assert len(results) == 768
    assert len(ratings) == 160
    assert progress["is_complete"].all()
    assert "champion:" in capsys.readouterr().out
