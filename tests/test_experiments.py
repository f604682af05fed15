from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest

from cluster_estimator.analysis import summarize
from cluster_estimator.experiments.run import main, quantize_features, run_experiments


def test_quantize_features_scales_into_resolution() -> None:
    X = np.array([[0.0, 5.0], [0.5, 5.0], [1.0, 5.0]])
    Q = quantize_features(X, resolution=100)

    assert Q.dtype == np.int16
    assert Q[:, 0].tolist() == [0, 50, 100]
    # Constant features collapse to 0.
    assert Q[:, 1].tolist() == [0, 0, 0]


def test_quantize_features_rejects_bad_resolution() -> None:
    with pytest.raises(ValueError):
        quantize_features(np.zeros((2, 2)), resolution=40000)


def test_run_experiments_on_parquet_dataset(tmp_path) -> None:
    dataset_dir = tmp_path / "data" / "toy"
    dataset_dir.mkdir(parents=True)
    X = np.array([[0.0, 0.0], [0.1, 0.0], [10.0, 10.0], [10.1, 10.0]])
    pd.DataFrame(X, columns=["f0", "f1"]).to_parquet(dataset_dir / "features.parquet")
    pd.DataFrame({"label": [0, 0, 1, 1]}).to_parquet(dataset_dir / "labels.parquet")

    output = tmp_path / "raw"
    run_experiments(
        [tmp_path / "data"],
        output,
        edge_divisors=[2, 0],
        alphas=[0.05],
        betas=[0.05],
        resolution=100,
    )

    df = pd.read_parquet(output / "data_toy.parquet")
    assert len(df) == 2
    assert set(df["edge_divisor"]) == {0, 2}
    assert (df["k_true"] == 2).all()
    single = df[df["edge_divisor"] == 0].iloc[0]
    assert single["n_centers"] == 1
    assert single["count_error"] == -1
    assert len(json.loads(single["centers"])) == 1


def test_cli_with_synthetic_data_and_summary(tmp_path) -> None:
    raw = tmp_path / "raw"
    main(
        [
            "--output",
            str(raw),
            "--synthetic",
            "2",
            "--edge-divisors",
            "2",
            "3",
            "--alphas",
            "0.01",
            "0.05",
            "--betas",
            "0.05",
            "--resolution",
            "200",
            "--memory-efficient",
        ]
    )
    assert len(list(raw.glob("*.parquet"))) == 2

    summary_dir = tmp_path / "summary"
    summarize.main(["--raw", str(raw), "--output", str(summary_dir)])

    summary = pd.read_csv(summary_dir / "summary.csv")
    assert len(summary) == 2 * 2 * 2
    assert (summary["n_centers_mean"] >= 1).all()
    assert (summary_dir / "table_edge_divisor.tex").exists()
    assert (summary_dir / "table_best_parameters.csv").exists()
    assert (summary_dir / "abs_count_error_by_alpha.png").exists()


def test_cli_requires_some_input(tmp_path) -> None:
    with pytest.raises(SystemExit):
        main(["--output", str(tmp_path / "raw")])


def test_plot_falls_back_to_linear_scale_for_non_positive_alpha(tmp_path) -> None:
    raw = pd.DataFrame(
        {
            "dataset_id": ["toy"] * 3,
            "edge_divisor": [2, 2, 2],
            "alpha": [0.0, -0.01, 0.05],
            "beta": [0.05, 0.05, 0.05],
            "n_centers": [1, 3, 2],
            "count_error": [-1, 1, 0],
            "runtime_sec": [0.1, 0.2, 0.1],
        }
    )
    summary = summarize._aggregate(raw)
    summarize._plot_and_describe(summary, tmp_path, metric="n_centers", ylabel="Estimated centers")

    meta = json.loads((tmp_path / "n_centers_by_alpha.json").read_text(encoding="utf-8"))
    assert meta["xscale"] == "linear"
    assert (tmp_path / "n_centers_by_alpha.png").exists()
