from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

GROUP_COLS = ["dataset_id", "edge_divisor", "alpha", "beta"]
METRICS = ["n_centers", "count_error", "abs_count_error", "runtime_sec"]


def _format_mean_std(mean_val: float | None, std_val: float | None, precision: int = 3) -> str:
    if mean_val is None or std_val is None or np.isnan(mean_val):
        return "N/A"
    if np.isnan(std_val):
        std_val = 0.0
    fmt = f"{{:.{precision}f}} ± {{:.{precision}f}}"
    return fmt.format(mean_val, std_val)


def _load_raw(raw_root: Path) -> pd.DataFrame:
    parts: List[pd.DataFrame] = []
    parquet_files = sorted(p for p in raw_root.glob("*.parquet") if not p.stem.endswith("_partial"))
    if not parquet_files:
        raise FileNotFoundError(
            f"No Parquet files found under {raw_root}. "
            f"Make sure experiments completed successfully and generated result files."
        )
    print(f"Loading {len(parquet_files)} result files from {raw_root}")
    for p in parquet_files:
        try:
            parts.append(pd.read_parquet(p))
        except Exception as e:
            print(f"Warning: Failed to load {p}: {e}")
            continue
    if not parts:
        raise FileNotFoundError(f"Could not load any Parquet files from {raw_root}")
    return pd.concat(parts, ignore_index=True)


def _aggregate(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["abs_count_error"] = df["count_error"].abs()

    agg = df.groupby(GROUP_COLS, dropna=False)[METRICS].agg(["mean", "std"])
    # Flatten MultiIndex columns
    agg.columns = [f"{m}_{stat}" for m, stat in agg.columns]
    agg = agg.reset_index()
    return agg


def _create_parameter_table(summary: pd.DataFrame, param: str, label: str) -> pd.DataFrame:
    """Aggregate results over datasets (and the other parameters) for one swept parameter."""
    rows = []
    for value in sorted(summary[param].dropna().unique()):
        sub = summary[summary[param] == value]
        rows.append(
            {
                label: value,
                "Centers": _format_mean_std(
                    float(sub["n_centers_mean"].mean()), float(sub["n_centers_std"].mean())
                ),
                "|Count error|": _format_mean_std(
                    float(sub["abs_count_error_mean"].mean()),
                    float(sub["abs_count_error_std"].mean()),
                ),
                "Runtime (s)": _format_mean_std(
                    float(sub["runtime_sec_mean"].mean()),
                    float(sub["runtime_sec_std"].mean()),
                    precision=4,
                ),
            }
        )
    return pd.DataFrame(rows)


def _best_parameters_table(summary: pd.DataFrame) -> pd.DataFrame:
    """Per dataset, the parameter combination with the smallest mean |count error|."""
    idx = summary.groupby("dataset_id")["abs_count_error_mean"].idxmin()
    best = summary.loc[idx, GROUP_COLS + ["n_centers_mean", "abs_count_error_mean"]]
    return best.reset_index(drop=True)


def _save_table_artifacts(summary: pd.DataFrame, output_root: Path) -> None:
    output_root.mkdir(parents=True, exist_ok=True)

    summary.to_parquet(output_root / "summary.parquet", index=False)
    summary.to_csv(output_root / "summary.csv", index=False)

    tables = {
        "table_edge_divisor": _create_parameter_table(summary, "edge_divisor", "Edge divisor"),
        "table_alpha": _create_parameter_table(summary, "alpha", "Alpha"),
        "table_beta": _create_parameter_table(summary, "beta", "Beta"),
    }
    for name, table in tables.items():
        latex = table.to_latex(index=False, escape=False, float_format=None)
        latex = latex.replace(" ± ", " $\\pm$ ")
        (output_root / f"{name}.tex").write_text(latex, encoding="utf-8")
        table.to_csv(output_root / f"{name}.csv", index=False)

    _best_parameters_table(summary).to_csv(output_root / "table_best_parameters.csv", index=False)

    txt_lines = [
        "Summary tables for mountain cluster-center estimation.\n",
        "Tables:\n",
        "- table_edge_divisor: estimated center count and count error by edge divisor\n",
        "- table_alpha: estimated center count and count error by potential decay rate\n",
        "- table_beta: estimated center count and count error by suppression decay rate\n",
        "- table_best_parameters: best parameter combination per dataset\n",
    ]
    (output_root / "summary.txt").write_text("".join(txt_lines), encoding="utf-8")

    meta: Dict = {
        "tables": list(tables) + ["table_best_parameters"],
        "description": "Aggregated results of mountain cluster-center estimation.",
    }
    (output_root / "summary.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")


def _plot_and_describe(
    summary: pd.DataFrame,
    output_root: Path,
    metric: str,
    ylabel: str,
) -> None:
    """Line plot of a metric against alpha, one line per edge divisor, with sidecar text/JSON."""
    plot_df = (
        summary.groupby(["edge_divisor", "alpha"], dropna=False)[f"{metric}_mean"]
        .mean()
        .reset_index()
    )

    fig, ax = plt.subplots(figsize=(8, 4))
    for edge_divisor in sorted(plot_df["edge_divisor"].unique()):
        sub = plot_df[plot_df["edge_divisor"] == edge_divisor].sort_values("alpha")
        ax.plot(sub["alpha"], sub[f"{metric}_mean"], marker="o", label=f"edge_divisor={edge_divisor}")

    # Log scale needs strictly positive alphas.
    xscale = "log" if plot_df["alpha"].min() > 0 else "linear"
    ax.set_xscale(xscale)
    ax.set_xlabel("alpha")
    ax.set_ylabel(ylabel)
    ax.set_title(f"{metric} by alpha and edge divisor")
    ax.legend()
    fig.tight_layout()

    fname = f"{metric}_by_alpha"
    img_path = output_root / f"{fname}.png"
    fig.savefig(img_path, dpi=200)
    plt.close(fig)

    description = (
        f"Line chart of {metric} (averaged over datasets and beta) against alpha, "
        f"one line per edge divisor."
    )
    (output_root / f"{fname}.txt").write_text(description, encoding="utf-8")

    meta = {
        "figure": img_path.name,
        "metric": metric,
        "ylabel": ylabel,
        "group_by": ["edge_divisor", "alpha"],
        "xscale": xscale,
        "description": description,
    }
    (output_root / f"{fname}.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")


def main(argv: List[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Aggregate mountain cluster-estimation results.")
    parser.add_argument(
        "--raw",
        type=Path,
        required=True,
        help="Directory containing raw Parquet logs.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Directory for summary tables and plots.",
    )

    args = parser.parse_args(argv)

    raw_df = _load_raw(args.raw)
    summary = _aggregate(raw_df)
    _save_table_artifacts(summary, args.output)

    _plot_and_describe(summary, args.output, metric="abs_count_error", ylabel="|Estimated - true k|")
    _plot_and_describe(summary, args.output, metric="n_centers", ylabel="Estimated centers")
    _plot_and_describe(summary, args.output, metric="runtime_sec", ylabel="Runtime (s)")


if __name__ == "__main__":
    main()
