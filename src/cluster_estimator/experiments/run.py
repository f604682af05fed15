from __future__ import annotations

import argparse
import itertools
import json
import logging
import time
import traceback
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs
from tqdm.auto import tqdm

from cluster_estimator.algorithms import MountainConfig, mountain_cluster_centers
from cluster_estimator.algorithms._shared import INT16_MAX
from cluster_estimator.distances import DistanceFactory

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

Dataset = Tuple[str, np.ndarray, np.ndarray]


def _iter_datasets(roots: Iterable[Path]) -> Iterable[Tuple[str, Path, Path]]:
    """Yield (dataset_id, features_path, labels_path) over all dataset folders."""
    for root in roots:
        for sub in root.rglob("features.parquet"):
            labels = sub.with_name("labels.parquet")
            if not labels.exists():
                continue
            rel_id = sub.parent.relative_to(root)
            dataset_id = f"{root.name}/{rel_id.as_posix()}"
            yield dataset_id, sub, labels


def _load_dataset(features_path: Path, labels_path: Path) -> Tuple[np.ndarray, np.ndarray]:
    X = pd.read_parquet(features_path).to_numpy(dtype=float)
    y = pd.read_parquet(labels_path)["label"].to_numpy()
    return X, y


def _synthetic_datasets(n_datasets: int, seed: int = 0) -> List[Dataset]:
    """Gaussian blob datasets with a known number of clusters."""
    rng = np.random.default_rng(seed)
    datasets: List[Dataset] = []
    for idx in range(n_datasets):
        k = int(rng.integers(2, 8))
        n_features = int(rng.integers(2, 5))
        X, y = make_blobs(
            n_samples=int(rng.integers(100, 400)),
            centers=k,
            n_features=n_features,
            cluster_std=float(rng.uniform(0.3, 1.0)),
            random_state=seed + idx,
        )
        datasets.append((f"synthetic/blobs_{idx:03d}_k{k}_d{n_features}", X, y))
    return datasets


def quantize_features(X: np.ndarray, resolution: int = 1000) -> np.ndarray:
    """Scale each feature into ``0..resolution`` and round to int16 candidates.

    Constant features map to 0.
    """
    if not (1 <= resolution <= INT16_MAX):
        raise ValueError(f"resolution must satisfy 1 <= resolution <= {INT16_MAX}.")

    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Features must be a 2-D array, got shape {X.shape}.")

    lo = np.min(X, axis=0)
    span = np.max(X, axis=0) - lo
    span[span == 0] = 1.0
    scaled = (X - lo) / span * resolution
    return np.rint(scaled).astype(np.int16)


def _safe_dataset_name(dataset_id: str) -> str:
    return dataset_id.replace("/", "_").replace("\\", "_")


def _append_results(output_root: Path, dataset_id: str, rows: List[Dict]) -> None:
    if not rows:
        return
    written = len(rows)
    df = pd.DataFrame(rows)
    safe_name = _safe_dataset_name(dataset_id)
    output_path = output_root / f"{safe_name}.parquet"
    if output_path.exists():
        existing_df = pd.read_parquet(output_path)
        df = pd.concat([existing_df, df], ignore_index=True)
    df.to_parquet(output_path, index=False)
    logger.info(f"  Saved {written} results to {output_path}")
    rows.clear()


def _save_partial_results(output_root: Path, dataset_id: str, rows: List[Dict]) -> None:
    if not rows:
        return
    df = pd.DataFrame(rows)
    safe_name = _safe_dataset_name(dataset_id)
    output_path = output_root / f"{safe_name}_partial.parquet"
    df.to_parquet(output_path, index=False)
    logger.info(f"  Saved {len(rows)} partial results to {output_path}")
    rows.clear()


def _dataset_size_check(n_samples: int, max_samples: int | None) -> Tuple[bool, float]:
    mem_gb = DistanceFactory.estimate_memory(n_samples)
    if max_samples is not None and n_samples > max_samples:
        return True, mem_gb
    return False, mem_gb


def _run_parameter_sweep(
    dataset_id: str,
    candidates: np.ndarray,
    k_true: int,
    edge_divisors: List[int],
    alphas: List[float],
    betas: List[float],
    factory: DistanceFactory,
    memory_efficient: bool,
) -> List[Dict]:
    rows: List[Dict] = []
    grid = list(itertools.product(edge_divisors, alphas, betas))

    for edge_divisor, alpha, beta in tqdm(grid, desc="Parameters", leave=False):
        try:
            config = MountainConfig(
                edge_divisor=edge_divisor,
                alpha=alpha,
                beta=beta,
                memory_efficient=memory_efficient,
            )
            t0 = time.perf_counter()
            centers, potentials = mountain_cluster_centers(
                candidates, config, factory=factory, dataset_id=dataset_id
            )
            t1 = time.perf_counter()
        except Exception as exc:
            logger.warning(
                f"  Error in estimation (edge_divisor={edge_divisor}, alpha={alpha}, beta={beta}): {exc}"
            )
            continue

        n_centers = int(centers.shape[0])
        rows.append(
            {
                "dataset_id": dataset_id,
                "edge_divisor": int(edge_divisor),
                "alpha": float(alpha),
                "beta": float(beta),
                "n_samples": int(candidates.shape[0]),
                "n_features": int(candidates.shape[1]),
                "k_true": int(k_true),
                "n_centers": n_centers,
                "count_error": n_centers - int(k_true),
                "first_peak_potential": float(potentials[0]),
                "last_peak_potential": float(potentials[-1]),
                "centers": json.dumps(centers.tolist()),
                "runtime_sec": float(t1 - t0),
            }
        )

    return rows


def run_experiments(
    dataset_roots: List[Path],
    output_root: Path,
    edge_divisors: List[int],
    alphas: List[float],
    betas: List[float],
    resolution: int = 1000,
    synthetic: int = 0,
    seed: int = 0,
    max_samples: int | None = 10000,
    test_mode: bool = False,
    verbose: bool = False,
    memory_efficient: bool = False,
) -> None:
    """Run the estimator over datasets and a parameter grid.

    Args:
        dataset_roots: Root directories containing dataset subfolders
        output_root: Directory to save result Parquet files
        edge_divisors: Edge divisors to sweep
        alphas: Potential decay rates to sweep
        betas: Suppression decay rates to sweep
        resolution: Quantization range for float features (0..resolution)
        synthetic: Number of synthetic blob datasets to add
        seed: Seed for synthetic datasets
        max_samples: Maximum number of samples per dataset (None = no limit)
        test_mode: If True, process only first 3 datasets
        verbose: If True, enable DEBUG logging
        memory_efficient: If True, compute distance rows on demand and process all datasets
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    output_root.mkdir(parents=True, exist_ok=True)
    factory = DistanceFactory()

    if memory_efficient:
        logger.info("Memory-efficient mode enabled: processing all datasets without distance matrices")
        max_samples = None

    sources: List[Tuple[str, Path, Path] | Dataset] = list(_iter_datasets(dataset_roots))
    sources.extend(_synthetic_datasets(synthetic, seed=seed))
    logger.info(f"Found {len(sources)} datasets to process")

    if test_mode:
        sources = sources[:3]
        logger.info(f"Test mode: Processing only first {len(sources)} datasets")

    if max_samples is not None:
        logger.info(f"Filtering datasets: max_samples={max_samples}")

    skipped_count = 0
    processed_count = 0

    for dataset_id, X_src, y_src in tqdm(sources, desc="Datasets", unit="dataset"):
        pending_rows: List[Dict] = []
        try:
            logger.info(f"Processing dataset: {dataset_id}")
            if isinstance(X_src, Path):
                X, y = _load_dataset(X_src, y_src)
            else:
                X, y = X_src, y_src
            n_samples = X.shape[0]
            k_true = int(np.unique(y).size)
            logger.info(f"  Dataset shape: {X.shape}, k={k_true}")

            skip_dataset, mem_gb = _dataset_size_check(n_samples, max_samples)
            if skip_dataset:
                logger.warning(
                    f"  SKIPPING {dataset_id}: {n_samples} samples exceeds max_samples={max_samples} "
                    f"(would require ~{mem_gb:.2f} GB for distance matrix)"
                )
                skipped_count += 1
                continue

            if not memory_efficient:
                logger.info(f"  Estimated memory per distance matrix: ~{mem_gb:.2f} GB")

            candidates = quantize_features(X, resolution=resolution)
            pending_rows = _run_parameter_sweep(
                dataset_id,
                candidates,
                k_true,
                edge_divisors,
                alphas,
                betas,
                factory,
                memory_efficient,
            )
            if not pending_rows:
                logger.warning(f"  ✗ No successful runs for {dataset_id}")
                continue

            _append_results(output_root, dataset_id, pending_rows)
            logger.info(f"  ✓ Dataset {dataset_id} complete")
            processed_count += 1

        except Exception as exc:
            logger.error(f"Error processing dataset {dataset_id}: {exc}")
            logger.error(traceback.format_exc())
            _save_partial_results(output_root, dataset_id, pending_rows)
            continue
        finally:
            factory.clear()
            logger.debug(f"  Cleared distance matrix cache after {dataset_id}")

    logger.info("=" * 60)
    logger.info("Experiment summary:")
    logger.info(f"  Processed: {processed_count} datasets")
    logger.info(f"  Skipped: {skipped_count} datasets (size limit)")
    logger.info(f"  Result files in: {output_root}")
    logger.info("=" * 60)


def main(argv: List[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run mountain cluster-estimation experiments.")
    parser.add_argument(
        "--datasets",
        type=Path,
        nargs="*",
        default=[],
        help="Root folders containing dataset subfolders (features.parquet + labels.parquet).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Directory where raw result Parquet files will be stored.",
    )
    parser.add_argument(
        "--edge-divisors",
        type=int,
        nargs="+",
        default=[2, 3, 4],
        help="Edge divisors to sweep (0..255).",
    )
    parser.add_argument(
        "--alphas",
        type=float,
        nargs="+",
        default=[0.01, 0.05, 0.19],
        help="Potential decay rates to sweep.",
    )
    parser.add_argument(
        "--betas",
        type=float,
        nargs="+",
        default=[0.01, 0.05, 0.2],
        help="Suppression decay rates to sweep.",
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=1000,
        help="Quantize each feature into 0..resolution before estimation.",
    )
    parser.add_argument(
        "--synthetic",
        type=int,
        default=0,
        help="Number of synthetic Gaussian blob datasets to include.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Seed for synthetic datasets.",
    )
    parser.add_argument(
        "--max-samples",
        type=int,
        default=10000,
        help="Maximum number of samples per dataset (skip larger ones). Use 0 for no limit.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Test mode: process only first 3 datasets.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging.",
    )
    parser.add_argument(
        "--memory-efficient",
        action="store_true",
        help="Memory-efficient mode: compute distance rows on demand instead of full matrices.",
    )

    args = parser.parse_args(argv)
    if not args.datasets and args.synthetic == 0:
        parser.error("Provide --datasets and/or --synthetic N.")

    max_samples = None if args.max_samples == 0 else args.max_samples
    run_experiments(
        args.datasets,
        args.output,
        edge_divisors=args.edge_divisors,
        alphas=args.alphas,
        betas=args.betas,
        resolution=args.resolution,
        synthetic=args.synthetic,
        seed=args.seed,
        max_samples=max_samples,
        test_mode=args.test,
        verbose=args.verbose,
        memory_efficient=args.memory_efficient,
    )


if __name__ == "__main__":
    main()
