# rideshare-simulator/benchmark.py
"""
Benchmark script for the Dynamic Ride-Sharing Simulator.

Runs every scenario with several seeds under each strategy combination and
writes CSV files for statistical analysis:
- RUNS_<timestamp>.csv: one row per (scenario, seed, strategy) run
- SUMMARY_<timestamp>.csv: per (scenario, strategy) means and standard
  deviations, with the difference to the baseline strategy
"""

from __future__ import annotations

import csv
import logging
import os
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from rideshare.models import SimulationParams
from rideshare.simulation import create_service

logger = logging.getLogger("rideshare.benchmark")

# Define all test scenarios
SCENARIOS = [
    {"name": "Light_10p_3v", "passengers": 10, "vehicles": 3, "max_detour": 2.0, "time_window": 15},
    {"name": "Default_20p_5v", "passengers": 20, "vehicles": 5, "max_detour": 2.0, "time_window": 15},
    {"name": "Busy_35p_7v", "passengers": 35, "vehicles": 7, "max_detour": 2.0, "time_window": 20},
    {"name": "Peak_50p_10v", "passengers": 50, "vehicles": 10, "max_detour": 2.0, "time_window": 30},
    {"name": "Tight_Detour_30p_6v", "passengers": 30, "vehicles": 6, "max_detour": 1.0, "time_window": 15},
    {"name": "Scarce_Fleet_40p_3v", "passengers": 40, "vehicles": 3, "max_detour": 3.0, "time_window": 30},
]

SEEDS = [1, 2, 3, 4, 5]

STRATEGIES = [
    ("kmeans", "greedy"),
    ("dbscan", "greedy"),
    ("kmeans", "genetic"),
    ("dbscan", "genetic"),
]

BASELINE = "kmeans+greedy"

KPIS = [
    "clusters",
    "shared_clusters",
    "vehicles_used",
    "passengers_matched",
    "passengers_unassigned",
    "percentage_matched",
    "average_detour_km",
    "total_distance_saved_km",
    "runtime_s",
]

# Metrics where LOWER is better (for highlighting improvements)
LOWER_IS_BETTER = [
    "passengers_unassigned",
    "average_detour_km",
    "runtime_s",
]


def run_scenario(scenario: dict, seeds: List[int], now: datetime) -> List[Dict[str, Any]]:
    """Run all strategies on a single scenario for every seed and return one row per run."""
    print(f"\n{'='*60}")
    print(f"SCENARIO: {scenario['name']}")
    print(f"Passengers: {scenario['passengers']}, Vehicles: {scenario['vehicles']}, "
          f"Detour: {scenario['max_detour']} km, Window: {scenario['time_window']} min")
    print(f"{'='*60}")

    params = SimulationParams(
        passenger_count=scenario["passengers"],
        vehicle_count=scenario["vehicles"],
        max_detour_distance_km=scenario["max_detour"],
        time_window_minutes=scenario["time_window"],
    )

    rows: List[Dict[str, Any]] = []
    for clustering, matching in STRATEGIES:
        strategy = f"{clustering}+{matching}"
        matched: List[float] = []

        for seed in seeds:
            service = create_service(clustering=clustering, matching=matching, seed=seed, now=now)
            started = time.perf_counter()
            result = service.run(params)
            runtime = time.perf_counter() - started

            row = {"scenario": scenario["name"], "seed": seed, "strategy": strategy}
            row.update(result.kpis())
            row["runtime_s"] = round(runtime, 4)
            rows.append(row)
            matched.append(result.metrics.percentage_matched)

        print(f"  {strategy:<16} matched {sum(matched) / len(matched):6.1f}% (mean of {len(seeds)} seeds)")

    return rows


def save_runs_csv(rows: List[Dict[str, Any]], output_dir: str, timestamp: str) -> str:
    """Save one row per run."""
    filename = f"{output_dir}/RUNS_{timestamp}.csv"
    header = ["scenario", "seed", "strategy", "passengers", "vehicles"] + KPIS

    with open(filename, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)

    print(f"✓ Saved runs: {filename}")
    return filename


def summarize_runs(rows: List[Dict[str, Any]], baseline: str = BASELINE) -> pd.DataFrame:
    """
    Aggregate runs per scenario and strategy.

    Returns:
        DataFrame with <kpi>_mean and <kpi>_std columns, plus
        <kpi>_vs_baseline (difference of means) and <kpi>_is_improvement
    """
    runs = pd.DataFrame(rows)
    grouped = runs.groupby(["scenario", "strategy"], sort=False)[KPIS]
    summary = grouped.mean().add_suffix("_mean").join(grouped.std(ddof=0).add_suffix("_std"))
    summary = summary.reset_index()

    for kpi in KPIS:
        baseline_means = summary[summary["strategy"] == baseline].set_index("scenario")[f"{kpi}_mean"]
        diff = summary[f"{kpi}_mean"] - summary["scenario"].map(baseline_means)
        summary[f"{kpi}_vs_baseline"] = diff.round(4)
        improved = diff < 0 if kpi in LOWER_IS_BETTER else diff > 0
        summary[f"{kpi}_is_improvement"] = improved.map({True: "yes", False: "no"})

    return summary.round(4)


def save_summary_csv(summary: pd.DataFrame, output_dir: str, timestamp: str) -> str:
    """Save the per scenario and strategy summary."""
    filename = f"{output_dir}/SUMMARY_{timestamp}.csv"
    summary.to_csv(filename, index=False)
    print(f"✓ Saved summary: {filename}")
    return filename


def main(output_root: str = "results", seeds: Optional[List[int]] = None) -> str:
    """
    Run the full benchmark suite.

    Returns:
        The directory the CSV files were written to
    """
    logging.basicConfig(level=logging.WARNING)

    print("=" * 60)
    print("RIDE-SHARING BENCHMARK SUITE")
    print("=" * 60)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join(output_root, timestamp)
    os.makedirs(output_dir, exist_ok=True)

    # One clock for every run so all strategies see the same time window
    now = datetime.now()
    seeds = seeds if seeds is not None else SEEDS

    all_rows: List[Dict[str, Any]] = []
    for scenario in SCENARIOS:
        all_rows.extend(run_scenario(scenario, seeds, now))

    print(f"\n{'='*60}")
    print("GENERATING SUMMARY FILES")
    print("=" * 60)

    save_runs_csv(all_rows, output_dir, timestamp)
    save_summary_csv(summarize_runs(all_rows), output_dir, timestamp)

    print(f"\n{'='*60}")
    print("BENCHMARK COMPLETE")
    print(f"{'='*60}")
    print(f"\nOutput files in {output_dir}/:")
    print(f"  - RUNS_{timestamp}.csv (one row per run)")
    print(f"  - SUMMARY_{timestamp}.csv (means, std devs and changes vs {BASELINE})")

    return output_dir


if __name__ == "__main__":
    main()
