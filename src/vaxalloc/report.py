"""Outcome tables and charts"""

from pathlib import Path
from typing import Mapping, Tuple

import pandas as pd

import matplotlib.pyplot as plt

from .scenarios import ScenarioKey, summarize


def scenario_filename(key: ScenarioKey) -> str:
    cap_name, sup_name = key
    return f"outcomes__{cap_name}__{sup_name}.csv"


def write_outcomes(
    results: Mapping[ScenarioKey, pd.DataFrame],
    out_dir: str,
    total_population: float,
    coverage_target: float = 0.7
) -> Path:
    """
    Write one CSV per scenario plus summary.csv.

    Returns:
        Path to the summary file
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    for key, df in results.items():
        df.to_csv(out / scenario_filename(key), index=False)

    summary = summarize(results, total_population, coverage_target)
    summary_path = out / "summary.csv"
    summary.to_csv(summary_path, index=False)
    return summary_path


def plot_outcomes(
    results: Mapping[ScenarioKey, pd.DataFrame],
    out_png: str,
    total_population: float,
    figsize: Tuple[float, float] = (13, 6)
) -> Path:
    """Plot fully-protected share over time, one line per scenario."""
    denom = total_population or 1.0
    fig, ax = plt.subplots(figsize=figsize)
    for (cap_name, sup_name), df in results.items():
        ax.plot(df["date"], df["fully_protected"] / denom * 100, label=f"{cap_name} / {sup_name}")

    ax.set_xlabel("Week")
    ax.set_ylabel("Fully protected (%)")
    ax.set_ylim(0, 100)
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper left", fontsize=9)
    fig.tight_layout()

    path = Path(out_png)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=160)
    plt.close(fig)
    return path
