"""Administration-capacity curves: linear growth from observed history, saturating at a ceiling"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import linregress

from .errors import ConfigurationError


@dataclass(frozen=True)
class CapacityGrowth:
    """Weekly capacity at the last observed week and its weekly increase."""
    baseline: float
    slope: float


def fit_capacity_growth(history: pd.Series) -> CapacityGrowth:
    """
    Fit a straight line through observed weekly administration counts.

    Args:
        history: Doses administered per week, oldest first

    Returns:
        CapacityGrowth with baseline = fitted value at the last observed week
    """
    y = history.dropna().astype(float).to_numpy()
    if len(y) < 2:
        raise ConfigurationError(f"Need at least 2 observed weeks to fit capacity growth (got {len(y)})")

    x = np.arange(len(y), dtype=float)
    fit = linregress(x, y)
    baseline = fit.intercept + fit.slope * x[-1]
    return CapacityGrowth(baseline=float(max(0.0, baseline)), slope=float(fit.slope))


def capacity_curve(
    baseline: float,
    slope: float,
    ceiling: float,
    horizon_weeks: int
) -> pd.Series:
    """
    Weekly capacity for weeks 1..horizon_weeks.

    capacity(w) = min(ceiling, max(0, baseline + slope × w))
    """
    if ceiling < 0:
        raise ConfigurationError(f"Capacity ceiling must be >= 0 (got {ceiling})")
    if horizon_weeks < 1:
        raise ConfigurationError(f"horizon_weeks must be >= 1 (got {horizon_weeks})")

    weeks = np.arange(1, horizon_weeks + 1)
    values = np.clip(baseline + slope * weeks, 0.0, ceiling)
    return pd.Series(values, index=pd.Index(weeks, name="week"), name="capacity")


def curve_from_growth(growth: CapacityGrowth, ceiling: float, horizon_weeks: int) -> pd.Series:
    return capacity_curve(growth.baseline, growth.slope, ceiling, horizon_weeks)
