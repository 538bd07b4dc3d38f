"""Config and data loading"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
import yaml

from ..capacity import CapacityGrowth, capacity_curve, fit_capacity_growth
from ..errors import ConfigurationError
from ..sim.core import SimulationInputs
from ..supply import Tranche, build_delivery_schedule
from ..types import PopulationState, Product, ProductSet


def load_config(path: str) -> dict:
    """Load YAML configuration"""
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if not isinstance(cfg, dict):
        raise ConfigurationError(f"Config {path} must be a mapping")
    return cfg


def _section(cfg: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    if key not in cfg or not isinstance(cfg[key], Mapping):
        raise ConfigurationError(f"Config is missing section {key!r}")
    return cfg[key]


def _resolve(base_dir: Optional[Path], path: str) -> Path:
    p = Path(path)
    if base_dir is not None and not p.is_absolute():
        p = base_dir / p
    return p


def load_administration_history(
    path: str,
    date_col: str = "date",
    value_col: str = "doses"
) -> pd.Series:
    """
    Load observed daily administration counts and total them per week.

    Returns:
        Series of weekly totals, oldest week first
    """
    fp = Path(path)
    if not fp.exists():
        raise FileNotFoundError(f"Administration history not found: {fp}")

    df = pd.read_csv(fp, parse_dates=[date_col])
    missing = {date_col, value_col} - set(df.columns)
    if missing:
        raise ConfigurationError(f"{fp} is missing columns {sorted(missing)}")

    daily = df.set_index(date_col)[value_col].astype(float).sort_index()

    # 7-day bins anchored on the first observed day; an incomplete last bin is dropped
    weekly = daily.resample("7D", origin="start").sum()
    if len(weekly) and daily.index[-1] < weekly.index[-1] + pd.Timedelta(days=6):
        weekly = weekly.iloc[:-1]
    return weekly


def load_tranches(path: str) -> List[Tranche]:
    """
    Load tranche commitments from CSV.

    Expected columns: product, first_week, last_week, total_doses
    """
    fp = Path(path)
    if not fp.exists():
        raise FileNotFoundError(f"Tranche file not found: {fp}")
    df = pd.read_csv(fp)
    return tranches_from_records(df.to_dict("records"))


def tranches_from_records(records: List[Mapping[str, Any]]) -> List[Tranche]:
    out = []
    for i, r in enumerate(records):
        try:
            out.append(Tranche(
                product=str(r["product"]),
                first_week=int(r["first_week"]),
                last_week=int(r["last_week"]),
                total_doses=float(r["total_doses"]),
            ))
        except KeyError as e:
            raise ConfigurationError(f"Tranche #{i} is missing field {e}") from e
    return out


def products_from_config(cfg: Mapping[str, Any]) -> ProductSet:
    sec = _section(cfg, "products")
    try:
        return ProductSet(
            a=Product(str(sec["a"]["name"]), int(sec["a"]["interval_weeks"])),
            b=Product(str(sec["b"]["name"]), int(sec["b"]["interval_weeks"])),
            single=Product(str(sec["single"]["name"]), 0),
        )
    except KeyError as e:
        raise ConfigurationError(f"products section is missing {e}") from e


def growth_from_config(sec: Mapping[str, Any], base_dir: Optional[Path] = None) -> CapacityGrowth:
    """Capacity growth from explicit baseline/slope or from a history CSV."""
    if "history" in sec:
        history = load_administration_history(
            str(_resolve(base_dir, sec["history"])),
            date_col=sec.get("date_col", "date"),
            value_col=sec.get("value_col", "doses"),
        )
        return fit_capacity_growth(history)
    try:
        return CapacityGrowth(baseline=float(sec["baseline"]), slope=float(sec.get("slope", 0.0)))
    except KeyError as e:
        raise ConfigurationError(f"capacity section needs 'history' or 'baseline' (missing {e})") from e


def inputs_from_config(cfg: Mapping[str, Any], base_dir: Optional[Path] = None) -> SimulationInputs:
    """
    Build validated SimulationInputs from a parsed config.

    Relative paths in the config are resolved against ``base_dir``.
    """
    sim = _section(cfg, "simulation")
    products = products_from_config(cfg)
    initial = _section(cfg, "initial")

    try:
        horizon = int(sim["horizon_weeks"])
        total = float(sim["total_population"])
    except KeyError as e:
        raise ConfigurationError(f"simulation section is missing {e}") from e

    pop_cfg = initial.get("population", {"unprotected": total})
    population = PopulationState(
        unprotected=float(pop_cfg.get("unprotected", 0.0)),
        partially_protected=float(pop_cfg.get("partially_protected", 0.0)),
        fully_protected=float(pop_cfg.get("fully_protected", 0.0)),
    )

    deliveries_cfg = cfg.get("deliveries", {}) or {}
    tranches = tranches_from_records(deliveries_cfg.get("tranches", []) or [])
    if "tranches_csv" in deliveries_cfg:
        tranches += load_tranches(str(_resolve(base_dir, deliveries_cfg["tranches_csv"])))
    deliveries = build_delivery_schedule(tranches, products.names, horizon)

    capacity = _section(cfg, "capacity")
    two = _section(capacity, "two_dose")
    single = _section(capacity, "single_dose")
    two_growth = growth_from_config(two, base_dir)
    single_growth = growth_from_config(single, base_dir)

    inputs = SimulationInputs(
        products=products,
        horizon_weeks=horizon,
        total_population=total,
        initial_stock={k: float(v) for k, v in (initial.get("stock") or {}).items()},
        initial_population=population,
        deliveries=deliveries,
        capacity_two_dose=capacity_curve(two_growth.baseline, two_growth.slope,
                                         float(two.get("ceiling", float("inf"))), horizon),
        capacity_single_dose=capacity_curve(single_growth.baseline, single_growth.slope,
                                            float(single.get("ceiling", float("inf"))), horizon),
        initial_schedule={
            name: {int(w): float(c) for w, c in entries.items()}
            for name, entries in (initial.get("schedule") or {}).items()
        },
        start_date=str(sim.get("start_date", "2021-01-04")),
        carry_backlog=bool(sim.get("carry_backlog", True)),
    )
    inputs.validate()
    return inputs


def scenarios_from_config(cfg: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Capacity ceilings and supplier sets to sweep.

    Defaults to the configured two-dose ceiling and all products.
    """
    products = products_from_config(cfg)
    sec = cfg.get("scenarios", {}) or {}
    two = cfg.get("capacity", {}).get("two_dose", {})

    capacity = sec.get("capacity") or {"base": two.get("ceiling", float("inf"))}
    suppliers = sec.get("suppliers") or {"all": list(products.names)}
    return {
        "capacity": {str(k): float(v) for k, v in capacity.items()},
        "suppliers": {str(k): [str(p) for p in v] for k, v in suppliers.items()},
        "coverage_target": float(sec.get("coverage_target", 0.7)),
    }
