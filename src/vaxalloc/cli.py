"""Command-line interface for vaxalloc"""

import argparse
import logging
from pathlib import Path

import matplotlib
from rich import print as rprint
from rich.logging import RichHandler

from vaxalloc.capacity import fit_capacity_growth, capacity_curve
from vaxalloc.data import (
    load_config,
    load_administration_history,
    inputs_from_config,
    scenarios_from_config,
)
from vaxalloc.data.loaders import growth_from_config
from vaxalloc.errors import ConfigurationError, UnrecoverableOverflowError
from vaxalloc.report import plot_outcomes, write_outcomes
from vaxalloc.scenarios import run_scenarios, summarize
from vaxalloc.sim import run_simulation


def configure_logging(level: str = "WARNING") -> None:
    """Configure the root logger once, with rich output."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
    )


# ---- Command implementations ----

def cmd_simulate(args):
    """Run a single simulation with the configured capacity ceiling and all suppliers"""
    cfg = load_config(args.config)
    inputs = inputs_from_config(cfg, base_dir=Path(args.config).parent)

    rprint(f"[cyan]Simulating {inputs.horizon_weeks} weeks "
           f"for population {inputs.total_population:,.0f}...[/cyan]")

    outcomes = run_simulation(inputs)
    last = outcomes.iloc[-1]

    rprint("[green]Simulation complete:[/green]")
    rprint(f"  Doses administered: {last['cumulative_administered']:,.0f}")
    rprint(f"  Fully protected: {last['fully_protected']:,.0f} "
           f"({last['fully_protected'] / inputs.total_population:.1%})")
    rprint(f"  Remaining stock: {last['stock_total']:,.0f}")
    rprint(f"  Corrected weeks: {int(outcomes['corrected'].sum())}")

    if args.out:
        Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        outcomes.to_csv(args.out, index=False)
        rprint(f"[green]✓ Wrote outcomes -> {args.out}[/green]")


def cmd_scenarios(args):
    """Run the capacity × supplier scenario grid"""
    cfg = load_config(args.config)
    base_dir = Path(args.config).parent
    inputs = inputs_from_config(cfg, base_dir=base_dir)
    grid = scenarios_from_config(cfg)
    growth = growth_from_config(cfg["capacity"]["two_dose"], base_dir)

    n = len(grid["capacity"]) * len(grid["suppliers"])
    rprint(f"[cyan]Running {n} scenarios (n_jobs={args.n_jobs})...[/cyan]")

    results = run_scenarios(
        inputs,
        growth,
        grid["capacity"],
        grid["suppliers"],
        n_jobs=args.n_jobs,
    )

    out_dir = args.out or (cfg.get("output") or {}).get("dir", "outputs")
    summary_path = write_outcomes(results, out_dir, inputs.total_population, grid["coverage_target"])
    rprint(f"[green]✓ Wrote {len(results)} outcome tables + summary -> {summary_path}[/green]")

    summary = summarize(results, inputs.total_population, grid["coverage_target"])
    rprint(summary.to_string(index=False))

    if args.plot:
        matplotlib.use("Agg")
        png = plot_outcomes(results, str(Path(out_dir) / "coverage.png"), inputs.total_population)
        rprint(f"[green]✓ Wrote chart -> {png}[/green]")


def cmd_fit_capacity(args):
    """Fit linear capacity growth to observed administration history"""
    history = load_administration_history(args.history, date_col=args.date_col, value_col=args.value_col)
    growth = fit_capacity_growth(history)

    rprint(f"[green]Fitted over {len(history)} weeks:[/green]")
    rprint(f"  Baseline (last observed week): {growth.baseline:,.0f} doses/week")
    rprint(f"  Slope: {growth.slope:+,.0f} doses/week per week")

    if args.ceiling is not None and args.horizon:
        curve = capacity_curve(growth.baseline, growth.slope, args.ceiling, args.horizon)
        saturated = curve[curve >= args.ceiling]
        if len(saturated):
            rprint(f"  Reaches ceiling {args.ceiling:,.0f} in week {int(saturated.index[0])}")
        else:
            rprint(f"  Does not reach ceiling {args.ceiling:,.0f} within {args.horizon} weeks")


# ---- Main CLI ----

def main():
    """Main CLI entry point"""
    p = argparse.ArgumentParser(
        prog="vaxalloc",
        description="Weekly vaccine dose allocation simulator"
    )
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")

    sp = p.add_subparsers(dest="cmd", required=True)

    # simulate
    g = sp.add_parser("simulate", help="Run one simulation")
    g.add_argument("--config", default="configs/base.yaml", help="Config file")
    g.add_argument("--out", help="Output CSV for the outcomes table")
    g.set_defaults(func=cmd_simulate)

    # scenarios
    g = sp.add_parser("scenarios", help="Run capacity × supplier scenario grid")
    g.add_argument("--config", default="configs/base.yaml", help="Config file")
    g.add_argument("--out", help="Output directory (overrides config)")
    g.add_argument("--n-jobs", type=int, default=1, help="Number of parallel workers (-1 = all cores)")
    g.add_argument("--plot", action="store_true", help="Also render coverage chart")
    g.set_defaults(func=cmd_scenarios)

    # fit-capacity
    g = sp.add_parser("fit-capacity", help="Fit capacity growth from administration history")
    g.add_argument("--history", required=True, help="CSV of daily administration counts")
    g.add_argument("--date-col", default="date", help="Date column name")
    g.add_argument("--value-col", default="doses", help="Dose count column name")
    g.add_argument("--ceiling", type=float, help="Capacity ceiling to project against")
    g.add_argument("--horizon", type=int, default=52, help="Projection horizon in weeks")
    g.set_defaults(func=cmd_fit_capacity)

    args = p.parse_args()
    configure_logging(args.log_level)

    try:
        args.func(args)
    except ConfigurationError as e:
        rprint(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(2)
    except UnrecoverableOverflowError as e:
        rprint(f"[red]Simulation aborted:[/red] {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
