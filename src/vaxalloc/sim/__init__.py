"""Weekly allocation simulation"""

from .allocator import allocate, limit_population, safe_split, max_first_doses
from .core import Simulator, SimulationInputs, SimulationState, run_simulation
from .ledgers import ScheduleLedger, StockLedger, PopulationTracker

__all__ = [
    "allocate",
    "limit_population",
    "safe_split",
    "max_first_doses",
    "Simulator",
    "SimulationInputs",
    "SimulationState",
    "run_simulation",
    "ScheduleLedger",
    "StockLedger",
    "PopulationTracker",
]
