"""Config and data loading"""

from .loaders import (
    load_config,
    load_administration_history,
    load_tranches,
    inputs_from_config,
    scenarios_from_config,
)

__all__ = [
    "load_config",
    "load_administration_history",
    "load_tranches",
    "inputs_from_config",
    "scenarios_from_config",
]
