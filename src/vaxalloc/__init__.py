"""Weekly vaccine dose allocation simulator"""

from .errors import ConfigurationError, UnrecoverableOverflowError
from .types import AdministrationPlan, AllocationCase, PopulationState, Product, ProductSet

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "UnrecoverableOverflowError",
    "AdministrationPlan",
    "AllocationCase",
    "PopulationState",
    "Product",
    "ProductSet",
]
