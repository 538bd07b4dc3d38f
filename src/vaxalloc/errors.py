"""Exceptions raised by the allocation engine"""


class ConfigurationError(ValueError):
    """Malformed simulation inputs. Raised before any week is simulated."""


class UnrecoverableOverflowError(RuntimeError):
    """
    The population limiter could not absorb a week's overshoot even after
    zeroing single doses and first doses of both two-dose products.
    """

    def __init__(self, week: int, residual: float):
        self.week = week
        self.residual = residual
        super().__init__(
            f"Week {week}: population overshoot of {residual:g} remains after "
            f"removing all single and first doses"
        )
