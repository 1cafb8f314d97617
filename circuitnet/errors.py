"""
Exception hierarchy for circuitnet.

Structural mistakes in circuit construction raise immediately. Lookups against
simulation results raise with the requested name and what was actually
available. Solver output problems are never raised; they live on the Dataset.
"""


class CircuitNetError(Exception):
    """Base class for all circuitnet errors."""
    pass


class InvalidTerminalError(CircuitNetError, ValueError):
    """Raised when a pin refers to a terminal its component does not have."""

    def __init__(self, component_name, terminal_name, valid_terminals=()):
        self.component_name = component_name
        self.terminal_name = terminal_name
        self.valid_terminals = tuple(valid_terminals)
        if self.valid_terminals:
            valid = ", ".join(self.valid_terminals)
        else:
            valid = "(component has no terminals)"
        super().__init__(
            f"Component '{component_name}' has no terminal '{terminal_name}'. "
            f"Valid terminals: {valid}"
        )


class ResultLookupError(CircuitNetError, ValueError):
    """
    Base class for failed queries against a dataset or typed result.

    Attributes:
        requested: The name that was asked for
        available: Sorted names that could have been asked for instead
    """
    what = "Entry"

    def __init__(self, requested, available=(), detail=None):
        self.requested = requested
        self.available = sorted(available)
        message = detail or f"{self.what} '{requested}' not found"
        super().__init__(f"{message}. Available: {self.available}")


class VectorNotFoundError(ResultLookupError):
    """A named vector is absent from the dataset or typed result."""
    what = "Vector"


class PinNotConnectedError(ResultLookupError):
    """A pin has no resolved node id (its circuit was never resolved)."""
    what = "Pin"


class CurrentNotAvailableError(ResultLookupError):
    """The analysis carries no branch current for the requested component."""
    what = "Current for component"
