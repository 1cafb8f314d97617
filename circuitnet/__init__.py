"""
circuitnet: circuit graphs, net resolution and Qucs dataset binding

Build a circuit from components and pin-to-pin connections, resolve it into
numbered nets with ground at node 0, parse the solver's dataset output and
read the results back per pin and per component.
"""

import logging

from .circuit import Circuit, NodeTable, node_name, GROUND_NODE
from .components import (
    Component, Terminal, TerminalProvider, pin, discover_terminals,
    Ground, Resistor, Capacitor, Inductor, VoltageProbe, CurrentProbe,
    DCVoltageSource, DCCurrentSource, ACVoltageSource, ACCurrentSource,
    PowerSource, Diode, SPfile, Substrate,
)
from .dataset import DataVector, Dataset, SimulationStatus, parse_dataset, parse_value
from .errors import (
    CircuitNetError, InvalidTerminalError, ResultLookupError,
    VectorNotFoundError, PinNotConnectedError, CurrentNotAvailableError,
)
from .results import (
    AnalysisKind, DCResult, ACResult, TransientResult, SParameterResult,
    extract_result, extract_dc_result, extract_ac_result,
    extract_transient_result, extract_sparameter_result,
)
from .simulation import SimulatorBackend, QucsatorBackend, run_simulation, check_simulation_requirements
from .log_config import setup_logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Circuit and net resolution
    "Circuit", "NodeTable", "node_name", "GROUND_NODE",
    # Components
    "Component", "Terminal", "TerminalProvider", "pin", "discover_terminals",
    "Ground", "Resistor", "Capacitor", "Inductor", "VoltageProbe", "CurrentProbe",
    "DCVoltageSource", "DCCurrentSource", "ACVoltageSource", "ACCurrentSource",
    "PowerSource", "Diode", "SPfile", "Substrate",
    # Dataset parsing
    "DataVector", "Dataset", "SimulationStatus", "parse_dataset", "parse_value",
    # Typed results
    "AnalysisKind", "DCResult", "ACResult", "TransientResult", "SParameterResult",
    "extract_result", "extract_dc_result", "extract_ac_result",
    "extract_transient_result", "extract_sparameter_result",
    # Errors
    "CircuitNetError", "InvalidTerminalError", "ResultLookupError",
    "VectorNotFoundError", "PinNotConnectedError", "CurrentNotAvailableError",
    # Simulation
    "SimulatorBackend", "QucsatorBackend", "run_simulation", "check_simulation_requirements",
    # Logging
    "setup_logging",
]
