"""
Typed, analysis-shaped views of a Dataset, bound back to circuit pins.

The solver names its result vectors after nodes and components. These
classes invert that naming so results can be read per pin or per
component::

    result = extract_result(dataset, AnalysisKind.DC, circuit)
    result.voltage_at_pin(r1.n2)
    result.current_through(v1)
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np

from .circuit import GROUND_NODE, Circuit, NodeTable, node_name
from .components import as_terminal, component_label, discover_terminals
from .dataset import Dataset
from .errors import CurrentNotAvailableError, PinNotConnectedError, ResultLookupError, VectorNotFoundError

logger = logging.getLogger(__name__)


class AnalysisKind(Enum):
    DC = "dc"
    AC = "ac"
    TRANSIENT = "transient"
    S_PARAMETER = "sp"


# (voltage suffix, current suffix, sweep vector) per analysis
VECTOR_NAMING = {
    AnalysisKind.DC: (".V", ".I", None),
    AnalysisKind.AC: (".v", ".i", "acfrequency"),
    AnalysisKind.TRANSIENT: (".Vt", ".It", "time"),
    AnalysisKind.S_PARAMETER: (None, None, "frequency"),
}

_S_PARAM_RE = re.compile(r"^S\[(\d+),\s*(\d+)\]$")


def _frozen(array):
    array = np.array(array)
    array.setflags(write=False)
    return array


class _PinAccess:
    """
    Pin-level accessors shared by the DC, AC and transient results.

    Subclasses provide ``voltages``, ``currents``, ``nodes`` and ``_zero()``.
    """

    def _zero(self):
        raise NotImplementedError

    def node_voltage(self, name):
        """Voltage of a node by its solver name (``gnd`` or ``_net<k>``)."""
        if name == node_name(GROUND_NODE):
            return self._zero()
        try:
            return self.voltages[name]
        except KeyError:
            raise VectorNotFoundError(name, self.voltages, detail=f"No voltage for node '{name}'") from None

    def voltage_at_pin(self, component, terminal_name=None):
        """
        Voltage at one pin.

        Accepts a Terminal, or a component plus terminal name. Pins on the
        ground net read as zero.
        """
        terminal = as_terminal(component, terminal_name)
        if self.nodes is None:
            raise PinNotConnectedError(
                str(terminal), (),
                detail=f"Pin {terminal} has no node id; bind the result to a resolved circuit",
            )
        node = self.nodes.node_of(terminal)
        if node == GROUND_NODE:
            return self._zero()
        return self.node_voltage(node_name(node))

    def _name_of(self, component):
        if isinstance(component, str):
            return component
        if self.nodes is not None and component in self.nodes:
            return self.nodes.name_of(component)
        return component_label(component)

    def current_through(self, component):
        """Branch current of a component, by object or by name."""
        name = self._name_of(component)
        try:
            return self.currents[name]
        except KeyError:
            raise CurrentNotAvailableError(name, self.currents) from None

    def voltage_across(self, component, terminal_a, terminal_b):
        """``V(terminal_a) - V(terminal_b)`` on the same component."""
        return self.voltage_at_pin(component, terminal_a) - self.voltage_at_pin(component, terminal_b)

    def voltage_between(self, terminal_a, terminal_b):
        """``V(terminal_a) - V(terminal_b)`` for any two pins."""
        return self.voltage_at_pin(terminal_a) - self.voltage_at_pin(terminal_b)

    def current_into_pin(self, component, terminal_name=None):
        """
        Current flowing into a pin of a two-terminal component.

        The branch current enters the first declared terminal and leaves the
        second, so the two pins of a component always sum to zero.
        """
        terminal = as_terminal(component, terminal_name)
        owner = terminal.component
        names = discover_terminals(owner)
        if len(names) != 2:
            raise CurrentNotAvailableError(
                component_label(owner), self.currents,
                detail=(
                    f"Pin currents are only defined for two-terminal components; "
                    f"'{component_label(owner)}' has {len(names)} terminals"
                ),
            )
        current = self.current_through(owner)
        if terminal.terminal_name == names[0]:
            return current
        return -current

    def probe_voltage(self, probe):
        """Voltage read by a VoltageProbe, by object or by name."""
        name = self._name_of(probe)
        try:
            return self.voltages[name]
        except KeyError:
            raise VectorNotFoundError(name, self.voltages, detail=f"Voltage probe '{name}' not found") from None

    def probe_current(self, probe):
        """Current read by a CurrentProbe, by object or by name."""
        name = self._name_of(probe)
        try:
            return self.currents[name]
        except KeyError:
            raise CurrentNotAvailableError(name, self.currents, detail=f"Current probe '{name}' not found") from None


@dataclass(frozen=True, eq=False)
class DCResult(_PinAccess):
    """DC operating point: real scalar per node and per branch."""
    voltages: Mapping[str, float]
    currents: Mapping[str, float]
    nodes: Optional[NodeTable] = None

    def _zero(self):
        return 0.0

    def component_power(self, component, terminal_a, terminal_b):
        """Power absorbed by a component, ``V(a, b) * I``."""
        return self.voltage_across(component, terminal_a, terminal_b) * self.current_through(component)


@dataclass(frozen=True, eq=False)
class ACResult(_PinAccess):
    """AC sweep: complex phasor array per node and per branch."""
    frequencies_hz: np.ndarray
    voltages: Mapping[str, np.ndarray]
    currents: Mapping[str, np.ndarray]
    nodes: Optional[NodeTable] = None

    def _zero(self):
        return np.zeros(len(self.frequencies_hz), dtype=complex)


@dataclass(frozen=True, eq=False)
class TransientResult(_PinAccess):
    """Transient run: real waveform per node and per branch."""
    time_s: np.ndarray
    voltages: Mapping[str, np.ndarray]
    currents: Mapping[str, np.ndarray]
    nodes: Optional[NodeTable] = None

    def _zero(self):
        return np.zeros(len(self.time_s))


@dataclass(frozen=True, eq=False)
class SParameterResult:
    """
    S-parameter sweep as a full ``num_ports x num_ports`` matrix.

    Every ``(i, j)`` with ``1 <= i, j <= num_ports`` is present in
    ``s_matrix``; pairs the solver did not report are zero.
    """
    frequencies_hz: np.ndarray
    num_ports: int
    s_matrix: Mapping[Tuple[int, int], np.ndarray]
    z0_ohm: float = 50.0

    def s(self, i, j):
        try:
            return self.s_matrix[(i, j)]
        except KeyError:
            raise VectorNotFoundError(
                f"S[{i},{j}]", [f"S[{a},{b}]" for a, b in self.s_matrix]
            ) from None

    def to_array(self):
        """
        Stack into a complex array of shape (points, num_ports, num_ports).

        Raises:
            ResultLookupError: if an ``S[i,j]`` vector does not have one value
                per sweep point
        """
        n = self.num_ports
        points = len(self.frequencies_hz)
        stacked = np.zeros((points, n, n), dtype=complex)
        for (i, j), values in self.s_matrix.items():
            if len(values) != points:
                raise ResultLookupError(
                    f"S[{i},{j}]", (),
                    detail=f"S[{i},{j}] has {len(values)} points but the sweep has {points}",
                )
            stacked[:, i - 1, j - 1] = values
        return stacked


def _collect(dataset, suffix):
    """Map ``prefix -> values`` for every vector named ``<prefix><suffix>``."""
    found = {}
    for name in dataset.list_vectors():
        if name.endswith(suffix) and len(name) > len(suffix):
            found[name[:-len(suffix)]] = dataset.get_complex_vector(name)
    return found


def _sweep(dataset, name, kind):
    if name in dataset:
        return _frozen(dataset.get_real_vector(name))
    if dataset.independent_vars:
        fallback = next(iter(dataset.independent_vars))
        logger.warning(
            "%s dataset has no '%s' vector; using '%s' as the sweep", kind.name, name, fallback
        )
        return _frozen(dataset.get_real_vector(fallback))
    logger.warning("%s dataset has no '%s' vector", kind.name, name)
    return _frozen(np.zeros(0))


def _check_status(dataset, kind):
    if dataset.has_errors():
        logger.warning(
            "Extracting %s result from a dataset with status %s (%d errors)",
            kind.name, dataset.status.name, len(dataset.errors)
        )


def extract_dc_result(dataset, nodes=None):
    _check_status(dataset, AnalysisKind.DC)
    voltage_suffix, current_suffix, _ = VECTOR_NAMING[AnalysisKind.DC]

    def scalars(suffix):
        out = {}
        for prefix, values in _collect(dataset, suffix).items():
            if len(values) == 0:
                logger.debug("Skipping empty DC vector '%s%s'", prefix, suffix)
                continue
            out[prefix] = float(values[0].real)
        return out

    return DCResult(MappingProxyType(scalars(voltage_suffix)), MappingProxyType(scalars(current_suffix)), nodes)


def extract_ac_result(dataset, nodes=None):
    kind = AnalysisKind.AC
    _check_status(dataset, kind)
    voltage_suffix, current_suffix, sweep = VECTOR_NAMING[kind]
    return ACResult(
        _sweep(dataset, sweep, kind),
        MappingProxyType({k: _frozen(v) for k, v in _collect(dataset, voltage_suffix).items()}),
        MappingProxyType({k: _frozen(v) for k, v in _collect(dataset, current_suffix).items()}),
        nodes,
    )


def extract_transient_result(dataset, nodes=None):
    kind = AnalysisKind.TRANSIENT
    _check_status(dataset, kind)
    voltage_suffix, current_suffix, sweep = VECTOR_NAMING[kind]
    return TransientResult(
        _sweep(dataset, sweep, kind),
        MappingProxyType({k: _frozen(v.real) for k, v in _collect(dataset, voltage_suffix).items()}),
        MappingProxyType({k: _frozen(v.real) for k, v in _collect(dataset, current_suffix).items()}),
        nodes,
    )


def extract_sparameter_result(dataset, z0_ohm=50.0, num_ports=None):
    """
    Build the S-parameter matrix from ``S[i,j]`` vectors.

    Args:
        dataset: Parsed solver output
        z0_ohm: Reference impedance to record on the result
        num_ports: Force the matrix size; by default the largest port index
            seen in the dataset
    """
    kind = AnalysisKind.S_PARAMETER
    _check_status(dataset, kind)
    frequencies = _sweep(dataset, VECTOR_NAMING[kind][2], kind)

    found = {}
    for name in dataset.list_vectors():
        match = _S_PARAM_RE.match(name)
        if match:
            values = dataset.get_complex_vector(name)
            if len(values) != len(frequencies):
                logger.warning(
                    "%s has %d points but the sweep has %d", name, len(values), len(frequencies)
                )
            found[(int(match.group(1)), int(match.group(2)))] = _frozen(values)

    if num_ports is None:
        num_ports = max((max(i, j) for i, j in found), default=0)

    zeros = _frozen(np.zeros(len(frequencies), dtype=complex))
    s_matrix = {}
    for i in range(1, num_ports + 1):
        for j in range(1, num_ports + 1):
            if (i, j) in found:
                s_matrix[(i, j)] = found[(i, j)]
            else:
                s_matrix[(i, j)] = zeros
    filled = sum(1 for key in s_matrix if key not in found)
    if filled:
        logger.debug("Zero-filled %d of %d S-parameters", filled, num_ports * num_ports)

    return SParameterResult(frequencies, num_ports, MappingProxyType(s_matrix), z0_ohm)


_EXTRACTORS = {
    AnalysisKind.DC: extract_dc_result,
    AnalysisKind.AC: extract_ac_result,
    AnalysisKind.TRANSIENT: extract_transient_result,
}


def extract_result(dataset: Dataset, kind, nodes=None, **options):
    """
    Build the typed result for one analysis.

    Args:
        dataset: Parsed solver output
        kind: AnalysisKind or its value ("dc", "ac", "transient", "sp")
        nodes: NodeTable, or a Circuit whose last resolution is used. Needed
            only for pin-level queries.
        **options: ``z0_ohm`` and ``num_ports`` for S-parameter results

    Returns:
        DCResult, ACResult, TransientResult or SParameterResult

    Raises:
        PinNotConnectedError: if a Circuit changed since it was last resolved
    """
    kind = AnalysisKind(kind)
    if isinstance(nodes, Circuit):
        # A never-resolved circuit binds nothing; a stale one is refused
        nodes = nodes._require_nodes() if nodes.nodes is not None else None
    if kind == AnalysisKind.S_PARAMETER:
        return extract_sparameter_result(dataset, **options)
    if options:
        raise TypeError(f"Unexpected options for {kind.name} result: {sorted(options)}")
    return _EXTRACTORS[kind](dataset, nodes)
