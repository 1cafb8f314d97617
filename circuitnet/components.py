"""
Component classes for electronic circuit elements.

Components are plain data holders. The only thing the net resolution engine
needs from them is the list of their terminal names, which comes either from
the ``TerminalProvider`` capability or from scanning attribute names.
"""

import re
from typing import Protocol, Sequence, runtime_checkable

from .errors import InvalidTerminalError


class Terminal:
    """
    One terminal of one component instance.

    Two Terminal objects are equal when they name the same terminal of the
    same component object, so ``Terminal(r, "n1") == r.n1``.
    """

    def __init__(self, component, terminal_name):
        if component is None:
            raise TypeError("Terminal requires an owning component")
        if not isinstance(terminal_name, str) or not terminal_name:
            raise TypeError(f"terminal_name must be a non-empty string, got {terminal_name!r}")
        self.component = component
        self.terminal_name = terminal_name

    def __eq__(self, other):
        if not isinstance(other, Terminal):
            return NotImplemented
        return self.component is other.component and self.terminal_name == other.terminal_name

    def __hash__(self):
        return hash((id(self.component), self.terminal_name))

    def __str__(self):
        return f"{component_label(self.component)}.{self.terminal_name}"

    def __repr__(self):
        return f"Terminal({self})"


@runtime_checkable
class TerminalProvider(Protocol):
    """
    Capability for components that declare their own terminals.

    Implement this when terminal names are not plain attributes, or when
    their number is only known at construction time.
    """

    def terminal_names(self) -> Sequence[str]:
        ...


# Attribute names the fallback scanner treats as terminals.
TERMINAL_FIELD_PATTERN = re.compile(r"^n\d*$")
SEMANTIC_TERMINAL_NAMES = frozenset({
    "nplus", "nminus",
    "anode", "cathode",
    "gate", "drain", "source", "bulk",
    "collector", "base", "emitter",
    "input", "output",
    "t1", "t2",
})


def is_terminal_field(name):
    """Whether an attribute name follows the terminal naming convention."""
    return bool(TERMINAL_FIELD_PATTERN.match(name)) or name in SEMANTIC_TERMINAL_NAMES


def discover_terminals(component):
    """
    Return the ordered terminal names of a component.

    Components implementing ``TerminalProvider`` are asked directly. Anything
    else is scanned: an attribute is a terminal when its name follows the
    naming convention and it holds either a Terminal owned by the component
    or an integer node placeholder.
    """
    if isinstance(component, TerminalProvider):
        return tuple(component.terminal_names())

    names = []
    for attr, value in getattr(component, "__dict__", {}).items():
        if not is_terminal_field(attr):
            continue
        if isinstance(value, Terminal):
            if value.component is component and value.terminal_name == attr:
                names.append(attr)
        elif isinstance(value, int) and not isinstance(value, bool):
            names.append(attr)
    return tuple(names)


def is_ground(component):
    return getattr(component, "is_ground", False) is True


def component_label(component):
    """Human-readable name for error messages."""
    name = getattr(component, "name", None)
    if name and name != "UNNAMED":
        return name
    return f"{component.__class__.__name__}_{id(component) % 10000}"


def as_terminal(target, terminal_name=None):
    """
    Normalize a pin reference to a validated Terminal.

    Accepts a Terminal, a ``(component, terminal_name)`` tuple, a component
    plus ``terminal_name``, or a component with exactly one terminal (such as
    Ground). Raises InvalidTerminalError if the component has no such
    terminal.
    """
    if isinstance(target, Terminal):
        if terminal_name is not None and terminal_name != target.terminal_name:
            raise TypeError(f"Got Terminal {target} together with terminal name '{terminal_name}'")
        component, terminal_name = target.component, target.terminal_name
    elif isinstance(target, tuple):
        if len(target) != 2 or terminal_name is not None:
            raise TypeError(f"Pin tuples must be (component, terminal_name), got {target!r}")
        component, terminal_name = target
    elif target is None or isinstance(target, (str, int, float)):
        raise TypeError(f"Expected a Terminal, (component, name) pair or component, got {type(target)}")
    else:
        component = target

    valid = discover_terminals(component)
    if terminal_name is None:
        if len(valid) != 1:
            raise TypeError(
                f"Component '{component_label(component)}' has {len(valid)} terminals; "
                f"name one of them explicitly"
            )
        terminal_name = valid[0]
    elif terminal_name not in valid:
        raise InvalidTerminalError(component_label(component), terminal_name, valid)

    existing = getattr(component, "__dict__", {}).get(terminal_name)
    if isinstance(existing, Terminal) and existing.component is component:
        return existing
    return Terminal(component, terminal_name)


def pin(component, terminal_name):
    """Build a validated Terminal for ``component.terminal_name``."""
    return as_terminal(component, terminal_name)


class Component:
    """Base class for all circuit components."""

    is_ground = False

    def __init__(self, name=None):
        # Store the requested name (or None for auto-generation by the circuit)
        self._requested_name = name
        self.name = name or "UNNAMED"

    def get_component_type_prefix(self):
        """Prefix used when the circuit auto-names this component."""
        return "X"

    def get_terminals(self):
        """Get list of (terminal_name, terminal) tuples for this component."""
        return [(name, self.terminal(name)) for name in discover_terminals(self)]

    def terminals(self):
        """Get all terminals for this component as an iterable."""
        for terminal_name, terminal in self.get_terminals():
            yield terminal

    def terminal(self, terminal_name):
        return as_terminal(self, terminal_name)

    def __getitem__(self, terminal_name):
        return self.terminal(terminal_name)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name})"


class Ground(Component):
    """Ground reference. Every net touching a Ground terminal is node 0."""

    is_ground = True

    def __init__(self, name="GND"):
        super().__init__(name)
        self.n = Terminal(self, "n")

    def get_component_type_prefix(self):
        return "GND"


class _TwoTerminal(Component):
    """Passive element with terminals n1 and n2."""

    def __init__(self, name=None):
        super().__init__(name)
        self.n1 = Terminal(self, "n1")
        self.n2 = Terminal(self, "n2")

        # Aliases for convenience
        self.a = self.n1
        self.b = self.n2


class Resistor(_TwoTerminal):
    """Resistor component."""

    def __init__(self, resistance=1000.0, name=None):
        self.resistance = resistance
        super().__init__(name)

    def get_component_type_prefix(self):
        return "R"


class Capacitor(_TwoTerminal):
    """Capacitor component."""

    def __init__(self, capacitance=1e-6, name=None):
        self.capacitance = capacitance
        super().__init__(name)

    def get_component_type_prefix(self):
        return "C"


class Inductor(_TwoTerminal):
    """Inductor component."""

    def __init__(self, inductance=1e-3, name=None):
        self.inductance = inductance
        super().__init__(name)

    def get_component_type_prefix(self):
        return "L"


class VoltageProbe(_TwoTerminal):
    """
    Open-circuit probe reading ``V(n1) - V(n2)``.

    The solver reports the reading under the probe's name, e.g. ``VP1.V``.
    """

    def get_component_type_prefix(self):
        return "VP"


class CurrentProbe(_TwoTerminal):
    """Short-circuit probe in series with a branch; current flows n1 to n2."""

    def get_component_type_prefix(self):
        return "IP"


class _Source(Component):
    """
    Two-terminal source with terminals nplus and nminus.

    The solver reports the branch current of a source as the current flowing
    internally from nplus to nminus.
    """

    def __init__(self, name=None):
        super().__init__(name)
        self.nplus = Terminal(self, "nplus")
        self.nminus = Terminal(self, "nminus")

        # Aliases for convenience
        self.pos = self.nplus
        self.neg = self.nminus


class DCVoltageSource(_Source):
    """DC voltage source component."""

    def __init__(self, voltage=0.0, name=None):
        self.voltage = voltage
        super().__init__(name)

    def get_component_type_prefix(self):
        return "V"


class DCCurrentSource(_Source):
    """DC current source component."""

    def __init__(self, current=1e-6, name=None):
        self.current = current
        super().__init__(name)

    def get_component_type_prefix(self):
        return "I"


class ACVoltageSource(_Source):
    """Sinusoidal voltage source for AC and transient analyses."""

    def __init__(self, amplitude=1.0, frequency=1e3, phase=0.0, name=None):
        self.amplitude = amplitude
        self.frequency = frequency
        self.phase = phase
        super().__init__(name)

    def get_component_type_prefix(self):
        return "V"


class ACCurrentSource(_Source):
    """Sinusoidal current source for AC and transient analyses."""

    def __init__(self, amplitude=1e-3, frequency=1e3, phase=0.0, name=None):
        self.amplitude = amplitude
        self.frequency = frequency
        self.phase = phase
        super().__init__(name)

    def get_component_type_prefix(self):
        return "I"


class PowerSource(_Source):
    """
    Numbered port for S-parameter analysis.

    Args:
        port_num: Port index used in the S[i,j] result names (1-based)
        impedance: Port reference impedance in Ohms
    """

    def __init__(self, port_num, impedance=50.0, power=-20.0, frequency=1e9, name=None):
        if not isinstance(port_num, int) or port_num < 1:
            raise ValueError(f"port_num must be a positive integer, got {port_num!r}")
        if impedance <= 0:
            raise ValueError("Port impedance must be positive")
        self.port_num = port_num
        self.impedance = impedance
        self.power = power
        self.frequency = frequency
        super().__init__(name)

    def get_component_type_prefix(self):
        return "P"


class Diode(Component):
    """Junction diode with anode and cathode terminals."""

    def __init__(self, saturation_current=1e-15, emission_coefficient=1.0, name=None):
        self.saturation_current = saturation_current
        self.emission_coefficient = emission_coefficient
        super().__init__(name)
        self.anode = Terminal(self, "anode")
        self.cathode = Terminal(self, "cathode")

    def terminal_names(self):
        return ("anode", "cathode")

    def get_component_type_prefix(self):
        return "D"


_TOUCHSTONE_EXTENSION = re.compile(r"\.s(\d+)p$", re.IGNORECASE)


def detect_touchstone_ports(path):
    """Port count from a Touchstone file name such as ``amp.s2p``."""
    match = _TOUCHSTONE_EXTENSION.search(str(path))
    if match is None:
        raise ValueError(
            f"Cannot infer the port count from '{path}'; pass num_ports explicitly"
        )
    return int(match.group(1))


class SPfile(Component):
    """
    Black-box N-port described by a Touchstone S-parameter file.

    The component has N+1 terminals: ``n1`` .. ``nN`` for the ports and
    ``ref`` for the common reference, which should be tied to ground. N comes
    from the file extension unless ``num_ports`` is given.

    Examples:
        amp = SPfile("amplifier.s2p", name="AMP1")
        circuit.connect(src.nplus, amp.n1)
        circuit.connect(amp.ref, circuit.gnd)
    """

    def __init__(self, file, num_ports=None, data_format="rectangular",
                 interpolator="linear", name=None):
        if data_format not in ("rectangular", "polar"):
            raise ValueError("data_format must be 'rectangular' or 'polar'")
        if interpolator not in ("linear", "cubic"):
            raise ValueError("interpolator must be 'linear' or 'cubic'")
        if num_ports is None:
            num_ports = detect_touchstone_ports(file)
        if num_ports < 1:
            raise ValueError("An S-parameter file needs at least one port")

        self.file = str(file)
        self.num_ports = num_ports
        self.data_format = data_format
        self.interpolator = interpolator
        super().__init__(name)

        self._terminal_names = tuple(f"n{i}" for i in range(1, num_ports + 1)) + ("ref",)
        for terminal_name in self._terminal_names:
            setattr(self, terminal_name, Terminal(self, terminal_name))  # Allows access like spf.n3

    def terminal_names(self):
        return self._terminal_names

    def get_component_type_prefix(self):
        return "SP"

    def __repr__(self):
        return f"SPfile({self.name}, {self.num_ports} ports, file={self.file!r})"


class Substrate(Component):
    """
    Substrate definition referenced by microstrip components.

    It has no electrical terminals and never takes part in node resolution.
    """

    def __init__(self, er=9.8, h=1e-3, t=35e-6, tand=2e-4, rho=0.022e-6, d=0.15e-6, name=None):
        self.er = er
        self.h = h
        self.t = t
        self.tand = tand
        self.rho = rho
        self.d = d
        super().__init__(name)

    def get_component_type_prefix(self):
        return "SUB"
